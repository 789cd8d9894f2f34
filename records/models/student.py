from datetime import datetime
from typing import Optional

from sqlalchemy import String, ForeignKey, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from records.core.database import Base, IdType

class Student(Base):
    __tablename__ = "student"

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=True)
    student_status: Mapped[str] = mapped_column(String, nullable=False, default="ACTIVE")
    school_id: Mapped[int] = mapped_column(IdType, ForeignKey("school.id", ondelete="CASCADE"), nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    school: Mapped["School"] = relationship("School", back_populates="students", passive_deletes=True)
    test_results: Mapped[list["StudentTestResult"]] = relationship(
        "StudentTestResult",
        back_populates="student",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
