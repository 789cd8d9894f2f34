from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Float, ForeignKey, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from records.core.database import Base, IdType

class StudentTestResult(Base):
    __tablename__ = "student_test_result"

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    marks: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    average_mark: Mapped[float] = mapped_column(Float, nullable=False)
    mark_entry_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    mark_validated_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    student_test_result_status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING_REVIEW")
    student_id: Mapped[int] = mapped_column(IdType, ForeignKey("student.id", ondelete="CASCADE"), nullable=False)
    test_id: Mapped[int] = mapped_column(IdType, ForeignKey("test.id", ondelete="CASCADE"), nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    student: Mapped["Student"] = relationship("Student", back_populates="test_results", passive_deletes=True)
    test: Mapped["Test"] = relationship("Test", back_populates="results", passive_deletes=True)
    tasks: Mapped[list["Task"]] = relationship(
        "Task",
        back_populates="student_test_result",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
