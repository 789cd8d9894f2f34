from datetime import datetime
from typing import Optional

from sqlalchemy import String, Float, ForeignKey, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from records.core.database import Base, IdType

class Test(Base):
    __tablename__ = "test"
    __test__ = False

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    weight: Mapped[float] = mapped_column(Float, nullable=False)
    notations: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    criteria: Mapped[dict] = mapped_column(JSON, nullable=False)
    test_status: Mapped[str] = mapped_column(String, nullable=False, default="DRAFT")
    subject_id: Mapped[int] = mapped_column(IdType, ForeignKey("subject.id", ondelete="CASCADE"), nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    subject: Mapped["Subject"] = relationship("Subject", back_populates="tests", passive_deletes=True)
    results: Mapped[list["StudentTestResult"]] = relationship(
        "StudentTestResult",
        back_populates="test",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
