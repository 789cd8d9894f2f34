from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, ForeignKey, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from records.core.database import Base, IdType

class CalculationResult(Base):
    __tablename__ = "calculation_result"

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    student_id: Mapped[int] = mapped_column(IdType, ForeignKey("student.id", ondelete="CASCADE"), nullable=False)
    overall_result: Mapped[str] = mapped_column(String, nullable=False)
    results: Mapped[dict] = mapped_column(JSON, nullable=False)
    calculation_result_status: Mapped[str] = mapped_column(String, nullable=False, default="PUBLISHED")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
