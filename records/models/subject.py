from datetime import datetime
from typing import Optional

from sqlalchemy import String, Float, ForeignKey, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from records.core.database import Base, IdType

class Subject(Base):
    __tablename__ = "subject"

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    subject_code: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    coefficient: Mapped[float] = mapped_column(Float, nullable=False)
    criteria: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    subject_status: Mapped[str] = mapped_column(String, nullable=False, default="ACTIVE")
    block_id: Mapped[int] = mapped_column(IdType, ForeignKey("block.id", ondelete="CASCADE"), nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    block: Mapped["Block"] = relationship("Block", back_populates="subjects", passive_deletes=True)
    tests: Mapped[list["Test"]] = relationship(
        "Test",
        back_populates="subject",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
