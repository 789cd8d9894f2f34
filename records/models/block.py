from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from records.core.database import Base, IdType

class Block(Base):
    __tablename__ = "block"

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=True)
    block_status: Mapped[str] = mapped_column(String, nullable=False, default="ACTIVE")
    # Группы правил PASS/FAIL; без них блок участвует в ведомости только итоговой оценкой
    criteria: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    subjects: Mapped[list["Subject"]] = relationship(
        "Subject",
        back_populates="block",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
