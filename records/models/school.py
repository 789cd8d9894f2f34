from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from records.core.database import Base, IdType

class School(Base):
    __tablename__ = "school"

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    school_status: Mapped[str] = mapped_column(String, nullable=False, default="ACTIVE")
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    students: Mapped[list["Student"]] = relationship(
        "Student",
        back_populates="school",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
