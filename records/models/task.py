from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from records.core.database import Base, IdType

class Task(Base):
    __tablename__ = "task"

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    task_type: Mapped[str] = mapped_column(String, nullable=False)
    task_status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")
    student_test_result_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("student_test_result.id", ondelete="CASCADE"), nullable=False
    )

    student_test_result: Mapped["StudentTestResult"] = relationship(
        "StudentTestResult", back_populates="tasks", passive_deletes=True
    )
