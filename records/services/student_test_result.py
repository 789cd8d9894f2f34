from datetime import datetime, timezone

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from records.core.exceptions import WorkerSpawnError
from records.core.logger import logger
from records.models import StudentTestResult, Task
from records.services.transcript_worker import run_transcript_worker

TASK_VALIDATE_MARKS = "VALIDATE_MARKS"
TASK_PENDING = "PENDING"
TASK_COMPLETED = "COMPLETED"
STATUS_DELETED = "DELETED"


class StudentTestResultService:
    @staticmethod
    async def validate_marks(task_id: int, db: AsyncSession) -> StudentTestResult:
        """
        Подтверждение оценок по задаче VALIDATE_MARKS.

        Ставит дату подтверждения результату теста, закрывает задачу и
        запускает расчёт ведомости студента. Расчёт идёт в фоне: его ошибки
        сюда не возвращаются, только ошибка запуска воркера.

        Args:
            task_id: Идентификатор задачи
            db: Асинхронная сессия SQLAlchemy

        Returns:
            StudentTestResult: Подтверждённый результат теста

        Raises:
            HTTPException: 404 - Задача или результат теста не найдены
            HTTPException: 400 - Задача не является ожидающей задачей VALIDATE_MARKS
            HTTPException: 500 - Ошибка базы данных или запуска воркера
        """
        try:
            result = await db.execute(
                select(Task)
                .where(Task.id == task_id)
                .options(selectinload(Task.student_test_result))
            )
            task = result.scalars().first()

            if not task:
                logger.warning(f"[ПОДТВЕРЖДЕНИЕ ОЦЕНОК] Задача не найдена: ID {task_id}")
                raise HTTPException(
                    status_code=404,
                    detail="Задача не найдена"
                )

            if task.task_type != TASK_VALIDATE_MARKS or task.task_status != TASK_PENDING:
                logger.warning(
                    f"[ПОДТВЕРЖДЕНИЕ ОЦЕНОК] Задача ID {task_id} не подходит: "
                    f"тип {task.task_type}, статус {task.task_status}"
                )
                raise HTTPException(
                    status_code=400,
                    detail="Задача не является ожидающей задачей подтверждения оценок"
                )

            student_test_result = task.student_test_result
            if (
                    not student_test_result
                    or student_test_result.student_test_result_status == STATUS_DELETED
                    or student_test_result.deleted_at is not None
            ):
                logger.warning(f"[ПОДТВЕРЖДЕНИЕ ОЦЕНОК] Результат теста для задачи ID {task_id} не найден")
                raise HTTPException(
                    status_code=404,
                    detail="Результат теста не найден"
                )

            student_test_result.mark_validated_date = datetime.now(timezone.utc)
            task.task_status = TASK_COMPLETED
            await db.commit()

            logger.info(
                f"[ПОДТВЕРЖДЕНИЕ ОЦЕНОК] Оценки подтверждены: результат ID {student_test_result.id}, "
                f"студент ID {student_test_result.student_id}"
            )

        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"[ПОДТВЕРЖДЕНИЕ ОЦЕНОК] Ошибка базы данных: {str(e)}")
            raise HTTPException(
                status_code=500,
                detail="Ошибка при подтверждении оценок"
            ) from e

        try:
            await run_transcript_worker(student_test_result.student_id)
        except WorkerSpawnError as e:
            logger.error(f"[ПОДТВЕРЖДЕНИЕ ОЦЕНОК] {e.message}")
            raise HTTPException(
                status_code=500,
                detail="Воркер расчёта ведомости не запущен"
            ) from e

        return student_test_result
