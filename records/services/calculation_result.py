import json
import os
from datetime import datetime, timezone
from typing import List

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from records.api.v1.schemas.calculation_result import TranscriptResult, TranscriptWorkerMessage
from records.core.config import settings
from records.core.logger import logger
from records.models import CalculationResult, TranscriptRun

STATUS_PUBLISHED = "PUBLISHED"
STATUS_DELETED = "DELETED"


class CalculationResultService:
    @staticmethod
    async def save_calculation_result(transcript: TranscriptResult, db: AsyncSession) -> CalculationResult:
        """
        Сохранение рассчитанной ведомости студента.

        На студента хранится одна не удалённая ведомость: существующая
        перезаписывается, иначе создаётся новая.

        Args:
            transcript: Рассчитанная ведомость
            db: Асинхронная сессия SQLAlchemy

        Returns:
            CalculationResult: Сохранённая запись
        """
        result = await db.execute(
            select(CalculationResult).where(
                CalculationResult.student_id == transcript.student_id,
                CalculationResult.calculation_result_status != STATUS_DELETED,
            )
        )
        calculation_result = result.scalars().first()
        payload = transcript.model_dump(mode="json")

        if calculation_result:
            calculation_result.overall_result = transcript.overall_result.value
            calculation_result.results = payload
            calculation_result.calculation_result_status = STATUS_PUBLISHED
            calculation_result.updated_at = datetime.now(timezone.utc)
        else:
            calculation_result = CalculationResult(
                student_id=transcript.student_id,
                overall_result=transcript.overall_result.value,
                results=payload,
                calculation_result_status=STATUS_PUBLISHED,
            )
            db.add(calculation_result)

        try:
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            raise

        logger.info(
            f"[СОХРАНЕНИЕ ВЕДОМОСТИ] Ведомость студента ID {transcript.student_id} сохранена, "
            f"итог {transcript.overall_result.value}"
        )
        return calculation_result

    @staticmethod
    def write_transcript_log(transcript: TranscriptResult) -> None:
        """Копия ведомости в JSON-файле для разбора инцидентов, ошибки записи не критичны."""
        try:
            os.makedirs(settings.TRANSCRIPT_LOG_DIR, exist_ok=True)
            file_path = os.path.join(settings.TRANSCRIPT_LOG_DIR, f"transcript_{transcript.student_id}.json")
            with open(file_path, "w", encoding="utf-8") as f:
                json.dump(transcript.model_dump(mode="json"), f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.warning(f"[ЖУРНАЛ ВЕДОМОСТИ] Не удалось записать файл ведомости: {e}")

    @staticmethod
    async def record_run(message: TranscriptWorkerMessage, session_factory: async_sessionmaker) -> None:
        """
        Сохранение исхода работы воркера.

        Любая ошибка сохранения только логируется: исход всё равно уходит диспетчеру.
        """
        try:
            async with session_factory() as db:
                db.add(TranscriptRun(
                    student_id=message.student_id,
                    success=message.success,
                    message=message.message,
                    error=message.error,
                    error_code=message.code,
                ))
                await db.commit()
        except Exception as e:
            logger.bind(worker=True, student_id=message.student_id).error(
                f"[ВОРКЕР ВЕДОМОСТИ] Не удалось сохранить исход расчёта: {e}"
            )

    @staticmethod
    async def get_calculation_result(student_id: int, db: AsyncSession) -> CalculationResult:
        """
        Получение опубликованной ведомости студента.

        Raises:
            HTTPException: 404 - Ведомость не найдена
            HTTPException: 500 - Ошибка базы данных
        """
        try:
            result = await db.execute(
                select(CalculationResult).where(
                    CalculationResult.student_id == student_id,
                    CalculationResult.calculation_result_status == STATUS_PUBLISHED,
                )
            )
            calculation_result = result.scalars().first()
        except SQLAlchemyError as e:
            logger.error(f"[ПОЛУЧЕНИЕ ВЕДОМОСТИ] Ошибка базы данных: {str(e)}")
            raise HTTPException(
                status_code=500,
                detail="Ошибка при получении ведомости"
            ) from e

        if not calculation_result:
            logger.warning(f"[ПОЛУЧЕНИЕ ВЕДОМОСТИ] Ведомость не найдена: студент ID {student_id}")
            raise HTTPException(
                status_code=404,
                detail="Ведомость не найдена"
            )

        logger.info(f"[ПОЛУЧЕНИЕ ВЕДОМОСТИ] Получена ведомость студента ID {student_id}")
        return calculation_result

    @staticmethod
    async def get_transcript_runs(student_id: int, db: AsyncSession) -> List[TranscriptRun]:
        """
        История запусков расчёта ведомости студента, новые первыми.

        Raises:
            HTTPException: 500 - Ошибка базы данных
        """
        try:
            result = await db.execute(
                select(TranscriptRun)
                .where(TranscriptRun.student_id == str(student_id))
                .order_by(TranscriptRun.created_at.desc(), TranscriptRun.id.desc())
            )
            runs = list(result.scalars().all())
            logger.info(f"[ИСТОРИЯ РАСЧЁТОВ] Студент ID {student_id}: найдено {len(runs)} запусков")
            return runs
        except SQLAlchemyError as e:
            logger.error(f"[ИСТОРИЯ РАСЧЁТОВ] Ошибка базы данных: {str(e)}")
            raise HTTPException(
                status_code=500,
                detail="Ошибка при получении истории расчётов"
            ) from e
