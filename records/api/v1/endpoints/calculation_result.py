from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from records.api.v1.schemas.calculation_result import CalculationResultResponse, TranscriptRunResponse
from records.core.database import get_db
from records.core.exceptions import WorkerSpawnError
from records.core.logger import logger
from records.services.calculation_result import CalculationResultService
from records.services.transcript_worker import run_transcript_worker

router = APIRouter(prefix="/calculation-result", tags=["Calculation Result"])


@router.get("/{student_id}", response_model=CalculationResultResponse)
async def get_calculation_result(
        student_id: int = Path(...),
        db: AsyncSession = Depends(get_db),
):
    """
    Получение опубликованной ведомости студента.

    Raises:
        HTTPException: 404 - Ведомость не найдена
    """
    return await CalculationResultService.get_calculation_result(student_id, db)


@router.get("/{student_id}/runs", response_model=List[TranscriptRunResponse])
async def get_transcript_runs(
        student_id: int = Path(...),
        db: AsyncSession = Depends(get_db),
):
    return await CalculationResultService.get_transcript_runs(student_id, db)


@router.post("/{student_id}/recalculate", status_code=status.HTTP_202_ACCEPTED)
async def recalculate(student_id: int = Path(...)):
    """
    Повторный запуск расчёта ведомости студента.

    Ответ возвращается сразу после запуска воркера, исход
    смотреть в истории запусков.

    Raises:
        HTTPException: 500 - Воркер не запущен
    """
    try:
        await run_transcript_worker(student_id)
    except WorkerSpawnError as e:
        logger.error(f"[ПЕРЕРАСЧЁТ ВЕДОМОСТИ] {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Воркер расчёта ведомости не запущен"
        ) from e

    logger.info(f"[ПЕРЕРАСЧЁТ ВЕДОМОСТИ] Запущен перерасчёт для студента ID {student_id}")
    return {
        "detail": "Расчёт ведомости запущен",
        "student_id": student_id
    }
