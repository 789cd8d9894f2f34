from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from records.core.database import get_db
from records.core.logger import logger
from records.services.student_test_result import StudentTestResultService

router = APIRouter(prefix="/student-test-result", tags=["Student Test Result"])


@router.patch("/validate-marks/{task_id}", status_code=status.HTTP_200_OK)
async def validate_marks(
        task_id: int = Path(...),
        db: AsyncSession = Depends(get_db),
):
    """
    Подтверждение оценок и запуск расчёта ведомости.

    Args:
        task_id: Идентификатор задачи VALIDATE_MARKS
        db: Асинхронная сессия SQLAlchemy

    Returns:
        dict: Идентификатор подтверждённого результата теста

    Raises:
        HTTPException: 400 - Задача не подходит для подтверждения
        HTTPException: 404 - Задача или результат не найдены
        HTTPException: 500 - Внутренняя ошибка сервера
    """
    try:
        student_test_result = await StudentTestResultService.validate_marks(task_id, db)
        return {
            "detail": "Оценки подтверждены",
            "id": student_test_result.id
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[ПОДТВЕРЖДЕНИЕ ОЦЕНОК] Ошибка при подтверждении оценок: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Произошла ошибка при подтверждении оценок"
        ) from e
