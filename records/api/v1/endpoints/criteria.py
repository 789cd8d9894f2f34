from fastapi import APIRouter, Body, HTTPException, status
from pydantic import ValidationError

from records.api.v1.schemas.criteria import BlockCriteria, SubjectCriteria, TestCriteria
from records.core.logger import logger

router = APIRouter(prefix="/criteria", tags=["Criteria"])

SCHEMAS = {
    "test": TestCriteria,
    "subject": SubjectCriteria,
    "block": BlockCriteria,
}


@router.post("/validate/{kind}", status_code=status.HTTP_200_OK)
async def validate_criteria(kind: str, criteria=Body(...)):
    """
    Проверка структуры критериев до сохранения теста, предмета или блока.

    Args:
        kind: Тип сущности: test, subject или block
        criteria: Критерии в том виде, в котором они будут сохранены

    Returns:
        dict: Нормализованные критерии

    Raises:
        HTTPException: 404 - Неизвестный тип сущности
        HTTPException: 422 - Критерии некорректны
    """
    schema = SCHEMAS.get(kind)
    if schema is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Неизвестный тип критериев: {kind}"
        )

    try:
        parsed = schema.model_validate(criteria)
    except ValidationError as e:
        logger.warning(f"[ПРОВЕРКА КРИТЕРИЕВ] Некорректные критерии {kind}: {e.error_count()} ошибок")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False)
        ) from e

    return {
        "detail": "Критерии корректны",
        "criteria": parsed.model_dump(mode="json")
    }
