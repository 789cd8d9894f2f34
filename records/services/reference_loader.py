from typing import Any, Dict, Iterable, Type

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from records.core.logger import logger


class ReferenceLoader:
    """
    Пакетная загрузка связанных сущностей по идентификаторам.

    Один запрос на каждый набор новых идентификаторов одного типа.
    Кэш живёт столько же, сколько экземпляр, и не должен переживать
    один расчёт ведомости.
    """

    def __init__(self, db: AsyncSession):
        self._db = db
        self._cache: Dict[Type[Any], Dict[int, Any]] = {}

    async def load_many(self, model: Type[Any], ids: Iterable[Any]) -> Dict[int, Any]:
        """
        Загрузка сущностей модели по списку идентификаторов.

        Args:
            model: Модель SQLAlchemy с первичным ключом id
            ids: Идентификаторы, допускаются повторы и None

        Returns:
            Dict[int, Any]: Найденные сущности по идентификатору, отсутствующие пропущены
        """
        requested = {int(entity_id) for entity_id in ids if entity_id is not None}
        cache = self._cache.setdefault(model, {})
        missing = requested - cache.keys()

        if missing:
            result = await self._db.execute(select(model).where(model.id.in_(missing)))
            for entity in result.scalars().all():
                cache[entity.id] = entity
            logger.debug(
                f"[ПАКЕТНАЯ ЗАГРУЗКА] {model.__name__}: запрошено {len(missing)}, "
                f"найдено {len(missing & cache.keys())}"
            )

        return {entity_id: cache[entity_id] for entity_id in requested if entity_id in cache}
