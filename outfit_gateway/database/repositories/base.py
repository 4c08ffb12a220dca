"""Generic read-only repository over an async SQLAlchemy session.

The gateway never writes: rows are owned by the ratings service. Queries
are built from plain column names so concrete repositories stay
declarative.
"""

from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from outfit_gateway.models.database.base import Base
from outfit_gateway.core.logging import get_logger

ModelType = TypeVar("ModelType", bound=Base)
# ("column", "asc" | "desc")
Ordering = Tuple[str, str]

logger = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Filtered, ordered reads for one mapped model."""

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    def _column(self, name: str):
        try:
            return getattr(self.model, name)
        except AttributeError:
            raise ValueError(f"{self.model.__name__} has no column {name!r}") from None

    def build_query(
        self,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Sequence[Ordering] = (),
        limit: Optional[int] = None
    ) -> Select:
        """Equality filters (``IN`` for list values), ordering and a row limit."""
        query = select(self.model)

        for name, value in (filters or {}).items():
            column = self._column(name)
            if isinstance(value, (list, tuple, set)):
                query = query.where(column.in_(list(value)))
            else:
                query = query.where(column == value)

        for name, direction in order_by:
            column = self._column(name)
            query = query.order_by(column.desc() if direction == "desc" else column.asc())

        if limit is not None:
            query = query.limit(limit)
        return query

    async def find(
        self,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Sequence[Ordering] = (),
        limit: Optional[int] = None
    ) -> List[ModelType]:
        """Run :meth:`build_query` and return the mapped rows."""
        query = self.build_query(filters, order_by, limit)
        try:
            result = await self.session.execute(query)
        except Exception as e:
            logger.error("Query failed", error=e, model=self.model.__name__)
            raise
        return list(result.scalars().all())
