"""
Search history sink.

Recording is fire-and-forget from the search service's point of view: the
service catches and logs anything a sink raises.
"""

import logging
from typing import Any, Protocol, Union, runtime_checkable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vidrecall.models.embedding import SearchHistory
from vidrecall.schemas.identity import AnonymousSessionId, UserId


logger = logging.getLogger(__name__)


@runtime_checkable
class SearchHistorySink(Protocol):
    """Receives one call per completed search."""

    async def record(
        self,
        owner_key: Union[UserId, AnonymousSessionId],
        query: str,
        filters: dict[str, Any],
        result_count: int
    ) -> None:
        ...


class SQLSearchHistorySink:
    """Writes search history rows through SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record(
        self,
        owner_key: Union[UserId, AnonymousSessionId],
        query: str,
        filters: dict[str, Any],
        result_count: int
    ) -> None:
        async with self.session_factory() as session:
            session.add(SearchHistory(
                owner_key=owner_key.storage_key,
                query=query,
                filter_params=filters or None,
                results_count=result_count,
            ))
            await session.commit()

        logger.debug(f"Recorded search history for {owner_key.storage_key}: '{query[:50]}'")
