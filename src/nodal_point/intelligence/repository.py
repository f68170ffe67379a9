"""Market intelligence repository -- reads and links scraped signals."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.nodal_point.intelligence.schemas import SignalRead
from src.nodal_point.models import MarketIntelligenceModel

logger = structlog.get_logger(__name__)

LINKED_STATUS = "linked"


def _model_to_signal(model: MarketIntelligenceModel) -> SignalRead:
    return SignalRead(
        id=str(model.id),
        headline=model.headline,
        summary=model.summary,
        source_url=model.source_url,
        signal_type=model.signal_type,
        entity_name=model.entity_name,
        account_id=model.account_id,
        status=model.status,
        ai_analysis=model.ai_analysis,
        published_at=model.published_at,
        created_at=model.created_at,
    )


class MarketIntelligenceRepository:
    """Async access to the ``market_intelligence`` table.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def list_signals(self, limit: int = 20, status: str | None = None) -> list[SignalRead]:
        """Newest signals first, optionally filtered by status."""
        async for session in self._session_factory():
            stmt = select(MarketIntelligenceModel).order_by(
                MarketIntelligenceModel.created_at.desc()
            )
            if status:
                stmt = stmt.where(MarketIntelligenceModel.status == status)
            stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return [_model_to_signal(m) for m in result.scalars().all()]

    async def link_signal(self, signal_id: str, account_id: str) -> SignalRead | None:
        """Set the signal's account and mark it linked. None if not found."""
        async for session in self._session_factory():
            model = await session.get(MarketIntelligenceModel, signal_id)
            if model is None:
                return None
            model.account_id = account_id
            model.status = LINKED_STATUS
            await session.commit()
            await session.refresh(model)
            logger.info("intelligence.signal_linked", signal_id=signal_id, account_id=account_id)
            return _model_to_signal(model)
