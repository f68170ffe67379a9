"""Accounts to call when a 4CP peak looks likely."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import date

from pydantic import BaseModel
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.nodal_point.models import AccountModel


class StrikeTarget(BaseModel):
    id: str
    name: str
    contract_end_date: date | None = None


class StrikeListRepository:
    """Accounts flagged for coincident peak exposure, by flag or by notes.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def exposed_accounts(self, limit: int = 10) -> list[StrikeTarget]:
        async for session in self._session_factory():
            stmt = (
                select(AccountModel.id, AccountModel.name, AccountModel.contract_end_date)
                .where(
                    or_(
                        AccountModel.coincident_peak_exposure.is_(True),
                        AccountModel.liability_notes.ilike("%4CP%"),
                        AccountModel.liability_notes.ilike("%coincident peak%"),
                    )
                )
                .order_by(AccountModel.name)
                .limit(limit)
            )
            rows = (await session.execute(stmt)).all()
            return [
                StrikeTarget(id=row.id, name=row.name, contract_end_date=row.contract_end_date)
                for row in rows
            ]
