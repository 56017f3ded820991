from collections.abc import Sequence
from typing import Annotated

from fastapi import Depends
from sqlmodel import col, desc, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.db import UnitOfWork, get_db
from app.models.gacha_pull import GachaPull


class PullHistoryService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db)]) -> None:
        self.db = db

    async def record_pull(
        self, player_id: int, pool_id: int, item_id: str, cost: int, uow: UnitOfWork
    ) -> GachaPull:
        """Append one pull to the audit log inside the caller's transaction."""
        pull = GachaPull(player_id=player_id, pool_id=pool_id, item_id=item_id, cost=cost)
        uow.session.add(pull)
        await uow.session.flush()
        return pull

    async def get_pull_history(self, player_id: int, limit: int = 50) -> Sequence[GachaPull]:
        result = await self.db.exec(
            select(GachaPull)
            .where(GachaPull.player_id == player_id)
            .order_by(desc(col(GachaPull.pulled_at)), desc(col(GachaPull.id)))
            .limit(limit)
        )
        return result.all()
