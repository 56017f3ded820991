from collections.abc import Sequence
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends
from sqlmodel import col, desc, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.db import UnitOfWork, get_db
from app.models.user_collection import UserCollection


@dataclass
class CollectionUpsert:
    entry: UserCollection
    was_new: bool
    """Whether the player owned no copy before this upsert"""


class CollectionService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db)]) -> None:
        self.db = db

    async def get_entry(
        self, player_id: int, item_id: str, *, session: AsyncSession | None = None
    ) -> UserCollection | None:
        result = await (session or self.db).exec(
            select(UserCollection).where(
                UserCollection.player_id == player_id, UserCollection.item_id == item_id
            )
        )
        return result.first()

    async def upsert_pull(self, player_id: int, item_id: str, uow: UnitOfWork) -> CollectionUpsert:
        """Add a pulled item to the player's collection, or bump its pull count."""
        entry = await self.get_entry(player_id, item_id, session=uow.session)
        was_new = entry is None

        if entry is None:
            entry = UserCollection(player_id=player_id, item_id=item_id, pull_count=1)
        else:
            entry.pull_count += 1

        uow.session.add(entry)
        await uow.session.flush()
        return CollectionUpsert(entry=entry, was_new=was_new)

    async def get_player_collection(self, player_id: int) -> Sequence[UserCollection]:
        result = await self.db.exec(
            select(UserCollection)
            .where(UserCollection.player_id == player_id)
            .order_by(desc(col(UserCollection.obtained_at)))
        )
        return result.all()
