import math
from collections.abc import Sequence
from typing import Annotated

from fastapi import Depends, HTTPException
from loguru import logger
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.db import UnitOfWork, get_db
from app.core.enums import TransactionType
from app.core.exceptions import (
    GachaError,
    InsufficientFundsError,
    PoolInactiveError,
    PoolRestrictedError,
    PullTransactionError,
)
from app.core.notifications import NotificationHub, get_notification_hub
from app.models.gacha_pool import GachaPool
from app.models.gacha_pull import GachaPull
from app.models.player import Player
from app.models.user_collection import UserCollection
from app.schemas.gacha import GachaPullResponse, GachaPullResult
from app.services.collection import CollectionService
from app.services.currency import CurrencyService
from app.services.gacha_engine import GachaEngine
from app.services.pull_history import PullHistoryService
from app.utils.leveling import get_currency_multiplier

PULL_EVENT = "gacha:pull"


class GachaService:
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db)],
        engine: Annotated[GachaEngine, Depends()],
        currency_service: Annotated[CurrencyService, Depends()],
        collection_service: Annotated[CollectionService, Depends()],
        history_service: Annotated[PullHistoryService, Depends()],
        notifications: Annotated[NotificationHub, Depends(get_notification_hub)],
    ) -> None:
        self.db = db
        self.engine = engine
        self.currency_service = currency_service
        self.collection_service = collection_service
        self.history_service = history_service
        self.notifications = notifications

    async def _get_player(self, player_id: int) -> Player:
        result = await self.db.exec(select(Player).where(Player.id == player_id))
        player = result.first()
        if not player:
            raise HTTPException(status_code=404, detail="Player not found")
        return player

    async def _get_pool(self, pool_id: int) -> GachaPool:
        result = await self.db.exec(select(GachaPool).where(GachaPool.id == pool_id))
        pool = result.first()
        if not pool:
            raise HTTPException(status_code=404, detail="Pool not found")
        return pool

    async def get_available_pools(self, player: Player) -> Sequence[GachaPool]:
        """Active pools the player may pull from. Admin-only pools are listed for admins."""
        query = select(GachaPool).where(col(GachaPool.is_active).is_(True))
        if not player.is_admin:
            query = query.where(col(GachaPool.is_admin_only).is_(False))

        result = await self.db.exec(query.order_by(col(GachaPool.id)))
        return result.all()

    async def pull(self, player_id: int, pool_id: int, count: int = 1) -> GachaPullResponse:
        """Pull ``count`` distinct items from a pool and charge the player for them.

        The debit, the history rows and the collection updates commit together or
        not at all. Subscribers on the player's notification channel receive a
        ``gacha:pull`` event once the transaction has committed.

        Raises:
            HTTPException: 404 if the player or pool doesn't exist.
            PoolInactiveError: If the pool is switched off.
            PoolRestrictedError: If the pool is admin-only and the player isn't an admin.
            InsufficientFundsError: If the player can't afford the pull.
            NoItemsAvailableError: If the providers returned no candidates.
            NoRemainingItemsError: If the pool has fewer distinct items than ``count``.
            ProviderUnavailableError: If every provider failed.
            PullTransactionError: If persisting the result failed; nothing was charged.
        """
        player = await self._get_player(player_id)
        pool = await self._get_pool(pool_id)

        if not pool.is_active:
            raise PoolInactiveError
        if pool.is_admin_only and not player.is_admin:
            raise PoolRestrictedError

        unit_cost = math.floor(pool.cost * get_currency_multiplier(player.level))
        total_cost = unit_cost * count
        if player.currency < total_cost:
            raise InsufficientFundsError(
                f"Insufficient currency. Required: {total_cost}, available: {player.currency}"
            )

        rarity_weights = await self.engine.get_rarity_weights(pool.id)

        # Provider I/O runs outside any transaction, the debit re-checks the balance under lock
        await self.db.commit()

        items = await self.engine.execute_multi_pull(pool, count, rarity_weights)

        # ORM state is expired by a rollback, keep what the error path needs
        pool_name = pool.name

        pulls: list[GachaPull] = []
        new_flags: list[bool] = []
        try:
            async with UnitOfWork(self.db) as uow:
                remaining_currency = await self.currency_service.deduct_currency(
                    player_id,
                    total_cost,
                    TransactionType.GACHA_PULL,
                    f"Gacha pull x{count} from {pool_name}",
                    uow=uow,
                    context={"pool_id": pool_id, "item_ids": [item.id for item in items]},
                )
                for item in items:
                    pulls.append(
                        await self.history_service.record_pull(
                            player_id, pool_id, item.id, unit_cost, uow
                        )
                    )
                    upsert = await self.collection_service.upsert_pull(player_id, item.id, uow)
                    new_flags.append(upsert.was_new)
        except GachaError:
            raise
        except Exception as e:
            logger.exception(f"Gacha pull failed for player {player_id} in pool {pool_id}")
            raise PullTransactionError from e

        results = [
            GachaPullResult(pull=pull, item=item, is_new=is_new)
            for pull, item, is_new in zip(pulls, items, new_flags, strict=True)
        ]
        response = GachaPullResponse(
            pulls=results, total_cost=total_cost, remaining_currency=remaining_currency
        )
        logger.info(
            f"Player {player_id} pulled {count} from pool {pool_id}, "
            f"items: {[item.id for item in items]}"
        )

        await self.notifications.emit_to_user(
            player_id, PULL_EVENT, response.model_dump(mode="json")
        )
        return response

    async def get_collection(self, player_id: int) -> Sequence[UserCollection]:
        return await self.collection_service.get_player_collection(player_id)

    async def get_pull_history(self, player_id: int, limit: int = 50) -> Sequence[GachaPull]:
        return await self.history_service.get_pull_history(player_id, limit)
