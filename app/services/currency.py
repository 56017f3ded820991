from collections.abc import Sequence
from typing import Annotated, Any

from fastapi import Depends, HTTPException
from loguru import logger
from sqlmodel import col, desc, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.db import UnitOfWork, get_db
from app.core.enums import TransactionType
from app.core.exceptions import InsufficientFundsError
from app.models.currency_transaction import CurrencyTransaction
from app.models.player import Player


class CurrencyService:
    """Player balances plus the append-only ledger written with every change.

    Methods taking ``uow`` stage their writes in the caller's transaction and
    leave committing to it; without one they commit on their own.
    """

    def __init__(self, db: Annotated[AsyncSession, Depends(get_db)]) -> None:
        self.db = db

    async def _lock_player(self, session: AsyncSession, player_id: int) -> Player:
        # Re-read under a row lock, replacing any stale copy already in the session
        result = await session.exec(
            select(Player)
            .where(Player.id == player_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        player = result.first()
        if not player:
            raise HTTPException(status_code=404, detail="Player not found")
        return player

    async def get_balance(self, player_id: int) -> int:
        result = await self.db.exec(select(Player.currency).where(Player.id == player_id))
        balance = result.first()
        if balance is None:
            raise HTTPException(status_code=404, detail="Player not found")
        return balance

    async def _apply(
        self,
        player_id: int,
        amount: int,
        type_: TransactionType,
        description: str | None,
        uow: UnitOfWork | None,
        context: dict[str, Any] | None,
    ) -> int:
        session = uow.session if uow is not None else self.db
        player = await self._lock_player(session, player_id)

        balance_before = player.currency
        balance_after = balance_before + amount
        if balance_after < 0:
            raise InsufficientFundsError(
                f"Insufficient currency. Current: {balance_before}, required: {-amount}"
            )

        player.currency = balance_after
        session.add(player)
        session.add(
            CurrencyTransaction(
                player_id=player_id,
                amount=amount,
                type=type_,
                balance_before=balance_before,
                balance_after=balance_after,
                description=description,
                context=context or {},
            )
        )

        if uow is None:
            await session.commit()
        else:
            await session.flush()

        return balance_after

    async def add_currency(
        self,
        player_id: int,
        amount: int,
        type_: TransactionType,
        description: str | None = None,
        *,
        uow: UnitOfWork | None = None,
        context: dict[str, Any] | None = None,
    ) -> int:
        """Credit ``amount`` to a player and return the new balance."""
        balance = await self._apply(player_id, amount, type_, description, uow, context)
        logger.info(f"Added {amount} currency to player {player_id}. New balance: {balance}")
        return balance

    async def deduct_currency(
        self,
        player_id: int,
        amount: int,
        type_: TransactionType,
        description: str | None = None,
        *,
        uow: UnitOfWork | None = None,
        context: dict[str, Any] | None = None,
    ) -> int:
        """Debit ``amount`` from a player and return the new balance.

        Raises:
            InsufficientFundsError: If the locked balance is lower than ``amount``.
        """
        balance = await self._apply(player_id, -amount, type_, description, uow, context)
        logger.info(f"Deducted {amount} currency from player {player_id}. New balance: {balance}")
        return balance

    async def get_transaction_history(
        self, player_id: int, limit: int = 50
    ) -> Sequence[CurrencyTransaction]:
        result = await self.db.exec(
            select(CurrencyTransaction)
            .where(CurrencyTransaction.player_id == player_id)
            .order_by(desc(col(CurrencyTransaction.id)))
            .limit(limit)
        )
        return result.all()
