import pytest
from fastapi import HTTPException

from app.core.db import UnitOfWork
from app.core.enums import TransactionType
from app.core.exceptions import InsufficientFundsError
from app.services.currency import CurrencyService


class TestCurrencyService:
    @pytest.mark.asyncio
    async def test_add_and_deduct_write_signed_ledger_entries(self, session, player):
        service = CurrencyService(session)

        assert await service.add_currency(player.id, 250, TransactionType.QUEST_REWARD) == 1250
        assert (
            await service.deduct_currency(
                player.id, 50, TransactionType.GACHA_PULL, "Test pull", context={"pool_id": 1}
            )
            == 1200
        )

        latest, earliest = await service.get_transaction_history(player.id)
        assert (earliest.amount, earliest.balance_before, earliest.balance_after) == (
            250,
            1000,
            1250,
        )
        assert (latest.amount, latest.balance_after, latest.description) == (-50, 1200, "Test pull")
        assert latest.context == {"pool_id": 1}

    @pytest.mark.asyncio
    async def test_overdraft_is_rejected(self, session, player):
        service = CurrencyService(session)
        player_id = player.id

        with pytest.raises(InsufficientFundsError):
            await service.deduct_currency(player_id, 1001, TransactionType.GACHA_PULL)
        await session.rollback()

        assert await service.get_balance(player_id) == 1000
        assert await service.get_transaction_history(player_id) == []

    @pytest.mark.asyncio
    async def test_unit_of_work_defers_commit(self, session, player):
        service = CurrencyService(session)
        player_id = player.id

        async with UnitOfWork(session) as uow:
            await service.deduct_currency(player_id, 100, TransactionType.GACHA_PULL, uow=uow)
            assert session.in_transaction()

        assert not session.in_transaction()
        assert await service.get_balance(player_id) == 900

    @pytest.mark.asyncio
    async def test_unknown_player(self, session):
        with pytest.raises(HTTPException) as exc_info:
            await CurrencyService(session).get_balance(9999)

        assert exc_info.value.status_code == 404
