from typing import Any

import sqlmodel

from app.core.enums import TransactionType

from ._base import BaseModel


class CurrencyTransaction(BaseModel, table=True):
    """Append-only ledger entry written alongside every balance change."""

    __tablename__: str = "currency_transactions"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    player_id: int = sqlmodel.Field(foreign_key="players.id", index=True)
    amount: int
    """Signed, negative for debits"""
    type: TransactionType
    balance_before: int
    balance_after: int
    description: str | None = sqlmodel.Field(default=None, nullable=True)
    context: dict[str, Any] = sqlmodel.Field(
        default_factory=dict, sa_column=sqlmodel.Column(sqlmodel.JSON)
    )
