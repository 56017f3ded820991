import datetime

import sqlmodel

from app.utils.misc import get_utc_now

from ._base import BaseModel


class GachaPull(BaseModel, table=True):
    """Log each individual gacha pull made by a player."""

    __tablename__: str = "gacha_pulls"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    player_id: int = sqlmodel.Field(foreign_key="players.id", index=True)
    pool_id: int | None = sqlmodel.Field(
        foreign_key="gacha_pools.id", index=True, nullable=True, ondelete="SET NULL"
    )
    item_id: str = sqlmodel.Field(max_length=255, index=True)
    cost: int = sqlmodel.Field(ge=0)
    pulled_at: datetime.datetime = sqlmodel.Field(
        default_factory=get_utc_now, sa_type=sqlmodel.DateTime(timezone=True)
    )
