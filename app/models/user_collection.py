import datetime

import sqlmodel

from app.utils.misc import get_utc_now

from ._base import BaseModel


class UserCollection(BaseModel, table=True):
    __tablename__: str = "user_collections"
    __table_args__ = (
        sqlmodel.UniqueConstraint("player_id", "item_id", name="uq_collection_player_item"),
    )

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    player_id: int = sqlmodel.Field(foreign_key="players.id", index=True)
    item_id: str = sqlmodel.Field(max_length=255, index=True)
    pull_count: int = sqlmodel.Field(default=1, ge=1)
    obtained_at: datetime.datetime = sqlmodel.Field(
        default_factory=get_utc_now, sa_type=sqlmodel.DateTime(timezone=True)
    )
