import sqlmodel

from ._base import BaseModel


class Player(BaseModel, table=True):
    __tablename__: str = "players"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    name: str | None = sqlmodel.Field(default=None, nullable=True)
    is_admin: bool = False
    currency: int = sqlmodel.Field(default=0, ge=0)
    level: int = sqlmodel.Field(default=1, ge=0)
    exp: int = sqlmodel.Field(default=0, ge=0)
