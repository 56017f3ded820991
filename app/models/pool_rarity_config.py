import sqlmodel

from app.core.enums import RarityTier

from ._base import BaseModel


class PoolRarityConfig(BaseModel, table=True):
    """Weight of one rarity tier inside one pool."""

    __tablename__: str = "pool_rarity_configs"
    __table_args__ = (sqlmodel.UniqueConstraint("pool_id", "rarity", name="uq_pool_rarity"),)

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    pool_id: int = sqlmodel.Field(foreign_key="gacha_pools.id", index=True, ondelete="CASCADE")
    rarity: RarityTier
    weight: int = sqlmodel.Field(gt=0)
    probability: float = sqlmodel.Field(default=0.0, ge=0.0, le=1.0)
    """weight / sum of the pool's weights, recomputed on every weight change"""
