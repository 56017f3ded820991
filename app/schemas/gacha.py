from pydantic import BaseModel, Field

from app.core.enums import PoolType, RarityTier, RaritySeedProfile
from app.models.gacha_pull import GachaPull
from app.schemas.asset import AssetItem


class GachaPullRequest(BaseModel):
    """Request to pull from a gacha pool."""

    pool_id: int = Field(description="ID of the gacha pool to pull from")
    count: int = Field(default=1, ge=1, le=10, description="Number of pulls (1 to 10)")


class GachaPullResult(BaseModel):
    """Result of a single gacha pull."""

    pull: GachaPull
    item: AssetItem
    is_new: bool


class GachaPullResponse(BaseModel):
    """Response containing all pull results."""

    pulls: list[GachaPullResult]
    total_cost: int
    remaining_currency: int


class GachaPoolCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    type: PoolType = PoolType.STANDARD
    cost: int = Field(gt=0)
    is_admin_only: bool = False
    enable_local: bool = True
    enable_cdn: bool = True
    enable_search: bool = True
    search_tags: str | None = None
    rarity_profile: RaritySeedProfile = Field(
        default=RaritySeedProfile.STANDARD,
        description="Rarity weights the pool is seeded with",
    )


class GachaPoolUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    type: PoolType | None = None
    cost: int | None = Field(default=None, gt=0)
    is_active: bool | None = None
    is_admin_only: bool | None = None
    enable_local: bool | None = None
    enable_cdn: bool | None = None
    enable_search: bool | None = None
    search_tags: str | None = None


class RarityConfigUpdate(BaseModel):
    """Full replacement of a pool's rarity weights, one entry per tier."""

    weights: dict[RarityTier, int]


class RarityConfigRead(BaseModel):
    rarity: RarityTier
    weight: int
    probability: float
    percentage: str
