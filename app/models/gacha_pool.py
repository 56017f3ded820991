import sqlmodel

from app.core.enums import AssetSource, PoolType

from ._base import BaseModel


class GachaPool(BaseModel, table=True):
    __tablename__: str = "gacha_pools"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    name: str = sqlmodel.Field(max_length=100, index=True)
    description: str | None = sqlmodel.Field(default=None, nullable=True)
    type: PoolType = PoolType.STANDARD
    cost: int = sqlmodel.Field(gt=0)
    is_active: bool = True
    is_admin_only: bool = False

    enable_local: bool = True
    enable_cdn: bool = True
    enable_search: bool = True
    search_tags: str | None = sqlmodel.Field(default=None, nullable=True)
    """Query string sent to the image search provider"""

    def enabled_sources(self) -> list[AssetSource]:
        """Asset sources switched on for this pool, in provider priority order."""
        flags = {
            AssetSource.LOCAL: self.enable_local,
            AssetSource.CLOUDINARY: self.enable_cdn,
            AssetSource.WALLHAVEN: self.enable_search,
        }
        return [source for source, enabled in flags.items() if enabled]

    def __str__(self) -> str:
        return f"{self.name} (#{self.id})"
