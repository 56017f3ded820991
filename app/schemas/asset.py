import datetime
from typing import Self

from pydantic import BaseModel, Field

from app.core.enums import AssetSource, ImageFormat, RarityTier


class ItemMetadata(BaseModel):
    """Provider-specific identifiers carried by an asset item."""

    provider_source: AssetSource | None = None
    """Set by the provider registry, used for URL resolution and cache scoping"""
    pool_id: int | None = None

    # Local provider
    filename: str | None = None

    # Cloudinary
    public_id: str | None = None
    format: str | None = None
    byte_size: int | None = None
    tags: list[str] = Field(default_factory=list)

    # Wallhaven
    original_url: str | None = None
    resolution: str | None = None


class AssetItem(BaseModel):
    """A candidate item offered by an asset provider. Never persisted."""

    id: str
    name: str
    image_url: str
    rarity: RarityTier
    weight: int = Field(default=1, gt=0)
    metadata: ItemMetadata = Field(default_factory=ItemMetadata)

    def tagged(self, source: AssetSource) -> Self:
        metadata = self.metadata.model_copy(update={"provider_source": source})
        return self.model_copy(update={"metadata": metadata})


class ImageTransformOptions(BaseModel):
    width: int | None = Field(default=None, gt=0)
    height: int | None = Field(default=None, gt=0)
    quality: int | None = Field(default=None, ge=1, le=100)
    format: ImageFormat | None = None


class ProviderHealthStatus(BaseModel):
    healthy: bool
    latency_ms: float
    last_checked: datetime.datetime
    error: str | None = None
