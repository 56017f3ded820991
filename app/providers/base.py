import abc
from dataclasses import dataclass

from app.core.enums import RarityTier
from app.models.gacha_pool import GachaPool
from app.schemas.asset import AssetItem, ImageTransformOptions, ProviderHealthStatus


@dataclass
class ProviderConfig:
    priority: int
    """Lower is checked first"""
    enabled: bool = True
    timeout: float = 10.0
    """Seconds a single fetch may take before the registry gives up on it"""
    retry_attempts: int = 0


class AssetProvider(abc.ABC):
    """A source of gacha candidate items."""

    name: str
    config: ProviderConfig

    @abc.abstractmethod
    async def get_items(self, pool: GachaPool, limit: int = 24) -> list[AssetItem]:
        """Fetch up to ``limit`` items for ``pool``, an empty list when there are none."""

    @abc.abstractmethod
    def get_item_url(self, item: AssetItem, options: ImageTransformOptions | None = None) -> str:
        """Resolve the delivery URL for ``item``, applying transform hints if supported."""

    @abc.abstractmethod
    async def validate_item(self, item: AssetItem) -> bool:
        """Best-effort check that ``item`` is still reachable."""

    @abc.abstractmethod
    async def health_check(self) -> ProviderHealthStatus: ...

    async def aclose(self) -> None:  # noqa: B027
        """Release held resources, called at process shutdown."""


class CacheableProvider(abc.ABC):
    """Capability of providers that keep fetched items between calls."""

    @abc.abstractmethod
    def clear_cache(self, pool_id: int | None = None) -> None:
        """Drop cached items for one pool, or for every pool when ``pool_id`` is None."""


def parse_rarity(value: str | None, default: RarityTier = RarityTier.COMMON) -> RarityTier:
    if not value:
        return default

    try:
        return RarityTier(value.strip().upper())
    except ValueError:
        return default
