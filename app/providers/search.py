import random
import time
from typing import Any

import httpx
from loguru import logger

from app.core.config import settings
from app.core.enums import RarityTier
from app.core.exceptions import ProviderError
from app.models.gacha_pool import GachaPool
from app.providers.base import AssetProvider, CacheableProvider, ProviderConfig
from app.schemas.asset import AssetItem, ImageTransformOptions, ItemMetadata, ProviderHealthStatus
from app.utils.cache import TTLCache
from app.utils.misc import get_utc_now
from app.utils.weighted import select_weighted_rarity

DEFAULT_TAGS = "anime"

# Wallhaven has no rarity concept, so each image gets one from this table
SEARCH_RARITY_WEIGHTS: dict[RarityTier, int] = {
    RarityTier.COMMON: 60,
    RarityTier.UNCOMMON: 25,
    RarityTier.RARE: 10,
    RarityTier.EPIC: 4,
    RarityTier.LEGENDARY: 1,
}

type SearchCacheKey = tuple[int, str, int]
"""(pool id, search tags, limit)"""


class WallhavenAssetProvider(AssetProvider, CacheableProvider):
    """Serves wallpapers from the Wallhaven search API for the pool's tags.

    Responses are cached per (pool, tags, limit). When a refresh fails the last
    cached items are served even if stale.
    """

    name = "WallhavenAssetProvider"

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        cache_ttl: float | None = None,
        client: httpx.AsyncClient | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = ProviderConfig(priority=3, timeout=10.0, retry_attempts=2)
        self.api_url = api_url or settings.wallhaven_api_url
        self.api_key = api_key if api_key is not None else settings.wallhaven_api_key
        self.cache: TTLCache[SearchCacheKey, list[AssetItem]] = TTLCache(
            cache_ttl if cache_ttl is not None else settings.wallhaven_cache_ttl_seconds
        )
        self._client = client or httpx.AsyncClient(timeout=self.config.timeout)
        self._rng = rng or random.Random()

    @property
    def _headers(self) -> dict[str, str]:
        # API key raises the rate limit but isn't required
        return {"X-API-Key": self.api_key} if self.api_key else {}

    async def get_items(self, pool: GachaPool, limit: int = 24) -> list[AssetItem]:
        tags = pool.search_tags or DEFAULT_TAGS
        cache_key: SearchCacheKey = (pool.id, tags, limit)

        cached = self.cache.get_fresh(cache_key)
        if cached is not None:
            logger.debug(f"Returning cached Wallhaven data for pool {pool.id}")
            return cached

        try:
            response = await self._client.get(
                self.api_url,
                params={"q": tags, "sorting": "random", "purity": "100", "page": 1},
                headers=self._headers,
            )
            response.raise_for_status()
            images: list[dict[str, Any]] = response.json()["data"][:limit]
            items = [self._to_item(image, pool.id) for image in images]
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Failed to fetch from Wallhaven for pool {pool.id}: {e}")

            stale = self.cache.get(cache_key)
            if stale is not None:
                logger.warning(f"Using expired Wallhaven cache as fallback for pool {pool.id}")
                return stale.value

            msg = f"Unable to fetch gacha items from Wallhaven: {e}"
            raise ProviderError(msg) from e

        self.cache.set(cache_key, items)

        logger.info(f"Fetched {len(items)} Wallhaven images for pool {pool.id}")
        return items

    def _to_item(self, image: dict[str, Any], pool_id: int) -> AssetItem:
        return AssetItem(
            id=f"wallhaven-{image['id']}",
            name=f"Wallpaper #{image['id']}",
            image_url=image["thumbs"]["original"],
            rarity=self.assign_random_rarity(),
            weight=1,
            metadata=ItemMetadata(
                pool_id=pool_id, original_url=image.get("url"), resolution=image.get("resolution")
            ),
        )

    def assign_random_rarity(self) -> RarityTier:
        return select_weighted_rarity(
            SEARCH_RARITY_WEIGHTS, sum(SEARCH_RARITY_WEIGHTS.values()), self._rng
        )

    def get_item_url(self, item: AssetItem, options: ImageTransformOptions | None = None) -> str:
        # No on-the-fly transformations, the stored thumbnail is the delivery URL
        return item.image_url

    async def validate_item(self, item: AssetItem) -> bool:
        try:
            response = await self._client.head(item.image_url, timeout=5.0)
        except httpx.HTTPError:
            return False
        return response.status_code == httpx.codes.OK

    async def health_check(self) -> ProviderHealthStatus:
        start = time.perf_counter()

        try:
            response = await self._client.get(
                self.api_url, params={"q": "test", "page": 1}, headers=self._headers, timeout=5.0
            )
        except httpx.HTTPError as e:
            return ProviderHealthStatus(
                healthy=False,
                latency_ms=(time.perf_counter() - start) * 1000,
                last_checked=get_utc_now(),
                error=str(e),
            )

        healthy = response.status_code == httpx.codes.OK
        return ProviderHealthStatus(
            healthy=healthy,
            latency_ms=(time.perf_counter() - start) * 1000,
            last_checked=get_utc_now(),
            error=None if healthy else f"Unexpected status {response.status_code}",
        )

    def clear_cache(self, pool_id: int | None = None) -> None:
        if pool_id is None:
            self.cache.clear()
            logger.info("Cleared all Wallhaven cache")
            return

        removed = self.cache.invalidate(lambda key: key[0] == pool_id)
        logger.info(f"Cleared {removed} Wallhaven cache entries for pool {pool_id}")

    async def aclose(self) -> None:
        await self._client.aclose()
