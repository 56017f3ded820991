import asyncio
import random
from collections.abc import Mapping, Sequence

from fastapi import Request
from loguru import logger

from app.core.enums import AssetSource
from app.core.exceptions import ProviderUnavailableError
from app.models.gacha_pool import GachaPool
from app.providers.base import AssetProvider, CacheableProvider
from app.providers.cdn import CloudinaryAssetProvider
from app.providers.local import LocalAssetProvider
from app.providers.search import WallhavenAssetProvider
from app.schemas.asset import AssetItem, ImageTransformOptions, ProviderHealthStatus


class AssetProviderRegistry:
    """Aggregates items across asset providers with per-provider fault isolation.

    Providers are consulted in ascending priority. One provider failing or
    timing out only adds to the error list; the caller sees an error only when
    no provider produced anything.
    """

    def __init__(
        self, providers: Mapping[AssetSource, AssetProvider], rng: random.Random | None = None
    ) -> None:
        self._providers = dict(
            sorted(providers.items(), key=lambda entry: entry[1].config.priority)
        )
        self._rng = rng or random.Random()

    @property
    def sources(self) -> list[AssetSource]:
        """Registered sources in priority order."""
        return list(self._providers)

    def get_provider(self, source: AssetSource) -> AssetProvider | None:
        return self._providers.get(source)

    async def _fetch(self, provider: AssetProvider, pool: GachaPool, limit: int) -> list[AssetItem]:
        try:
            return await asyncio.wait_for(
                provider.get_items(pool, limit), timeout=provider.config.timeout
            )
        except TimeoutError:
            msg = f"timed out after {provider.config.timeout}s"
            raise TimeoutError(msg) from None

    async def get_items(
        self, pool: GachaPool, sources: Sequence[AssetSource] | None = None, limit: int = 24
    ) -> list[AssetItem]:
        """Get up to ``limit`` items for ``pool`` from ``sources`` in order.

        Raises:
            ProviderUnavailableError: If nothing was collected and at least one provider failed.
        """
        all_items: list[AssetItem] = []
        seen_ids: set[str] = set()
        errors: list[str] = []

        for source in sources if sources is not None else self.sources:
            provider = self._providers.get(source)
            if provider is None:
                logger.warning(f"Provider not found for source: {source}")
                continue

            if not provider.config.enabled:
                logger.debug(f"Provider {provider.name} is disabled")
                continue

            try:
                items = await self._fetch(provider, pool, limit)
            except Exception as e:  # noqa: BLE001
                error_msg = f"{provider.name} failed: {e}"
                logger.error(error_msg)
                errors.append(error_msg)
                continue

            for item in items:
                if item.id in seen_ids:
                    continue
                seen_ids.add(item.id)
                all_items.append(item.tagged(source))

            if len(all_items) >= limit:
                break

        if not all_items and errors:
            raise ProviderUnavailableError(errors)

        # Later providers would otherwise always sit at the tail and lose out to truncation
        self._rng.shuffle(all_items)
        return all_items[:limit]

    def get_item_url(self, item: AssetItem, options: ImageTransformOptions | None = None) -> str:
        source = item.metadata.provider_source
        provider = self._providers.get(source) if source is not None else None
        if provider is None:
            return item.image_url
        return provider.get_item_url(item, options)

    async def health_check(self) -> dict[AssetSource, ProviderHealthStatus]:
        results: dict[AssetSource, ProviderHealthStatus] = {}
        for source, provider in self._providers.items():
            results[source] = await provider.health_check()
        return results

    def clear_cache(self, source: AssetSource | None = None, pool_id: int | None = None) -> None:
        if source is None:
            providers = list(self._providers.values())
        else:
            provider = self._providers.get(source)
            providers = [provider] if provider is not None else []

        for provider in providers:
            if isinstance(provider, CacheableProvider):
                provider.clear_cache(pool_id)

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()


def build_provider_registry() -> AssetProviderRegistry:
    """Create the process-wide registry with the three built-in providers."""
    return AssetProviderRegistry(
        {
            AssetSource.LOCAL: LocalAssetProvider(),
            AssetSource.CLOUDINARY: CloudinaryAssetProvider(),
            AssetSource.WALLHAVEN: WallhavenAssetProvider(),
        }
    )


def get_provider_registry(request: Request) -> AssetProviderRegistry:
    return request.app.state.provider_registry
