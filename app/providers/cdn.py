import time
from typing import Any

import httpx
from loguru import logger

from app.core.config import settings
from app.core.enums import ImageFormat
from app.core.exceptions import ProviderError
from app.models.gacha_pool import GachaPool
from app.providers.base import AssetProvider, ProviderConfig, parse_rarity
from app.schemas.asset import AssetItem, ImageTransformOptions, ItemMetadata, ProviderHealthStatus
from app.utils.misc import get_utc_now

API_BASE_URL = "https://api.cloudinary.com/v1_1"
DELIVERY_BASE_URL = "https://res.cloudinary.com"


class CloudinaryAssetProvider(AssetProvider):
    """Serves images stored in a Cloudinary folder per pool (``<folder>/<pool_id>``).

    Rarity, weight and display name are read from each resource's context
    metadata. Without credentials the provider stays inert: it returns no items
    and reports itself unhealthy instead of raising.
    """

    name = "CloudinaryAssetProvider"

    def __init__(
        self,
        cloud_name: str | None = None,
        api_key: str | None = None,
        api_secret: str | None = None,
        folder: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = ProviderConfig(priority=2, timeout=10.0, retry_attempts=3)
        self.cloud_name = cloud_name if cloud_name is not None else settings.cloudinary_cloud_name
        self.api_key = api_key if api_key is not None else settings.cloudinary_api_key
        self.api_secret = api_secret if api_secret is not None else settings.cloudinary_api_secret
        self.folder = folder or settings.cloudinary_gacha_folder

        self.is_configured = bool(self.cloud_name and self.api_key and self.api_secret)
        self._client = client or httpx.AsyncClient(timeout=self.config.timeout)

        if self.is_configured:
            logger.info("Cloudinary provider initialized")
        else:
            logger.warning("Cloudinary not configured, provider disabled")

    @property
    def _api_url(self) -> str:
        return f"{API_BASE_URL}/{self.cloud_name}"

    @property
    def _auth(self) -> tuple[str, str]:
        return (self.api_key, self.api_secret)

    def _pool_folder(self, pool_id: int) -> str:
        return f"{self.folder}/{pool_id}"

    async def get_items(self, pool: GachaPool, limit: int = 24) -> list[AssetItem]:
        if not self.is_configured:
            return []

        try:
            response = await self._client.get(
                f"{self._api_url}/resources/image/upload",
                params={
                    "prefix": self._pool_folder(pool.id),
                    "max_results": limit,
                    "context": "true",
                    "tags": "true",
                },
                auth=self._auth,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            msg = f"Failed to fetch Cloudinary assets for pool {pool.id}: {e}"
            raise ProviderError(msg) from e

        resources: list[dict[str, Any]] = response.json().get("resources", [])
        items = [self._to_item(resource, pool.id) for resource in resources]

        logger.info(f"Fetched {len(items)} Cloudinary assets for pool {pool.id}")
        return items

    def _to_item(self, resource: dict[str, Any], pool_id: int) -> AssetItem:
        # Admin API nests key-value context under "custom"
        context = resource.get("context") or {}
        context = context.get("custom", context)

        public_id: str = resource["public_id"]
        try:
            weight = int(context.get("weight", 1))
        except (TypeError, ValueError):
            weight = 1

        return AssetItem(
            id=f"cloudinary-{resource['asset_id']}",
            name=context.get("name") or public_id.rsplit("/", maxsplit=1)[-1],
            image_url=resource["secure_url"],
            rarity=parse_rarity(context.get("rarity")),
            weight=max(weight, 1),
            metadata=ItemMetadata(
                pool_id=pool_id,
                public_id=public_id,
                format=resource.get("format"),
                byte_size=resource.get("bytes"),
                tags=resource.get("tags") or [],
            ),
        )

    def get_item_url(self, item: AssetItem, options: ImageTransformOptions | None = None) -> str:
        public_id = item.metadata.public_id
        if not public_id or not self.cloud_name:
            return item.image_url

        transformation: list[str] = []
        if options is not None:
            if options.width:
                transformation.append(f"w_{options.width}")
            if options.height:
                transformation.append(f"h_{options.height}")
            if options.quality:
                transformation.append(f"q_{options.quality}")
            if options.format and options.format != ImageFormat.AUTO:
                transformation.append(f"f_{options.format}")

        url = f"{DELIVERY_BASE_URL}/{self.cloud_name}/image/upload"
        if transformation:
            url = f"{url}/{','.join(transformation)}"
        return f"{url}/{public_id}"

    async def validate_item(self, item: AssetItem) -> bool:
        if not self.is_configured or not item.metadata.public_id:
            return False

        try:
            response = await self._client.get(
                f"{self._api_url}/resources/image/upload/{item.metadata.public_id}",
                auth=self._auth,
            )
        except httpx.HTTPError:
            return False
        return response.is_success

    async def health_check(self) -> ProviderHealthStatus:
        start = time.perf_counter()

        if not self.is_configured:
            return ProviderHealthStatus(
                healthy=False,
                latency_ms=0,
                last_checked=get_utc_now(),
                error="Cloudinary not configured",
            )

        try:
            response = await self._client.get(f"{self._api_url}/ping", auth=self._auth)
            response.raise_for_status()
        except httpx.HTTPError as e:
            return ProviderHealthStatus(
                healthy=False,
                latency_ms=(time.perf_counter() - start) * 1000,
                last_checked=get_utc_now(),
                error=str(e),
            )

        return ProviderHealthStatus(
            healthy=True,
            latency_ms=(time.perf_counter() - start) * 1000,
            last_checked=get_utc_now(),
        )

    async def delete_pool_assets(self, pool_id: int) -> None:
        """Delete every asset stored under the pool's folder.

        Raises:
            ProviderError: If the provider is not configured or the request fails.
        """
        if not self.is_configured:
            msg = "Cloudinary not configured"
            raise ProviderError(msg)

        try:
            response = await self._client.delete(
                f"{self._api_url}/resources/image/upload",
                params={"prefix": self._pool_folder(pool_id)},
                auth=self._auth,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            msg = f"Failed to delete Cloudinary assets for pool {pool_id}: {e}"
            raise ProviderError(msg) from e

        logger.info(f"Deleted Cloudinary assets for pool {pool_id}")

    async def aclose(self) -> None:
        await self._client.aclose()
