import json
import time
from pathlib import Path
from typing import Any

import anyio
from loguru import logger

from app.core.config import settings
from app.core.enums import RarityTier
from app.models.gacha_pool import GachaPool
from app.providers.base import AssetProvider, ProviderConfig, parse_rarity
from app.schemas.asset import AssetItem, ImageTransformOptions, ItemMetadata, ProviderHealthStatus
from app.utils.misc import get_utc_now

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp", ".gif"})
METADATA_FILENAME = "metadata.json"

_FILENAME_RARITY_HINTS = (
    ("legendary", RarityTier.LEGENDARY),
    ("epic", RarityTier.EPIC),
    ("rare", RarityTier.RARE),
    ("uncommon", RarityTier.UNCOMMON),
)


def infer_rarity_from_filename(filename: str) -> RarityTier:
    """Infer rarity from filename patterns, e.g. ``legendary_item_01.jpg``."""
    lower = filename.lower()
    for hint, rarity in _FILENAME_RARITY_HINTS:
        if hint in lower:
            return rarity
    return RarityTier.COMMON


def _parse_weight(value: Any) -> int:
    try:
        weight = int(value if value is not None else 1)
    except (TypeError, ValueError, OverflowError):
        return 1
    return max(weight, 1)


class LocalAssetProvider(AssetProvider):
    """Serves images dropped into ``<base_path>/<pool_id>/`` on disk.

    An optional ``metadata.json`` next to the images maps filename to
    ``{"name", "rarity", "weight"}``; files without an entry get their rarity
    from their filename.
    """

    name = "LocalAssetProvider"

    def __init__(self, base_path: str | Path | None = None, base_url: str | None = None) -> None:
        self.config = ProviderConfig(priority=1, timeout=5.0, retry_attempts=2)
        self.base_path = anyio.Path(base_path or settings.local_asset_dir)
        self.base_url = (base_url or settings.backend_url).rstrip("/")

    def _pool_path(self, pool_id: int | str) -> anyio.Path:
        return self.base_path / str(pool_id)

    async def _load_metadata(self, pool_path: anyio.Path) -> dict[str, dict[str, Any]]:
        metadata_path = pool_path / METADATA_FILENAME
        if not await metadata_path.exists():
            logger.warning(f"No {METADATA_FILENAME} found in {pool_path}, using defaults")
            return {}

        try:
            metadata = json.loads(await metadata_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring malformed {metadata_path}: {e}")
            return {}

        if not isinstance(metadata, dict):
            logger.warning(f"Ignoring {metadata_path}, expected an object keyed by filename")
            return {}
        return metadata

    async def get_items(self, pool: GachaPool, limit: int = 24) -> list[AssetItem]:
        pool_path = self._pool_path(pool.id)

        try:
            await pool_path.mkdir(parents=True, exist_ok=True)
            filenames = sorted(
                [
                    path.name
                    async for path in pool_path.iterdir()
                    if path.suffix.lower() in IMAGE_EXTENSIONS
                ]
            )
            metadata = await self._load_metadata(pool_path)
        except OSError:
            logger.exception(f"Failed to load local assets for pool {pool.id}")
            return []

        items: list[AssetItem] = []
        for index, filename in enumerate(filenames[:limit]):
            file_metadata = metadata.get(filename)
            if not isinstance(file_metadata, dict):
                file_metadata = {}
            rarity_hint = file_metadata.get("rarity")
            rarity = (
                parse_rarity(str(rarity_hint))
                if rarity_hint
                else infer_rarity_from_filename(filename)
            )
            item_metadata = ItemMetadata(pool_id=pool.id, filename=filename)

            items.append(
                AssetItem(
                    id=f"local-{pool.id}-{filename}",
                    name=str(file_metadata.get("name") or f"Item #{index + 1}"),
                    image_url=self._build_url(pool.id, filename),
                    rarity=rarity,
                    weight=_parse_weight(file_metadata.get("weight")),
                    metadata=item_metadata,
                )
            )

        logger.info(f"Found {len(items)} local assets for pool {pool.id}")
        return items

    def _build_url(self, pool_id: int | str, filename: str) -> str:
        return f"{self.base_url}/gacha/{pool_id}/{filename}"

    def get_item_url(self, item: AssetItem, options: ImageTransformOptions | None = None) -> str:
        # Static files are served as-is, transform hints don't apply
        pool_id = item.metadata.pool_id if item.metadata.pool_id is not None else "default"
        filename = item.metadata.filename or item.image_url
        return self._build_url(pool_id, filename)

    async def validate_item(self, item: AssetItem) -> bool:
        if item.metadata.filename is None:
            return False

        pool_id = item.metadata.pool_id if item.metadata.pool_id is not None else "default"
        return await (self._pool_path(pool_id) / item.metadata.filename).is_file()

    async def health_check(self) -> ProviderHealthStatus:
        start = time.perf_counter()

        healthy = await self.base_path.is_dir()
        return ProviderHealthStatus(
            healthy=healthy,
            latency_ms=(time.perf_counter() - start) * 1000,
            last_checked=get_utc_now(),
            error=None if healthy else f"{self.base_path} is not accessible",
        )

    async def save_pool_metadata(
        self, pool_id: int, metadata: dict[str, dict[str, Any]]
    ) -> None:
        """Admin utility: write the sidecar metadata file for a pool."""
        pool_path = self._pool_path(pool_id)
        await pool_path.mkdir(parents=True, exist_ok=True)
        await (pool_path / METADATA_FILENAME).write_text(
            json.dumps(metadata, indent=2), encoding="utf-8"
        )
        logger.info(f"Saved metadata for pool {pool_id}")
