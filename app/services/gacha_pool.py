from collections.abc import Sequence
from typing import Annotated

from fastapi import Depends, HTTPException
from loguru import logger
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.db import get_db
from app.core.enums import AssetSource
from app.core.exceptions import ProviderError
from app.models.gacha_pool import GachaPool
from app.providers.cdn import CloudinaryAssetProvider
from app.providers.registry import AssetProviderRegistry, get_provider_registry
from app.schemas.asset import ProviderHealthStatus
from app.schemas.common import PaginationData
from app.schemas.gacha import GachaPoolCreate, GachaPoolUpdate
from app.services.rarity_config import RarityConfigService


class GachaPoolService:
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db)],
        registry: Annotated[AssetProviderRegistry, Depends(get_provider_registry)],
        rarity_config_service: Annotated[RarityConfigService, Depends()],
    ) -> None:
        self.db = db
        self.registry = registry
        self.rarity_config_service = rarity_config_service

    async def get_pools(
        self, *, page: int, page_size: int
    ) -> tuple[Sequence[GachaPool], PaginationData]:
        total_items_result = await self.db.exec(select(GachaPool.id))
        pagination = PaginationData.build(
            page=page, page_size=page_size, total_items=len(total_items_result.all())
        )

        result = await self.db.exec(
            select(GachaPool)
            .order_by(col(GachaPool.id))
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return result.all(), pagination

    async def get_pool(self, pool_id: int) -> GachaPool | None:
        result = await self.db.exec(select(GachaPool).where(GachaPool.id == pool_id))
        return result.first()

    async def create_pool(self, data: GachaPoolCreate) -> GachaPool:
        """Create a pool together with its seeded rarity weights in one commit."""
        pool = GachaPool.model_validate(data.model_dump(exclude={"rarity_profile"}))
        self.db.add(pool)

        try:
            await self.db.flush()
            self.rarity_config_service.seed_rarity_config(pool.id, data.rarity_profile)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(pool)
        logger.info(f"Created gacha pool {pool} with {data.rarity_profile} rarity weights")
        return pool

    async def update_pool(self, pool_id: int, data: GachaPoolUpdate) -> GachaPool | None:
        pool = await self.get_pool(pool_id)
        if not pool:
            return None

        pool_data = data.model_dump(exclude_unset=True)
        tags_changed = "search_tags" in pool_data and pool_data["search_tags"] != pool.search_tags

        pool.sqlmodel_update(pool_data)
        self.db.add(pool)
        await self.db.commit()
        await self.db.refresh(pool)

        if tags_changed:
            self.registry.clear_cache(AssetSource.WALLHAVEN, pool_id)

        logger.info(f"Updated gacha pool {pool}")
        return pool

    async def delete_pool(self, pool_id: int) -> bool:
        """Delete a pool, its rarity weights, its CDN assets and its cached search results.

        CDN cleanup is best effort: a failure is logged and the pool is deleted anyway.
        """
        pool = await self.get_pool(pool_id)
        if not pool:
            return False

        cdn = self.registry.get_provider(AssetSource.CLOUDINARY)
        if isinstance(cdn, CloudinaryAssetProvider) and cdn.is_configured:
            try:
                await cdn.delete_pool_assets(pool_id)
            except ProviderError as e:
                logger.warning(f"Failed to delete CDN assets for pool {pool_id}: {e}")

        for config in await self.rarity_config_service.get_configs(pool_id):
            await self.db.delete(config)
        await self.db.delete(pool)
        await self.db.commit()

        self.registry.clear_cache(pool_id=pool_id)
        logger.info(f"Deleted gacha pool {pool_id}")
        return True

    async def get_pool_or_404(self, pool_id: int) -> GachaPool:
        pool = await self.get_pool(pool_id)
        if not pool:
            raise HTTPException(status_code=404, detail="Pool not found")
        return pool

    async def get_provider_health(self) -> dict[AssetSource, ProviderHealthStatus]:
        return await self.registry.health_check()

    def clear_cache(self, source: AssetSource | None = None, pool_id: int | None = None) -> None:
        self.registry.clear_cache(source, pool_id)
        logger.info(f"Cleared provider cache (source={source}, pool_id={pool_id})")
