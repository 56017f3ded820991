from collections.abc import Sequence
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.enums import AssetSource
from app.core.security import require_admin
from app.models.gacha_pool import GachaPool
from app.models.player import Player
from app.schemas.asset import ProviderHealthStatus
from app.schemas.common import APIResponse, PaginatedResponse
from app.schemas.gacha import GachaPoolCreate, GachaPoolUpdate, RarityConfigRead, RarityConfigUpdate
from app.services.gacha_pool import GachaPoolService
from app.services.rarity_config import RarityConfigService

router = APIRouter(
    prefix="/gacha/admin", tags=["gacha-admin"], dependencies=[Depends(require_admin)]
)


@router.get("/pools")
async def get_pools(
    service: Annotated[GachaPoolService, Depends()],
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1)] = 10,
) -> PaginatedResponse[Sequence[GachaPool]]:
    pools, pagination = await service.get_pools(page=page, page_size=page_size)
    return PaginatedResponse(data=pools, pagination=pagination)


@router.get("/pools/{pool_id}")
async def get_pool(
    pool_id: int, service: Annotated[GachaPoolService, Depends()]
) -> APIResponse[GachaPool]:
    pool = await service.get_pool(pool_id)
    if not pool:
        raise HTTPException(status_code=404, detail="Pool not found")
    return APIResponse(data=pool)


@router.post("/pools")
async def create_pool(
    pool: GachaPoolCreate, service: Annotated[GachaPoolService, Depends()]
) -> APIResponse[GachaPool]:
    created_pool = await service.create_pool(pool)
    return APIResponse(data=created_pool, message="Pool created successfully")


@router.put("/pools/{pool_id}")
async def update_pool(
    pool_id: int, pool: GachaPoolUpdate, service: Annotated[GachaPoolService, Depends()]
) -> APIResponse[GachaPool]:
    updated_pool = await service.update_pool(pool_id, pool)
    if not updated_pool:
        raise HTTPException(status_code=404, detail="Pool not found")
    return APIResponse(data=updated_pool, message="Pool updated successfully")


@router.delete("/pools/{pool_id}")
async def delete_pool(
    pool_id: int, service: Annotated[GachaPoolService, Depends()]
) -> APIResponse[None]:
    deleted = await service.delete_pool(pool_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Pool not found")
    return APIResponse(message="Pool deleted successfully")


@router.get("/pools/{pool_id}/rarity-config")
async def get_rarity_config(
    pool_id: int,
    pool_service: Annotated[GachaPoolService, Depends()],
    service: Annotated[RarityConfigService, Depends()],
) -> APIResponse[list[RarityConfigRead]]:
    await pool_service.get_pool_or_404(pool_id)
    return APIResponse(data=await service.get_rarity_config(pool_id))


@router.put("/pools/{pool_id}/rarity-config")
async def update_rarity_config(
    pool_id: int,
    config: RarityConfigUpdate,
    pool_service: Annotated[GachaPoolService, Depends()],
    service: Annotated[RarityConfigService, Depends()],
) -> APIResponse[list[RarityConfigRead]]:
    await pool_service.get_pool_or_404(pool_id)
    updated = await service.update_rarity_config(pool_id, config.weights)
    return APIResponse(data=updated, message="Rarity config updated successfully")


@router.get("/providers/health")
async def get_provider_health(
    service: Annotated[GachaPoolService, Depends()],
) -> APIResponse[dict[AssetSource, ProviderHealthStatus]]:
    return APIResponse(data=await service.get_provider_health())


@router.delete("/providers/cache")
async def clear_provider_cache(
    service: Annotated[GachaPoolService, Depends()],
    source: AssetSource | None = None,
    pool_id: int | None = None,
) -> APIResponse[None]:
    service.clear_cache(source, pool_id)
    return APIResponse(message="Provider cache cleared")
