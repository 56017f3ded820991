from collections.abc import Sequence
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.core.security import get_current_player
from app.models.gacha_pool import GachaPool
from app.models.gacha_pull import GachaPull
from app.models.player import Player
from app.models.user_collection import UserCollection
from app.schemas.common import APIResponse
from app.schemas.gacha import GachaPullRequest, GachaPullResponse
from app.services.gacha import GachaService

router = APIRouter(prefix="/gacha", tags=["gacha"])


@router.get("/pools")
async def get_available_pools(
    service: Annotated[GachaService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[Sequence[GachaPool]]:
    pools = await service.get_available_pools(player)
    return APIResponse(data=pools)


@router.post("/pull")
async def pull(
    request: GachaPullRequest,
    service: Annotated[GachaService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[GachaPullResponse]:
    result = await service.pull(player.id, request.pool_id, request.count)
    return APIResponse(data=result)


@router.get("/collection")
async def get_collection(
    service: Annotated[GachaService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[Sequence[UserCollection]]:
    collection = await service.get_collection(player.id)
    return APIResponse(data=collection)


@router.get("/history")
async def get_pull_history(
    service: Annotated[GachaService, Depends()],
    player: Annotated[Player, Depends(get_current_player)],
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> APIResponse[Sequence[GachaPull]]:
    history = await service.get_pull_history(player.id, limit)
    return APIResponse(data=history)
