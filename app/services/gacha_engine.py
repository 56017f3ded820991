import random
from collections import defaultdict
from collections.abc import Collection
from typing import Annotated

from fastapi import Depends
from loguru import logger

from app.core.config import settings
from app.core.enums import RarityTier
from app.core.exceptions import NoItemsAvailableError, NoRemainingItemsError
from app.models.gacha_pool import GachaPool
from app.providers.registry import AssetProviderRegistry, get_provider_registry
from app.schemas.asset import AssetItem
from app.services.rarity_config import RarityConfigService
from app.utils.weighted import select_random_item, select_weighted_item, select_weighted_rarity


def get_rng() -> random.Random:
    return random.SystemRandom()


class GachaEngine:
    """Selects one item from a pool's candidates using the pool's rarity weights.

    Two strategies are available:

    - ``execute_pull`` draws a rarity tier first, then an item uniformly within
      that tier. Tier odds match the configuration no matter how many items
      each tier holds.
    - ``execute_weighted_pull`` draws directly over all items using
      ``rarity weight * item weight``, letting individual items be rarer than
      their tier mates.
    """

    def __init__(
        self,
        registry: Annotated[AssetProviderRegistry, Depends(get_provider_registry)],
        rarity_config_service: Annotated[RarityConfigService, Depends()],
        rng: Annotated[random.Random, Depends(get_rng)],
    ) -> None:
        self.registry = registry
        self.rarity_config_service = rarity_config_service
        self.rng = rng
        self.candidate_limit = settings.pull_candidate_limit

    async def _fetch_candidates(self, pool: GachaPool) -> list[AssetItem]:
        # Fetch more than needed so every tier has a meaningful population
        items = await self.registry.get_items(
            pool, pool.enabled_sources(), limit=self.candidate_limit
        )
        if not items:
            raise NoItemsAvailableError
        return items

    async def get_rarity_weights(self, pool_id: int) -> dict[RarityTier, int]:
        return await self.rarity_config_service.get_weight_map(pool_id)

    def select_by_tier(
        self,
        pool: GachaPool,
        items: list[AssetItem],
        rarity_weights: dict[RarityTier, int],
        exclude_item_ids: Collection[str] | None = None,
    ) -> AssetItem:
        """Draw a rarity tier by weight, then an item uniformly from that tier.

        Raises:
            NoRemainingItemsError: If every candidate is excluded.
        """
        available_items = (
            [item for item in items if item.id not in exclude_item_ids]
            if exclude_item_ids
            else items
        )
        if not available_items:
            raise NoRemainingItemsError

        items_by_rarity: defaultdict[RarityTier, list[AssetItem]] = defaultdict(list)
        for item in available_items:
            items_by_rarity[item.rarity].append(item)

        selected_rarity = select_weighted_rarity(
            rarity_weights, sum(rarity_weights.values()), self.rng
        )
        rarity_group = items_by_rarity.get(selected_rarity)

        if not rarity_group:
            logger.warning(
                f"No items available for rarity {selected_rarity} in pool {pool.id}, falling back"
            )
            rarity_group = items_by_rarity.get(RarityTier.COMMON) or available_items

        return select_random_item(rarity_group, self.rng)

    async def execute_pull(
        self, pool: GachaPool, exclude_item_ids: Collection[str] | None = None
    ) -> AssetItem:
        """Fetch candidates and draw one item with ``select_by_tier``.

        Args:
            pool: The pool to pull from.
            exclude_item_ids: Item ids that must not be returned.

        Raises:
            NoItemsAvailableError: If the providers returned no candidates.
            NoRemainingItemsError: If every candidate is excluded.
        """
        items = await self._fetch_candidates(pool)
        rarity_weights = await self.get_rarity_weights(pool.id)
        return self.select_by_tier(pool, items, rarity_weights, exclude_item_ids)

    async def execute_multi_pull(
        self, pool: GachaPool, count: int, rarity_weights: dict[RarityTier, int] | None = None
    ) -> list[AssetItem]:
        """Draw ``count`` distinct items from a single candidate fetch.

        Args:
            pool: The pool to pull from.
            count: How many items to draw.
            rarity_weights: Tier weights loaded beforehand, read from the pool's
                configuration when omitted.

        Raises:
            NoItemsAvailableError: If the providers returned no candidates.
            NoRemainingItemsError: If the pool has fewer distinct items than ``count``.
        """
        if rarity_weights is None:
            rarity_weights = await self.get_rarity_weights(pool.id)
        items = await self._fetch_candidates(pool)

        drawn: list[AssetItem] = []
        for _ in range(count):
            drawn.append(
                self.select_by_tier(pool, items, rarity_weights, {item.id for item in drawn})
            )
        return drawn

    async def execute_weighted_pull(self, pool: GachaPool) -> AssetItem:
        """Draw one item with probability proportional to rarity weight times item weight.

        Raises:
            NoItemsAvailableError: If the providers returned no candidates.
        """
        items = await self._fetch_candidates(pool)
        rarity_weights = await self.get_rarity_weights(pool.id)
        return select_weighted_item(items, rarity_weights, self.rng)
