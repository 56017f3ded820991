"""
Tests for the pull engine

Covers the tier-first draw, its fallbacks when a tier is empty, exclusions
used by multi-pulls, and the item-weighted variant.
"""

import random
from collections import Counter

import pytest

from app.core.enums import RarityTier
from app.core.exceptions import NoItemsAvailableError, NoRemainingItemsError
from app.models.gacha_pool import GachaPool
from app.services.gacha_engine import GachaEngine
from app.services.rarity_config import STANDARD_RARITY_WEIGHTS
from conftest import FixedRandom, make_items


class FakeRegistry:
    def __init__(self, items):
        self.items = items
        self.requests = []

    async def get_items(self, pool, sources=None, limit=24):
        self.requests.append((pool.id, sources, limit))
        return list(self.items[:limit])


class FakeRarityConfigService:
    def __init__(self, weights=None):
        self.weights = weights or STANDARD_RARITY_WEIGHTS

    async def get_weight_map(self, pool_id):
        return dict(self.weights)


@pytest.fixture
def pool():
    return GachaPool(id=1, name="Test Pool", cost=100)


def build_engine(items, rng, weights=None):
    return GachaEngine(FakeRegistry(items), FakeRarityConfigService(weights), rng)


class TestExecutePull:
    @pytest.mark.asyncio
    async def test_tier_distribution_matches_weights(self, pool):
        """Over many draws each tier shows up close to its configured share."""
        items = [item for rarity in RarityTier for item in make_items(rarity, 3)]
        engine = build_engine(items, random.Random(1234))

        draws = 10_000
        counts = Counter()
        for _ in range(draws):
            item = await engine.execute_pull(pool)
            counts[item.rarity] += 1

        for rarity, weight in STANDARD_RARITY_WEIGHTS.items():
            assert counts[rarity] / draws == pytest.approx(weight / 100, abs=0.03)

    @pytest.mark.asyncio
    async def test_requests_candidates_from_enabled_sources(self, pool):
        pool.enable_cdn = False
        registry = FakeRegistry(make_items(RarityTier.COMMON, 2))
        engine = GachaEngine(registry, FakeRarityConfigService(), random.Random(0))

        await engine.execute_pull(pool)

        _, sources, limit = registry.requests[0]
        assert [str(s) for s in sources] == ["local", "wallhaven"]
        assert limit == engine.candidate_limit

    @pytest.mark.asyncio
    async def test_empty_tier_falls_back_to_common(self, pool):
        """A LEGENDARY roll with no legendary candidates lands in the COMMON group."""
        commons = make_items(RarityTier.COMMON, 2)
        items = [*commons, *make_items(RarityTier.RARE, 2)]
        # 0.999 * 100 rolls past every tier but LEGENDARY, 0.6 picks the second common
        engine = build_engine(items, FixedRandom([0.999, 0.6]))

        item = await engine.execute_pull(pool)

        assert item == commons[1]

    @pytest.mark.asyncio
    async def test_falls_back_to_all_candidates_without_commons(self, pool):
        epics = make_items(RarityTier.EPIC, 2)
        # 0.0 rolls COMMON, which is empty here
        engine = build_engine(epics, FixedRandom([0.0, 0.0]))

        item = await engine.execute_pull(pool)

        assert item == epics[0]

    @pytest.mark.asyncio
    async def test_excluded_items_are_never_returned(self, pool):
        items = make_items(RarityTier.COMMON, 3)
        engine = build_engine(items, random.Random(5))

        for _ in range(50):
            item = await engine.execute_pull(pool, exclude_item_ids={items[0].id, items[1].id})
            assert item == items[2]

    @pytest.mark.asyncio
    async def test_no_candidates_raises(self, pool):
        engine = build_engine([], random.Random(0))

        with pytest.raises(NoItemsAvailableError) as exc_info:
            await engine.execute_pull(pool)

        assert exc_info.value.detail == "No items available in this pool"

    @pytest.mark.asyncio
    async def test_everything_excluded_raises(self, pool):
        items = make_items(RarityTier.RARE, 2)
        engine = build_engine(items, random.Random(0))

        with pytest.raises(NoRemainingItemsError) as exc_info:
            await engine.execute_pull(pool, exclude_item_ids=[item.id for item in items])

        assert exc_info.value.status_code == 409


class TestExecuteMultiPull:
    @pytest.mark.asyncio
    async def test_one_candidate_fetch_per_batch(self, pool):
        registry = FakeRegistry(make_items(RarityTier.COMMON, 12))
        engine = GachaEngine(registry, FakeRarityConfigService(), random.Random(2))

        drawn = await engine.execute_multi_pull(pool, 10)

        assert len(registry.requests) == 1
        assert len({item.id for item in drawn}) == 10

    @pytest.mark.asyncio
    async def test_uses_preloaded_weights(self, pool):
        """Weights passed in win over the pool's stored configuration."""
        items = [*make_items(RarityTier.COMMON, 3), *make_items(RarityTier.LEGENDARY, 3)]
        engine = build_engine(items, random.Random(4))
        only_legendary = {rarity: 0 for rarity in RarityTier} | {RarityTier.LEGENDARY: 1}

        drawn = await engine.execute_multi_pull(pool, 3, only_legendary)

        assert {item.rarity for item in drawn} == {RarityTier.LEGENDARY}

    @pytest.mark.asyncio
    async def test_batch_larger_than_candidates_raises(self, pool):
        engine = build_engine(make_items(RarityTier.RARE, 2), random.Random(0))

        with pytest.raises(NoRemainingItemsError):
            await engine.execute_multi_pull(pool, 3)


class TestExecuteWeightedPull:
    @pytest.mark.asyncio
    async def test_roll_walks_cumulative_weights_in_fetch_order(self, pool):
        common = make_items(RarityTier.COMMON, 1)[0]
        legendary = make_items(RarityTier.LEGENDARY, 1)[0]
        weights = {**STANDARD_RARITY_WEIGHTS}

        # Cumulative weights are [60, 61]
        low = build_engine([common, legendary], FixedRandom([0.5]), weights)
        high = build_engine([common, legendary], FixedRandom([0.99]), weights)

        assert await low.execute_weighted_pull(pool) == common
        assert await high.execute_weighted_pull(pool) == legendary

    @pytest.mark.asyncio
    async def test_item_weight_multiplies_rarity_weight(self, pool):
        light = make_items(RarityTier.COMMON, 1, prefix="light")[0]
        heavy = make_items(RarityTier.COMMON, 1, prefix="heavy")[0].model_copy(
            update={"weight": 3}
        )
        engine = build_engine([light, heavy], random.Random(99))

        counts = Counter()
        for _ in range(4000):
            counts[(await engine.execute_weighted_pull(pool)).id] += 1

        assert counts[heavy.id] / 4000 == pytest.approx(0.75, abs=0.03)

    @pytest.mark.asyncio
    async def test_maximal_roll_returns_last_item(self, pool):
        items = make_items(RarityTier.UNCOMMON, 3)
        engine = build_engine(items, FixedRandom([1.0]))

        assert await engine.execute_weighted_pull(pool) == items[-1]

    @pytest.mark.asyncio
    async def test_no_candidates_raises(self, pool):
        engine = build_engine([], random.Random(0))

        with pytest.raises(NoItemsAvailableError):
            await engine.execute_weighted_pull(pool)
