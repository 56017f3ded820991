from collections.abc import Mapping, Sequence
from typing import Annotated

from fastapi import Depends
from loguru import logger
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.db import get_db
from app.core.enums import RarityTier, RaritySeedProfile
from app.core.exceptions import InvalidRarityConfigError
from app.models.pool_rarity_config import PoolRarityConfig
from app.schemas.gacha import RarityConfigRead

STANDARD_RARITY_WEIGHTS: dict[RarityTier, int] = {
    RarityTier.COMMON: 60,
    RarityTier.UNCOMMON: 25,
    RarityTier.RARE: 10,
    RarityTier.EPIC: 4,
    RarityTier.LEGENDARY: 1,
}
PREMIUM_RARITY_WEIGHTS: dict[RarityTier, int] = {
    RarityTier.COMMON: 30,
    RarityTier.UNCOMMON: 30,
    RarityTier.RARE: 25,
    RarityTier.EPIC: 10,
    RarityTier.LEGENDARY: 5,
}
RARITY_SEED_PROFILES: dict[RaritySeedProfile, dict[RarityTier, int]] = {
    RaritySeedProfile.STANDARD: STANDARD_RARITY_WEIGHTS,
    RaritySeedProfile.PREMIUM: PREMIUM_RARITY_WEIGHTS,
}

_TIER_ORDER = {rarity: index for index, rarity in enumerate(RarityTier)}


def validate_rarity_weights(weights: Mapping[RarityTier, int]) -> None:
    """Reject weight maps that don't cover every tier exactly once with a positive weight.

    Raises:
        InvalidRarityConfigError: If a tier is missing or unknown, or a weight is not positive.
    """
    provided = set(weights)
    expected = set(RarityTier)
    if provided != expected or len(weights) != len(expected):
        missing = sorted(expected - provided, key=_TIER_ORDER.__getitem__)
        detail = f"Must provide weights for all {len(expected)} rarities"
        if missing:
            detail += f", missing: {', '.join(missing)}"
        raise InvalidRarityConfigError(detail)

    if any(isinstance(w, bool) or w <= 0 for w in weights.values()):
        raise InvalidRarityConfigError("All weights must be positive integers")


def compute_probabilities(weights: Mapping[RarityTier, int]) -> dict[RarityTier, float]:
    total_weight = sum(weights.values())
    return {rarity: weight / total_weight for rarity, weight in weights.items()}


def sort_by_tier(configs: Sequence[PoolRarityConfig]) -> list[PoolRarityConfig]:
    return sorted(configs, key=lambda config: _TIER_ORDER[config.rarity])


class RarityConfigService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db)]) -> None:
        self.db = db

    async def get_configs(self, pool_id: int) -> list[PoolRarityConfig]:
        result = await self.db.exec(
            select(PoolRarityConfig).where(PoolRarityConfig.pool_id == pool_id)
        )
        return sort_by_tier(result.all())

    async def get_weight_map(self, pool_id: int) -> dict[RarityTier, int]:
        """Tier to weight for a pool, in tier enumeration order."""
        return {config.rarity: config.weight for config in await self.get_configs(pool_id)}

    async def get_rarity_config(self, pool_id: int) -> list[RarityConfigRead]:
        configs = await self.get_configs(pool_id)
        total_weight = sum(config.weight for config in configs)

        return [
            RarityConfigRead(
                rarity=config.rarity,
                weight=config.weight,
                probability=config.weight / total_weight,
                percentage=f"{config.weight / total_weight * 100:.2f}%",
            )
            for config in configs
        ]

    def stage_rarity_config(self, pool_id: int, weights: Mapping[RarityTier, int]) -> None:
        """Add fresh config rows for a new pool to the session without committing."""
        validate_rarity_weights(weights)
        probabilities = compute_probabilities(weights)

        for rarity in RarityTier:
            self.db.add(
                PoolRarityConfig(
                    pool_id=pool_id,
                    rarity=rarity,
                    weight=weights[rarity],
                    probability=probabilities[rarity],
                )
            )

    def seed_rarity_config(
        self, pool_id: int, profile: RaritySeedProfile = RaritySeedProfile.STANDARD
    ) -> None:
        """Stage the default rows for a newly created pool."""
        self.stage_rarity_config(pool_id, RARITY_SEED_PROFILES[profile])

    async def update_rarity_config(
        self, pool_id: int, weights: Mapping[RarityTier, int]
    ) -> list[RarityConfigRead]:
        """Replace every tier weight of a pool in one transaction.

        Raises:
            InvalidRarityConfigError: If the weight map is incomplete or has a non-positive weight.
        """
        validate_rarity_weights(weights)
        probabilities = compute_probabilities(weights)

        existing = {config.rarity: config for config in await self.get_configs(pool_id)}
        try:
            for rarity in RarityTier:
                config = existing.get(rarity) or PoolRarityConfig(pool_id=pool_id, rarity=rarity)
                config.weight = weights[rarity]
                config.probability = probabilities[rarity]
                self.db.add(config)

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Updated rarity config for pool {pool_id}")
        return await self.get_rarity_config(pool_id)
