import random
from collections.abc import Mapping, Sequence

from app.core.enums import RarityTier
from app.schemas.asset import AssetItem


def select_weighted_rarity(
    weights: Mapping[RarityTier, float], total_weight: float, rng: random.Random
) -> RarityTier:
    """Draw a tier with probability ``weight / total_weight``.

    Tiers are visited in the mapping's iteration order. When rounding leaves no
    tier selected the rarest tier is returned.
    """
    roll = rng.random() * total_weight
    for rarity, weight in weights.items():
        roll -= weight
        if roll <= 0:
            return rarity

    return RarityTier.LEGENDARY


def select_random_item[T](items: Sequence[T], rng: random.Random) -> T:
    """Uniform pick, every item equally likely."""
    index = int(rng.random() * len(items))
    return items[index]


def select_weighted_item(
    items: Sequence[AssetItem], rarity_weights: Mapping[RarityTier, int], rng: random.Random
) -> AssetItem:
    """Pick an item with probability proportional to rarity weight times item weight.

    Tiers missing from ``rarity_weights`` count as weight 1. Falls back to the
    last item when the roll lands past the final cumulative boundary.
    """
    cumulative_weights: list[int] = []
    cumulative = 0
    for item in items:
        cumulative += rarity_weights.get(item.rarity, 1) * (item.weight or 1)
        cumulative_weights.append(cumulative)

    roll = rng.random() * cumulative
    for item, cumulative_weight in zip(items, cumulative_weights, strict=True):
        if roll <= cumulative_weight:
            return item

    return items[-1]
