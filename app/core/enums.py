from enum import StrEnum


class RarityTier(StrEnum):
    """Rarity tiers, declared from most to least common.

    Declaration order is the enumeration order used by the tier draw.
    """

    COMMON = "COMMON"
    UNCOMMON = "UNCOMMON"
    RARE = "RARE"
    EPIC = "EPIC"
    LEGENDARY = "LEGENDARY"


class PoolType(StrEnum):
    STANDARD = "STANDARD"
    PREMIUM = "PREMIUM"


class RaritySeedProfile(StrEnum):
    """Named rarity weight tables a new pool can be seeded with."""

    STANDARD = "STANDARD"
    PREMIUM = "PREMIUM"


class AssetSource(StrEnum):
    LOCAL = "local"
    CLOUDINARY = "cloudinary"
    WALLHAVEN = "wallhaven"


class TransactionType(StrEnum):
    GACHA_PULL = "GACHA_PULL"
    QUEST_REWARD = "QUEST_REWARD"


class ImageFormat(StrEnum):
    AUTO = "auto"
    WEBP = "webp"
    JPG = "jpg"
    PNG = "png"
