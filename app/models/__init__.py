from app.models.currency_transaction import CurrencyTransaction
from app.models.gacha_pool import GachaPool
from app.models.gacha_pull import GachaPull
from app.models.player import Player
from app.models.pool_rarity_config import PoolRarityConfig
from app.models.user_collection import UserCollection

__all__ = (
    "CurrencyTransaction",
    "GachaPool",
    "GachaPull",
    "Player",
    "PoolRarityConfig",
    "UserCollection",
)
