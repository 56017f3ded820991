def get_currency_multiplier(level: int) -> float:
    """Currency multiplier for a player level: ``1 + level * 0.05``."""
    return 1 + level * 0.05
