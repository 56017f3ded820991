from fastapi import HTTPException, status


class GachaError(HTTPException):
    """Base for gacha failures surfaced to the caller.

    Subclasses fix the status code and a default message so the exception
    handlers render them like any other ``HTTPException``.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Gacha request failed"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class InvalidRarityConfigError(GachaError):
    default_detail = "Invalid rarity configuration"


class PoolInactiveError(GachaError):
    default_detail = "Pool not found or inactive"


class PoolRestrictedError(GachaError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "This pool is restricted to admins"


class InsufficientFundsError(GachaError):
    default_detail = "Insufficient currency"


class NoItemsAvailableError(GachaError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "No items available in this pool"


class NoRemainingItemsError(GachaError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "No remaining items available"


class ProviderUnavailableError(GachaError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "All asset providers failed"

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("All asset providers failed:\n" + "\n".join(errors))


class PullTransactionError(GachaError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Pull could not be completed, no currency was spent"


class ProviderError(Exception):
    """Hard failure inside one asset provider (network, bad response)."""
