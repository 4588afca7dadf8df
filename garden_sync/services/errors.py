# garden_sync/services/errors.py
"""
Error taxonomy of the sync pipeline.

AuthError is surfaced to the caller, ProviderFetchError degrades a provider's metrics to zero,
ValidationError rejects input as-is, NotFoundError fails a single user's sync.
"""


class GardenSyncError(Exception):
    pass


# --- credentials ---
class AuthError(GardenSyncError):
    pass


class CredentialNotFound(AuthError):
    def __init__(self, user_id, provider: str):
        self.user_id = user_id
        self.provider = provider
        super().__init__(f"no active {provider} integration for user {user_id}")


class InvalidCredential(AuthError):
    pass


class RefreshFailed(AuthError):
    pass


# --- providers ---
class ProviderFetchError(GardenSyncError):
    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class PropertyNotConfigured(ProviderFetchError):
    def __init__(self, provider: str):
        super().__init__(provider, "analytics property not configured")


class ProviderAPIError(ProviderFetchError):
    pass


# --- input ---
class ValidationError(GardenSyncError):
    pass


class InvalidAmount(ValidationError):
    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"amount must be positive, got {amount}")


class InvalidPosition(ValidationError):
    pass


class PositionOccupied(ValidationError):
    pass


class NoActiveIntegrations(ValidationError):
    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__("no active integration; connect Google Analytics or Stripe first")


class InsufficientFunds(ValidationError):
    """Raised when a spend would take the seed balance below zero."""

    def __init__(self, user_id, current_balance: int, requested_amount: int):
        self.user_id = user_id
        self.current_balance = current_balance
        self.requested_amount = requested_amount
        self.shortfall = requested_amount - current_balance
        super().__init__(
            f"insufficient seeds for user {user_id}: "
            f"balance={current_balance}, requested={requested_amount}, shortfall={self.shortfall}"
        )


# --- game state ---
class NotFoundError(GardenSyncError):
    pass


class GardenNotFound(NotFoundError):
    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__(f"garden not found for user {user_id}")


class AccountNotFound(NotFoundError):
    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__(f"currency account not found for user {user_id}")


class StaleStateError(GardenSyncError):
    """A compare-and-swap update lost against a concurrent writer."""
