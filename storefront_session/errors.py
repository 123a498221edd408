"""Error taxonomy for the storefront session client."""
from typing import Optional


class StorefrontError(Exception):
    """Base class for every error raised by this package."""


class InvalidPhoneNumber(StorefrontError):
    """Phone number is not in E.164 format. Never reaches the network."""


class InvalidCodeFormat(StorefrontError):
    """Verification code is not exactly six digits. Never reaches the network."""


class ChallengeSetupFailed(StorefrontError):
    """The human-verification proof could not be obtained. Retrying setup may help."""


class NoActiveChallenge(StorefrontError):
    """Verify attempted with no live challenge. The user must request a new code."""


class SessionExpired(StorefrontError):
    """The server reported the verification session as expired."""


class MergeVerificationFailed(StorefrontError):
    """Guest cart had items but the account cart came back empty after merging."""

    def __init__(self, guest_items: int, attempts: int):
        super().__init__(
            f"Cart merge not verified: {guest_items} guest item(s), "
            f"account cart empty after {attempts} attempt(s)"
        )
        self.guest_items = guest_items
        self.attempts = attempts


class NetworkError(StorefrontError):
    """Transport failure or non-success HTTP response from the storefront API."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
