"""Domain error kinds raised by the sign-up and login workflows."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised at startup when a configuration value cannot be used."""


class IdentityError(Exception):
    """Base class for workflow failures that are safe to report to callers."""

    kind = "identity_error"
    message = "identity operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)


class InvalidFormat(IdentityError):
    """An email or password did not match its configured pattern."""

    kind = "invalid_format"

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Invalid {field} format")


class AlreadyExists(IdentityError):
    """Sign-up was attempted for an email already on file."""

    kind = "already_exists"

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__("User already exists")


class InvalidToken(IdentityError):
    kind = "invalid_token"
    message = "Invalid token"


class AccountNotFound(IdentityError):
    kind = "account_not_found"
    message = "User not found for token"


class InactiveAccount(IdentityError):
    kind = "inactive_account"
    message = "Cannot login inactive user"


class PersistenceFailure(IdentityError):
    """The account store failed; the underlying cause is chained, never exposed."""

    kind = "persistence_failure"
    message = "Account storage is unavailable"
