"""Pattern-based acceptance checks for sign-up credentials."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from .errors import ConfigurationError

if TYPE_CHECKING:
    from ..config import Settings


def _compile(name: str, pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except (re.error, TypeError) as exc:
        raise ConfigurationError(f"invalid {name} pattern: {exc}") from exc


class CredentialValidator:
    """Validate email and password strings against configured patterns.

    Patterns are compiled once on construction so a malformed expression fails
    process startup instead of individual requests. Both checks require the
    whole candidate to match.
    """

    def __init__(self, email_pattern: str, password_pattern: str) -> None:
        self._email = _compile("email", email_pattern)
        self._password = _compile("password", password_pattern)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CredentialValidator":
        return cls(settings.email_pattern, settings.password_pattern)

    def validate_email(self, candidate: Any) -> bool:
        """Return ``True`` when ``candidate`` is a string matching the email pattern."""
        return isinstance(candidate, str) and self._email.fullmatch(candidate) is not None

    def validate_password(self, candidate: Any) -> bool:
        """Return ``True`` when ``candidate`` is a string matching the password pattern."""
        return isinstance(candidate, str) and self._password.fullmatch(candidate) is not None
