"""Issuing and validating the service's bearer JWTs."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import jwt

from ..domain.errors import ConfigurationError

if TYPE_CHECKING:
    from ..config import Settings


class TokenAuthority:
    """Create and verify signed tokens whose subject is an account email.

    Tokens are stateless: a token is valid when its signature, issuer and
    expiry verify. Verification failures are reported as ``False``/``None``
    and never as exceptions, so callers cannot tell a bad signature from an
    expired or malformed token.
    """

    def __init__(
        self,
        secret: str,
        ttl_seconds: int,
        issuer: str,
        algorithm: str = "HS256",
    ) -> None:
        """Store the signing material; reject values that cannot produce usable tokens."""
        if not secret:
            raise ConfigurationError("token signing secret must be non-empty")
        if ttl_seconds <= 0:
            raise ConfigurationError("token TTL must be positive")
        self._secret = secret
        self._ttl = timedelta(seconds=ttl_seconds)
        self._issuer = issuer
        self._algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: "Settings") -> "TokenAuthority":
        return cls(settings.jwt_secret, settings.jwt_ttl_seconds, settings.jwt_issuer)

    @property
    def ttl_seconds(self) -> int:
        return int(self._ttl.total_seconds())

    def issue(self, subject: str, now: datetime) -> str:
        """Create a signed JWT for ``subject`` expiring ``ttl`` after ``now``.

        Parameters
        ----------
        subject:
            Account email embedded in the ``sub`` claim.
        now:
            Issuance instant; ``exp`` is derived from it.

        Returns
        -------
        str
            The encoded token. A random ``jti`` keeps tokens issued for the
            same subject within the same second distinct.
        """
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "sub": subject,
            "iat": int(now.timestamp()),
            "exp": int((now + self._ttl).timestamp()),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def validate(self, token: str | None) -> bool:
        """Return ``True`` iff the token verifies and has not expired."""
        return self._decode(token) is not None

    def subject_of(self, token: str | None) -> str | None:
        """Return the verified ``sub`` claim, or ``None`` when the token does not verify."""
        claims = self._decode(token)
        if claims is None:
            return None
        subject = claims.get("sub")
        return subject if isinstance(subject, str) else None

    def expires_at(self, token: str | None) -> datetime | None:
        """Return the verified expiry instant, or ``None`` when the token does not verify."""
        claims = self._decode(token)
        if claims is None:
            return None
        return datetime.fromtimestamp(claims["exp"], tz=timezone.utc)

    def _decode(self, token: str | None) -> dict[str, Any] | None:
        if not token or not isinstance(token, str):
            return None
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                # validity is signature, issuer and expiry; iat comes from the issuer's clock
                options={"require": ["sub", "exp", "iss"], "verify_iat": False},
            )
        except jwt.PyJWTError:
            return None
