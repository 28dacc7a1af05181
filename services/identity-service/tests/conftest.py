from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from identity_service.config import DEFAULT_EMAIL_PATTERN, DEFAULT_PASSWORD_PATTERN
from identity_service.domain.account import Account
from identity_service.domain.validation import CredentialValidator
from identity_service.memory_store import InMemoryAccountStore
from identity_service.security.passwords import BcryptPasswordHasher
from identity_service.security.tokens import TokenAuthority

SECRET = "test-secret"
ISSUER = "identity-service-tests"


class RecordingStore(InMemoryAccountStore):
    """In-memory store that records calls and can be told to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[str] = []
        self.fail_with: Exception | None = None
        self.fail_on: set[str] = set()

    def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_with is not None and name in self.fail_on:
            raise self.fail_with

    def find_by_email(self, email: str):
        self._maybe_fail("find_by_email")
        return super().find_by_email(email)

    def find_by_token(self, token: str):
        self._maybe_fail("find_by_token")
        return super().find_by_token(token)

    def save(self, account: Account, *, expected_token: str | None = None) -> Account:
        self._maybe_fail("save")
        return super().save(account, expected_token=expected_token)

    def seed(self, account: Account) -> Account:
        return super().save(account)


class FixedClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def tokens() -> TokenAuthority:
    return TokenAuthority(SECRET, ttl_seconds=3600, issuer=ISSUER)


@pytest.fixture
def validator() -> CredentialValidator:
    return CredentialValidator(DEFAULT_EMAIL_PATTERN, DEFAULT_PASSWORD_PATTERN)


@pytest.fixture
def hasher() -> BcryptPasswordHasher:
    return BcryptPasswordHasher(rounds=4)


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture
def make_account(tokens, hasher, clock):
    """Build a stored-account fixture holding a freshly issued token."""

    def _make(email: str = "kevin@example.com", *, is_active: bool = True, **overrides) -> Account:
        fields = dict(
            account_id=overrides.pop("account_id", f"acct-{email}"),
            email=email,
            password_hash=hasher.hash("Abcdef12"),
            created_at=clock.now - timedelta(days=1),
            last_login_at=clock.now - timedelta(hours=1),
            is_active=is_active,
            name="Kevin",
            token=tokens.issue(email, clock.now - timedelta(minutes=5)),
        )
        fields.update(overrides)
        return Account(**fields)

    return _make
