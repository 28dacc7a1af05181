"""Domain-level request contracts and collaborator ports shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from .account import Account, Phone


@dataclass(slots=True)
class SignUpInput:
    """Raw sign-up values; the workflow performs all format validation."""

    email: str | None
    password: str | None
    name: str | None = None
    phones: list[Phone] = field(default_factory=list)


class AccountStoreError(Exception):
    """Raised by store adapters when the backing storage fails."""


class StoreConflictError(AccountStoreError):
    """Raised when a write violates the store's uniqueness guarantees."""


class AccountStore(Protocol):
    """Read/write access to accounts; absence is ``None``, never an error."""

    def find_by_email(self, email: str) -> Account | None:
        ...

    def find_by_token(self, token: str) -> Account | None:
        ...

    def save(self, account: Account, *, expected_token: str | None = None) -> Account:
        """Insert or update ``account`` and return the persisted state.

        When ``expected_token`` is given, an existing account is only updated
        while its stored token still equals it; otherwise the store raises
        :class:`StoreConflictError`.
        """
        ...


class PasswordHasher(Protocol):
    """One-way password hashing contract."""

    def hash(self, plaintext: str) -> str:
        ...

    def verify(self, plaintext: str, digest: str) -> bool:
        ...
