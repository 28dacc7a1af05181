"""In-memory account store used for local development and tests."""

from __future__ import annotations

from dataclasses import replace
from threading import Lock

from .domain.account import Account
from .domain.contracts import StoreConflictError


def _copy(account: Account) -> Account:
    return replace(account, phones=list(account.phones))


class InMemoryAccountStore:
    """Thread-safe account store enforcing email uniqueness on write.

    Accounts are copied on the way in and out so callers never share state
    with the store.
    """

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._lock = Lock()

    def find_by_email(self, email: str) -> Account | None:
        with self._lock:
            for account in self._accounts.values():
                if account.email == email:
                    return _copy(account)
        return None

    def find_by_token(self, token: str) -> Account | None:
        with self._lock:
            for account in self._accounts.values():
                if account.token is not None and account.token == token:
                    return _copy(account)
        return None

    def save(self, account: Account, *, expected_token: str | None = None) -> Account:
        """Upsert by ``account_id``; raise :class:`StoreConflictError` on a duplicate email
        or when the stored token no longer equals ``expected_token``."""
        with self._lock:
            current = self._accounts.get(account.account_id)
            if expected_token is not None and current is not None and current.token != expected_token:
                raise StoreConflictError(f"token of account {account.account_id} changed concurrently")
            for stored in self._accounts.values():
                if stored.email == account.email and stored.account_id != account.account_id:
                    raise StoreConflictError(f"email already stored for account {stored.account_id}")
            self._accounts[account.account_id] = _copy(account)
            return _copy(account)

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)
