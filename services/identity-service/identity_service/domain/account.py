from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(slots=True)
class Phone:
    """Contact number attached to an account; carried through unchanged."""

    number: int
    city_code: int
    country_code: str


@dataclass(slots=True)
class Account:
    """Aggregate root for a registered user identity."""

    account_id: str
    email: str
    password_hash: str
    created_at: datetime
    last_login_at: datetime
    is_active: bool = True
    name: str | None = None
    token: str | None = None
    phones: list[Phone] = field(default_factory=list)


@dataclass(slots=True)
class AccountView:
    """Public projection of an account returned by the workflows."""

    account_id: str
    name: str | None
    email: str
    phones: list[Phone]
    created_at: datetime
    last_login_at: datetime
    token: str | None
    is_active: bool
    password_hash: str

    @classmethod
    def from_account(cls, account: Account) -> "AccountView":
        return cls(
            account_id=account.account_id,
            name=account.name,
            email=account.email,
            phones=list(account.phones),
            created_at=account.created_at,
            last_login_at=account.last_login_at,
            token=account.token,
            is_active=account.is_active,
            password_hash=account.password_hash,
        )
