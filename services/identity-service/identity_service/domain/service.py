"""Sign-up and login workflows orchestrating validation, hashing, tokens and storage."""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable

from ..security.tokens import TokenAuthority
from .account import Account, AccountView
from .contracts import (
    AccountStore,
    AccountStoreError,
    PasswordHasher,
    SignUpInput,
    StoreConflictError,
)
from .errors import (
    AccountNotFound,
    AlreadyExists,
    InactiveAccount,
    InvalidFormat,
    InvalidToken,
    PersistenceFailure,
)
from .validation import CredentialValidator

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SignUpService:
    """Account registration backed by an :class:`AccountStore`."""

    def __init__(
        self,
        store: AccountStore,
        validator: CredentialValidator,
        hasher: PasswordHasher,
        tokens: TokenAuthority,
        clock: Clock = utc_now,
    ) -> None:
        """Store the collaborators used to validate, hash, sign and persist new accounts."""
        self._store = store
        self._validator = validator
        self._hasher = hasher
        self._tokens = tokens
        self._clock = clock

    def sign_up(self, payload: SignUpInput) -> AccountView:
        """Register a new account and return its public projection.

        Every check runs before the single store write, so a rejected request
        leaves storage untouched.

        Raises
        ------
        InvalidFormat
            The email or password is absent or does not match its pattern.
        AlreadyExists
            An account with the email is on file, or the store reported a
            uniqueness conflict while writing.
        PersistenceFailure
            The store failed during lookup or write.
        """
        if payload.email is None or not self._validator.validate_email(payload.email):
            logger.warning("sign-up rejected: invalid email format")
            raise InvalidFormat("email")
        if payload.password is None or not self._validator.validate_password(payload.password):
            logger.warning("sign-up rejected: invalid password format")
            raise InvalidFormat("password")

        email = payload.email.lower()
        logger.info("sign-up requested for email=%s", email)

        try:
            existing = self._store.find_by_email(email)
        except AccountStoreError as exc:
            logger.error("account lookup failed during sign-up for email=%s", email, exc_info=True)
            raise PersistenceFailure() from exc
        if existing is not None:
            logger.warning("sign-up rejected: email=%s already registered", email)
            raise AlreadyExists(email)

        now = self._clock()
        account = Account(
            account_id=str(uuid.uuid4()),
            email=email,
            password_hash=self._hasher.hash(payload.password),
            created_at=now,
            last_login_at=now,
            is_active=True,
            name=payload.name,
            token=self._tokens.issue(email, now),
            phones=list(payload.phones),
        )

        try:
            saved = self._store.save(account)
        except StoreConflictError as exc:
            logger.warning("sign-up lost a race for email=%s", email)
            raise AlreadyExists(email) from exc
        except AccountStoreError as exc:
            logger.error("account write failed during sign-up for email=%s", email, exc_info=True)
            raise PersistenceFailure() from exc

        logger.info("account %s created for email=%s", saved.account_id, email)
        return AccountView.from_account(saved)


class LoginService:
    """Token-based re-authentication with unconditional token rotation."""

    def __init__(
        self,
        store: AccountStore,
        tokens: TokenAuthority,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._tokens = tokens
        self._clock = clock

    def login(self, token: str | None) -> AccountView:
        """Exchange the account's current token for a fresh one.

        Parameters
        ----------
        token:
            Bearer token with any transport prefix already removed.

        Raises
        ------
        InvalidToken
            The token is absent, fails verification, or names a different
            subject than the account stored against it.
        AccountNotFound
            No account currently holds the token.
        InactiveAccount
            The account has been deactivated.
        PersistenceFailure
            The store failed during lookup or write, or another login
            rotated the token first.
        """
        if token is None or not token.strip() or not self._tokens.validate(token):
            logger.warning("login rejected: token failed validation")
            raise InvalidToken()

        subject = self._tokens.subject_of(token)
        if subject is None or not subject.strip():
            logger.warning("login rejected: token carries no subject")
            raise InvalidToken()

        try:
            account = self._store.find_by_token(token)
        except AccountStoreError as exc:
            logger.error("account lookup by token failed", exc_info=True)
            raise PersistenceFailure() from exc
        if account is None:
            logger.warning("login rejected: no account holds the presented token")
            raise AccountNotFound()

        if subject != account.email:
            logger.warning("login rejected: token subject does not match account %s", account.account_id)
            raise InvalidToken()
        if not account.is_active:
            logger.warning("login rejected: account %s is inactive", account.account_id)
            raise InactiveAccount()

        now = self._clock()
        updated = replace(
            account,
            last_login_at=max(now, account.last_login_at),
            token=self._tokens.issue(subject, now),
            phones=list(account.phones),
        )

        try:
            saved = self._store.save(updated, expected_token=token)
        except StoreConflictError as exc:
            logger.warning("login lost a race for account %s; token already rotated", account.account_id)
            raise PersistenceFailure() from exc
        except AccountStoreError as exc:
            logger.error("account write failed during login for %s", account.account_id, exc_info=True)
            raise PersistenceFailure() from exc

        logger.info("login succeeded for account %s", saved.account_id)
        return AccountView.from_account(saved)
