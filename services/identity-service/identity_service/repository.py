"""Database repository for identity/account data."""

from __future__ import annotations

import logging
from typing import Any

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import tuple_row
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from .domain.account import Account, Phone
from .domain.contracts import AccountStoreError, StoreConflictError

logger = logging.getLogger(__name__)

ACCOUNTS_DDL = (
    """
    CREATE TABLE IF NOT EXISTS accounts (
        account_id UUID PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        name TEXT,
        password_hash TEXT NOT NULL CHECK (password_hash <> ''),
        token TEXT,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        phones JSONB NOT NULL DEFAULT '[]'::jsonb,
        created_at TIMESTAMPTZ NOT NULL,
        last_login_at TIMESTAMPTZ NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS accounts_token_idx ON accounts (token)",
)

_COLUMNS = "account_id, email, name, password_hash, token, is_active, phones, created_at, last_login_at"


class AccountRepository:
    """Postgres-backed account persistence."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def create_schema(self) -> None:
        """Create the accounts table and its token index when missing."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                for statement in ACCOUNTS_DDL:
                    cur.execute(statement)
            conn.commit()

    def find_by_email(self, email: str) -> Account | None:
        """Return the account registered under ``email`` or ``None``."""
        return self._fetch_one(f"SELECT {_COLUMNS} FROM accounts WHERE email = %s", (email,))

    def find_by_token(self, token: str) -> Account | None:
        """Return the account whose current token is ``token`` or ``None``."""
        return self._fetch_one(f"SELECT {_COLUMNS} FROM accounts WHERE token = %s", (token,))

    def save(self, account: Account, *, expected_token: str | None = None) -> Account:
        """Insert the account or update its mutable columns, returning the stored row.

        With ``expected_token`` the update only applies while the stored token
        still equals it; a concurrent rotation yields no row and a
        :class:`StoreConflictError`.
        """
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        INSERT INTO accounts ({_COLUMNS})
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                        ON CONFLICT (account_id) DO UPDATE SET
                            token = EXCLUDED.token,
                            last_login_at = EXCLUDED.last_login_at,
                            is_active = EXCLUDED.is_active
                        WHERE %s::text IS NULL OR accounts.token = %s
                        RETURNING {_COLUMNS}
                        """,
                        (
                            account.account_id,
                            account.email,
                            account.name,
                            account.password_hash,
                            account.token,
                            account.is_active,
                            Json([self._dump_phone(phone) for phone in account.phones]),
                            account.created_at,
                            account.last_login_at,
                            expected_token,
                            expected_token,
                        ),
                    )
                    row = cur.fetchone()
                conn.commit()
        except pg_errors.UniqueViolation as exc:
            logger.warning("unique constraint violated saving account %s: %s", account.account_id, exc)
            raise StoreConflictError("account email already stored") from exc
        except psycopg.Error as exc:
            logger.error("failed to save account %s: %s", account.account_id, exc)
            raise AccountStoreError("failed to save account") from exc
        if row is None:
            logger.warning("token of account %s changed before update", account.account_id)
            raise StoreConflictError("account token changed concurrently")
        return self._map_record(row)

    def _fetch_one(self, query: str, params: tuple[Any, ...]) -> Account | None:
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
        except psycopg.Error as exc:
            logger.error("account lookup failed: %s", exc)
            raise AccountStoreError("failed to read account") from exc
        if not row:
            return None
        return self._map_record(row)

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=str(row[0]),
            email=row[1],
            name=row[2],
            password_hash=row[3],
            token=row[4],
            is_active=row[5],
            phones=[self._load_phone(item) for item in row[6] or []],
            created_at=row[7],
            last_login_at=row[8],
        )

    @staticmethod
    def _dump_phone(phone: Phone) -> dict[str, Any]:
        return {
            "number": phone.number,
            "city_code": phone.city_code,
            "country_code": phone.country_code,
        }

    @staticmethod
    def _load_phone(item: dict[str, Any]) -> Phone:
        return Phone(
            number=item["number"],
            city_code=item["city_code"],
            country_code=item["country_code"],
        )
