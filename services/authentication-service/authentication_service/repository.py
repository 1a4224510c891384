"""Postgres-backed account persistence."""

from __future__ import annotations

import logging
from datetime import datetime

import psycopg
from psycopg import errors
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.account import AccessToken, Account
from .domain.contracts import StoreErrorKind, StoreResult

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS accounts (
    email TEXT PRIMARY KEY,
    password_credential TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS access_tokens (
    token_id BIGSERIAL PRIMARY KEY,
    token TEXT NOT NULL UNIQUE,
    account_email TEXT NOT NULL REFERENCES accounts (email) ON DELETE CASCADE,
    created_at TIMESTAMPTZ NOT NULL,
    expires_at TIMESTAMPTZ NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_access_tokens_account ON access_tokens (account_email);
"""


class PostgresAccountStore:
    """Account store relying on Postgres constraints for uniqueness and atomic appends.

    ``accounts.email`` is the primary key, so racing registrations are resolved by
    the database. Tokens live in their own table; each login inserts one row, so
    concurrent appends for one account never overwrite each other.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def ensure_schema(self) -> None:
        """Create the account and token tables when they do not exist yet."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA)
                conn.commit()

    def close(self) -> None:
        self._pool.close()

    def create_account(self, email: str, password_credential: str) -> StoreResult[Account]:
        """Insert a new account with an empty token sequence."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        INSERT INTO accounts (email, password_credential)
                        VALUES (%s, %s)
                        RETURNING email, password_credential, created_at
                        """,
                        (email, password_credential),
                    )
                    row = cur.fetchone()
                    conn.commit()
        except errors.UniqueViolation as exc:
            return StoreResult.failure(StoreErrorKind.DUPLICATE_KEY, str(exc))
        except psycopg.Error as exc:
            return StoreResult.failure(StoreErrorKind.UNKNOWN, str(exc))
        return StoreResult.success(self._map_account(row, []))

    def find_by_credentials(self, email: str, password_credential: str) -> StoreResult[Account]:
        """Return the account matching both email and credential exactly."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        SELECT email, password_credential, created_at
                        FROM accounts
                        WHERE email = %s AND password_credential = %s
                        """,
                        (email, password_credential),
                    )
                    row = cur.fetchone()
                    if not row:
                        return StoreResult.not_found()
                    tokens = self._fetch_tokens(cur, row[0])
        except psycopg.Error as exc:
            return StoreResult.failure(StoreErrorKind.UNKNOWN, str(exc))
        return StoreResult.success(self._map_account(row, tokens))

    def append_token(self, email: str, token: AccessToken) -> StoreResult[AccessToken]:
        """Append ``token`` to the account's token sequence."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        INSERT INTO access_tokens (token, account_email, created_at, expires_at)
                        VALUES (%s, %s, %s, %s)
                        """,
                        (token.value, email, token.created_at, token.expires_at),
                    )
                    conn.commit()
        except errors.ForeignKeyViolation:
            return StoreResult.not_found()
        except psycopg.Error as exc:
            return StoreResult.failure(StoreErrorKind.UNKNOWN, str(exc))
        return StoreResult.success(token)

    def find_by_valid_token(self, token_value: str, now: datetime) -> StoreResult[Account]:
        """Return the owner of an unexpired token; expired tokens count as missing."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        SELECT a.email, a.password_credential, a.created_at
                        FROM access_tokens t
                        JOIN accounts a ON a.email = t.account_email
                        WHERE t.token = %s AND t.expires_at >= %s
                        """,
                        (token_value, now),
                    )
                    row = cur.fetchone()
                    if not row:
                        return StoreResult.not_found()
                    tokens = self._fetch_tokens(cur, row[0])
        except psycopg.Error as exc:
            return StoreResult.failure(StoreErrorKind.UNKNOWN, str(exc))
        return StoreResult.success(self._map_account(row, tokens))

    def delete_account(self, email: str) -> StoreResult[None]:
        """Remove the account; its tokens are dropped by the cascading foreign key."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("DELETE FROM accounts WHERE email = %s", (email,))
                    if cur.rowcount == 0:
                        logger.debug("delete requested for unknown account")
                    conn.commit()
        except psycopg.Error as exc:
            return StoreResult.failure(StoreErrorKind.UNKNOWN, str(exc))
        return StoreResult.success()

    def _fetch_tokens(self, cur: psycopg.Cursor, email: str) -> list[AccessToken]:
        cur.execute(
            """
            SELECT token, created_at, expires_at
            FROM access_tokens
            WHERE account_email = %s
            ORDER BY token_id
            """,
            (email,),
        )
        return [AccessToken(value=row[0], created_at=row[1], expires_at=row[2]) for row in cur.fetchall()]

    def _map_account(self, row: tuple, tokens: list[AccessToken]) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            email=row[0],
            password_credential=row[1],
            created_at=row[2],
            tokens=tokens,
        )
