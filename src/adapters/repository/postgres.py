"""
PostgreSQL repository adapter - Implements AccountRepository protocol.

This module provides the PostgreSQL implementation of the domain's
repository port using psycopg3 with raw SQL.

Concurrency Design - Conditional Transitions:
---------------------------------------------
Confirming a request and redeeming a reset token are compare-and-set
updates, never a read followed by a blind write:

1. **UPDATE ... WHERE consumed = FALSE AND created_at >= valid_since**:
   The expiry window and the flag flip are one statement. The first
   transaction to flip the flag takes the row lock; a concurrent confirmer
   blocks on that lock, then re-evaluates the WHERE clause and affects
   zero rows.

2. **Single transaction**: The flag flip and the resulting INSERTs
   (user, email address) commit together or not at all.

3. **Unique indexes**: users.username and user_emails.email are UNIQUE.
   A violation rolls the whole confirmation back (the request stays
   PENDING) and surfaces as DuplicateResource.

4. **SELECT FOR UPDATE on users**: Removing an address locks the owning
   user row, so two concurrent removals cannot both pass the
   "more than one address left" check.
"""

import logging
from datetime import datetime
from pathlib import Path
from uuid import UUID

from psycopg import errors
from psycopg_pool import ConnectionPool

from src.domain.exceptions import DuplicateResource
from src.domain.models import PasswordResetToken, User, UserAccountRequest, UserEmailAddress
from src.domain.ports import RequestType

logger = logging.getLogger(__name__)

_REQUEST_COLUMNS = (
    "id, request_type, email, request_ip, created_at, "
    "username, password_digest, user_id, consumed"
)


def _request_from_row(row: tuple) -> UserAccountRequest:
    return UserAccountRequest(
        id=row[0],
        request_type=RequestType(row[1]),
        email=row[2],
        request_ip=row[3],
        created_at=row[4],
        username=row[5],
        password_digest=row[6],
        user_id=row[7],
        consumed=row[8],
    )


def _duplicate_from(exc: errors.UniqueViolation) -> DuplicateResource:
    constraint = exc.diag.constraint_name or ""
    if "username" in constraint:
        return DuplicateResource("Username already taken")
    return DuplicateResource("Email address already registered")


class PostgresAccountRepository:
    """
    Implements AccountRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def get_user(self, user_id: UUID) -> User | None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "SELECT id, username, password_digest FROM users WHERE id = %s",
                (user_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            cursor.execute(
                "SELECT id, email, user_id FROM user_emails WHERE user_id = %s ORDER BY email",
                (user_id,),
            )
            emails = [UserEmailAddress(id=r[0], email=r[1], user_id=r[2]) for r in cursor.fetchall()]
            return User(id=row[0], username=row[1], password_digest=row[2], emails=emails)

    def username_exists(self, username: str) -> bool:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("SELECT 1 FROM users WHERE username = %s", (username,))
            return cursor.fetchone() is not None

    def find_email_address(self, email: str) -> UserEmailAddress | None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "SELECT id, email, user_id FROM user_emails WHERE email = %s", (email,)
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return UserEmailAddress(id=row[0], email=row[1], user_id=row[2])

    def list_requests_for_username(
        self, username: str, excluding_email: str
    ) -> list[UserAccountRequest]:
        sql = f"""
            SELECT {_REQUEST_COLUMNS}
            FROM account_requests
            WHERE username = %s AND email <> %s
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (username, excluding_email))
            return [_request_from_row(row) for row in cursor.fetchall()]

    def add_request(self, request: UserAccountRequest) -> None:
        sql = """
            INSERT INTO account_requests
                (id, request_type, email, request_ip, created_at,
                 username, password_digest, user_id, consumed)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                sql,
                (
                    request.id,
                    request.request_type.value,
                    request.email,
                    request.request_ip,
                    request.created_at,
                    request.username,
                    request.password_digest,
                    request.user_id,
                    request.consumed,
                ),
            )
            conn.commit()

    def get_request(self, request_id: UUID) -> UserAccountRequest | None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                f"SELECT {_REQUEST_COLUMNS} FROM account_requests WHERE id = %s",
                (request_id,),
            )
            row = cursor.fetchone()
            return _request_from_row(row) if row is not None else None

    def confirm_new_user(
        self,
        request_id: UUID,
        user: User,
        address: UserEmailAddress,
        valid_since: datetime,
    ) -> bool:
        """
        Consume a NEW_USER request and create the user with its first address.

        Returns:
            True if this transaction consumed the request, False if another
            one already had or the request was created before valid_since

        Raises:
            DuplicateResource: username or email unique index violated
        """
        consume_sql = """
            UPDATE account_requests
            SET consumed = TRUE
            WHERE id = %s AND consumed = FALSE AND created_at >= %s
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(consume_sql, (request_id, valid_since))
            if cursor.rowcount != 1:
                conn.rollback()
                return False

            try:
                cursor.execute(
                    "INSERT INTO users (id, username, password_digest) VALUES (%s, %s, %s)",
                    (user.id, user.username, user.password_digest),
                )
                cursor.execute(
                    "INSERT INTO user_emails (id, email, user_id) VALUES (%s, %s, %s)",
                    (address.id, address.email, user.id),
                )
            except errors.UniqueViolation as e:
                conn.rollback()
                raise _duplicate_from(e) from e

            cursor.execute(
                "UPDATE account_requests SET user_id = %s WHERE id = %s",
                (user.id, request_id),
            )
            conn.commit()
            return True

    def confirm_new_email(
        self, request_id: UUID, address: UserEmailAddress, valid_since: datetime
    ) -> bool:
        consume_sql = """
            UPDATE account_requests
            SET consumed = TRUE
            WHERE id = %s AND consumed = FALSE AND created_at >= %s
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(consume_sql, (request_id, valid_since))
            if cursor.rowcount != 1:
                conn.rollback()
                return False

            try:
                cursor.execute(
                    "INSERT INTO user_emails (id, email, user_id) VALUES (%s, %s, %s)",
                    (address.id, address.email, address.user_id),
                )
            except errors.UniqueViolation as e:
                conn.rollback()
                raise _duplicate_from(e) from e

            conn.commit()
            return True

    def update_password(self, user_id: UUID, password_digest: str) -> None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "UPDATE users SET password_digest = %s WHERE id = %s",
                (password_digest, user_id),
            )
            conn.commit()

    def delete_email_address(self, user_id: UUID, address_id: UUID) -> bool:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            # Serialize removals for this user
            cursor.execute("SELECT id FROM users WHERE id = %s FOR UPDATE", (user_id,))
            if cursor.fetchone() is None:
                conn.commit()
                return False

            cursor.execute("SELECT COUNT(*) FROM user_emails WHERE user_id = %s", (user_id,))
            if cursor.fetchone()[0] <= 1:
                conn.commit()
                return False

            cursor.execute(
                "DELETE FROM user_emails WHERE id = %s AND user_id = %s",
                (address_id, user_id),
            )
            deleted = cursor.rowcount == 1
            conn.commit()
            return deleted

    def add_reset_token(self, token: PasswordResetToken) -> None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "INSERT INTO password_reset_tokens (id, user_id, created_at, used) "
                "VALUES (%s, %s, %s, %s)",
                (token.id, token.user_id, token.created_at, token.used),
            )
            conn.commit()

    def get_reset_token(self, token_id: UUID) -> PasswordResetToken | None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "SELECT id, user_id, created_at, used FROM password_reset_tokens WHERE id = %s",
                (token_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return PasswordResetToken(id=row[0], user_id=row[1], created_at=row[2], used=row[3])

    def redeem_reset_token(
        self, token_id: UUID, password_digest: str, valid_since: datetime
    ) -> bool:
        redeem_sql = """
            UPDATE password_reset_tokens
            SET used = TRUE
            WHERE id = %s AND used = FALSE AND user_id IS NOT NULL AND created_at >= %s
            RETURNING user_id
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(redeem_sql, (token_id, valid_since))
            row = cursor.fetchone()
            if row is None:
                conn.rollback()
                return False

            cursor.execute(
                "UPDATE users SET password_digest = %s WHERE id = %s",
                (password_digest, row[0]),
            )
            conn.commit()
            return True


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
