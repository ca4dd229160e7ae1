"""libSQL connection used by the athlete and orphan repositories.

Works against a local ``file:`` SQLite database (tests, one-off repair
runs) or a hosted libSQL database when an auth token is configured.
"""

from typing import Any

import structlog
from libsql_client import Client, LibsqlError, ResultSet, create_client

from liftmatch.config import settings
from liftmatch.errors import ConflictError, StoreError

logger = structlog.get_logger()

UNIQUE_VIOLATION_MARKERS = ("UNIQUE constraint failed", "SQLITE_CONSTRAINT_UNIQUE")


def is_unique_violation(error: Exception) -> bool:
    """Check whether a libSQL error is a uniqueness constraint failure."""
    text = f"{getattr(error, 'code', '') or ''} {error}"
    return any(marker in text for marker in UNIQUE_VIOLATION_MARKERS)


def translate(error: LibsqlError) -> StoreError | ConflictError:
    """Map a driver error onto the store's error kinds."""
    if is_unique_violation(error):
        return ConflictError(str(error))
    return StoreError(str(error))


class TursoClient:
    """Thin async wrapper over ``libsql_client``.

    Callers never see ``LibsqlError``: a uniqueness violation surfaces as
    ConflictError and any other driver failure as StoreError.
    """

    def __init__(self, url: str | None = None, auth_token: str | None = None):
        """Initialize client.

        Args:
            url: ``file:`` path or ``libsql://`` URL; defaults to settings
            auth_token: Token for a hosted database; defaults to settings
        """
        self.url = url or settings.turso_database_url or "file:liftmatch.db"
        self.auth_token = auth_token or settings.turso_auth_token
        self._client: Client | None = None

    @property
    def is_remote(self) -> bool:
        return bool(self.auth_token) and self.url.startswith("libsql://")

    async def connect(self) -> None:
        """Open the connection; a second call is a no-op."""
        if self._client is not None:
            return
        if self.is_remote:
            self._client = create_client(url=self.url, auth_token=self.auth_token)
        else:
            self._client = create_client(url=self.url)
        logger.info("connected to database", url=self.url, remote=self.is_remote)

    async def execute(self, sql: str, params: list[Any] | None = None) -> ResultSet:
        """Run one statement with ``?`` placeholders.

        Raises:
            ConflictError: On a uniqueness constraint violation
            StoreError: On any other driver failure, or when not connected
        """
        client = self._connected()
        try:
            return await client.execute(sql, params or [])
        except LibsqlError as e:
            raise translate(e) from e

    async def execute_batch(self, statements: list[str]) -> None:
        """Run several statements in one transaction (schema setup)."""
        client = self._connected()
        try:
            await client.batch(statements)
        except LibsqlError as e:
            raise translate(e) from e

    async def close(self) -> None:
        if self._client is None:
            return
        await self._client.close()
        self._client = None
        logger.info("database connection closed", url=self.url)

    async def is_healthy(self) -> bool:
        """True if connected and the database answers a trivial query."""
        if self._client is None:
            return False
        try:
            result = await self._client.execute("SELECT 1")
        except LibsqlError:
            return False
        return len(result.rows) == 1

    def _connected(self) -> Client:
        if self._client is None:
            raise StoreError("Not connected. Call connect() first.")
        return self._client
