"""PostgreSQL connection pool behind the repository's ``Database`` protocol.

psycopg2 is blocking, so every pool and cursor call runs in a worker
thread. SQL is written with ``$n`` placeholders and rewritten to psycopg2's
named ``%(pn)s`` style before execution.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
from typing import Any

import boto3
import psycopg2
import psycopg2.pool
from botocore.exceptions import BotoCoreError, ClientError
from psycopg2.extras import RealDictCursor

from file_api.config import Settings
from file_api.exceptions import DatabaseError
from file_api.logging_config import get_logger
from file_api.services.repository import Row

logger = get_logger(__name__)

_PLACEHOLDER = re.compile(r"\$(\d+)")

PoolFactory = Callable[..., Any]


def to_pyformat(sql: str, params: Sequence[Any] = ()) -> tuple[str, dict[str, Any]]:
    """Rewrite ``$1``-style placeholders for psycopg2.

    >>> to_pyformat("SELECT * FROM files WHERE id = $1 LIMIT $2", ["a", 5])
    ('SELECT * FROM files WHERE id = %(p1)s LIMIT %(p2)s', {'p1': 'a', 'p2': 5})
    """
    rewritten = _PLACEHOLDER.sub(r"%(p\1)s", sql.replace("%", "%%"))
    return rewritten, {f"p{i}": value for i, value in enumerate(params, start=1)}


def _execute(conn: Any, sql: str, params: Sequence[Any]) -> list[Row]:
    with conn.cursor(cursor_factory=RealDictCursor) as cursor:
        cursor.execute(*to_pyformat(sql, params))
        if cursor.description is None:
            return []
        return [dict(row) for row in cursor.fetchall()]


class PostgresDatabase:
    """Pooled PostgreSQL access.

    Credentials come either from a connection string (local development)
    or from an AWS Secrets Manager secret holding ``username``, ``password``,
    ``host``, ``port`` and ``database``/``dbname``.
    """

    def __init__(
        self,
        dsn: str = "",
        *,
        secret_name: str = "",
        region: str = "us-east-1",
        ssl: bool = False,
        min_connections: int = 1,
        max_connections: int = 10,
        connect_timeout: int = 5,
        pool_factory: PoolFactory | None = None,
        secrets_client: Any = None,
    ) -> None:
        if not dsn and not secret_name:
            raise ValueError("DATABASE_URL or DB_SECRET_NAME is required")
        self._dsn = dsn
        self._secret_name = secret_name
        self._region = region
        self._ssl = ssl
        self._min_connections = min_connections
        self._max_connections = max_connections
        self._connect_timeout = connect_timeout
        self._pool_factory = pool_factory or psycopg2.pool.ThreadedConnectionPool
        self._secrets_client = secrets_client
        self._pool: Any = None
        self._connect_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> PostgresDatabase:
        return cls(
            settings.DATABASE_URL,
            secret_name=settings.DB_SECRET_NAME,
            region=settings.AWS_REGION,
            ssl=settings.DB_SSL,
            min_connections=settings.DB_MIN_CONNECTIONS,
            max_connections=settings.DB_MAX_CONNECTIONS,
            connect_timeout=settings.DB_CONNECT_TIMEOUT_SECONDS,
        )

    @property
    def connected(self) -> bool:
        return self._pool is not None

    def _credentials_from_secret(self) -> dict[str, Any]:
        client = self._secrets_client or boto3.client("secretsmanager", region_name=self._region)
        try:
            response = client.get_secret_value(SecretId=self._secret_name)
        except (BotoCoreError, ClientError) as exc:
            raise DatabaseError("Failed to retrieve database credentials") from exc

        if not response.get("SecretString"):
            raise DatabaseError("Database secret is empty")
        secret = json.loads(response["SecretString"])
        return {
            "user": secret["username"],
            "password": secret["password"],
            "host": secret["host"],
            "port": int(secret.get("port") or 5432),
            "dbname": secret.get("database") or secret.get("dbname"),
        }

    def _connection_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "connect_timeout": self._connect_timeout,
            "sslmode": "require" if self._ssl else "prefer",
        }
        if self._secret_name:
            kwargs.update(self._credentials_from_secret())
        else:
            kwargs["dsn"] = self._dsn
        return kwargs

    def _open_pool(self) -> Any:
        pool = self._pool_factory(
            self._min_connections, self._max_connections, **self._connection_kwargs()
        )
        # Fail early on bad credentials or an unreachable host.
        conn = pool.getconn()
        pool.putconn(conn)
        return pool

    async def connect(self) -> None:
        async with self._connect_lock:
            if self._pool is not None:
                return
            try:
                self._pool = await asyncio.to_thread(self._open_pool)
            except psycopg2.Error as exc:
                raise DatabaseError("Failed to connect to database") from exc
        logger.info("Database connection established")

    async def disconnect(self) -> None:
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        await asyncio.to_thread(pool.closeall)
        logger.info("Database connection closed")

    async def _require_pool(self) -> Any:
        if self._pool is None:
            await self.connect()
        return self._pool

    def _run(self, pool: Any, sql: str, params: Sequence[Any]) -> list[Row]:
        conn = pool.getconn()
        try:
            rows = _execute(conn, sql, params)
            conn.commit()
            return rows
        except Exception:
            conn.rollback()
            raise
        finally:
            pool.putconn(conn)

    async def query(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        pool = await self._require_pool()
        try:
            return await asyncio.to_thread(self._run, pool, sql, params)
        except psycopg2.Error as exc:
            logger.error("Query execution failed", extra={"error": str(exc)})
            raise DatabaseError("Query execution failed") from exc

    async def query_one(self, sql: str, params: Sequence[Any] = ()) -> Row | None:
        rows = await self.query(sql, params)
        return rows[0] if rows else None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[TransactionDatabase]:
        """One pooled connection, committed on exit and rolled back on error."""
        pool = await self._require_pool()
        conn = await asyncio.to_thread(pool.getconn)
        try:
            yield TransactionDatabase(conn)
            await asyncio.to_thread(conn.commit)
        except BaseException:
            await asyncio.to_thread(conn.rollback)
            raise
        finally:
            await asyncio.to_thread(pool.putconn, conn)

    async def is_healthy(self) -> bool:
        if self._pool is None:
            return False
        try:
            await self.query_one("SELECT 1")
        except DatabaseError:
            return False
        return True


class TransactionDatabase:
    """Connection-scoped view handed out by ``PostgresDatabase.transaction``."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    async def connect(self) -> None:
        return None

    async def disconnect(self) -> None:
        return None

    async def query(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        try:
            return await asyncio.to_thread(_execute, self._conn, sql, params)
        except psycopg2.Error as exc:
            raise DatabaseError("Query execution failed") from exc

    async def query_one(self, sql: str, params: Sequence[Any] = ()) -> Row | None:
        rows = await self.query(sql, params)
        return rows[0] if rows else None

    def transaction(self) -> Any:
        raise DatabaseError("Nested transactions are not supported")
