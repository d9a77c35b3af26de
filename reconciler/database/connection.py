from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg_pool import ConnectionPool

from reconciler.config.settings import Settings

_pool: ConnectionPool | None = None


def build_conninfo(settings: Settings) -> str:
    """Build a libpq connection string from settings."""
    return (
        f"host={settings.db_host} "
        f"port={settings.db_port} "
        f"dbname={settings.db_database} "
        f"user={settings.db_username} "
        f"password={settings.db_password} "
        f"application_name=reconciler-{settings.app_env}"
    )


def init_pool(settings: Settings) -> None:
    """Initialize the global connection pool. Calling it twice is a no-op."""
    global _pool  # noqa: PLW0603
    if _pool is not None:
        return
    _pool = ConnectionPool(
        build_conninfo(settings),
        min_size=1,
        max_size=settings.db_pool_max_size,
        open=True,
    )


def close_pool() -> None:
    """Close the global connection pool."""
    global _pool  # noqa: PLW0603
    if _pool is not None:
        _pool.close()
        _pool = None


@contextmanager
def get_connection() -> Generator[psycopg.Connection[Any], None, None]:
    """Yield a pooled connection. Caller manages commit/rollback.

    Each handler opens its own short-lived connection; nothing is shared
    between webhook deliveries or sweeper runs.
    """
    if _pool is None:
        raise RuntimeError("Connection pool not initialized. Call init_pool() first.")
    with _pool.connection() as conn:
        yield conn
