"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be tested without triggering
alembic.context at import time.

DATABASE_URL may be a URL (``postgres://`` / ``postgresql://``) or a libpq
key=value DSN; both become a ``postgresql+psycopg2`` SQLAlchemy URL. When the
DSN carries no password, DB_PASSWORD is injected, matching opsdesk.infra.db.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator

from psycopg2.extensions import parse_dsn
from sqlalchemy import text
from sqlalchemy.engine import URL, Connection, make_url

_DRIVER = "postgresql+psycopg2"

# Session-level advisory lock key shared by every process that migrates
MIGRATION_LOCK_KEY = 0x6F707364_65736B01


def _password_fallback(password: str | None) -> str | None:
    if password:
        return password
    return os.environ.get("DB_PASSWORD") or None


def libpq_dsn_to_url(dsn: str) -> URL:
    """Convert a libpq key=value DSN to a SQLAlchemy URL.

    A socket directory host (``host=/run/postgresql``) is passed through the
    query string, since it cannot be the URL host.
    """
    params = parse_dsn(dsn)
    host = params.get("host")
    port = params.get("port")
    query: dict[str, str] = {}

    if host and host.startswith("/"):
        query["host"] = host
        host = None
        port = None

    return URL.create(
        _DRIVER,
        username=params.get("user"),
        password=_password_fallback(params.get("password")),
        host=host,
        port=int(port) if port else None,
        database=params.get("dbname"),
        query=query,
    )


def url_from_database_url(raw: str) -> URL:
    """Normalize a URL-form DATABASE_URL to the psycopg2 driver."""
    url = make_url(raw)
    if url.drivername in ("postgres", "postgresql"):
        url = url.set(drivername=_DRIVER)
    if not url.password:
        password = _password_fallback(None)
        if password:
            url = url.set(password=password)
    return url


def get_database_url() -> str:
    """SQLAlchemy URL string for DATABASE_URL (password included).

    Raises:
        RuntimeError: If DATABASE_URL is not set.
    """
    raw = os.environ.get("DATABASE_URL")
    if not raw:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    url = url_from_database_url(raw) if "://" in raw else libpq_dsn_to_url(raw)
    return url.render_as_string(hide_password=False)


@contextmanager
def migration_lock(connection: Connection) -> Iterator[None]:
    """Hold the migration advisory lock on ``connection``.

    The API and the poller worker both run ``alembic upgrade head`` on start;
    the second one waits here and then finds nothing to apply. The lock is
    session-level, so it survives the commits made by the migrations.
    """
    connection.execute(text("SELECT pg_advisory_lock(:key)"), {"key": MIGRATION_LOCK_KEY})
    connection.commit()
    try:
        yield
    finally:
        connection.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": MIGRATION_LOCK_KEY})
        connection.commit()
