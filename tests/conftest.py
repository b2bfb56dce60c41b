"""Shared pytest fixtures for opsdesk tests."""
import sys
sys.dont_write_bytecode = True

from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402

from helpers import TEST_JWT_SECRET, MemoryStore  # noqa: E402

# Route modules that resolve the store through a module-level _get_store()
_STORE_GETTERS = (
    "opsdesk.api.routes.ingest._get_store",
    "opsdesk.api.routes.notifications._get_store",
    "opsdesk.api.routes.cancellations._get_store",
    "opsdesk.api.routes.work_sessions._get_store",
    "opsdesk.api.routes.cabinets._get_store",
)


@pytest.fixture(autouse=True)
def _reset_proxy_cache():
    """The proxy response cache is module-level; clear it around each test."""
    from opsdesk.api.routes import proxy

    proxy.clear_cache()
    yield
    proxy.clear_cache()


@pytest.fixture
def auth_env(monkeypatch):
    monkeypatch.setenv("AUTH_JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("INTERNAL_API_KEY", "internal-test-key")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def patched_store(store):
    """Point every route module at the in-memory store."""
    patchers = [patch(target, return_value=store) for target in _STORE_GETTERS]
    for p in patchers:
        p.start()
    yield store
    for p in patchers:
        p.stop()


@pytest.fixture
def users_db():
    """Resolve operator tokens without PostgreSQL: user ids 7 and 8 exist."""
    from opsdesk.api.auth import CurrentUser

    known = {
        7: CurrentUser(id=7, email="ops7@example.com", name="Alice"),
        8: CurrentUser(id=8, email="ops8@example.com", name="Bob"),
    }
    with patch("opsdesk.api.auth._get_user_from_db", side_effect=lambda uid: known.get(uid)):
        yield known
