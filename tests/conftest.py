"""Shared test fixtures for primehooks."""

import os
import pytest
from httpx import ASGITransport, AsyncClient

from primehooks.common.config import PrimeHooksSettings
from primehooks.common.database import DatabaseManager
from primehooks.organizations.service import OrganizationService


SUPER_ADMIN_KEY = "test-super-admin-key"


def make_settings(**overrides) -> PrimeHooksSettings:
    defaults = {"db_url": "sqlite+aiosqlite://", "super_admin_key": SUPER_ADMIN_KEY}
    defaults.update(overrides)
    return PrimeHooksSettings(**defaults)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
async def db(settings):
    manager = DatabaseManager(settings)
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
async def organization_id(db):
    async with db.get_session() as session:
        org, _ = await OrganizationService().create_organization(
            session, name="Acme", slug="acme",
        )
    return org.id


@pytest.fixture
async def file_db(tmp_path):
    """File-backed database where each session gets its own connection."""
    manager = DatabaseManager(
        make_settings(db_url=f"sqlite+aiosqlite:///{tmp_path / 'primehooks.db'}")
    )
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
async def file_organization_id(file_db):
    async with file_db.get_session() as session:
        org, _ = await OrganizationService().create_organization(
            session, name="Acme", slug="acme",
        )
    return org.id


@pytest.fixture
def app():
    """Create a test app with in-memory DB."""
    os.environ["PRIMEHOOKS_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["PRIMEHOOKS_SUPER_ADMIN_KEY"] = SUPER_ADMIN_KEY

    # Clear caches and singletons so new env vars take effect
    from primehooks.common.config import get_settings
    get_settings.cache_clear()

    from primehooks.deps import reset_singletons
    reset_singletons()

    from primehooks.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from primehooks.deps import get_db, get_trigger_engine
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await get_trigger_engine().aclose()
    await db.close()


@pytest.fixture
def super_admin_headers():
    return {"X-PrimeHooks-Api-Key": SUPER_ADMIN_KEY}


@pytest.fixture
async def org_headers(client, super_admin_headers):
    """Create an organization through the API and return its auth headers."""
    resp = await client.post(
        "/organizations",
        headers=super_admin_headers,
        json={"name": "Acme", "slug": "acme"},
    )
    assert resp.status_code == 201
    return {"X-PrimeHooks-Api-Key": resp.json()["api_key"]}
