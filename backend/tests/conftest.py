"""Shared fixtures: a throwaway SQLite store and helpers to fill it."""

import asyncio
import uuid
from datetime import datetime, timedelta

import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.pool import NullPool

from grantcue.db.database import create_session_factory, init_db
from grantcue.models import (
    Alert,
    CatalogGrant,
    Integration,
    Organization,
    OrgMember,
    SavedGrant,
    UserProfile,
    Webhook,
)

NOW = datetime(2026, 3, 4, 12, 0, 0)


class Seeder:
    """Writes rows through the same session factory the code under test uses."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def add(self, obj):
        async with self.session_factory() as db:
            db.add(obj)
            await db.commit()
        return obj

    async def org(self, user_id: uuid.UUID | None = None, role: str = "admin", email: str | None = "owner@example.org"):
        org = await self.add(Organization(name="Riverbend Watershed Council"))
        user_id = user_id or uuid.uuid4()
        await self.add(OrgMember(org_id=org.id, user_id=user_id, role=role))
        await self.add(UserProfile(user_id=user_id, email=email, full_name="Dana Reyes"))
        return org, user_id

    async def member(self, org, role: str = "member") -> uuid.UUID:
        user_id = uuid.uuid4()
        await self.add(OrgMember(org_id=org.id, user_id=user_id, role=role))
        return user_id

    async def alert(self, org, user_id, **fields) -> Alert:
        fields.setdefault("name", "Watershed grants")
        return await self.add(Alert(org_id=org.id, user_id=user_id, **fields))

    async def grant(self, external_id: str, **fields) -> CatalogGrant:
        fields.setdefault("source_key", "grants_gov")
        fields.setdefault("title", f"Opportunity {external_id}")
        fields.setdefault("agency", "Environmental Protection Agency")
        fields.setdefault("opportunity_status", "posted")
        fields.setdefault("funding_category", "environment")
        fields.setdefault("award_floor", 10000)
        fields.setdefault("award_ceiling", 250000)
        fields.setdefault("close_date", NOW + timedelta(days=60))
        fields.setdefault("first_seen_at", NOW - timedelta(hours=2))
        return await self.add(CatalogGrant(external_id=external_id, **fields))

    async def webhook(self, org, url: str, **fields) -> Webhook:
        fields.setdefault("name", url)
        fields.setdefault("events", ["grant.saved", "alert.matched"])
        return await self.add(Webhook(org_id=org.id, url=url, **fields))

    async def integration(self, org, integration_type: str, webhook_url: str) -> Integration:
        return await self.add(Integration(org_id=org.id, integration_type=integration_type, webhook_url=webhook_url))

    async def saved_grant(self, org, close_date: datetime, **fields) -> SavedGrant:
        fields.setdefault("title", "Coastal Resilience Fund")
        return await self.add(SavedGrant(org_id=org.id, close_date=close_date, **fields))

    async def get(self, model, id):
        async with self.session_factory() as db:
            return await db.get(model, id)

    async def all(self, model, *where):
        async with self.session_factory() as db:
            result = await db.execute(select(model).where(*where))
            return list(result.scalars().all())

    async def count(self, model, *where) -> int:
        async with self.session_factory() as db:
            return await db.scalar(select(func.count()).select_from(model).where(*where))


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'grantcue.db'}"


@pytest.fixture
async def session_factory(database_url):
    factory = create_session_factory(database_url, poolclass=NullPool)
    await init_db(factory.kw["bind"])
    yield factory
    await factory.kw["bind"].dispose()


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
async def http_client():
    async with httpx.AsyncClient(timeout=5) as client:
        yield client


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store(database_url):
    """Session factory for synchronous tests driving the app through TestClient."""
    factory = create_session_factory(database_url, poolclass=NullPool)
    asyncio.run(init_db(factory.kw["bind"]))
    return factory


@pytest.fixture
def sync_seed(store):
    return Seeder(store)
