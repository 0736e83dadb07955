"""
Shared fixtures: a throwaway SQLite warehouse and SP-API fakes.
"""

import gzip
import json
import os
import pytest
import httpx
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

os.environ.setdefault("ENVIRONMENT", "development")

from sellersync.database import Base
import sellersync.models  # noqa: F401
from sellersync.schemas import Credential
from sellersync.services.upsert_writer import SqlWarehouse

TOKEN_URL = "https://api.amazon.com/auth/o2/token"
SP_API = "https://sellingpartnerapi-eu.amazon.com"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def credential():
    return Credential(
        client_id="amzn1.application-oa2-client.test",
        client_secret="shh",
        refresh_token="Atzr|refresh",
        marketplace_id="A1F83G8C2ARO7P",
    )


@pytest.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'warehouse.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def warehouse(db_engine):
    return SqlWarehouse(db_engine)


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fake_sleep():
    return FakeSleep()


class StaticCredentials:
    def __init__(self, mapping: dict):
        self.mapping = mapping

    async def get(self, tenant: int):
        return self.mapping.get(tenant)


def gzip_json(payload) -> bytes:
    return gzip.compress(json.dumps(payload).encode())


def mock_http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def token_response() -> httpx.Response:
    return httpx.Response(200, json={"access_token": "Atza|access", "token_type": "bearer", "expires_in": 3600})
