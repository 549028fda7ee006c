# tests/conftest.py

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from activation_api.core.config import Settings
from activation_api.main import create_app
from activation_api.models.activation_code import Base
from activation_api.services.code_store import CodeStore
from activation_api.services.database import create_session_factory
from activation_api.services.redemption import RedemptionEngine

CODE = "abcd1234efgh5678ijkl"
OTHER_CODE = "0000aaaa1111bbbb2222"
UNKNOWN_CODE = "zzzzzzzzzzzzzzzzzzzz"


@pytest.fixture
async def db_engine(tmp_path):
    # File backed so every session gets its own connection, like a real pool
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'codes.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(db_engine):
    return CodeStore(create_session_factory(db_engine))


@pytest.fixture
async def seeded_store(store):
    await store.insert_codes([CODE, OTHER_CODE])
    return store


@pytest.fixture
def redemption_engine(seeded_store):
    return RedemptionEngine(seeded_store)


@pytest.fixture
async def client(seeded_store):
    app = create_app(settings=Settings())
    app.state.code_store = seeded_store
    app.state.redemption_engine = RedemptionEngine(seeded_store)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
