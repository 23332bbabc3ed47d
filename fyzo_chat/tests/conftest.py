# fyzo_chat/tests/conftest.py

import random
import string
from datetime import timedelta

import pytest
from fakeredis import aioredis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fyzo_chat.api import dependencies
from fyzo_chat.config import AppConfig
from fyzo_chat.infrastructure import models
from fyzo_chat.infrastructure.database import create_database
from fyzo_chat.infrastructure.models import utcnow
from fyzo_chat.infrastructure.security import SecurityService
from fyzo_chat.infrastructure.uow import UnitOfWork
from fyzo_chat.main import Application


@pytest.fixture(scope="function")
def app_config():
    """
    Provide a test configuration with a shared in-memory SQLite database.
    """
    return AppConfig(
        DATABASE_URL="sqlite+aiosqlite:///:memory:?cache=shared",
        REDIS_HOST="localhost",
        REDIS_PORT=6379,
        SECRET_KEY="test_secret_key",
        PROJECT_NAME="Test FYZO Chat API",
        PROJECT_VERSION="1.0.0",
        PROJECT_DESCRIPTION="Test FYZO Chat API",
        API_V1_STR="/api/v1",
        ALGORITHM="HS256",
        ACCESS_TOKEN_EXPIRE_MINUTES=5,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture(scope="function")
async def mock_redis():
    """Provide a fake Redis client for testing."""
    redis = aioredis.FakeRedis(decode_responses=True)
    yield redis
    await redis.flushall()
    await redis.aclose()


@pytest.fixture(scope="function")
async def engine(app_config):
    """Create a SQLAlchemy engine for testing with shared in-memory SQLite."""
    engine = create_async_engine(
        app_config.DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(engine):
    """Provide a SQLAlchemy session for testing."""
    async_session_factory = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False
    )
    session = async_session_factory()
    yield session
    await session.close()


@pytest.fixture(scope="function")
async def uow(db_session):
    """Provide a UnitOfWork bound to the test session."""
    return UnitOfWork(db_session)


@pytest.fixture(scope="function")
def security_service(app_config):
    return SecurityService(app_config)


@pytest.fixture(scope="function")
def override_get_db(db_session):
    """Override the get_session dependency to use the test session."""

    async def _override_get_db():
        yield db_session

    return _override_get_db


@pytest.fixture(scope="function")
async def application(app_config, mock_redis, engine):
    """Build the Application wired to the test database and fake Redis."""
    application = Application(config=app_config)
    application.database = create_database(engine)
    application.redis_client.client = mock_redis
    return application


@pytest.fixture(scope="function")
async def app(application):
    """Create the FastAPI app with the test database."""
    return application.create_app()


@pytest.fixture(scope="function")
async def app_with_db(app, override_get_db):
    """Override dependencies to use the test database session."""
    app.dependency_overrides[dependencies.get_session] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(app_with_db):
    """Provide an HTTP client with the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app_with_db), base_url="http://test"
    ) as ac:
        yield ac


async def create_user(db_session, name: str, role: str = "user") -> models.User:
    random_string = "".join(random.choices(string.ascii_lowercase + string.digits, k=8))
    user = models.User(
        name=name,
        email=f"{name.lower()}_{random_string}@example.com",
        role=role,
        profile_image="",
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    return user


async def issue_token(db_session, security_service, user: models.User) -> str:
    """Create an access token backed by an active auth session row."""
    token, _ = security_service.create_access_token(user.id)
    db_session.add(
        models.AuthSession(
            user_id=user.id,
            token=token,
            is_active=True,
            expires_at=utcnow() + timedelta(hours=1),
        )
    )
    await db_session.commit()
    return token


@pytest.fixture(scope="function")
async def alice(db_session):
    """A regular user."""
    return await create_user(db_session, "Alice")


@pytest.fixture(scope="function")
async def bob(db_session):
    """The user behind the creator profile."""
    return await create_user(db_session, "Bob", role="creator")


@pytest.fixture(scope="function")
async def carol(db_session):
    """A user who takes part in no chat."""
    return await create_user(db_session, "Carol")


@pytest.fixture(scope="function")
async def creator_profile(db_session, bob):
    creator = models.Creator(
        user_id=bob.id,
        display_name="Bob Creates",
        verification_status="approved",
        primary_category="music",
    )
    db_session.add(creator)
    await db_session.commit()
    return creator


@pytest.fixture(scope="function")
async def alice_token(db_session, security_service, alice):
    return await issue_token(db_session, security_service, alice)


@pytest.fixture(scope="function")
async def bob_token(db_session, security_service, bob):
    return await issue_token(db_session, security_service, bob)


@pytest.fixture(scope="function")
async def carol_token(db_session, security_service, carol):
    return await issue_token(db_session, security_service, carol)


@pytest.fixture(scope="function")
def alice_header(alice_token):
    return {"Authorization": f"Bearer {alice_token}"}


@pytest.fixture(scope="function")
def bob_header(bob_token):
    return {"Authorization": f"Bearer {bob_token}"}


@pytest.fixture(scope="function")
def carol_header(carol_token):
    return {"Authorization": f"Bearer {carol_token}"}


@pytest.fixture(scope="function")
async def test_chat(client, alice_header, creator_profile):
    """A chat between Alice and Bob's creator profile, opened by Alice."""
    response = await client.post(
        "/api/v1/chats/get-or-create",
        headers=alice_header,
        json={"creator_id": creator_profile.id},
    )
    assert response.status_code == 200, response.json()
    return response.json()["data"]
