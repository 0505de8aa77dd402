import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from magidekt.db.operations import create_deck
from magidekt.models.db import Base, UserDB


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def session(async_engine) -> AsyncSession:
    """Provide a database session for tests."""
    async_session = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session


@pytest.fixture
async def user(session: AsyncSession) -> UserDB:
    """A registered deck owner."""
    db_user = UserDB(username="magic_user", display_name="Magic User")
    session.add(db_user)
    await session.commit()
    return db_user


@pytest.fixture
async def deck_id(session: AsyncSession, user: UserDB) -> int:
    """An empty modern deck owned by `user`."""
    deck = await create_deck(session, owner=user.username, name="Mono Red", format_name="modern")
    await session.commit()
    return deck.id


@pytest.fixture
def session_factory(async_engine, monkeypatch: pytest.MonkeyPatch) -> async_sessionmaker:
    """Point the application's session factory at the test engine."""
    factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr("magidekt.db.database.async_session_factory", factory)
    return factory
