"""Tests for the request-scoped session dependency."""

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from magidekt.db.database import get_session
from magidekt.models.db import UserDB


async def _usernames(session_factory: async_sessionmaker) -> list[str]:
    async with session_factory() as session:
        result = await session.execute(select(UserDB.username))
        return list(result.scalars().all())


class TestGetSession:
    async def test_commits_when_request_succeeds(self, session_factory) -> None:
        """Work done in the session is kept once the handler returns."""
        sessions = get_session()
        session = await anext(sessions)
        session.add(UserDB(username="committed", display_name=None))

        with pytest.raises(StopAsyncIteration):
            await anext(sessions)

        assert await _usernames(session_factory) == ["committed"]

    async def test_rolls_back_when_request_fails(self, session_factory) -> None:
        """Any error from the handler discards the session's writes and propagates."""
        sessions = get_session()
        session = await anext(sessions)
        session.add(UserDB(username="discarded", display_name=None))
        await session.flush()

        with pytest.raises(RuntimeError, match="handler failed"):
            await sessions.athrow(RuntimeError("handler failed"))

        assert await _usernames(session_factory) == []
