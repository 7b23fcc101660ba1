"""
Tests del servicio de sesiones: emisión, expiración absoluta y revocación.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from app.core.exceptions import UnauthorizedException
from app.core.security import hash_token
from app.models.session import UserSession
from app.models.user import User
from app.services import session_service

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def user(db_session) -> User:
    user = User(email="doc@example.com")
    db_session.add(user)
    await db_session.commit()
    return user


async def _count_sessions(db_session) -> int:
    result = await db_session.execute(select(func.count()).select_from(UserSession))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_only_token_hash_is_stored(db_session, user):
    token = await session_service.issue_session(db_session, user.id, now=T0)
    await db_session.commit()

    row = (await db_session.execute(select(UserSession))).scalar_one()
    assert row.token_hash == hash_token(token)
    assert row.token_hash != token


@pytest.mark.asyncio
async def test_session_valid_until_absolute_ttl(db_session, user):
    token = await session_service.issue_session(db_session, user.id, now=T0)
    await db_session.commit()

    almost = T0 + timedelta(days=7) - timedelta(seconds=1)
    assert await session_service.validate_session(db_session, token, now=almost) == user.id

    for later in (T0 + timedelta(days=7), T0 + timedelta(days=30)):
        assert await session_service.find_session_user(db_session, token, now=later) is None
        with pytest.raises(UnauthorizedException):
            await session_service.validate_session(db_session, token, now=later)


@pytest.mark.asyncio
async def test_unknown_or_missing_token(db_session, user):
    assert await session_service.find_session_user(db_session, None) is None
    assert await session_service.find_session_user(db_session, "") is None
    assert await session_service.find_session_user(db_session, "forged-token") is None


@pytest.mark.asyncio
async def test_revoke_session(db_session, user):
    token = await session_service.issue_session(db_session, user.id)
    other = await session_service.issue_session(db_session, user.id)
    await db_session.commit()

    assert await session_service.revoke_session(db_session, token) is True
    await db_session.commit()

    assert await session_service.find_session_user(db_session, token) is None
    assert await session_service.find_session_user(db_session, other) == user.id
    assert await session_service.revoke_session(db_session, token) is False


@pytest.mark.asyncio
async def test_revoke_all_sessions(db_session, user):
    tokens = [await session_service.issue_session(db_session, user.id) for _ in range(3)]
    await db_session.commit()

    assert await session_service.revoke_all_sessions(db_session, user.id) == 3
    await db_session.commit()

    for token in tokens:
        assert await session_service.find_session_user(db_session, token) is None


@pytest.mark.asyncio
async def test_purge_expired_sessions(db_session, user):
    await session_service.issue_session(db_session, user.id, now=T0 - timedelta(days=10))
    fresh = await session_service.issue_session(db_session, user.id, now=T0)
    await db_session.commit()

    assert await session_service.purge_expired_sessions(db_session, now=T0) == 1
    await db_session.commit()

    assert await _count_sessions(db_session) == 1
    assert await session_service.find_session_user(db_session, fresh, now=T0) == user.id
