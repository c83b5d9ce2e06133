"""Tests for session management helpers."""

import pytest
from sqlalchemy import func, select

from punchd import database
from punchd.database import conditional_insert, get_session
from punchd.models import Company


@pytest.fixture
def global_factory(monkeypatch, engine, session_factory):
    monkeypatch.setattr(database, "_engine", engine)
    monkeypatch.setattr(database, "_session_factory", session_factory)
    return session_factory


async def count_companies(session) -> int:
    return await session.scalar(select(func.count()).select_from(Company))


async def test_get_session_commits_on_success(global_factory, session):
    async with get_session() as db:
        db.add(Company(name="Acme Roofing"))

    assert await count_companies(session) == 1


async def test_get_session_rolls_back_on_error(global_factory, session):
    with pytest.raises(RuntimeError):
        async with get_session() as db:
            db.add(Company(name="Acme Roofing"))
            await db.flush()
            raise RuntimeError("boom")

    assert await count_companies(session) == 0


async def test_conditional_insert_skips_conflicts(session, company):
    table = Company.__table__
    stmt = (
        conditional_insert(session, table)
        .values(
            id=company.id,
            name="Duplicate",
            timezone="UTC",
            created_at=company.created_at,
            updated_at=company.updated_at,
        )
        .on_conflict_do_nothing(index_elements=["id"])
        .returning(table.c.id)
    )

    assert (await session.execute(stmt)).scalar_one_or_none() is None
    assert await count_companies(session) == 1
