"""Tests for the persisting done-column archiver."""

import pytest

from taskhub.db.adapter import DatabaseAdapter
from taskhub.services.archiver import DoneColumnArchiver


def _record_updates(adapter: DatabaseAdapter) -> list[tuple]:
    calls: list[tuple] = []
    original = adapter.update_task

    async def update_task(task_id, fields):
        calls.append((task_id, dict(fields)))
        return await original(task_id, fields)

    adapter.update_task = update_task
    return calls


@pytest.mark.asyncio
async def test_one_update_per_archived_task(session_maker, seed, board_fixture) -> None:
    bf = board_fixture
    done = await seed.done_tasks(bf.done, bf.board, bf.user, count=10)

    async with session_maker() as session:
        adapter = DatabaseAdapter(session)
        calls = _record_updates(adapter)
        result = await DoneColumnArchiver(adapter, limit=7).enforce(bf.done)
        await session.commit()

    assert result.archived_ids == [str(task.id) for task in done[:3]]
    assert [task_id for task_id, _ in calls] == [task.id for task in done[:3]]
    assert all(fields["isArchived"] is True for _, fields in calls)
    assert len({fields["archivedAt"] for _, fields in calls}) == 1

    for task in done[:3]:
        assert (await seed.get_task(task.id)).is_archived is True
    for task in done[3:]:
        assert (await seed.get_task(task.id)).is_archived is False


@pytest.mark.asyncio
async def test_nothing_written_at_or_under_limit(session_maker, seed, board_fixture) -> None:
    bf = board_fixture
    await seed.done_tasks(bf.done, bf.board, bf.user, count=7)

    async with session_maker() as session:
        adapter = DatabaseAdapter(session)
        calls = _record_updates(adapter)
        result = await DoneColumnArchiver(adapter, limit=7).enforce(bf.done)

    assert result.archived == []
    assert calls == []


@pytest.mark.asyncio
async def test_non_done_columns_are_left_alone(session_maker, seed, board_fixture) -> None:
    bf = board_fixture
    for index in range(9):
        await seed.task(bf.todo, bf.board, bf.user, position=index)

    async with session_maker() as session:
        adapter = DatabaseAdapter(session)
        calls = _record_updates(adapter)
        result = await DoneColumnArchiver(adapter, limit=7).enforce(bf.todo)

    assert len(result.visible) == 9
    assert calls == []


@pytest.mark.asyncio
async def test_limit_defaults_to_settings(session_maker, monkeypatch) -> None:
    from taskhub.config import get_settings

    monkeypatch.setattr(get_settings(), "done_column_limit", 3)

    async with session_maker() as session:
        assert DoneColumnArchiver(DatabaseAdapter(session)).limit == 3
