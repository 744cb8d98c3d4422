"""Tests for project-scoped access to columns and tasks."""

import pytest
import pytest_asyncio

from conftest import auth_headers
from taskhub.db.adapter import DatabaseAdapter
from taskhub.exceptions import AuthorizationError, NotFoundError
from taskhub.services.access_control import (
    ROLE_HIERARCHY,
    build_request_context,
    check_board_access,
    check_column_access,
    has_access,
    has_sufficient_role,
    require_task,
)


@pytest_asyncio.fixture
async def outsider(seed):
    return await seed.user(name="Mallory")


@pytest.mark.asyncio
async def test_outsider_cannot_read_column(client, board_fixture, outsider) -> None:
    response = await client.get(
        f"/api/v1/columns/{board_fixture.todo.id}/tasks", headers=auth_headers(outsider)
    )

    assert response.status_code == 403
    assert response.json()["code"] == "ACCESS_DENIED"


@pytest.mark.asyncio
async def test_outsider_cannot_create_task(client, seed, board_fixture, outsider) -> None:
    bf = board_fixture

    response = await client.post(
        f"/api/v1/columns/{bf.todo.id}/tasks",
        headers=auth_headers(outsider),
        json={"title": "Sneaky"},
    )

    assert response.status_code == 403
    listing = await client.get(f"/api/v1/columns/{bf.todo.id}/tasks", headers=bf.headers)
    assert listing.json()["tasks"] == []


@pytest.mark.asyncio
async def test_outsider_cannot_reorder_or_update(client, seed, board_fixture, outsider) -> None:
    bf = board_fixture
    task = await seed.task(bf.todo, bf.board, bf.user, position=0)

    reorder = await client.patch(
        f"/api/v1/columns/{bf.todo.id}/tasks",
        headers=auth_headers(outsider),
        json={"tasks": [{"id": str(task.id), "position": 5}]},
    )
    update = await client.patch(
        f"/api/v1/tasks/{task.id}", headers=auth_headers(outsider), json={"title": "Mine now"}
    )

    assert reorder.status_code == 403
    assert update.status_code == 403
    stored = await seed.get_task(task.id)
    assert stored.position == 0
    assert stored.title == "Task"


@pytest.mark.asyncio
async def test_cannot_move_task_into_foreign_column(client, seed, board_fixture) -> None:
    bf = board_fixture
    stranger = await seed.user(name="Stranger")
    foreign_project = await seed.project(stranger)
    _, foreign_columns = await seed.board(foreign_project)
    task = await seed.task(bf.todo, bf.board, bf.user)

    response = await client.patch(
        f"/api/v1/tasks/{task.id}",
        headers=bf.headers,
        json={"columnId": str(foreign_columns[0].id)},
    )

    assert response.status_code == 403
    stored = await seed.get_task(task.id)
    assert stored.column_id == bf.todo.id


@pytest.mark.asyncio
async def test_members_have_access(client, seed) -> None:
    owner = await seed.user(name="Owner")
    member = await seed.user(name="Member")
    project = await seed.project(owner, members=[member])
    _, columns = await seed.board(project)

    response = await client.post(
        f"/api/v1/columns/{columns[0].id}/tasks",
        headers=auth_headers(member),
        json={"title": "Member task"},
    )

    assert response.status_code == 201
    assert response.json()["reporter_id"] == str(member.id)


@pytest.mark.asyncio
async def test_admins_get_no_implicit_project_access(client, seed, board_fixture) -> None:
    admin = await seed.user(name="Admin", role="admin")

    response = await client.get(
        f"/api/v1/columns/{board_fixture.todo.id}/tasks", headers=auth_headers(admin)
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_has_access_for_creator_member_and_outsider(session_maker, seed) -> None:
    creator = await seed.user(name="Creator")
    member = await seed.user(name="Member")
    outsider = await seed.user(name="Outsider")
    project = await seed.project(creator, members=[member])

    async with session_maker() as session:
        adapter = DatabaseAdapter(session)
        assert await has_access(adapter, creator.id, project.id)
        assert await has_access(adapter, member.id, project.id)
        assert not await has_access(adapter, outsider.id, project.id)


@pytest.mark.asyncio
async def test_check_column_access(session_maker, seed, board_fixture) -> None:
    bf = board_fixture
    outsider = await seed.user(name="Outsider")

    async with session_maker() as session:
        adapter = DatabaseAdapter(session)
        owner_ctx = await build_request_context(adapter, bf.user)
        outsider_ctx = await build_request_context(adapter, outsider)

        allowed = await check_column_access(adapter, owner_ctx, bf.done.id)
        denied = await check_column_access(adapter, outsider_ctx, bf.done.id)

    assert allowed.allowed is True
    assert allowed.project_id == bf.project.id
    assert allowed.board_id == bf.board.id
    assert denied.allowed is False


@pytest.mark.asyncio
async def test_require_task_raises(session_maker, seed, board_fixture) -> None:
    bf = board_fixture
    outsider = await seed.user(name="Outsider")
    task = await seed.task(bf.todo, bf.board, bf.user)

    async with session_maker() as session:
        adapter = DatabaseAdapter(session)
        ctx = await build_request_context(adapter, outsider)

        with pytest.raises(AuthorizationError):
            await require_task(adapter, ctx, task.id)
        with pytest.raises(NotFoundError):
            await require_task(adapter, ctx, bf.todo.id)


def test_role_hierarchy() -> None:
    assert ROLE_HIERARCHY["owner"] > ROLE_HIERARCHY["admin"] > ROLE_HIERARCHY["member"]
    assert has_sufficient_role("owner", "admin")
    assert has_sufficient_role("admin", "admin")
    assert not has_sufficient_role("member", "admin")
    assert not has_sufficient_role("viewer", "member")


@pytest.mark.asyncio
async def test_check_board_access(session_maker, seed, board_fixture) -> None:
    bf = board_fixture
    outsider = await seed.user(name="Outsider")

    async with session_maker() as session:
        adapter = DatabaseAdapter(session)
        owner_ctx = await build_request_context(adapter, bf.user)
        outsider_ctx = await build_request_context(adapter, outsider)

        assert await check_board_access(adapter, owner_ctx, bf.board.id) is True
        assert await check_board_access(adapter, outsider_ctx, bf.board.id) is False
        assert await check_board_access(adapter, owner_ctx, bf.todo.id) is None
