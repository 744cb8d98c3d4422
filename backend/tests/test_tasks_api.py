"""Tests for single-task updates, comments and attachments."""

import asyncio
import uuid

import pytest

from conftest import auth_headers


@pytest.mark.asyncio
async def test_get_task(client, seed, board_fixture) -> None:
    bf = board_fixture
    task = await seed.task(bf.todo, bf.board, bf.user, title="Write docs")

    response = await client.get(f"/api/v1/tasks/{task.id}", headers=bf.headers)

    assert response.status_code == 200
    assert response.json()["title"] == "Write docs"


@pytest.mark.asyncio
async def test_unknown_task_is_not_found(client, board_fixture) -> None:
    response = await client.get(f"/api/v1/tasks/{uuid.uuid4()}", headers=board_fixture.headers)

    assert response.status_code == 404
    assert response.json() == {"error": "Task not found", "code": "NOT_FOUND"}


@pytest.mark.asyncio
async def test_moving_task_takes_destination_status(client, seed, board_fixture) -> None:
    bf = board_fixture
    task = await seed.task(bf.todo, bf.board, bf.user)

    response = await client.patch(
        f"/api/v1/tasks/{task.id}", headers=bf.headers, json={"columnId": str(bf.in_progress.id)}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["column_id"] == str(bf.in_progress.id)
    assert body["status"] == "in_progress"


@pytest.mark.asyncio
async def test_explicit_status_wins_over_destination(client, seed, board_fixture) -> None:
    bf = board_fixture
    task = await seed.task(bf.todo, bf.board, bf.user)

    response = await client.patch(
        f"/api/v1/tasks/{task.id}",
        headers=bf.headers,
        json={"columnId": str(bf.in_progress.id), "status": "review"},
    )

    assert response.json()["status"] == "review"


@pytest.mark.asyncio
async def test_toggle_complete_into_full_done_column(client, seed, board_fixture) -> None:
    bf = board_fixture
    done = await seed.done_tasks(bf.done, bf.board, bf.user, count=7)
    task = await seed.task(bf.review, bf.board, bf.user, title="Ready", status="review")

    response = await client.patch(
        f"/api/v1/tasks/{task.id}",
        headers=bf.headers,
        json={"columnId": str(bf.done.id), "status": "done"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["column_id"] == str(bf.done.id)
    assert body["status"] == "done"
    assert body["is_archived"] is False
    assert body["archived_task_ids"] == [str(done[0].id)]

    listing = await client.get(f"/api/v1/columns/{bf.done.id}/tasks", headers=bf.headers)
    visible = {t["id"] for t in listing.json()["tasks"]}
    assert len(visible) == 7
    assert str(task.id) in visible


@pytest.mark.asyncio
async def test_toggle_back_to_review(client, seed, board_fixture) -> None:
    bf = board_fixture
    task = await seed.task(bf.done, bf.board, bf.user, status="done")

    response = await client.patch(
        f"/api/v1/tasks/{task.id}",
        headers=bf.headers,
        json={"columnId": str(bf.review.id), "status": "review"},
    )

    body = response.json()
    assert body["column_id"] == str(bf.review.id)
    assert body["status"] == "review"
    assert body["archived_task_ids"] == []


@pytest.mark.asyncio
async def test_status_change_alone_does_not_enforce_limit(client, seed, board_fixture) -> None:
    bf = board_fixture
    await seed.done_tasks(bf.done, bf.board, bf.user, count=7)
    task = await seed.task(bf.todo, bf.board, bf.user)

    response = await client.patch(
        f"/api/v1/tasks/{task.id}", headers=bf.headers, json={"status": "done"}
    )

    body = response.json()
    assert body["status"] == "done"
    assert body["column_id"] == str(bf.todo.id)
    assert body["archived_task_ids"] == []


@pytest.mark.asyncio
async def test_restoring_into_full_done_column_archives_another(client, seed, board_fixture) -> None:
    bf = board_fixture
    done = await seed.done_tasks(bf.done, bf.board, bf.user, count=7)
    archived = await seed.task(bf.done, bf.board, bf.user, status="done", is_archived=True)

    response = await client.patch(
        f"/api/v1/tasks/{archived.id}", headers=bf.headers, json={"isArchived": False}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["is_archived"] is False
    assert body["archived_at"] is None
    assert body["archived_task_ids"] == [str(done[0].id)]


@pytest.mark.asyncio
async def test_manual_archive(client, seed, board_fixture) -> None:
    bf = board_fixture
    task = await seed.task(bf.todo, bf.board, bf.user)

    response = await client.patch(
        f"/api/v1/tasks/{task.id}", headers=bf.headers, json={"isArchived": True}
    )

    body = response.json()
    assert body["is_archived"] is True
    assert body["archived_at"] is not None

    listing = await client.get(f"/api/v1/columns/{bf.todo.id}/tasks", headers=bf.headers)
    assert listing.json()["tasks"] == []


@pytest.mark.asyncio
async def test_move_to_column_on_another_board(client, seed, board_fixture) -> None:
    bf = board_fixture
    other_board, (other_column,) = await seed.board(bf.project, titles=("Inbox",))
    task = await seed.task(bf.todo, bf.board, bf.user)

    response = await client.patch(
        f"/api/v1/tasks/{task.id}", headers=bf.headers, json={"columnId": str(other_column.id)}
    )

    body = response.json()
    assert body["board_id"] == str(other_board.id)
    assert body["column_id"] == str(other_column.id)


@pytest.mark.asyncio
async def test_assignees_are_replaced(client, seed, board_fixture) -> None:
    bf = board_fixture
    bob = await seed.user(name="Bob")
    carol = await seed.user(name="Carol")
    task = await seed.task(bf.todo, bf.board, bf.user)

    first = await client.patch(
        f"/api/v1/tasks/{task.id}",
        headers=bf.headers,
        json={"assigneeIds": [str(bob.id), str(carol.id)]},
    )
    assert {a["name"] for a in first.json()["assignees"]} == {"Bob", "Carol"}

    second = await client.patch(
        f"/api/v1/tasks/{task.id}", headers=bf.headers, json={"assigneeIds": [str(carol.id)]}
    )
    assert [a["name"] for a in second.json()["assignees"]] == ["Carol"]


@pytest.mark.asyncio
async def test_put_behaves_like_patch(client, seed, board_fixture) -> None:
    bf = board_fixture
    task = await seed.task(bf.todo, bf.board, bf.user, title="Old")

    response = await client.put(
        f"/api/v1/tasks/{task.id}", headers=bf.headers, json={"title": "New"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "New"
    assert body["status"] == "todo"
    assert body["column_id"] == str(bf.todo.id)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [{}, {"title": None}, {"title": ""}, {"priority": "critical"}, {"columnId": "not-a-uuid"}],
)
async def test_update_validation_errors(client, seed, board_fixture, payload) -> None:
    bf = board_fixture
    task = await seed.task(bf.todo, bf.board, bf.user)

    response = await client.patch(f"/api/v1/tasks/{task.id}", headers=bf.headers, json=payload)

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_sequential_updates_last_write_wins(client, seed, board_fixture) -> None:
    bf = board_fixture
    task = await seed.task(bf.todo, bf.board, bf.user)

    await client.patch(
        f"/api/v1/tasks/{task.id}", headers=bf.headers, json={"columnId": str(bf.in_progress.id)}
    )
    await client.patch(
        f"/api/v1/tasks/{task.id}", headers=bf.headers, json={"columnId": str(bf.review.id)}
    )

    stored = await seed.get_task(task.id)
    assert stored.column_id == bf.review.id
    assert stored.status == "review"


@pytest.mark.asyncio
async def test_concurrent_moves_leave_task_in_one_column(client, seed, board_fixture) -> None:
    bf = board_fixture
    task = await seed.task(bf.todo, bf.board, bf.user)
    url = f"/api/v1/tasks/{task.id}"

    responses = await asyncio.gather(
        client.patch(url, headers=bf.headers, json={"columnId": str(bf.in_progress.id)}),
        client.patch(url, headers=bf.headers, json={"columnId": str(bf.review.id)}),
    )

    assert [r.status_code for r in responses] == [200, 200]
    stored = await seed.get_task(task.id)
    assert stored.column_id in {bf.in_progress.id, bf.review.id}
    assert stored.status == ("in_progress" if stored.column_id == bf.in_progress.id else "review")

    placements = []
    for column in (bf.todo, bf.in_progress, bf.review, bf.done):
        listing = await client.get(f"/api/v1/columns/{column.id}/tasks", headers=bf.headers)
        if any(t["id"] == str(task.id) for t in listing.json()["tasks"]):
            placements.append(column.id)
    assert placements == [stored.column_id]


@pytest.mark.asyncio
async def test_delete_task(client, seed, board_fixture) -> None:
    bf = board_fixture
    task = await seed.task(bf.todo, bf.board, bf.user)
    await client.post(
        f"/api/v1/tasks/{task.id}/comments", headers=bf.headers, json={"content": "Bye"}
    )

    response = await client.delete(f"/api/v1/tasks/{task.id}", headers=bf.headers)

    assert response.status_code == 204
    assert (await client.get(f"/api/v1/tasks/{task.id}", headers=bf.headers)).status_code == 404


@pytest.mark.asyncio
async def test_comment_threads_are_one_level_deep(client, seed, board_fixture) -> None:
    bf = board_fixture
    task = await seed.task(bf.todo, bf.board, bf.user)
    url = f"/api/v1/tasks/{task.id}/comments"

    parent = await client.post(url, headers=bf.headers, json={"content": "Looks good"})
    assert parent.status_code == 201
    assert parent.json()["author_name"] == "Alice"

    reply = await client.post(
        url,
        headers=bf.headers,
        json={"content": "Thanks", "parentCommentId": parent.json()["id"]},
    )
    assert reply.status_code == 201
    assert reply.json()["parent_comment_id"] == parent.json()["id"]

    nested = await client.post(
        url,
        headers=bf.headers,
        json={"content": "Too deep", "parentCommentId": reply.json()["id"]},
    )
    assert nested.status_code == 400

    listing = await client.get(url, headers=bf.headers)
    assert [c["content"] for c in listing.json()] == ["Looks good", "Thanks"]


@pytest.mark.asyncio
async def test_reply_to_unknown_comment_is_not_found(client, seed, board_fixture) -> None:
    bf = board_fixture
    task = await seed.task(bf.todo, bf.board, bf.user)

    response = await client.post(
        f"/api/v1/tasks/{task.id}/comments",
        headers=bf.headers,
        json={"content": "Hello?", "parentCommentId": str(uuid.uuid4())},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_deleting_comment_removes_replies(client, seed, board_fixture) -> None:
    bf = board_fixture
    task = await seed.task(bf.todo, bf.board, bf.user)
    url = f"/api/v1/tasks/{task.id}/comments"
    parent = (await client.post(url, headers=bf.headers, json={"content": "Parent"})).json()
    await client.post(
        url, headers=bf.headers, json={"content": "Child", "parentCommentId": parent["id"]}
    )

    response = await client.delete(f"{url}/{parent['id']}", headers=bf.headers)

    assert response.status_code == 204
    assert (await client.get(url, headers=bf.headers)).json() == []


@pytest.mark.asyncio
async def test_only_author_can_delete_comment(client, seed) -> None:
    owner = await seed.user(name="Owner")
    member = await seed.user(name="Member")
    project = await seed.project(owner, members=[member])
    board, columns = await seed.board(project)
    task = await seed.task(columns[0], board, owner)
    url = f"/api/v1/tasks/{task.id}/comments"
    comment = (await client.post(url, headers=auth_headers(owner), json={"content": "Mine"})).json()

    response = await client.delete(f"{url}/{comment['id']}", headers=auth_headers(member))

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_attachments(client, seed, board_fixture) -> None:
    bf = board_fixture
    task = await seed.task(bf.todo, bf.board, bf.user)
    url = f"/api/v1/tasks/{task.id}/attachments"

    created = await client.post(
        url,
        headers=bf.headers,
        json={
            "filename": "brief.pdf",
            "sizeBytes": 2048,
            "mimeType": "application/pdf",
            "storageKey": "uploads/brief.pdf",
        },
    )
    assert created.status_code == 201
    attachment = created.json()
    assert attachment["size_bytes"] == 2048
    assert attachment["uploaded_by_id"] == str(bf.user.id)

    listing = await client.get(url, headers=bf.headers)
    assert [a["filename"] for a in listing.json()] == ["brief.pdf"]

    deleted = await client.delete(f"{url}/{attachment['id']}", headers=bf.headers)
    assert deleted.status_code == 204
    assert (await client.get(url, headers=bf.headers)).json() == []
