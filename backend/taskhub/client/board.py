"""Client-side view of one board with optimistic mutations.

``BoardView`` keeps the board's columns and their visible tasks in memory.
Every mutation is applied to the view immediately, sent to the server, and
then either confirmed with the server's copy of the task or undone.

Undo touches only the mutation's own task and works against the current
column lists, so other mutations that settled in the meantime are kept.
All state changes happen under one ``asyncio.Lock`` and replace column
lists instead of mutating them. Responses that arrive after the view was
reloaded, or after the task was moved elsewhere in the meantime, are
discarded and a refresh is requested.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from taskhub.client.api import ApiError, BoardApiClient
from taskhub.client.filters import TaskFilters, apply_filters
from taskhub.db.adapter import TASK_FIELD_ALIASES
from taskhub.services.done_limit import DONE_COLUMN_LIMIT, enforce_done_limit
from taskhub.services.status_mapping import (
    ColumnStatus,
    find_column_for_status,
    is_done_column,
    resolve_status,
    task_status_for_column,
    toggle_target,
)

logger = structlog.get_logger()

Task = dict[str, Any]
ErrorListener = Callable[[str], None]
RefreshListener = Callable[[str], None]


class MutationState(str, Enum):
    PENDING = "pending"
    COMMITTING = "committing"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class PendingMutation:
    """One optimistic change and how to take it back."""

    kind: str
    task_id: str
    target_column_id: str | None
    generation: int
    undo: Callable[[], None] | None = None
    state: MutationState = MutationState.PENDING
    error: str | None = None
    archived_task_ids: list[str] = field(default_factory=list)


def _local_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {TASK_FIELD_ALIASES.get(key, key): value for key, value in fields.items()}


def _server_task(response: Task) -> Task:
    return {k: v for k, v in response.items() if k != "archived_task_ids"}


class BoardView:
    """In-memory board state kept convergent with the server.

    ``limit`` overrides the done-column cap; by default the view uses the
    cap the server reports with each column's task list.
    """

    def __init__(
        self,
        api: BoardApiClient,
        board_id: str,
        limit: int | None = None,
        hide_backlog: bool = False,
    ):
        self.api = api
        self.board_id = str(board_id)
        self.limit = limit
        self.hide_backlog = hide_backlog

        self.columns: list[dict[str, Any]] = []
        self.tasks_by_column: dict[str, list[Task]] = {}
        self.generation = 0
        self.mutations: list[PendingMutation] = []

        self._server_limit: int | None = None
        self._lock = asyncio.Lock()
        self._error_listeners: list[ErrorListener] = []
        self._refresh_listeners: list[RefreshListener] = []

    @property
    def done_limit(self) -> int:
        if self.limit is not None:
            return self.limit
        return self._server_limit or DONE_COLUMN_LIMIT

    # =========================================================================
    # Listeners
    # =========================================================================

    def on_error(self, listener: ErrorListener) -> None:
        """Register a callback for non-fatal mutation failures."""
        self._error_listeners.append(listener)

    def on_refresh(self, listener: RefreshListener) -> None:
        """Register a callback asked to reload the board; gets a reason."""
        self._refresh_listeners.append(listener)

    def _notify_error(self, message: str) -> None:
        for listener in self._error_listeners:
            listener(message)

    def _request_refresh(self, reason: str) -> None:
        logger.info("board_refresh_requested", board_id=self.board_id, reason=reason)
        for listener in self._refresh_listeners:
            listener(reason)

    # =========================================================================
    # Reads
    # =========================================================================

    async def load(self) -> None:
        """Fetch columns and their visible tasks, replacing the whole view."""
        columns = await self.api.get_board_columns(self.board_id)
        if self.hide_backlog:
            columns = [c for c in columns if resolve_status(c) is not ColumnStatus.BACKLOG]

        payloads = await asyncio.gather(
            *(self.api.get_column_tasks(column["id"]) for column in columns)
        )

        async with self._lock:
            self.generation += 1
            self.columns = list(columns)
            self.tasks_by_column = {}
            for column, payload in zip(columns, payloads):
                if payload.get("done_limit"):
                    self._server_limit = int(payload["done_limit"])
                archived = set(payload.get("archived_task_ids") or [])
                self.tasks_by_column[column["id"]] = [
                    task for task in payload.get("tasks", []) if task["id"] not in archived
                ]

    def column(self, column_id: str) -> dict[str, Any] | None:
        for column in self.columns:
            if column["id"] == column_id:
                return column
        return None

    def column_tasks(self, column_id: str, filters: TaskFilters | None = None) -> list[Task]:
        return apply_filters(self.tasks_by_column.get(column_id, []), filters)

    def locate(self, task_id: str) -> tuple[str, Task] | None:
        """Column id and task dict for ``task_id``, if it is on the view."""
        for column_id, tasks in self.tasks_by_column.items():
            for task in tasks:
                if task["id"] == task_id:
                    return column_id, task
        return None

    def _index_of(self, column_id: str, task_id: str) -> int:
        for index, task in enumerate(self.tasks_by_column.get(column_id, [])):
            if task["id"] == task_id:
                return index
        return -1

    # =========================================================================
    # State helpers (call with the lock held)
    # =========================================================================

    def _replace(self, column_id: str, tasks: list[Task]) -> None:
        self.tasks_by_column = {**self.tasks_by_column, column_id: tasks}

    def _without(self, column_id: str, task_id: str) -> list[Task]:
        return [t for t in self.tasks_by_column.get(column_id, []) if t["id"] != task_id]

    def _remove(self, column_id: str, task_id: str) -> None:
        if self._index_of(column_id, task_id) >= 0:
            self._replace(column_id, self._without(column_id, task_id))

    def _insert(self, column_id: str, task: Task, position: int | None = None) -> None:
        tasks = self._without(column_id, task["id"])
        index = len(tasks) if position is None else max(0, min(position, len(tasks)))
        self._replace(column_id, tasks[:index] + [task] + tasks[index:])

    def _swap(self, column_id: str, old_id: str, task: Task) -> bool:
        tasks = self.tasks_by_column.get(column_id, [])
        if not any(t["id"] == old_id for t in tasks):
            return False
        self._replace(column_id, [task if t["id"] == old_id else t for t in tasks])
        return True

    def _restore(self, column_id: str, task: Task, index: int) -> None:
        """Put ``task`` back at ``index`` unless it already sits in the column."""
        if column_id in self.tasks_by_column and self._index_of(column_id, task["id"]) < 0:
            self._insert(column_id, task, index)

    def _drop_archived(self, task_ids: list[str]) -> None:
        if not task_ids:
            return
        archived = set(task_ids)
        for column_id, tasks in self.tasks_by_column.items():
            if any(t["id"] in archived for t in tasks):
                self._replace(column_id, [t for t in tasks if t["id"] not in archived])

    def _limit_locally(self, column_id: str, reported: list[str]) -> None:
        """Mirror the done limit on the view; request a refresh on drift."""
        column = self.column(column_id)
        if column is None or not is_done_column(column):
            return
        result = enforce_done_limit(self.tasks_by_column.get(column_id, []), self.done_limit)
        if not result.archived:
            return
        self._replace(column_id, result.visible)
        reported_ids = set(reported)
        unreported = [task_id for task_id in result.archived_ids if task_id not in reported_ids]
        if unreported:
            self._request_refresh("done_limit_drift")

    # =========================================================================
    # Mutation pipeline
    # =========================================================================

    async def _run(
        self,
        mutation: PendingMutation,
        optimistic: Callable[[], None],
        send: Callable[[], Awaitable[Task | None]],
        confirm: Callable[[Task | None], bool],
    ) -> PendingMutation:
        """Apply, send, then confirm or undo one mutation.

        ``confirm`` runs under the lock with the server response and returns
        False when the view no longer matches what the mutation expected.
        """
        async with self._lock:
            mutation.generation = self.generation
            self.mutations.append(mutation)
            optimistic()
            mutation.state = MutationState.COMMITTING

        try:
            response = await send()
        except ApiError as exc:
            async with self._lock:
                mutation.state = MutationState.FAILED
                mutation.error = exc.message
                # A reload already replaced the optimistic state
                if mutation.generation == self.generation and mutation.undo is not None:
                    mutation.undo()
            logger.warning(
                "board_mutation_failed",
                kind=mutation.kind,
                task_id=mutation.task_id,
                status_code=exc.status_code,
                error=exc.message,
            )
            self._notify_error(exc.message)
            return mutation

        async with self._lock:
            if isinstance(response, dict):
                mutation.archived_task_ids = list(response.get("archived_task_ids") or [])
            if mutation.generation != self.generation or not confirm(response):
                mutation.state = MutationState.COMMITTED
                stale = True
            else:
                self._drop_archived(mutation.archived_task_ids)
                if mutation.target_column_id is not None:
                    self._limit_locally(mutation.target_column_id, mutation.archived_task_ids)
                mutation.state = MutationState.COMMITTED
                stale = False

        if stale:
            self._request_refresh("stale_response")
        return mutation

    def _confirm_in(self, column_id: str | None, task_id: str) -> Callable[[Task | None], bool]:
        """Confirmation that swaps in the server task if it is still where expected.

        An archived server copy is taken off the view instead.
        """

        def confirm(response: Task | None) -> bool:
            if column_id is None or response is None:
                return True
            if response.get("is_archived"):
                self._drop_archived([task_id])
                return True
            located = self.locate(task_id)
            if located is None or located[0] != column_id:
                return False
            return self._swap(column_id, task_id, _server_task(response))

        return confirm

    # =========================================================================
    # Mutations
    # =========================================================================

    async def create_task(self, column_id: str, fields: dict[str, Any]) -> PendingMutation:
        """Create a task; a placeholder shows until the server answers."""
        temp_id = f"temp-{uuid.uuid4().hex}"
        column = self.column(column_id)
        placeholder: Task = {
            "id": temp_id,
            "column_id": column_id,
            "status": task_status_for_column(column) if column else ColumnStatus.TODO.value,
            "tags": [],
            "assignees": [],
            **_local_fields(fields),
        }
        mutation = PendingMutation(
            kind="create", task_id=temp_id, target_column_id=column_id, generation=self.generation
        )

        def optimistic() -> None:
            self._insert(column_id, placeholder)
            mutation.undo = lambda: self._remove(column_id, temp_id)

        def confirm(response: Task | None) -> bool:
            if response is None or self.locate(temp_id) is None:
                return False
            server_task = _server_task(response)
            mutation.task_id = server_task["id"]
            return self._swap(column_id, temp_id, server_task)

        return await self._run(
            mutation, optimistic, lambda: self.api.create_task(column_id, fields), confirm
        )

    async def move_task(
        self,
        task_id: str,
        to_column_id: str,
        position: int | None = None,
    ) -> PendingMutation:
        """Drag-and-drop move. Status follows the destination column."""
        located = self.locate(task_id)
        if located is None:
            raise KeyError(task_id)
        _, task = located
        column = self.column(to_column_id)
        status = task_status_for_column(column) if column else task.get("status")

        payload: dict[str, Any] = {"columnId": to_column_id}
        if position is not None:
            payload["position"] = position
        return await self._move(task_id, to_column_id, payload, {"status": status}, position, "move")

    async def toggle_complete(self, task_id: str) -> PendingMutation:
        """Flip a task between done and review, moving it to the matching column.

        When the board has no column for the target status the task stays
        in its current column with only its status changed.
        """
        located = self.locate(task_id)
        if located is None:
            raise KeyError(task_id)
        from_column_id, task = located

        target = toggle_target(task.get("status"))
        target_column = find_column_for_status(self.columns, target)
        to_column_id = target_column["id"] if target_column else from_column_id

        payload = {"columnId": to_column_id, "status": target.value}
        return await self._move(
            task_id, to_column_id, payload, {"status": target.value}, None, "toggle"
        )

    async def _move(
        self,
        task_id: str,
        to_column_id: str,
        payload: dict[str, Any],
        changes: dict[str, Any],
        position: int | None,
        kind: str,
    ) -> PendingMutation:
        mutation = PendingMutation(
            kind=kind, task_id=task_id, target_column_id=to_column_id, generation=self.generation
        )

        def optimistic() -> None:
            located = self.locate(task_id)
            if located is None:
                return
            from_column_id, task = located
            from_index = self._index_of(from_column_id, task_id)
            moved = {**task, **{k: v for k, v in changes.items() if v is not None}}
            moved["column_id"] = to_column_id

            self._remove(from_column_id, task_id)
            if not moved.get("is_archived"):
                self._insert(to_column_id, moved, position)

            def undo() -> None:
                current = self.locate(task_id)
                if current is not None and current[0] != to_column_id:
                    return  # moved again since; that placement stands
                if current is not None:
                    self._remove(to_column_id, task_id)
                self._restore(from_column_id, task, from_index)

            mutation.undo = undo

        return await self._run(
            mutation,
            optimistic,
            lambda: self.api.update_task(task_id, payload),
            self._confirm_in(to_column_id, task_id),
        )

    async def update_task(self, task_id: str, fields: dict[str, Any]) -> PendingMutation:
        """Edit task fields. A ``columnId`` makes this a move.

        Archiving takes the task off the view straight away.
        """
        located = self.locate(task_id)
        if located is None:
            raise KeyError(task_id)
        column_id, _ = located

        local = _local_fields(fields)
        to_column_id = local.get("column_id") or column_id
        if to_column_id != column_id:
            column = self.column(to_column_id)
            if not local.get("status") and column:
                local["status"] = task_status_for_column(column)
            return await self._move(task_id, to_column_id, fields, local, None, "update")

        mutation = PendingMutation(
            kind="update", task_id=task_id, target_column_id=column_id, generation=self.generation
        )

        def optimistic() -> None:
            index = self._index_of(column_id, task_id)
            if index < 0:
                return
            original = self.tasks_by_column[column_id][index]
            if local.get("is_archived"):
                self._remove(column_id, task_id)
            else:
                self._swap(column_id, task_id, {**original, **local})

            def undo() -> None:
                if not self._swap(column_id, task_id, original):
                    self._restore(column_id, original, index)

            mutation.undo = undo

        return await self._run(
            mutation,
            optimistic,
            lambda: self.api.update_task(task_id, fields),
            self._confirm_in(column_id, task_id),
        )

    async def reorder_column(self, column_id: str, ordered_task_ids: list[str]) -> PendingMutation:
        """Persist a new order for a column through the bulk position update."""
        mutation = PendingMutation(
            kind="reorder", task_id="", target_column_id=column_id, generation=self.generation
        )

        def optimistic() -> None:
            previous = [t["id"] for t in self.tasks_by_column.get(column_id, [])]
            by_id = {t["id"]: t for t in self.tasks_by_column.get(column_id, [])}
            ordered = [by_id.pop(task_id) for task_id in ordered_task_ids if task_id in by_id]
            self._replace(column_id, ordered + list(by_id.values()))

            def undo() -> None:
                # Tasks that arrived since keep their place after the old order
                rank = {task_id: index for index, task_id in enumerate(previous)}
                current = self.tasks_by_column.get(column_id, [])
                self._replace(
                    column_id,
                    sorted(current, key=lambda t: rank.get(t["id"], len(rank))),
                )

            mutation.undo = undo

        items = [{"id": task_id, "position": index} for index, task_id in enumerate(ordered_task_ids)]
        return await self._run(
            mutation,
            optimistic,
            lambda: self.api.update_positions(column_id, items),
            lambda response: True,
        )

    async def delete_task(self, task_id: str) -> PendingMutation:
        located = self.locate(task_id)
        if located is None:
            raise KeyError(task_id)
        column_id, task = located
        mutation = PendingMutation(
            kind="delete", task_id=task_id, target_column_id=None, generation=self.generation
        )

        def optimistic() -> None:
            index = self._index_of(column_id, task_id)
            if index < 0:
                return
            self._remove(column_id, task_id)

            def undo() -> None:
                if self.locate(task_id) is None:
                    self._restore(column_id, task, index)

            mutation.undo = undo

        return await self._run(
            mutation,
            optimistic,
            lambda: self.api.delete_task(task_id),
            lambda response: True,
        )
