"""Async HTTP client for the board endpoints."""

from typing import Any

import httpx
import structlog

logger = structlog.get_logger()


class ApiError(Exception):
    """Non-2xx response, or no response at all (``status_code == 0``)."""

    def __init__(self, status_code: int, message: str, code: str | None = None, details: Any = None):
        self.status_code = status_code
        self.message = message
        self.code = code
        self.details = details
        super().__init__(f"{status_code}: {message}")


class BoardApiClient:
    """Thin wrapper over ``httpx.AsyncClient`` speaking the ``/api/v1`` surface.

    Pass an existing ``client`` (e.g. one built on ``httpx.ASGITransport``)
    to share connections; otherwise one is created and owned here.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000/api/v1",
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}

    async def __aenter__(self) -> "BoardApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        try:
            response = await self._client.request(method, path, json=json, headers=self._headers)
        except httpx.HTTPError as exc:
            logger.warning("api_request_failed", method=method, path=path, error=str(exc))
            raise ApiError(0, f"Request failed: {exc}") from exc

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            raise ApiError(
                response.status_code,
                str(body.get("error") or response.reason_phrase or "Request failed"),
                code=body.get("code"),
                details=body.get("details"),
            )

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get_board_columns(self, board_id: str) -> list[dict[str, Any]]:
        return await self._request("GET", f"/boards/{board_id}/columns")

    async def get_column_tasks(self, column_id: str) -> dict[str, Any]:
        """``{"column": ..., "tasks": [...], "archived_task_ids": [...], "done_limit": n}``"""
        return await self._request("GET", f"/columns/{column_id}/tasks")

    async def create_task(self, column_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", f"/columns/{column_id}/tasks", json=fields)

    async def update_task(self, task_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PATCH", f"/tasks/{task_id}", json=fields)

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/tasks/{task_id}")

    async def update_positions(
        self,
        column_id: str,
        items: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """Bulk position update; each item is ``{id, position, columnId?}``."""
        return await self._request("PATCH", f"/columns/{column_id}/tasks", json={"tasks": items})
