"""Board client: HTTP wrapper plus an optimistic in-memory board view."""

from taskhub.client.api import ApiError, BoardApiClient
from taskhub.client.board import BoardView, MutationState
from taskhub.client.filters import TaskFilters, apply_filters

__all__ = [
    "ApiError",
    "BoardApiClient",
    "BoardView",
    "MutationState",
    "TaskFilters",
    "apply_filters",
]
