"""Services package."""

from taskhub.services.access_control import RequestContext, build_request_context
from taskhub.services.archiver import DoneColumnArchiver
from taskhub.services.done_limit import DONE_COLUMN_LIMIT, enforce_done_limit
from taskhub.services.status_mapping import ColumnStatus, resolve_status
from taskhub.services.task_workflow import TaskWorkflowService

__all__ = [
    "ColumnStatus",
    "DONE_COLUMN_LIMIT",
    "DoneColumnArchiver",
    "RequestContext",
    "TaskWorkflowService",
    "build_request_context",
    "enforce_done_limit",
    "resolve_status",
]
