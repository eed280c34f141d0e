"""
complaint-workflow: complaint work items through a fixed status workflow.

The library provides the transition table between the sixteen complaint
statuses, a lifecycle engine that applies transitions to immutable work item
snapshots (tracking time spent while an item is picked up), per-role views,
a JSON-file store and an HTTP API.

Example:
    >>> from complaint_workflow import new_work_item, allocate, pick_up, move
    >>> item = new_work_item("Late payment", item_id="W-1", now=0)
    >>> item = allocate(item, "alice")
    >>> item = pick_up(item, "alice", [item], now=1000)
    >>> item = move(item, "ref_to_bo_uk", now=4500)
    >>> item.spent_ms
    3500
"""

__version__ = "1.0.0"

# Errors and clock
from complaint_workflow.models import (
    ComplaintWorkflowError,
    UnknownStatusError,
    InvalidTransitionError,
    ActorBusyError,
    ValidationError,
    NotFoundError,
    StorageError,
    now_ms,
)

# Statuses and transition policy
from complaint_workflow.status import (
    Status,
    STATUS_LABELS,
    STATUS_DESCRIPTIONS,
    INITIAL_STATUS,
    ACTIVE_STATUS,
    REFERRAL_STATUSES,
    TERMINAL_STATUSES,
    ALLOWED_TRANSITIONS,
    TransitionValidationResult,
    allowed_targets,
    is_allowed,
    is_terminal,
    normalize_status,
    validate_transition,
)

# Work items and lifecycle engine
from complaint_workflow.lifecycle import (
    Comment,
    WorkItem,
    new_work_item,
    has_open_session,
    holds_active_item,
    find_held_item,
    allocate,
    pick_up,
    move,
    add_comment,
    transition,
    current_elapsed,
    total_spent,
)

# Role views
from complaint_workflow.views import (
    QuickFilter,
    SortDirection,
    Totals,
    ItemAction,
    ItemFilter,
    status_summary,
    totals,
    manager_view,
    handler_view,
    referral_view,
    can_pick_up,
    available_actions,
    filter_items,
    sort_items,
    format_duration,
    export_csv,
)

# Storage and service
from complaint_workflow.storage import (
    ItemStore,
    InMemoryItemStore,
    JsonFileItemStore,
)
from complaint_workflow.service import WorkflowService

__all__ = [
    # Version
    "__version__",
    # Errors and clock
    "ComplaintWorkflowError",
    "UnknownStatusError",
    "InvalidTransitionError",
    "ActorBusyError",
    "ValidationError",
    "NotFoundError",
    "StorageError",
    "now_ms",
    # Statuses and transition policy
    "Status",
    "STATUS_LABELS",
    "STATUS_DESCRIPTIONS",
    "INITIAL_STATUS",
    "ACTIVE_STATUS",
    "REFERRAL_STATUSES",
    "TERMINAL_STATUSES",
    "ALLOWED_TRANSITIONS",
    "TransitionValidationResult",
    "allowed_targets",
    "is_allowed",
    "is_terminal",
    "normalize_status",
    "validate_transition",
    # Work items and lifecycle engine
    "Comment",
    "WorkItem",
    "new_work_item",
    "has_open_session",
    "holds_active_item",
    "find_held_item",
    "allocate",
    "pick_up",
    "move",
    "add_comment",
    "transition",
    "current_elapsed",
    "total_spent",
    # Role views
    "QuickFilter",
    "SortDirection",
    "Totals",
    "ItemAction",
    "ItemFilter",
    "status_summary",
    "totals",
    "manager_view",
    "handler_view",
    "referral_view",
    "can_pick_up",
    "available_actions",
    "filter_items",
    "sort_items",
    "format_duration",
    "export_csv",
    # Storage and service
    "ItemStore",
    "InMemoryItemStore",
    "JsonFileItemStore",
    "WorkflowService",
]
