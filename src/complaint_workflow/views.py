"""Per-role projections of the item collection.

Everything here is read-only: helpers derive counts, filtered/sorted rows and
the actions a UI may offer, always from the transition table and the
pick-up admission rule in :mod:`complaint_workflow.lifecycle`.
"""

import csv
import io
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from complaint_workflow.lifecycle import (
    WorkItem,
    current_elapsed,
    find_held_item,
    total_spent,
)
from complaint_workflow.models import ValidationError, now_ms
from complaint_workflow.status import (
    ACTIVE_STATUS,
    ALLOWED_TRANSITIONS,
    INITIAL_STATUS,
    REFERRAL_STATUSES,
    TERMINAL_STATUSES,
    Status,
)

_DAY_MS = 24 * 60 * 60 * 1000


class QuickFilter(str, Enum):
    """Manager roll-up tiles."""

    ALL = "all"
    PIPELINE = "pipeline"
    COMPLETED = "completed"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class Totals(BaseModel):
    """Roll-up counts for the manager console."""

    model_config = ConfigDict(frozen=True)

    total: int = Field(0, ge=0, description="All items")
    pipeline: int = Field(0, ge=0, description="Items not yet closed")
    completed: int = Field(0, ge=0, description="Closed items")


class ItemAction(BaseModel):
    """An action a UI may offer for one item."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="'allocate', 'pick_up', 'move' or 'comment'")
    target: Optional[Status] = Field(None, description="Status the action moves to")
    label: str = Field(..., description="Button text")


# ---------------------------------------------------------------------------
# Counts and role views
# ---------------------------------------------------------------------------


def status_summary(items: Iterable[WorkItem]) -> Dict[Status, int]:
    """Item count per status; every status is present."""
    counts: Dict[Status, int] = {status: 0 for status in Status}
    for item in items:
        counts[item.status] += 1
    return counts


def totals(items: Iterable[WorkItem]) -> Totals:
    rows = list(items)
    completed = sum(1 for item in rows if item.status in TERMINAL_STATUSES)
    return Totals(total=len(rows), pipeline=len(rows) - completed, completed=completed)


def manager_view(
    items: Iterable[WorkItem],
    quick: QuickFilter = QuickFilter.ALL,
) -> List[WorkItem]:
    """All items, narrowed by the selected roll-up tile."""
    quick = QuickFilter(quick)
    if quick is QuickFilter.PIPELINE:
        return [item for item in items if item.status not in TERMINAL_STATUSES]
    if quick is QuickFilter.COMPLETED:
        return [item for item in items if item.status in TERMINAL_STATUSES]
    return list(items)


def handler_view(items: Iterable[WorkItem], actor: str) -> List[WorkItem]:
    """Items assigned to ``actor`` plus the unallocated, unassigned pool."""
    return [
        item
        for item in items
        if item.assignee == actor
        or (item.assignee is None and item.status is INITIAL_STATUS)
    ]


def referral_view(items: Iterable[WorkItem]) -> List[WorkItem]:
    """Items currently sitting in a referral queue."""
    return [item for item in items if item.status in REFERRAL_STATUSES]


# ---------------------------------------------------------------------------
# UI gating
# ---------------------------------------------------------------------------


def can_pick_up(item: WorkItem, actor: str, items: Iterable[WorkItem]) -> bool:
    """Whether a pick up of ``item`` by ``actor`` would be admitted."""
    if ACTIVE_STATUS not in ALLOWED_TRANSITIONS[item.status]:
        return False
    held = find_held_item((other for other in items if other.id != item.id), actor)
    return held is None


def available_actions(
    item: WorkItem,
    actor: str,
    items: Iterable[WorkItem],
) -> List[ItemAction]:
    """Actions to offer ``actor`` for ``item``.

    Never offers something the engine would reject: targets come from the
    transition table, and pick up is offered only when admission would pass.
    """
    rows = list(items)
    actions: List[ItemAction] = []
    for target in sorted(ALLOWED_TRANSITIONS[item.status], key=lambda s: s.value):
        if target is ACTIVE_STATUS:
            if can_pick_up(item, actor, rows):
                actions.append(
                    ItemAction(name="pick_up", target=target, label=target.label)
                )
        elif target is Status.CH_REVIEW and item.status is INITIAL_STATUS:
            actions.append(ItemAction(name="allocate", target=target, label="Allocate"))
        else:
            actions.append(ItemAction(name="move", target=target, label=target.label))
    actions.append(ItemAction(name="comment", label="Add comment"))
    return actions


# ---------------------------------------------------------------------------
# Column filters and sorting
# ---------------------------------------------------------------------------


class ItemFilter(BaseModel):
    """Inline per-column grid filters.

    Text filters are case-insensitive substring matches. Date filters are
    inclusive epoch-ms bounds; ``*_to`` date bounds cover the whole day.
    Time-spent bounds are in seconds.
    """

    model_config = ConfigDict(frozen=True)

    id: str = ""
    title: str = ""
    assignee: str = ""
    status: str = ""
    comments: str = ""
    received_from: Optional[int] = None
    received_to: Optional[int] = None
    logged_from: Optional[int] = None
    logged_to: Optional[int] = None
    start_from: Optional[int] = None
    start_to: Optional[int] = None
    end_from: Optional[int] = None
    end_to: Optional[int] = None
    time_min_s: Optional[float] = None
    time_max_s: Optional[float] = None


def _contains(value: Any, needle: str) -> bool:
    return needle.strip().lower() in str(value if value is not None else "").lower()


def _within(
    ts: Optional[int],
    lower: Optional[int],
    upper: Optional[int],
    end_of_day: bool = False,
) -> bool:
    if lower is None and upper is None:
        return True
    if not ts:
        return False
    if lower is not None and ts < lower:
        return False
    if upper is not None:
        limit = upper + _DAY_MS - 1 if end_of_day else upper
        if ts > limit:
            return False
    return True


def filter_items(
    items: Iterable[WorkItem],
    criteria: ItemFilter,
    *,
    now: Optional[int] = None,
) -> List[WorkItem]:
    ts = now_ms() if now is None else now
    rows: List[WorkItem] = []
    for item in items:
        if criteria.id and not _contains(item.id, criteria.id):
            continue
        if criteria.title and not _contains(item.title, criteria.title):
            continue
        if criteria.assignee and not _contains(item.assignee, criteria.assignee):
            continue
        if criteria.status and not _contains(item.status.label, criteria.status):
            continue
        if criteria.comments:
            joined = " | ".join(c.text for c in item.comments)
            if not _contains(joined, criteria.comments):
                continue
        if not _within(item.received_date, criteria.received_from, criteria.received_to, True):
            continue
        if not _within(item.logged_date, criteria.logged_from, criteria.logged_to, True):
            continue
        if not _within(item.start_time, criteria.start_from, criteria.start_to):
            continue
        if not _within(item.end_time, criteria.end_from, criteria.end_to):
            continue
        if criteria.time_min_s is not None or criteria.time_max_s is not None:
            spent = total_spent(item, now=ts)
            if criteria.time_min_s is not None and spent < criteria.time_min_s * 1000:
                continue
            if criteria.time_max_s is not None and spent > criteria.time_max_s * 1000:
                continue
        rows.append(item)
    return rows


def _sort_getters(now: int) -> Dict[str, Callable[[WorkItem], Any]]:
    return {
        "id": lambda item: item.id,
        "title": lambda item: item.title,
        "receivedDate": lambda item: item.received_date or 0,
        "loggedDate": lambda item: item.logged_date or 0,
        "assignee": lambda item: item.assignee or "",
        "status": lambda item: item.status.label,
        "startTime": lambda item: item.start_time or 0,
        "endTime": lambda item: item.end_time or 0,
        "timeSpent": lambda item: total_spent(item, now=now),
    }


SORT_KEYS: Tuple[str, ...] = tuple(_sort_getters(0))


def sort_items(
    items: Iterable[WorkItem],
    key: str,
    direction: SortDirection = SortDirection.ASC,
    *,
    now: Optional[int] = None,
) -> List[WorkItem]:
    """Stable sort by a grid column.

    Raises:
        ValidationError: If key is not a sortable column.
    """
    getters = _sort_getters(now_ms() if now is None else now)
    if key not in getters:
        raise ValidationError(f"Unknown sort key: {key!r}. Valid keys: {list(SORT_KEYS)}")
    reverse = SortDirection(direction) is SortDirection.DESC
    return sorted(items, key=getters[key], reverse=reverse)


# ---------------------------------------------------------------------------
# Formatting and export
# ---------------------------------------------------------------------------


def format_duration(ms: Optional[int]) -> str:
    """Render a duration as ``[Hh ]MMm SSs``; anything under a second is ``0s``."""
    if not ms or ms < 1000:
        return "0s"
    seconds = ms // 1000
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    prefix = f"{hours}h " if hours else ""
    return f"{prefix}{minutes:02d}m {secs:02d}s"


CSV_COLUMNS: Tuple[str, ...] = (
    "id",
    "title",
    "receivedDate",
    "loggedDate",
    "assignee",
    "status",
    "startTime",
    "endTime",
    "currentElapsed",
    "timeSpent",
    "comments",
)


def export_csv(items: Sequence[WorkItem], *, now: Optional[int] = None) -> str:
    """Serialize grid rows to CSV text, one row per item."""
    ts = now_ms() if now is None else now
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for item in items:
        writer.writerow([
            item.id,
            item.title,
            item.received_date if item.received_date is not None else "",
            item.logged_date if item.logged_date is not None else "",
            item.assignee or "",
            item.status.label,
            item.start_time if item.start_time is not None else "",
            item.end_time if item.end_time is not None else "",
            format_duration(current_elapsed(item, now=ts)),
            format_duration(total_spent(item, now=ts)),
            " | ".join(c.text for c in item.comments),
        ])
    return buffer.getvalue()
