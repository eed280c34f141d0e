"""Work item model and the lifecycle engine that moves items between statuses.

Sections:
    1. Item models (Comment, WorkItem)
    2. Session helpers
    3. Engine operations (allocate, pick_up, move, add_comment, transition)
    4. Derived timing queries (current_elapsed, total_spent)

Every operation is a pure function of its inputs: it either returns a new
frozen WorkItem snapshot or raises a ComplaintWorkflowError subclass and
leaves the input untouched. Instants are integer epoch milliseconds; each
operation accepts ``now`` so callers and tests control the clock.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from ulid import ULID

from complaint_workflow.models import (
    ActorBusyError,
    InvalidTransitionError,
    ValidationError,
    now_ms,
)
from complaint_workflow.status import (
    ACTIVE_STATUS,
    INITIAL_STATUS,
    Status,
    is_allowed,
    normalize_status,
)

logger = logging.getLogger("complaint_workflow.lifecycle")

# ── Section 1: Item models ───────────────────────────────────────────────────


class Comment(BaseModel):
    """A single immutable note appended to a work item."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: int = Field(
        ..., ge=0, alias="ts", description="When the comment was added (epoch ms)"
    )
    author: str = Field(..., min_length=1, description="Who wrote the comment")
    text: str = Field(..., min_length=1, description="Comment body, stored trimmed")


class WorkItem(BaseModel):
    """Complaint work item tracked through the workflow.

    Timing fields describe at most one session in ``pick_up``. An open
    session has ``start_time`` set and ``end_time`` cleared; closing it clears
    ``start_time``, records ``end_time`` and folds the session length into
    ``spent_ms``. Derived durations are never stored.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    id: str = Field(..., min_length=1, description="Stable item identifier")
    title: str = Field("Untitled", description="Free-text description")
    assignee: Optional[str] = Field(
        None, description="Responsible actor (None when unassigned)"
    )
    status: Status = Field(INITIAL_STATUS, description="Current workflow status")
    start_time: Optional[int] = Field(
        None, ge=0, description="Start of the open pick_up session (epoch ms)"
    )
    end_time: Optional[int] = Field(
        None, ge=0, description="When the last pick_up session closed (epoch ms)"
    )
    spent_ms: int = Field(
        0, ge=0, description="Accumulated duration of all closed sessions"
    )
    comments: List[Comment] = Field(
        default_factory=list, description="Chronological, append-only comment log"
    )
    received_date: Optional[int] = Field(
        None, ge=0, description="When the complaint was received (epoch ms)"
    )
    logged_date: Optional[int] = Field(
        None, ge=0, description="When the complaint was logged (epoch ms)"
    )

    def __repr__(self) -> str:
        """Human-readable representation."""
        return (
            f"WorkItem(id={self.id}, "
            f"status={self.status.value}, "
            f"assignee={self.assignee}, "
            f"spent_ms={self.spent_ms})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persisted camelCase form."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkItem":
        """Deserialize from camelCase or snake_case keys."""
        return cls.model_validate(data)


def new_work_item(
    title: str = "Untitled",
    *,
    item_id: Optional[str] = None,
    received_date: Optional[int] = None,
    logged_date: Optional[int] = None,
    now: Optional[int] = None,
) -> WorkItem:
    """Create an item in the initial status with no timing state."""
    ts = now_ms() if now is None else now
    return WorkItem(
        id=item_id or f"W-{ULID()}",
        title=title,
        status=INITIAL_STATUS,
        received_date=ts if received_date is None else received_date,
        logged_date=ts if logged_date is None else logged_date,
    )


# ── Section 2: Session helpers ───────────────────────────────────────────────


def has_open_session(item: WorkItem) -> bool:
    """True when a pick_up session has started and not yet closed."""
    return item.start_time is not None and item.end_time is None


def holds_active_item(item: WorkItem, actor: str) -> bool:
    """True when ``actor`` has ``item`` picked up."""
    return item.assignee == actor and item.status is ACTIVE_STATUS


def find_held_item(items: Iterable[WorkItem], actor: str) -> Optional[WorkItem]:
    """Return the item ``actor`` currently has picked up, if any."""
    for candidate in items:
        if holds_active_item(candidate, actor):
            return candidate
    return None


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} must be a non-empty string")
    return value.strip()


def _require_transition(item: WorkItem, target: Status) -> None:
    if not is_allowed(item.status, target):
        logger.info(
            "Rejected %s: %s -> %s is not allowed",
            item.id, item.status.value, target.value,
        )
        raise InvalidTransitionError(item.status, target)


# ── Section 3: Engine operations ─────────────────────────────────────────────


def allocate(item: WorkItem, handler: str) -> WorkItem:
    """Assign ``item`` to ``handler`` and move it into ch_review.

    Timing fields are not touched.

    Raises:
        ValidationError: If handler is blank.
        InvalidTransitionError: If the current status cannot reach ch_review.
    """
    handler = _require_text(handler, "handler")
    _require_transition(item, Status.CH_REVIEW)
    logger.info(
        "%s: %s -> %s (assignee=%s)",
        item.id, item.status.value, Status.CH_REVIEW.value, handler,
    )
    return item.model_copy(update={"assignee": handler, "status": Status.CH_REVIEW})


def pick_up(
    item: WorkItem,
    actor: str,
    items: Iterable[WorkItem],
    *,
    now: Optional[int] = None,
) -> WorkItem:
    """Start active work on ``item`` for ``actor``, opening a timing session.

    ``items`` is the whole collection; an actor may have at most one item
    picked up across it. Picking up an item the actor already holds returns
    it unchanged, so the open session keeps its original start. A held item
    without an open session gets one starting at ``now``.

    Raises:
        ValidationError: If actor is blank.
        ActorBusyError: If actor already holds a different item.
        InvalidTransitionError: If the current status cannot reach pick_up.
    """
    actor = _require_text(actor, "actor")
    if holds_active_item(item, actor):
        if has_open_session(item):
            logger.debug("%s already picked up by %s", item.id, actor)
            return item
        ts = now_ms() if now is None else now
        logger.info("%s: reopened session for %s at %d", item.id, actor, ts)
        return item.model_copy(update={"start_time": ts, "end_time": None})

    for other in items:
        if other.id != item.id and holds_active_item(other, actor):
            logger.info(
                "Rejected pick up of %s: %s already holds %s",
                item.id, actor, other.id,
            )
            raise ActorBusyError(actor, other.id)

    _require_transition(item, ACTIVE_STATUS)
    ts = now_ms() if now is None else now
    start = item.start_time if has_open_session(item) else ts
    logger.info(
        "%s: %s -> %s (actor=%s)",
        item.id, item.status.value, ACTIVE_STATUS.value, actor,
    )
    return item.model_copy(
        update={
            "assignee": actor,
            "status": ACTIVE_STATUS,
            "start_time": start,
            "end_time": None,
        }
    )


def move(
    item: WorkItem,
    target: Union[Status, str],
    *,
    now: Optional[int] = None,
) -> WorkItem:
    """Move ``item`` to ``target``, closing the open session when leaving pick_up.

    Entry into pick_up is refused here; it goes through :func:`pick_up` so
    the one-item-per-actor rule always applies.

    Raises:
        UnknownStatusError: If target is not a workflow status.
        InvalidTransitionError: If the table rejects the move.
        ValidationError: If target is pick_up.
    """
    target = normalize_status(target)
    _require_transition(item, target)
    if target is ACTIVE_STATUS:
        raise ValidationError("Entering pick_up requires an actor; use pick_up")

    update: Dict[str, Any] = {"status": target}
    if item.status is ACTIVE_STATUS and item.start_time is not None:
        ts = now_ms() if now is None else now
        # Clock skew or hand-edited data can put start after now
        session = max(0, ts - item.start_time)
        update.update(
            start_time=None,
            end_time=ts,
            spent_ms=item.spent_ms + session,
        )
        logger.info(
            "%s: %s -> %s (session %d ms, spent %d ms)",
            item.id, item.status.value, target.value,
            session, update["spent_ms"],
        )
    else:
        logger.info("%s: %s -> %s", item.id, item.status.value, target.value)
    return item.model_copy(update=update)


def add_comment(
    item: WorkItem,
    author: str,
    text: str,
    *,
    now: Optional[int] = None,
) -> WorkItem:
    """Append a trimmed comment. Status and timing are untouched.

    Raises:
        ValidationError: If author or text is blank.
    """
    author = _require_text(author, "author")
    text = _require_text(text, "comment text")
    ts = now_ms() if now is None else now
    comment = Comment(timestamp=ts, author=author, text=text)
    return item.model_copy(update={"comments": [*item.comments, comment]})


def transition(
    item: WorkItem,
    target: Union[Status, str],
    *,
    items: Iterable[WorkItem],
    actor: Optional[str] = None,
    assignee: Optional[str] = None,
    now: Optional[int] = None,
) -> WorkItem:
    """Dispatch a generic "move to status" request to exactly one operation.

    pick_up goes to :func:`pick_up` (actor required), ch_review with an
    assignee goes to :func:`allocate`, anything else to :func:`move`.

    Raises:
        ValidationError: If assignee is given for a target other than ch_review.
    """
    target = normalize_status(target)
    if assignee is not None and target is not Status.CH_REVIEW:
        raise ValidationError(
            f"assignee only applies to {Status.CH_REVIEW.value}, not {target.value}"
        )
    if target is ACTIVE_STATUS:
        if actor is None:
            raise ValidationError("actor is required to pick up an item")
        return pick_up(item, actor, items, now=now)
    if target is Status.CH_REVIEW and assignee is not None:
        return allocate(item, assignee)
    return move(item, target, now=now)


# ── Section 4: Derived timing queries ────────────────────────────────────────


def current_elapsed(item: WorkItem, *, now: Optional[int] = None) -> int:
    """Length of the open session, or of a fully recorded closed one, else 0."""
    if has_open_session(item):
        ts = now_ms() if now is None else now
        return max(0, ts - item.start_time)  # type: ignore[operator]
    if item.start_time is not None and item.end_time is not None:
        return max(0, item.end_time - item.start_time)
    return 0


def total_spent(item: WorkItem, *, now: Optional[int] = None) -> int:
    """Accumulated time plus the live session while the item is picked up."""
    live = 0
    if item.status is ACTIVE_STATUS and has_open_session(item):
        ts = now_ms() if now is None else now
        live = max(0, ts - item.start_time)  # type: ignore[operator]
    return item.spent_ms + live
