"""Core helpers and exception taxonomy for the complaint-workflow library."""
import time
from typing import Any, Sequence


def now_ms() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


# Custom Exceptions
class ComplaintWorkflowError(Exception):
    """Base exception for all library errors.

    ``kind`` is a stable, transport-independent name for the failure that
    callers can surface without parsing the message.
    """

    kind: str = "error"


class UnknownStatusError(ComplaintWorkflowError):
    """Status value is not one of the fixed workflow statuses."""

    kind = "unknown_status"

    def __init__(self, value: Any, valid_values: Sequence[str] = ()) -> None:
        self.value = value
        message = f"Unknown status value: {value!r}."
        if valid_values:
            message += f" Valid values: {list(valid_values)}"
        super().__init__(message)


class InvalidTransitionError(ComplaintWorkflowError):
    """The transition table does not allow the requested move."""

    kind = "invalid_transition"

    def __init__(self, from_status: Any, to_status: Any) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid transition from {from_status.label} to {to_status.label}."
        )


class ActorBusyError(ComplaintWorkflowError):
    """Actor already holds a different item in pick_up."""

    kind = "actor_busy"

    def __init__(self, actor: str, held_item_id: str) -> None:
        self.actor = actor
        self.held_item_id = held_item_id
        super().__init__(
            f"{actor} already has {held_item_id} picked up. "
            f"Move it on before picking up another item."
        )


class ValidationError(ComplaintWorkflowError):
    """Malformed input such as a blank comment or missing actor."""

    kind = "validation_error"


class NotFoundError(ComplaintWorkflowError):
    """Referenced work item does not exist."""

    kind = "not_found"

    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"Work item not found: {item_id!r}")


class StorageError(ComplaintWorkflowError):
    """Storage adapter failure."""

    kind = "storage_error"
