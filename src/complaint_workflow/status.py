"""Complaint workflow statuses and the transition policy between them."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Tuple, Union

from complaint_workflow.models import UnknownStatusError


class Status(str, Enum):
    """Complaint workflow statuses."""

    COMPLAINT_UNALLOCATED = "complaint_unallocated"
    CH_REVIEW = "ch_review"
    PICK_UP = "pick_up"
    CH_COMPLAINT_CLOSED = "ch_complaint_closed"
    REF_TO_BO_UK = "ref_to_bo_uk"
    REF_TO_BO_IND = "ref_to_bo_ind"
    REF_TO_FINANCE = "ref_to_finance"
    REF_TO_APS = "ref_to_aps"
    REF_TO_CUW = "ref_to_cuw"
    REF_TO_FCT = "ref_to_fct"
    REF_TO_CLIENT = "ref_to_client"
    REF_TO_RS = "ref_to_rs"
    REF_TO_PH = "ref_to_ph"
    CH_REFERRAL_COMPLETE = "ch_referral_complete"
    RWOL_PRODUCT = "rwol_product"
    REF_TO_TIMELINE_UPDATE = "ref_to_timeline_update"

    @property
    def label(self) -> str:
        """Short display label."""
        return STATUS_LABELS[self]

    @property
    def description(self) -> str:
        """One-line explanation shown alongside the label."""
        return STATUS_DESCRIPTIONS[self]


STATUS_LABELS: Dict[Status, str] = {
    Status.COMPLAINT_UNALLOCATED: "Complaint Unallocated",
    Status.CH_REVIEW: "CH Review",
    Status.PICK_UP: "Pick up",
    Status.CH_COMPLAINT_CLOSED: "CH Complaint Closed",
    Status.REF_TO_BO_UK: "Ref to BO UK",
    Status.REF_TO_BO_IND: "Ref to BO Ind",
    Status.REF_TO_FINANCE: "Ref to Finance",
    Status.REF_TO_APS: "Ref to APS",
    Status.REF_TO_CUW: "Ref to C&UW",
    Status.REF_TO_FCT: "Ref to FCT",
    Status.REF_TO_CLIENT: "Ref to Client",
    Status.REF_TO_RS: "Ref to RS",
    Status.REF_TO_PH: "Ref to PH",
    Status.CH_REFERRAL_COMPLETE: "CH Referral Complete",
    Status.RWOL_PRODUCT: "RWOL Product",
    Status.REF_TO_TIMELINE_UPDATE: "Ref to Timeline Update",
}

STATUS_DESCRIPTIONS: Dict[Status, str] = {
    Status.COMPLAINT_UNALLOCATED: "Complaint request is yet to be allocated to CH for review",
    Status.CH_REVIEW: "Complaint allocated to CH for review",
    Status.PICK_UP: "Complaint Request is picked up for processing",
    Status.CH_COMPLAINT_CLOSED: "Complaint is closed by the CH",
    Status.REF_TO_BO_UK: "Ref to UK Backoffice for further action",
    Status.REF_TO_BO_IND: "Ref to India Backoffice for further action",
    Status.REF_TO_FINANCE: "Ref to Finance for further action",
    Status.REF_TO_APS: "Ref to APS for calculations and pending action",
    Status.REF_TO_CUW: "Ref to Claims & Underwriting team",
    Status.REF_TO_FCT: "Ref to Financial Crime Team for decision/guidance",
    Status.REF_TO_CLIENT: "Ref to Client for direction or decision",
    Status.REF_TO_RS: "Awaiting details from the Receiving Scheme",
    Status.REF_TO_PH: "Awaiting details/documents from Policy Holder",
    Status.CH_REFERRAL_COMPLETE: "Returned to complaint handler post referral actions",
    Status.RWOL_PRODUCT: "Complaints related to RWOL Product",
    Status.REF_TO_TIMELINE_UPDATE: "Referred to India team for Timeline updation",
}

INITIAL_STATUS: Status = Status.COMPLAINT_UNALLOCATED

ACTIVE_STATUS: Status = Status.PICK_UP

REFERRAL_STATUSES: FrozenSet[Status] = frozenset({
    Status.REF_TO_BO_UK,
    Status.REF_TO_BO_IND,
    Status.REF_TO_FINANCE,
    Status.REF_TO_APS,
    Status.REF_TO_CUW,
    Status.REF_TO_FCT,
    Status.REF_TO_CLIENT,
    Status.REF_TO_RS,
    Status.REF_TO_PH,
    Status.REF_TO_TIMELINE_UPDATE,
})


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------

_RESUME: FrozenSet[Status] = frozenset({Status.CH_REVIEW, Status.PICK_UP})

ALLOWED_TRANSITIONS: Dict[Status, FrozenSet[Status]] = {
    # Manager allocates to a handler
    Status.COMPLAINT_UNALLOCATED: frozenset({Status.CH_REVIEW}),
    # Handler starts active work
    Status.CH_REVIEW: frozenset({Status.PICK_UP}),
    # Branch point: close, or route to exactly one downstream queue
    Status.PICK_UP: frozenset(
        {Status.CH_COMPLAINT_CLOSED, Status.RWOL_PRODUCT} | REFERRAL_STATUSES
    ),
    # Referral queues only ever hand back to the handler
    **{ref: frozenset({Status.CH_REFERRAL_COMPLETE}) for ref in REFERRAL_STATUSES},
    Status.CH_REFERRAL_COMPLETE: _RESUME,
    Status.RWOL_PRODUCT: _RESUME,
    Status.CH_COMPLAINT_CLOSED: frozenset(),
}

TERMINAL_STATUSES: FrozenSet[Status] = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def _check_table_exhaustive() -> None:
    missing = set(Status) - set(ALLOWED_TRANSITIONS)
    if missing:
        raise RuntimeError(
            f"Transition table has no entry for: {sorted(s.value for s in missing)}"
        )


_check_table_exhaustive()


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


def normalize_status(value: Union[Status, str]) -> Status:
    """Resolve a string to a Status.

    Args:
        value: A Status member or its string value.

    Returns:
        The corresponding Status enum member.

    Raises:
        UnknownStatusError: If value is not a workflow status.
    """
    if isinstance(value, Status):
        return value
    for member in Status:
        if member.value == value:
            return member
    raise UnknownStatusError(value, [m.value for m in Status])


def allowed_targets(from_status: Union[Status, str]) -> FrozenSet[Status]:
    """Statuses directly reachable from ``from_status``."""
    return ALLOWED_TRANSITIONS[normalize_status(from_status)]


def is_allowed(from_status: Union[Status, str], to_status: Union[Status, str]) -> bool:
    """Whether the table permits moving from ``from_status`` to ``to_status``.

    Self-transitions are rejected unless the table lists them, and it lists
    none. Unknown values raise UnknownStatusError rather than returning False.
    """
    source = normalize_status(from_status)
    target = normalize_status(to_status)
    return target in ALLOWED_TRANSITIONS[source]


def is_terminal(status: Union[Status, str]) -> bool:
    """True when no transition leaves ``status``."""
    return normalize_status(status) in TERMINAL_STATUSES


@dataclass(frozen=True)
class TransitionValidationResult:
    """Result of validating a proposed status transition."""

    valid: bool
    violations: Tuple[str, ...] = ()


def validate_transition(
    from_status: Union[Status, str],
    to_status: Union[Status, str],
) -> TransitionValidationResult:
    """Validate a proposed transition without raising.

    Unknown statuses and disallowed pairs are reported as violations so
    callers can gate UI actions without exception handling.
    """
    violations: List[str] = []
    try:
        source = normalize_status(from_status)
        target = normalize_status(to_status)
    except UnknownStatusError as exc:
        violations.append(str(exc))
        return TransitionValidationResult(valid=False, violations=tuple(violations))

    if source in TERMINAL_STATUSES:
        violations.append(f"{source.value} is terminal")
    elif target not in ALLOWED_TRANSITIONS[source]:
        violations.append(f"Transition {source.value} -> {target.value} is not allowed")

    return TransitionValidationResult(
        valid=len(violations) == 0,
        violations=tuple(violations),
    )
