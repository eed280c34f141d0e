"""Shared pytest fixtures for all tests."""
from typing import Any, Iterator, List

import pytest

from complaint_workflow import (
    InMemoryItemStore,
    Status,
    WorkItem,
    WorkflowService,
)


def make_item(**overrides: Any) -> WorkItem:
    """Build a WorkItem with defaults for all required fields.

    Callers override specific fields as needed, using snake_case names.
    """
    defaults: dict[str, Any] = {
        "id": "W-1",
        "title": "Premium refund not received",
        "assignee": None,
        "status": Status.COMPLAINT_UNALLOCATED,
        "received_date": 1_700_000_000_000,
        "logged_date": 1_700_000_000_000,
    }
    defaults.update(overrides)
    return WorkItem(**defaults)


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = 1000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryItemStore:
    return InMemoryItemStore()


@pytest.fixture
def service(store: InMemoryItemStore, clock: FakeClock) -> WorkflowService:
    return WorkflowService(store, clock=clock)


@pytest.fixture
def seeded_items() -> List[WorkItem]:
    """One item in each interesting position of the workflow."""
    return [
        make_item(id="W-1", title="Unallocated complaint"),
        make_item(id="W-2", title="Awaiting review", assignee="alice", status=Status.CH_REVIEW),
        make_item(
            id="W-3",
            title="Being worked",
            assignee="alice",
            status=Status.PICK_UP,
            start_time=5_000,
        ),
        make_item(
            id="W-4",
            title="With finance",
            assignee="bob",
            status=Status.REF_TO_FINANCE,
            end_time=9_000,
            spent_ms=4_000,
        ),
        make_item(
            id="W-5",
            title="Closed complaint",
            assignee="bob",
            status=Status.CH_COMPLAINT_CLOSED,
            end_time=20_000,
            spent_ms=12_000,
        ),
    ]


@pytest.fixture
def seeded_service(
    seeded_items: List[WorkItem], clock: FakeClock
) -> Iterator[WorkflowService]:
    yield WorkflowService(InMemoryItemStore(seeded_items), clock=clock)
