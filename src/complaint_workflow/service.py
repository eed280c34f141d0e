"""Read-modify-write orchestration around the lifecycle engine.

Each public method loads the collection, applies exactly one engine
operation and saves the result while holding the service lock. Holding the
lock across the pick-up admission check and the write means two concurrent
pick ups by the same actor cannot both pass.
"""

import logging
import threading
from typing import Callable, FrozenSet, List, Optional, Tuple, Union

from complaint_workflow import lifecycle
from complaint_workflow.lifecycle import WorkItem
from complaint_workflow.models import NotFoundError, ValidationError, now_ms
from complaint_workflow.status import Status, allowed_targets
from complaint_workflow.storage import ItemStore

logger = logging.getLogger("complaint_workflow.service")

Clock = Callable[[], int]
Mutation = Callable[[WorkItem, List[WorkItem], int], WorkItem]


class WorkflowService:
    """Serialized access to a work item collection."""

    def __init__(self, store: ItemStore, clock: Clock = now_ms) -> None:
        self.store = store
        self.clock = clock
        self._lock = threading.RLock()

    # -- reads --------------------------------------------------------------

    def list_items(self) -> List[WorkItem]:
        with self._lock:
            return self.store.load_all()

    def get_item(self, item_id: str) -> WorkItem:
        with self._lock:
            _, item = self._find(self.store.load_all(), item_id)
            return item

    def allowed_transitions(self, item_id: str) -> FrozenSet[Status]:
        return allowed_targets(self.get_item(item_id).status)

    # -- collection edits -----------------------------------------------------

    def create_item(
        self,
        title: str = "Untitled",
        *,
        item_id: Optional[str] = None,
        received_date: Optional[int] = None,
        logged_date: Optional[int] = None,
    ) -> WorkItem:
        with self._lock:
            items = self.store.load_all()
            if item_id is not None and any(i.id == item_id for i in items):
                raise ValidationError(f"Work item {item_id!r} already exists")
            item = lifecycle.new_work_item(
                title,
                item_id=item_id,
                received_date=received_date,
                logged_date=logged_date,
                now=self.clock(),
            )
            items.append(item)
            self.store.save_all(items)
            logger.info("Created %s", item.id)
            return item

    def update_details(
        self,
        item_id: str,
        *,
        title: Optional[str] = None,
        received_date: Optional[int] = None,
        logged_date: Optional[int] = None,
    ) -> WorkItem:
        """Edit descriptive fields. Workflow fields only change via transitions."""
        update = {
            key: value
            for key, value in (
                ("title", title),
                ("received_date", received_date),
                ("logged_date", logged_date),
            )
            if value is not None
        }
        return self._mutate(item_id, lambda item, _items, _now: item.model_copy(update=update))

    def delete_item(self, item_id: str) -> None:
        with self._lock:
            items = self.store.load_all()
            index, _ = self._find(items, item_id)
            del items[index]
            self.store.save_all(items)
            logger.info("Deleted %s", item_id)

    # -- engine operations ----------------------------------------------------

    def allocate(self, item_id: str, handler: str) -> WorkItem:
        return self._mutate(
            item_id, lambda item, _items, _now: lifecycle.allocate(item, handler)
        )

    def pick_up(self, item_id: str, actor: str) -> WorkItem:
        return self._mutate(
            item_id,
            lambda item, items, now: lifecycle.pick_up(item, actor, items, now=now),
        )

    def move(self, item_id: str, target: Union[Status, str]) -> WorkItem:
        return self._mutate(
            item_id, lambda item, _items, now: lifecycle.move(item, target, now=now)
        )

    def add_comment(self, item_id: str, author: str, text: str) -> WorkItem:
        return self._mutate(
            item_id,
            lambda item, _items, now: lifecycle.add_comment(item, author, text, now=now),
        )

    def transition(
        self,
        item_id: str,
        target: Union[Status, str],
        *,
        actor: Optional[str] = None,
        assignee: Optional[str] = None,
    ) -> WorkItem:
        return self._mutate(
            item_id,
            lambda item, items, now: lifecycle.transition(
                item, target, actor=actor, assignee=assignee, items=items, now=now
            ),
        )

    # -- internals ------------------------------------------------------------

    @staticmethod
    def _find(items: List[WorkItem], item_id: str) -> Tuple[int, WorkItem]:
        for index, item in enumerate(items):
            if item.id == item_id:
                return index, item
        raise NotFoundError(item_id)

    def _mutate(self, item_id: str, mutation: Mutation) -> WorkItem:
        with self._lock:
            items = self.store.load_all()
            index, item = self._find(items, item_id)
            updated = mutation(item, items, self.clock())
            if updated is not item:
                items[index] = updated
                self.store.save_all(items)
            return updated
