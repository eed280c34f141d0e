"""Storage adapters for the work item collection."""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Union

import pydantic

from complaint_workflow.lifecycle import WorkItem
from complaint_workflow.models import StorageError

logger = logging.getLogger("complaint_workflow.storage")


class ItemStore(ABC):
    """Abstract store holding the whole item collection.

    Callers read the collection, apply one engine operation and write it
    back; adapters need no indexing or partial writes.
    """

    @abstractmethod
    def load_all(self) -> List[WorkItem]:
        """Return every stored item in insertion order."""

    @abstractmethod
    def save_all(self, items: Iterable[WorkItem]) -> None:
        """Replace the stored collection with ``items``."""


class InMemoryItemStore(ItemStore):
    """List-backed store for tests and embedding."""

    def __init__(self, items: Iterable[WorkItem] = ()) -> None:
        self._items: List[WorkItem] = list(items)

    def load_all(self) -> List[WorkItem]:
        return list(self._items)

    def save_all(self, items: Iterable[WorkItem]) -> None:
        self._items = list(items)


class JsonFileItemStore(ItemStore):
    """The collection as a single JSON array on disk.

    A missing file reads as an empty collection. Writes land in a sibling
    temporary file that is then renamed over the target, so a reader sees
    either the old or the new document.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load_all(self) -> List[WorkItem]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StorageError(f"Cannot read {self.path}: {exc}") from exc

        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StorageError(f"{self.path} is not valid JSON: {exc}") from exc
        if not isinstance(raw, list):
            raise StorageError(f"{self.path} must contain a JSON array of items")

        try:
            return [WorkItem.from_dict(entry) for entry in raw]
        except pydantic.ValidationError as exc:
            raise StorageError(f"{self.path} holds an invalid item: {exc}") from exc

    def save_all(self, items: Iterable[WorkItem]) -> None:
        payload = [item.to_dict() for item in items]
        content = json.dumps(payload, indent=2) + "\n"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Cannot write {self.path}: {exc}") from exc
        logger.debug("Wrote %d items to %s", len(payload), self.path)
