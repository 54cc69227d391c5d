"""Abstract interface for game document persistence.

Documents are JSON-compatible dicts keyed by their "id". Partial updates
name fields by dotted path, where numeric segments index into arrays
("players.2.is_ready"). Every successful write is followed by a change
notification to the subscribers of the written document.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from pydantic_core import to_jsonable_python

from shared.dal.notifier import ChangeNotifier
from shared.ids import generate_id

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from shared.dal.notifier import Subscription

Document = dict[str, Any]


def split_path(path: str) -> list[str | int]:
    """Split a dotted field path into keys and array indexes."""
    if not path or any(not segment for segment in path.split(".")):
        raise ValueError(f"Invalid field path: {path!r}")
    return [int(segment) if segment.isdigit() else segment for segment in path.split(".")]


class GameStore(ABC):
    """Document store for games with targeted updates and live change feeds.

    Subclasses implement the storage primitives; this class serializes
    writes, converts values to their JSON form and publishes changes.
    Subclasses hold self._lock around their reads as well.
    """

    def __init__(self) -> None:
        self._notifier = ChangeNotifier()
        self._lock = threading.Lock()

    # Queries

    @abstractmethod
    def find_by_id(self, game_id: str) -> Document | None: ...

    @abstractmethod
    def find_by_id_or_access_code(self, key: str) -> Document | None: ...

    @abstractmethod
    def find_active_by_access_code(self, access_code: str, state: str | None = None) -> Document | None: ...

    @abstractmethod
    def count_active_by_access_code(self, access_code: str) -> int: ...

    # Writes

    def insert(self, document: Mapping[str, Any]) -> str:
        """Insert a new document and return its id (generated unless provided)."""
        doc = to_jsonable_python(dict(document))
        game_id = doc.get("id") or generate_id()
        doc["id"] = game_id
        with self._lock:
            self._insert(game_id, doc)
        self._publish(game_id)
        return game_id

    def set_fields(self, game_id: str, fields: Mapping[str, Any]) -> int:
        """Set the given dotted-path fields. Return the number of documents matched."""
        changes = {path: to_jsonable_python(value) for path, value in fields.items()}
        for path in changes:
            split_path(path)
        with self._lock:
            matched = self._set_fields(game_id, changes)
        if matched:
            self._publish(game_id)
        return matched

    def push(
        self,
        game_id: str,
        field: str,
        value: Any,  # noqa: ANN401
        set_fields: Mapping[str, Any] | None = None,
    ) -> int:
        """Append value to the array at field, applying set_fields in the same write."""
        changes = {path: to_jsonable_python(v) for path, v in (set_fields or {}).items()}
        with self._lock:
            matched = self._push(game_id, field, to_jsonable_python(value), changes)
        if matched:
            self._publish(game_id)
        return matched

    def pull(
        self,
        game_id: str,
        field: str,
        value: Any,  # noqa: ANN401
        set_fields: Mapping[str, Any] | None = None,
    ) -> int:
        """Remove every element equal to value from the array at field."""
        changes = {path: to_jsonable_python(v) for path, v in (set_fields or {}).items()}
        with self._lock:
            matched = self._pull(game_id, field, to_jsonable_python(value), changes)
        if matched:
            self._publish(game_id)
        return matched

    @abstractmethod
    def _insert(self, game_id: str, document: Document) -> None: ...

    @abstractmethod
    def _set_fields(self, game_id: str, fields: dict[str, Any]) -> int: ...

    @abstractmethod
    def _push(self, game_id: str, field: str, value: Any, fields: dict[str, Any]) -> int: ...  # noqa: ANN401

    @abstractmethod
    def _pull(self, game_id: str, field: str, value: Any, fields: dict[str, Any]) -> int: ...  # noqa: ANN401

    # Change feed

    def subscribe(self, game_id: str, callback: Callable[[Document | None], None]) -> Subscription:
        """Call callback with the fresh document after every write to game_id."""
        return self._notifier.subscribe(game_id, callback)

    def _publish(self, game_id: str) -> None:
        # Runs outside the write lock so subscribers may write back.
        if self._notifier.has_subscribers(game_id):
            self._notifier.notify(game_id, self.find_by_id(game_id))


def assign_path(document: Document, path: str, value: Any) -> None:  # noqa: ANN401
    """Set value at a dotted path inside document, creating missing objects."""
    *parents, last = split_path(path)
    target: Any = document
    try:
        for segment in parents:
            target = target[segment] if isinstance(segment, int) else target.setdefault(segment, {})
        target[last] = value
    except (IndexError, KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"Cannot set field path {path!r}") from e
