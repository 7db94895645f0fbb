"""Composition registry — the single source of truth for what exists now.

A CompositionRecord is the full metadata of one registered composition.
Records are immutable: a change to any field is expressed as
unregister(old.id) followed by register(new), never as a field update.

The registry is a plain object passed explicitly to whoever needs it, so
tests (and hosts) can run as many independent registries as they like.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from .errors import DuplicateId, MissingId
from .lazy import LazyComponent
from .validation import (
    validate_composition_id,
    validate_dimension,
    validate_duration_in_frames,
    validate_fps,
)

logger = logging.getLogger(__name__)

LOCATION = "of the Composition declaration"


@dataclass(frozen=True)
class CompositionRecord:
    id: str
    width: float
    height: float
    fps: float
    duration_in_frames: int
    component: LazyComponent
    default_props: Mapping[str, Any] | None = None
    folder_path: str | None = None
    nonce: int = 0

    @property
    def duration_seconds(self) -> float:
        return self.duration_in_frames / self.fps

    def same_as(self, other: "CompositionRecord | None") -> bool:
        """True when other would register exactly the same composition.

        default_props and component are compared by identity: a new mapping
        with equal contents still counts as a change.
        """
        if other is None:
            return False
        return (
            self.id == other.id
            and self.width == other.width
            and self.height == other.height
            and self.fps == other.fps
            and self.duration_in_frames == other.duration_in_frames
            and self.folder_path == other.folder_path
            and self.component is other.component
            and self.default_props is other.default_props
            and self.nonce == other.nonce
        )


def validate_record(record: CompositionRecord) -> None:
    """Run every registration check in order: id, width, height, duration, fps.

    Raises the first failing check's error.
    """
    if not record.id:
        raise MissingId("No id for composition passed.")
    validate_composition_id(record.id)
    validate_dimension(record.width, "width", LOCATION)
    validate_dimension(record.height, "height", LOCATION)
    validate_duration_in_frames(record.duration_in_frames, LOCATION)
    validate_fps(record.fps, LOCATION)


class CompositionRegistry:
    """Mapping from composition id to its registered record.

    Observers subscribed with subscribe() are called with no arguments
    after every successful register() or unregister() that changed the
    contents.
    """

    def __init__(self):
        self._records: dict[str, CompositionRecord] = {}
        self._observers: list[Callable[[], None]] = []

    def register(self, record: CompositionRecord) -> None:
        """Add a record. Validation happens before any mutation.

        Raises:
            MissingId, InvalidId, InvalidDimension, InvalidDuration,
            InvalidFps: Validation failure (registry unchanged).
            DuplicateId: A record with the same id is already registered.
        """
        validate_record(record)
        if record.id in self._records:
            raise DuplicateId(
                f"Multiple compositions with id {record.id} are registered. "
                "Composition ids must be unique."
            )
        self._records[record.id] = record
        logger.debug(
            "Registered composition %s (%sx%s @ %sfps, %s frames, folder=%s)",
            record.id, record.width, record.height, record.fps,
            record.duration_in_frames, record.folder_path,
        )
        self._notify()

    def unregister(self, composition_id: str) -> None:
        """Remove a record if present. Unknown ids are ignored."""
        if self._records.pop(composition_id, None) is None:
            return
        logger.debug("Unregistered composition %s", composition_id)
        self._notify()

    def get(self, composition_id: str) -> CompositionRecord | None:
        return self._records.get(composition_id)

    def ids(self) -> list[str]:
        return list(self._records)

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register an observer; returns a function that removes it."""
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._observers):
            callback()

    def __contains__(self, composition_id) -> bool:
        return composition_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def list(self) -> list[CompositionRecord]:
        """All records, in registration order."""
        return list(self._records.values())
