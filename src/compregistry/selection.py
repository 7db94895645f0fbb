"""The externally owned "which composition is the current target" state."""

import logging
from typing import Callable

logger = logging.getLogger(__name__)


class Selection:
    """Currently selected composition id, with change observers.

    Observers are called with no arguments after the id actually changes.
    """

    def __init__(self, current: str | None = None):
        self._current = current
        self._observers: list[Callable[[], None]] = []

    @property
    def current(self) -> str | None:
        return self._current

    def select(self, composition_id: str | None) -> None:
        if composition_id == self._current:
            return
        logger.debug("Selected composition: %s -> %s", self._current, composition_id)
        self._current = composition_id
        for callback in list(self._observers):
            callback()

    def clear(self) -> None:
        self.select(None)

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe
