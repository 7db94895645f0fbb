"""Readiness token ledger — outstanding obligations before output is complete.

A headless render only captures a frame once every registered token has
been released. Handles are plain integers; releasing an unknown or
already released handle does nothing, so teardown paths can release
without tracking whether someone else already did.
"""

import itertools
import logging

logger = logging.getLogger(__name__)


class ReadinessLedger:
    def __init__(self):
        self._pending: dict[int, str] = {}
        self._handles = itertools.count(1)

    def register_token(self, description: str) -> int:
        """Open a readiness obligation and return its handle."""
        handle = next(self._handles)
        self._pending[handle] = description
        logger.debug("Readiness token %d registered: %s", handle, description)
        return handle

    def release_token(self, handle: int) -> None:
        """Close an obligation. Unknown or released handles are ignored."""
        description = self._pending.pop(handle, None)
        if description is not None:
            logger.debug("Readiness token %d released: %s", handle, description)

    def pending(self) -> dict[int, str]:
        """Outstanding handles mapped to their descriptions."""
        return dict(self._pending)

    def is_ready(self) -> bool:
        return not self._pending
