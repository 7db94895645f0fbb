"""Render dispatch — decide whether a composition's view is mounted.

A view is mounted only when both hold:
  - the selected composition id equals this composition's id, and
  - the operating mode is interactive or headless-render.
In any other mode the composition stays registered but nothing mounts.

Per-composition state machine:

  IDLE ──(selected, mode mounts)──> MOUNTING ──(view committed)──> READY
    ^                                   │                            │
    └────────(deselected / teardown)────┴────────────────────────────┘

While a lazy view is still resolving (MOUNTING), the pending attempt is
signalled differently per mode:
  - interactive: the loading indicator is mounted in the view's place.
  - headless-render: one readiness token is held on the ledger so the
    render gate waits. The token is released exactly once, when the view
    is committed or when the attempt is abandoned.

Mode and selection are re-read on every evaluate(). Lazy resolution runs
as an asyncio task, so evaluate() must be called on the running loop
whenever the view is not resolved yet.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping

from .environment import OperatingMode, get_input_props, get_operating_mode
from .ledger import ReadinessLedger
from .registry import CompositionRecord, CompositionRegistry
from .selection import Selection

logger = logging.getLogger(__name__)


class DispatchState(str, Enum):
    IDLE = "idle"
    MOUNTING = "mounting"
    READY = "ready"


def should_mount(
    record: CompositionRecord | None,
    selected_id: str | None,
    mode: OperatingMode,
) -> bool:
    """The mount rule. Never raises; a missing record simply doesn't mount."""
    if record is None or selected_id is None:
        return False
    return record.id == selected_id and mode.mounts_views


def merge_props(
    default_props: Mapping[str, Any] | None,
    input_props: Mapping[str, Any] | None,
) -> dict:
    """Shallow merge: input props override default props key by key."""
    return {**(default_props or {}), **(input_props or {})}


# ── Portal ───────────────────────────────────────────────────────
# The host's output node. Mounting calls the component with its props
# and keeps the result; the actual rendering engine lives elsewhere.


@dataclass(eq=False)
class MountedView:
    component: Any
    props: dict
    output: Any = None


def loading_indicator():
    """Placeholder shown while a view is loading in interactive mode."""
    return "Loading..."


class Portal:
    def __init__(self):
        self._views: list[MountedView] = []

    def mount(self, component, props: dict) -> MountedView:
        view = MountedView(component=component, props=props)
        view.output = component(**props)
        self._views.append(view)
        return view

    def unmount(self, view: MountedView) -> None:
        self._views = [v for v in self._views if v is not view]

    @property
    def views(self) -> list[MountedView]:
        return list(self._views)


# ── Dispatch ─────────────────────────────────────────────────────


class RenderDispatch:
    """Mount decision and readiness discipline for one composition id."""

    def __init__(
        self,
        composition_id: str,
        registry: CompositionRegistry,
        selection: Selection,
        ledger: ReadinessLedger,
        portal: Portal,
        mode_provider: Callable[[], OperatingMode] = get_operating_mode,
        props_provider: Callable[[], dict] = get_input_props,
        fallback=loading_indicator,
    ):
        self.composition_id = composition_id
        self._registry = registry
        self._selection = selection
        self._ledger = ledger
        self._portal = portal
        self._mode_provider = mode_provider
        self._props_provider = props_provider
        self._fallback = fallback

        self.state = DispatchState.IDLE
        self.view: MountedView | None = None
        self.error: Exception | None = None
        self._record: CompositionRecord | None = None
        self._mode: OperatingMode | None = None
        self._task: asyncio.Task | None = None
        self._token: int | None = None
        self._placeholder: MountedView | None = None

    def wants_mount(self) -> bool:
        record = self._registry.get(self.composition_id)
        return should_mount(record, self._selection.current, self._mode_provider())

    def evaluate(self) -> DispatchState:
        """Bring the mounted state in line with registry, selection and mode."""
        record = self._registry.get(self.composition_id)
        mode = self._mode_provider()
        if not should_mount(record, self._selection.current, mode):
            if self.state is not DispatchState.IDLE:
                self.teardown()
            return self.state

        # A replaced record (new nonce, props, size...) or a mode switch
        # gets a clean remount.
        if self.state is not DispatchState.IDLE and (
            record is not self._record or mode is not self._mode
        ):
            self.teardown()

        if self.state is DispatchState.IDLE:
            self._begin_mount(record, mode)
        return self.state

    def _begin_mount(self, record: CompositionRecord, mode: OperatingMode) -> None:
        self._record = record
        self._mode = mode
        self.error = None
        lazy = record.component
        if lazy.resolved:
            self._finish_mount(lazy.component)
            return

        loop = asyncio.get_running_loop()
        self.state = DispatchState.MOUNTING
        if mode is OperatingMode.HEADLESS_RENDER:
            self._token = self._ledger.register_token(
                f"Waiting for composition '{record.id}' to load"
            )
        else:
            self._placeholder = self._portal.mount(self._fallback, {})
        logger.debug("Mounting %s in %s mode (view pending)", record.id, mode.value)
        self._task = loop.create_task(self._resolve(record))

    async def _resolve(self, record: CompositionRecord) -> None:
        try:
            component = await record.component.resolve()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Failed to load view for composition %s: %s", record.id, exc)
            self.error = exc
            self._task = None
            self._release_pending()
            self.state = DispatchState.IDLE
            self._record = None
            return
        self._task = None
        try:
            self._finish_mount(component)
        except Exception as exc:
            logger.error("Failed to mount view for composition %s: %s", record.id, exc)

    def _finish_mount(self, component) -> None:
        props = merge_props(self._record.default_props, self._props_provider())
        try:
            self.view = self._portal.mount(component, props)
        except Exception as exc:
            self.error = exc
            self.state = DispatchState.IDLE
            self._record = None
            raise
        finally:
            self._release_pending()
        self.state = DispatchState.READY
        logger.debug("Composition %s ready", self.composition_id)

    def _release_pending(self) -> None:
        """Drop the readiness token and placeholder, each at most once."""
        if self._token is not None:
            self._ledger.release_token(self._token)
            self._token = None
        if self._placeholder is not None:
            self._portal.unmount(self._placeholder)
            self._placeholder = None

    def teardown(self) -> None:
        """Abandon any pending attempt and unmount the view."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._release_pending()
        if self.view is not None:
            self._portal.unmount(self.view)
            self.view = None
        if self.state is not DispatchState.IDLE:
            logger.debug("Composition %s unmounted", self.composition_id)
        self.state = DispatchState.IDLE
        self._record = None
        self._mode = None

    async def wait(self) -> DispatchState:
        """Wait for a pending mount to settle and return the resulting state.

        Raises:
            Exception: Whatever the view loader or the view itself raised
                (also kept on self.error).
        """
        if self._task is not None:
            task = self._task
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                # Only a teardown of the attempt is expected here; our own
                # cancellation still propagates.
                if not task.cancelled():
                    raise
        if self.error is not None:
            raise self.error
        return self.state
