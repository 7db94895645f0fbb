"""Declarations and the tree reconciler.

A host describes what exists with plain declaration objects:

    tree = CompositionTree()
    tree.render([
        Composition(id="intro", width=1920, height=1080, fps=30,
                    duration_in_frames=90, component=Intro),
        Folder("shorts", [
            Composition(id="teaser", ..., lazy_component=load_teaser),
            Still(id="thumb", width=1280, height=720, component=Thumb),
        ]),
    ])

Each render() call is one update cycle. The reconciler walks the tree with
an explicit FolderScope, diffs the desired records against the ones it
registered last time, and applies the difference:
  1. Exit folders that disappeared, enter new ones.
  2. Unregister every record that was removed or changed.
  3. Register every new or changed record.
  4. Re-evaluate every composition's RenderDispatch.
Unregisters always run before registers, so the registry never holds two
records for one id, not even in the middle of a cycle.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from .dispatch import DispatchState, Portal, RenderDispatch
from .environment import OperatingMode, get_input_props, get_operating_mode
from .folders import ROOT_SCOPE, FolderNamespace, FolderScope
from .lazy import LazyComponent, Loader
from .ledger import ReadinessLedger
from .registry import CompositionRecord, CompositionRegistry
from .selection import Selection

logger = logging.getLogger(__name__)


# ── Declarations ─────────────────────────────────────────────────


@dataclass
class Composition:
    """A named, dimensioned, timed unit of renderable content.

    Exactly one of component (available now) or lazy_component (async
    loader, resolved when the composition is first mounted) is required.
    """

    id: str
    width: float
    height: float
    fps: float
    duration_in_frames: int
    component: Any = None
    lazy_component: Loader | None = None
    default_props: Mapping[str, Any] | None = None

    def __post_init__(self):
        if (self.component is None) == (self.lazy_component is None):
            raise ValueError(
                f"Composition {self.id!r}: pass exactly one of "
                "'component' or 'lazy_component'"
            )

    @property
    def component_source(self):
        """The reference whose identity decides whether the view changed."""
        return self.lazy_component if self.lazy_component is not None else self.component


def Still(
    id: str,
    width: float,
    height: float,
    component: Any = None,
    lazy_component: Loader | None = None,
    default_props: Mapping[str, Any] | None = None,
) -> Composition:
    """A single-frame composition (fps and duration fixed at 1)."""
    return Composition(
        id=id, width=width, height=height, fps=1, duration_in_frames=1,
        component=component, lazy_component=lazy_component,
        default_props=default_props,
    )


@dataclass
class Folder:
    name: str
    children: list = field(default_factory=list)


# ── Reconciler ───────────────────────────────────────────────────


def _collect(declarations, scope: FolderScope, folder_keys: list, compositions: list) -> None:
    """Walk declarations depth-first, validating folder names on the way."""
    for node in declarations:
        if isinstance(node, Folder):
            child = scope.child(node.name)
            folder_keys.append((node.name, scope.path))
            _collect(node.children, child, folder_keys, compositions)
        elif isinstance(node, Composition):
            compositions.append((node, scope.path))
        else:
            raise ValueError(
                f"Unknown declaration {node!r}. Expected Folder or Composition."
            )


def _new_lazy(decl: Composition) -> LazyComponent:
    if decl.lazy_component is not None:
        return LazyComponent(loader=decl.lazy_component)
    return LazyComponent.eager(decl.component)


class CompositionTree:
    """Owns one registry, folder namespace and a dispatch per composition.

    Selection changes and registry changes made outside render() trigger
    refresh() automatically.
    """

    def __init__(
        self,
        registry: CompositionRegistry | None = None,
        folders: FolderNamespace | None = None,
        selection: Selection | None = None,
        ledger: ReadinessLedger | None = None,
        portal: Portal | None = None,
        mode_provider: Callable[[], OperatingMode] = get_operating_mode,
        props_provider: Callable[[], dict] = get_input_props,
    ):
        self.registry = CompositionRegistry() if registry is None else registry
        self.folders = FolderNamespace() if folders is None else folders
        self.selection = Selection() if selection is None else selection
        self.ledger = ReadinessLedger() if ledger is None else ledger
        self.portal = Portal() if portal is None else portal
        self._mode_provider = mode_provider
        self._props_provider = props_provider

        self.dispatches: dict[str, RenderDispatch] = {}
        self._owned: dict[str, CompositionRecord] = {}
        self._entered: Counter = Counter()
        self._lazy: dict[str, tuple[Any, LazyComponent]] = {}
        self._nonces: dict[str, int] = {}
        self._updating = False
        self._unsubscribers = [
            self.selection.subscribe(self.refresh),
            self.registry.subscribe(self._on_registry_change),
        ]

    # ── Update cycle ────────────────────────────────────────────

    def render(self, declarations: list) -> None:
        """Reconcile the registry with a new declaration tree.

        Raises:
            InvalidFolderName: Before anything is touched.
            CompositionError: From the failing registration; earlier
                changes of this cycle stay applied.
        """
        folder_keys: list = []
        compositions: list = []
        _collect(declarations, ROOT_SCOPE, folder_keys, compositions)

        self._updating = True
        try:
            self._apply_folders(Counter(folder_keys))
            self._apply_compositions(compositions)
        finally:
            self._updating = False
            # Also after a failed registration: ids unregistered so far must
            # not keep a mounted view or a pending readiness token.
            self.refresh()

    def _apply_folders(self, desired: Counter) -> None:
        for (name, parent_path), count in (self._entered - desired).items():
            for _ in range(count):
                self.folders.exit_folder(name, parent_path)
        for (name, parent_path), count in (desired - self._entered).items():
            for _ in range(count):
                self.folders.enter_folder(name, parent_path)
        self._entered = desired

    def _apply_compositions(self, compositions: list) -> None:
        # Only the first declaration of an id feeds the component cache;
        # later ones exist to fail with DuplicateId.
        first: dict = {}
        duplicates = []
        for decl, path in compositions:
            if decl.id in first:
                duplicates.append(self._build_record(decl, path, cached=False))
            else:
                first[decl.id] = self._build_record(decl, path)
        candidates = list(first.values())
        wanted = set(first)

        for composition_id in list(self._owned):
            if composition_id not in wanted:
                self._drop(composition_id)

        # Changed records: unregister every stale one before registering any.
        replace = []
        for record in candidates:
            if record.same_as(self._owned.get(record.id)):
                continue
            if record.id in self._owned:
                self.registry.unregister(record.id)
                del self._owned[record.id]
            replace.append(record)
        replace.extend(duplicates)

        for record in replace:
            self.registry.register(record)
            self._owned[record.id] = record
            if record.id not in self.dispatches:
                self.dispatches[record.id] = RenderDispatch(
                    record.id, self.registry, self.selection, self.ledger,
                    self.portal, mode_provider=self._mode_provider,
                    props_provider=self._props_provider,
                )

    def _build_record(
        self, decl: Composition, folder_path: str | None, cached: bool = True,
    ) -> CompositionRecord:
        if cached:
            lazy, nonce = self._lazy_component_for(decl)
        else:
            lazy, nonce = _new_lazy(decl), 0
        return CompositionRecord(
            id=decl.id,
            width=decl.width,
            height=decl.height,
            fps=decl.fps,
            duration_in_frames=decl.duration_in_frames,
            component=lazy,
            default_props=decl.default_props,
            folder_path=folder_path,
            nonce=nonce,
        )

    def _lazy_component_for(self, decl: Composition) -> tuple[LazyComponent, int]:
        """Reuse the LazyComponent while the declared source is the same object.

        A new source gets a new LazyComponent and a bumped nonce.
        """
        source = decl.component_source
        cached = self._lazy.get(decl.id)
        if cached is not None and cached[0] is source:
            return cached[1], self._nonces[decl.id]

        lazy = _new_lazy(decl)
        self._lazy[decl.id] = (source, lazy)
        self._nonces[decl.id] = self._nonces.get(decl.id, -1) + 1
        return lazy, self._nonces[decl.id]

    def _drop(self, composition_id: str) -> None:
        dispatch = self.dispatches.pop(composition_id, None)
        if dispatch is not None:
            dispatch.teardown()
        self.registry.unregister(composition_id)
        self._owned.pop(composition_id, None)
        self._lazy.pop(composition_id, None)

    # ── Dispatch ────────────────────────────────────────────────

    def _on_registry_change(self) -> None:
        if not self._updating:
            self.refresh()

    def refresh(self) -> None:
        """Re-evaluate every composition's dispatch."""
        for dispatch in list(self.dispatches.values()):
            dispatch.evaluate()

    def select(self, composition_id: str | None) -> None:
        self.selection.select(composition_id)

    def active(self) -> RenderDispatch | None:
        """The dispatch that is currently mounting or mounted, if any."""
        for dispatch in self.dispatches.values():
            if dispatch.state is not DispatchState.IDLE:
                return dispatch
        return None

    async def wait(self) -> None:
        """Wait until every pending mount has settled."""
        for dispatch in list(self.dispatches.values()):
            await dispatch.wait()

    def unmount(self) -> None:
        """Tear the whole tree down: views, records, folders, subscriptions."""
        self._updating = True
        try:
            for composition_id in list(self._owned):
                self._drop(composition_id)
            self._apply_folders(Counter())
        finally:
            self._updating = False
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
