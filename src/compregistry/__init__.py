"""compregistry — composition registry and render dispatch.

Declare a tree of folders and compositions (fixed size, frame rate and
duration), keep a registry of what exists right now, and decide which
single composition gets mounted for interactive preview or headless
rendering.
"""

from .declarations import Composition, CompositionTree, Folder, Still
from .dispatch import DispatchState, Portal, RenderDispatch
from .environment import OperatingMode, get_input_props, get_operating_mode
from .errors import (
    CompositionError,
    DuplicateId,
    InvalidDimension,
    InvalidDuration,
    InvalidFolderName,
    InvalidFps,
    InvalidId,
    MissingId,
)
from .folders import FolderNamespace
from .lazy import LazyComponent
from .ledger import ReadinessLedger
from .registry import CompositionRecord, CompositionRegistry
from .selection import Selection
