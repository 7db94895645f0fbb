"""Folder namespace — hierarchical path prefixes for compositions.

Folders are purely organizational. A folder is identified by its name
plus the path of its ancestors ("parent path"), e.g. folder "a" inside
folder "b" has parent path "b" and full path "b/a".

Nesting is tracked with an immutable ancestor chain (FolderScope) that
is passed down while walking a declaration tree, rather than through
any global "current folder" state.
"""

import logging
from dataclasses import dataclass

from .validation import validate_folder_name

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "/"


def join_folder_path(parent_path: str | None, name: str | None) -> str | None:
    """Join a parent path and a folder name, skipping empty parts."""
    parts = [p for p in (parent_path, name) if p]
    if not parts:
        return None
    return PATH_SEPARATOR.join(parts)


@dataclass(frozen=True)
class FolderScope:
    """Position inside the folder tree: the innermost folder and its parents.

    The root scope has neither a folder name nor a parent path.
    """

    folder_name: str | None = None
    parent_path: str | None = None

    @property
    def path(self) -> str | None:
        """Full path of the innermost folder, or None at the root."""
        return join_folder_path(self.parent_path, self.folder_name)

    def child(self, name: str) -> "FolderScope":
        """Scope for a folder nested directly inside this one."""
        validate_folder_name(name)
        return FolderScope(folder_name=name, parent_path=self.path)


ROOT_SCOPE = FolderScope()


@dataclass(frozen=True)
class FolderNode:
    name: str
    parent_path: str | None

    @property
    def path(self) -> str:
        return join_folder_path(self.parent_path, self.name)


class FolderNamespace:
    """Active folder nodes keyed by (name, parent_path).

    Keying by (name, parent_path) means two siblings can never be distinct
    nodes with the same name. Entering an already active folder shares the
    node; it is dropped when the last scope that entered it exits.
    """

    def __init__(self):
        self._nodes: dict[tuple[str, str | None], FolderNode] = {}
        self._refcounts: dict[tuple[str, str | None], int] = {}

    def enter_folder(self, name: str, parent_path: str | None) -> str:
        """Activate a folder scope and return its full path.

        Raises:
            InvalidFolderName: Empty name, non-string, or disallowed characters
                (including the "/" separator).
        """
        validate_folder_name(name)
        key = (name, parent_path)
        if key not in self._nodes:
            self._nodes[key] = FolderNode(name=name, parent_path=parent_path)
            logger.debug("Folder entered: %s", self._nodes[key].path)
        self._refcounts[key] = self._refcounts.get(key, 0) + 1
        return self._nodes[key].path

    def exit_folder(self, name: str, parent_path: str | None) -> None:
        """Leave a folder scope. Exiting an inactive folder is a no-op."""
        key = (name, parent_path)
        count = self._refcounts.get(key)
        if count is None:
            return
        if count > 1:
            self._refcounts[key] = count - 1
            return
        del self._refcounts[key]
        node = self._nodes.pop(key)
        logger.debug("Folder exited: %s", node.path)

    def contains(self, name: str, parent_path: str | None) -> bool:
        return (name, parent_path) in self._nodes

    def list(self) -> list[FolderNode]:
        """Active folders in the order they were first entered."""
        return list(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)
