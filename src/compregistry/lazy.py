"""Lazily resolvable view references.

A LazyComponent wraps either an already available component (any
callable taking props as keyword arguments) or an async loader that
produces one. Loaders may return the component itself or a module-like
object exposing it as ``default``.

The LazyComponent object is what the registry stores. Its identity is
what "the component changed" means, so callers keep one instance per
loader and create a new one only when the loader reference changes.
"""

import inspect
from typing import Any, Awaitable, Callable

Loader = Callable[[], Awaitable[Any]]


def _unwrap_default(loaded):
    """Accept either a component or a module-like object with ``default``."""
    if isinstance(loaded, dict) and "default" in loaded:
        return loaded["default"]
    if inspect.ismodule(loaded):
        return loaded.default
    return loaded


class LazyComponent:
    """A view that may still need to be fetched before it can be mounted."""

    def __init__(self, loader: Loader | None = None, component=None):
        if (loader is None) == (component is None):
            raise ValueError("LazyComponent needs exactly one of loader or component")
        self.loader = loader
        self._component = component

    @classmethod
    def eager(cls, component) -> "LazyComponent":
        """Wrap a component that is available right away."""
        return cls(component=component)

    @property
    def resolved(self) -> bool:
        return self._component is not None

    @property
    def component(self):
        """The resolved component.

        Raises:
            RuntimeError: If the loader has not finished yet.
        """
        if self._component is None:
            raise RuntimeError("Component has not been resolved yet")
        return self._component

    async def resolve(self):
        """Run the loader once and cache the component it produced."""
        if self._component is None:
            loaded = await self.loader()
            self._component = _unwrap_default(loaded)
        return self._component

    def __repr__(self):
        state = "resolved" if self.resolved else "pending"
        return f"<LazyComponent {state}>"
