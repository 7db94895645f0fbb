"""Manifest loader — declare compositions and folders in YAML.

Manifest schema (every level, including each folder, may hold the same
three lists):

  compositions:
    - id: intro
      width: 1920
      height: 1080
      fps: 30
      duration_in_frames: 90
      component: "myproject.scenes:Intro"        # imported at load time
      default_props: {title: "Hello"}
  stills:
    - id: thumbnail
      width: 1280
      height: 720
      lazy_component: "myproject.scenes:Thumb"   # imported on first mount
  folders:
    - name: shorts
      compositions: [...]
      stills: [...]
      folders: [...]

Only the shape is checked here. Ids, dimensions, fps and durations are
validated by the registry when the tree is rendered.
"""

import asyncio
import functools
import importlib
from pathlib import Path

import yaml

from .declarations import Composition, Folder, Still


COMPOSITION_FIELDS = ("id", "width", "height", "fps", "duration_in_frames")

STILL_FIELDS = ("id", "width", "height")


# ── Component references ─────────────────────────────────────────


def import_component(reference: str):
    """Import "package.module:attribute" and return the attribute."""
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(
            f"Invalid component reference '{reference}'. Expected 'module:attribute'."
        )
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError:
        raise ValueError(
            f"Module '{module_name}' has no attribute '{attr}'"
        ) from None


@functools.lru_cache(maxsize=None)
def lazy_loader(reference: str):
    """Async loader for a reference. Cached so one reference keeps one loader.

    A stable loader means reloading the same manifest does not count as a
    component change.
    """
    async def load():
        return await asyncio.to_thread(import_component, reference)
    return load


# ── Manifest loading ─────────────────────────────────────────────


def load_manifest(manifest_path: str | Path) -> list:
    """Load a composition manifest into a list of declarations.

    Processing pipeline:
      1. Parse YAML.
      2. Check required fields on every composition and still.
      3. Import eager components, wrap lazy ones in cached loaders.
      4. Recurse into folders.

    Args:
        manifest_path: Path to the YAML manifest.

    Returns:
        Top-level declarations, ready for CompositionTree.render().

    Raises:
        ValueError: Missing fields or malformed structure.
        FileNotFoundError: Missing manifest file.
    """
    with open(manifest_path) as f:
        raw = yaml.safe_load(f)

    if raw is None:
        return []
    if not isinstance(raw, dict):
        raise ValueError("Manifest: top level must be a mapping")
    return _parse_level(raw, "Manifest")


def _parse_level(level: dict, where: str) -> list:
    declarations = []

    for i, entry in enumerate(_list_field(level, "compositions", where)):
        prefix = f"{where}, composition {i}"
        _require(entry, COMPOSITION_FIELDS, prefix)
        declarations.append(Composition(
            id=entry["id"],
            width=entry["width"],
            height=entry["height"],
            fps=entry["fps"],
            duration_in_frames=entry["duration_in_frames"],
            default_props=_default_props(entry, prefix),
            **_component_kwargs(entry, prefix),
        ))

    for i, entry in enumerate(_list_field(level, "stills", where)):
        prefix = f"{where}, still {i}"
        _require(entry, STILL_FIELDS, prefix)
        declarations.append(Still(
            id=entry["id"],
            width=entry["width"],
            height=entry["height"],
            default_props=_default_props(entry, prefix),
            **_component_kwargs(entry, prefix),
        ))

    for i, entry in enumerate(_list_field(level, "folders", where)):
        prefix = f"{where}, folder {i}"
        if not isinstance(entry, dict):
            raise ValueError(f"{prefix}: must be a mapping")
        if "name" not in entry:
            raise ValueError(f"{prefix}: missing required field 'name'")
        children = _parse_level(entry, f"{where} > folder '{entry['name']}'")
        declarations.append(Folder(name=entry["name"], children=children))

    return declarations


def _list_field(level: dict, key: str, where: str) -> list:
    value = level.get(key) or []
    if not isinstance(value, list):
        raise ValueError(f"{where}: '{key}' must be a list")
    return value


def _require(entry, fields: tuple, prefix: str) -> None:
    if not isinstance(entry, dict):
        raise ValueError(f"{prefix}: must be a mapping")
    for name in fields:
        if name not in entry:
            raise ValueError(f"{prefix}: missing required field '{name}'")


def _default_props(entry: dict, prefix: str):
    props = entry.get("default_props")
    if props is not None and not isinstance(props, dict):
        raise ValueError(f"{prefix}: 'default_props' must be a mapping")
    return props


def _component_kwargs(entry: dict, prefix: str) -> dict:
    has_eager = entry.get("component") is not None
    has_lazy = entry.get("lazy_component") is not None
    if has_eager == has_lazy:
        raise ValueError(
            f"{prefix}: exactly one of 'component' or 'lazy_component' is required"
        )
    if has_eager:
        return {"component": import_component(entry["component"])}
    return {"lazy_component": lazy_loader(entry["lazy_component"])}
