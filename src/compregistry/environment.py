"""Process-level configuration: operating mode and input props.

Both are read from environment variables on every call. Nothing is
cached, so a host switching modes at runtime is seen by the next
dispatch evaluation.

  COMPREGISTRY_MODE          interactive | headless-render (anything else: other)
  COMPREGISTRY_INPUT_PROPS   inline YAML/JSON mapping passed to the mounted view
"""

import os
from enum import Enum
from pathlib import Path

import yaml

MODE_ENV_VAR = "COMPREGISTRY_MODE"
INPUT_PROPS_ENV_VAR = "COMPREGISTRY_INPUT_PROPS"


class OperatingMode(str, Enum):
    INTERACTIVE = "interactive"
    HEADLESS_RENDER = "headless-render"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | None) -> "OperatingMode":
        """Map a mode name to a member; unknown or missing names are OTHER."""
        for mode in cls:
            if mode.value == value:
                return mode
        return cls.OTHER

    @property
    def mounts_views(self) -> bool:
        return self in (OperatingMode.INTERACTIVE, OperatingMode.HEADLESS_RENDER)


def get_operating_mode(environ=None) -> OperatingMode:
    environ = os.environ if environ is None else environ
    return OperatingMode.parse(environ.get(MODE_ENV_VAR))


def _parse_props(text: str, source: str) -> dict:
    props = yaml.safe_load(text)
    if props is None:
        return {}
    if not isinstance(props, dict):
        raise ValueError(
            f"Input props from {source} must be a mapping, got {type(props).__name__}"
        )
    return props


def get_input_props(environ=None) -> dict:
    """Input props supplied by the host, or {} when none are set.

    Raises:
        ValueError: The variable is set but does not hold a mapping.
    """
    environ = os.environ if environ is None else environ
    raw = environ.get(INPUT_PROPS_ENV_VAR)
    if not raw:
        return {}
    return _parse_props(raw, INPUT_PROPS_ENV_VAR)


def load_props_file(path: str | Path) -> dict:
    """Read input props from a YAML or JSON file."""
    with open(path) as f:
        return _parse_props(f.read(), str(path))
