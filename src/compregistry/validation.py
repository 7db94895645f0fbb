"""Validation predicates for composition and folder declarations.

Each validator takes the value plus a short location label used in the
message ("of the Composition declaration"), and raises the matching
CompositionError subclass. Nothing here touches the registry.
"""

import math
import re

from .errors import (
    InvalidDimension,
    InvalidDuration,
    InvalidFolderName,
    InvalidFps,
    InvalidId,
)


# ── Allowed characters ────────────────────────────────────────────
# a-z, A-Z, 0-9, dash and CJK unified ideographs. No "/" so folder
# names can be joined into paths unambiguously.

_NAME_RE = re.compile(r"[a-zA-Z0-9\-\u4e00-\u9fff]+")


def is_composition_id_valid(composition_id) -> bool:
    return isinstance(composition_id, str) and bool(_NAME_RE.fullmatch(composition_id))


def is_folder_name_valid(name) -> bool:
    return isinstance(name, str) and bool(_NAME_RE.fullmatch(name))


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_finite(value) -> bool:
    try:
        return math.isfinite(value)
    except OverflowError:
        # int too large to be a float
        return False


# ── Validators ────────────────────────────────────────────────────


def validate_composition_id(composition_id) -> None:
    if not is_composition_id_valid(composition_id):
        raise InvalidId(
            "Composition id can only contain a-z, A-Z, 0-9, CJK characters "
            f"and -. You passed {composition_id!r}"
        )


def validate_dimension(value, name: str, location: str) -> None:
    """Check a width or height: a number, not NaN, finite and positive."""
    if not _is_number(value):
        raise InvalidDimension(
            f'The "{name}" prop {location} must be a number, '
            f"but you passed a value of type {type(value).__name__}"
        )
    if isinstance(value, float) and math.isnan(value):
        raise InvalidDimension(f'The "{name}" prop {location} must not be NaN.')
    if not _is_finite(value):
        raise InvalidDimension(
            f'The "{name}" prop {location} must be finite.'
        )
    if value <= 0:
        raise InvalidDimension(
            f'The "{name}" prop {location} must be positive, but got {value}.'
        )


def validate_duration_in_frames(value, location: str) -> None:
    if not _is_number(value):
        raise InvalidDuration(
            f'The "durationInFrames" prop {location} must be a number, '
            f"but you passed a value of type {type(value).__name__}"
        )
    if isinstance(value, float) and not value.is_integer():
        raise InvalidDuration(
            f'The "durationInFrames" prop {location} must be an integer, '
            f"but got {value}."
        )
    if value <= 0:
        raise InvalidDuration(
            f'The "durationInFrames" prop {location} must be positive, '
            f"but got {value}."
        )


def validate_fps(value, location: str) -> None:
    if not _is_number(value):
        raise InvalidFps(
            f'"fps" must be a number, but you passed a value of type '
            f"{type(value).__name__} {location}"
        )
    if not _is_finite(value):
        raise InvalidFps(f'"fps" must be finite {location}')
    if value <= 0:
        raise InvalidFps(f'"fps" must be positive, but got {value} {location}')


def validate_folder_name(name) -> None:
    if name is None:
        raise InvalidFolderName("You must pass a name to a Folder.")
    if not isinstance(name, str):
        raise InvalidFolderName(
            f'The "name" you pass into a Folder must be a string. '
            f"Got: {type(name).__name__}"
        )
    if not is_folder_name_valid(name):
        raise InvalidFolderName(
            f"Folder name can only contain a-z, A-Z, 0-9, CJK characters "
            f"and -. You passed {name!r}"
        )
