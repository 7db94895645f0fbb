"""Error taxonomy for composition registration.

Every error is a ValueError so callers that already catch bad manifest
input keep working. All of them are raised synchronously before the
registry is touched.
"""


class CompositionError(ValueError):
    """Base class for registration and validation failures."""


class MissingId(CompositionError):
    """No id (or an empty one) was passed to a composition."""


class InvalidId(CompositionError):
    """The composition id is not URL safe."""


class DuplicateId(CompositionError):
    """A composition with the same id is already registered."""


class InvalidDimension(CompositionError):
    """Width or height is not a positive finite number."""


class InvalidFps(CompositionError):
    """Frame rate is not a positive finite number."""


class InvalidDuration(CompositionError):
    """durationInFrames is not a positive integer."""


class InvalidFolderName(CompositionError):
    """Folder name is empty or contains characters outside the allowed set."""
