"""Exception types raised by the gridmk engine."""

from typing import Optional


class GridmkError(Exception):
    """Base class for all gridmk errors."""


class ConfigError(GridmkError, ValueError):
    """Invalid or out-of-range input, rejected before any computation."""


class InternalConsistencyError(GridmkError, RuntimeError):
    """A computed invariant failed. Always a bug in the calculator, never bad input."""


class RenderError(GridmkError):
    """The external OpenSCAD evaluation did not produce a mesh."""

    def __init__(self, message: str, key: Optional[str] = None, stderr: str = ""):
        super().__init__(message)
        self.key = key
        self.stderr = stderr


class RenderTimeoutError(RenderError):
    """OpenSCAD did not finish within the configured timeout."""


class RenderFailureError(RenderError):
    """OpenSCAD exited with an error or could not be started."""
