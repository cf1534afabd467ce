"""
Exception hierarchy for the calibration engine.

Every failure the engine reports is a subclass of ``GeocalError`` and also
of the closest builtin exception, so callers can catch either.
"""

from typing import Optional


class GeocalError(Exception):
    """Base exception for all geocal errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InsufficientPointsError(GeocalError, ValueError):
    """Raised when fewer than 2 active calibration points are available."""

    def __init__(self, count: int, required: int = 2):
        super().__init__(
            f"At least {required} active calibration points required (got {count})"
        )
        self.count = count
        self.required = required


class UnknownCoordinateSystemError(GeocalError, LookupError):
    """Raised when a coordinate system id or EPSG code is not registered."""

    def __init__(self, identifier, reason: Optional[str] = None):
        message = f"Unknown coordinate system: {identifier}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.identifier = identifier


class ProjectNotCalibratedError(GeocalError, RuntimeError):
    """Raised when a conversion needs a calibration the project does not have."""

    def __init__(self, message: str = "Project not calibrated"):
        super().__init__(message)


class ProjectionError(GeocalError, RuntimeError):
    """Raised when PROJ fails to convert a coordinate."""


class InvalidProjectionError(ProjectionError):
    """Raised when a projection definition cannot be parsed."""
