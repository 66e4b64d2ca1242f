"""Error taxonomy for the inspection pipeline and its HTTP surface."""

from __future__ import annotations


class InspectorError(Exception):
    """Base class for all service errors."""


class ValidationError(InspectorError):
    """Malformed or missing input at the boundary."""


class AcquisitionError(InspectorError):
    """Image could not be pulled or inspected."""


class SandboxError(InspectorError):
    """Container could not be created or removed."""


class ExtractionError(InspectorError):
    """Archive stream is empty, truncated or malformed."""


class NotFoundError(InspectorError):
    """Unknown job, expired result or missing file path."""


class CapacityError(InspectorError):
    """Worker pool and submission queue are saturated."""


class EngineError(InspectorError):
    """A container engine command failed; carries the engine's message."""
