"""
Error types raised while turning brush definitions into geometry.

Geometry errors carry the brush and face they belong to so the pipeline can
isolate a failure to one brush (or one face) and keep loading the map.
"""

from typing import Optional


class BrushGeometryError(Exception):
    """Base class for failures while building a single brush."""

    def __init__(self, message: str, brush_id: Optional[int] = None,
                 face_id: Optional[int] = None):
        super().__init__(message)
        self.brush_id = brush_id
        self.face_id = face_id


class MalformedPlaneError(BrushGeometryError):
    """Three plane points are duplicate or collinear (zero-length normal)."""


class UnclosedBrushError(BrushGeometryError):
    """The brush half-spaces do not bound a finite solid."""


class ClipTopologyError(BrushGeometryError):
    """A clip produced cap edges that do not form exactly one cycle."""


class DisplacementCornerMismatchError(BrushGeometryError):
    """No corner of the displacement quad matches its start position."""


class VmfParseError(ValueError):
    """A VMF block is missing a key or holds a value that does not parse."""

    def __init__(self, message: str, solid_id: Optional[int] = None):
        super().__init__(message)
        self.solid_id = solid_id


class InconsistentGridSizeError(VmfParseError):
    """A displacement row does not hold ``2^power + 1`` cells."""
