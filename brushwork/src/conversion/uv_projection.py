"""
Texture coordinate projection for VMF faces.

Every VMF side carries a ``uaxis`` and ``vaxis`` string of the form
``"[x y z translation] scale"``.  A vertex is projected onto each axis
direction, divided by the axis scale and shifted by the translation.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Tuple

from .plane_math import Vec3, dot

logger = logging.getLogger(__name__)

Vec2 = Tuple[float, float]

# Axes whose squared length is further than this from 1 get a warning
NORMALIZED_TOLERANCE = 0.1

_AXIS_PATTERN = re.compile(
    r"^\s*\[\s*(\S+)\s+(\S+)\s+(\S+)\s+(\S+)\s*\]\s+(\S+)\s*$"
)


@dataclass(frozen=True)
class UVAxis:
    """One texture axis: direction, world units per texel, and offset."""

    direction: Vec3 = (1.0, 0.0, 0.0)
    translation: float = 0.0
    scale: float = 0.25

    @classmethod
    def parse(cls, text: str) -> "UVAxis":
        """Parse ``"[x y z translation] scale"``.

        Raises:
            ValueError: If the string does not have that shape.
        """
        match = _AXIS_PATTERN.match(text)
        if match is None:
            raise ValueError(f"Invalid UV axis '{text}'")
        x, y, z, translation, axis_scale = (float(g) for g in match.groups())
        axis = cls(direction=(x, y, z), translation=translation, scale=axis_scale)
        if not axis.is_normalized:
            logger.warning("UV axis '%s' isn't normalized", text.strip())
        return axis

    @property
    def is_normalized(self) -> bool:
        return abs(dot(self.direction, self.direction) - 1.0) <= NORMALIZED_TOLERANCE

    def project(self, position: Vec3) -> float:
        """Texture coordinate of ``position`` along this axis."""
        length_sq = dot(self.direction, self.direction)
        if length_sq == 0.0:
            return self.translation
        axis_scale = self.scale if self.scale != 0 else 1.0
        return dot(position, self.direction) / length_sq / axis_scale + self.translation


def project_uv(u_axis: UVAxis, v_axis: UVAxis, position: Vec3) -> Vec2:
    """Project a world position to ``(u, v)`` texture coordinates.

    ``u = dot(p, dir_u) / dot(dir_u, dir_u) / scale_u + translation_u``,
    likewise for ``v``.  Dividing by the squared length compensates for a
    non-unit direction.
    """
    return (u_axis.project(position), v_axis.project(position))
