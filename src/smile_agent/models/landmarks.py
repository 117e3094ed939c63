"""
Landmark Models
===============

Facial landmark points as returned by the detector.

Indices follow the 468-point face mesh topology. They are part of the
detector's output contract and must not be renumbered.
"""

from dataclasses import dataclass
from typing import Protocol, Sequence


# Face mesh anatomical indices
LEFT_MOUTH_CORNER = 61
RIGHT_MOUTH_CORNER = 291
UPPER_LIP_CENTER = 13
LOWER_LIP_CENTER = 14
LEFT_CHEEK = 234
RIGHT_CHEEK = 454

FACE_MESH_POINTS = 468


class PointLike(Protocol):
    """Anything with x and y coordinates (LandmarkPoint, MediaPipe landmarks)."""

    x: float
    y: float


@dataclass(frozen=True, slots=True)
class LandmarkPoint:
    """
    2-D landmark coordinate in image space.

    Attributes:
        x: Horizontal position (pixels, or normalized [0, 1])
        y: Vertical position (same unit as x)
    """

    x: float
    y: float


LandmarkSet = Sequence[PointLike]
