"""
Decoded Image Model
===================

Output of the pixel conversion stage and input of the landmark detector.
"""

from dataclasses import dataclass
from enum import Enum

import cv2
import numpy as np


class ChromaLayout(str, Enum):
    """
    Chroma arrangement of an assembled YUV 4:2:0 buffer.

    Attributes:
        NV21: Luma, then V/U byte pairs interleaved
        YV12: Luma, then the full V plane, then the full U plane
    """

    NV21 = "NV21"
    YV12 = "YV12"

    @property
    def cv2_code(self) -> int:
        """OpenCV colour conversion code to BGR for this layout."""
        if self is ChromaLayout.NV21:
            return cv2.COLOR_YUV2BGR_NV21
        return cv2.COLOR_YUV2BGR_YV12


@dataclass(frozen=True, slots=True, eq=False)
class DecodedImage:
    """
    Fully decoded still image.

    Attributes:
        width: Image width in pixels
        height: Image height in pixels
        data: BGR pixels as np.ndarray (H, W, 3), dtype=uint8
    """

    width: int
    height: int
    data: np.ndarray

    def to_rgb(self) -> np.ndarray:
        """Return the pixels in RGB channel order."""
        return cv2.cvtColor(self.data, cv2.COLOR_BGR2RGB)

    def __repr__(self) -> str:
        return f"DecodedImage({self.width}x{self.height})"
