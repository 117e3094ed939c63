"""
Raw Frame Model
===============

Camera frame handle as it arrives from the capture source.

A RawFrame owns a slot in the upstream producer's bounded buffer pool.
It MUST be released exactly once, on every exit path, or the producer
stalls waiting for a free buffer.

Design Rules:
    - Planes are read-only views, never modified in place
    - close() is idempotent; the release hook runs at most once
    - Use `with frame:` wherever the frame's lifetime ends
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple

import cv2
import numpy as np


logger = logging.getLogger(__name__)


class PixelFormat(str, Enum):
    """
    Format tag reported by the capture source.

    Only YUV_420_888 (full-resolution luma, two half-resolution chroma
    planes with independent strides) is decodable by the pipeline.
    """

    YUV_420_888 = "YUV_420_888"
    NV21 = "NV21"
    JPEG = "JPEG"
    RGBA_8888 = "RGBA_8888"


@dataclass(frozen=True, slots=True)
class PixelPlane:
    """
    One pixel plane of a frame.

    Attributes:
        buffer: Readable bytes of the plane (may be shorter than
            rows * row_stride when the last row is not padded)
        row_stride: Bytes between the starts of two consecutive rows
        pixel_stride: Bytes between two consecutive samples in a row
    """

    buffer: bytes
    row_stride: int
    pixel_stride: int

    def __post_init__(self) -> None:
        if self.row_stride <= 0:
            raise ValueError("row_stride must be positive")
        if self.pixel_stride <= 0:
            raise ValueError("pixel_stride must be positive")

    def __len__(self) -> int:
        return len(self.buffer)

    def __repr__(self) -> str:
        return (
            f"PixelPlane(size={len(self.buffer)}, "
            f"row_stride={self.row_stride}, pixel_stride={self.pixel_stride})"
        )


class RawFrame:
    """
    Capture handle for one camera frame.

    Attributes:
        format: Pixel format tag from the source
        width: Frame width in pixels
        height: Frame height in pixels
        planes: Luma plane followed by the two chroma planes (U, V)
        frame_id: Source frame counter (-1 when unknown)
        timestamp: UNIX timestamp when the frame was captured

    Example:
        with frame:
            image = converter.convert(frame)
        assert frame.closed
    """

    def __init__(
        self,
        format: PixelFormat,
        width: int,
        height: int,
        planes: Sequence[PixelPlane] = (),
        frame_id: int = -1,
        timestamp: Optional[float] = None,
        on_release: Optional[Callable[["RawFrame"], None]] = None,
    ) -> None:
        self.format = PixelFormat(format)
        self.width = width
        self.height = height
        self.planes: Tuple[PixelPlane, ...] = tuple(planes)
        self.frame_id = frame_id
        self.timestamp = time.time() if timestamp is None else timestamp

        self._on_release = on_release
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        """Whether the frame has been released back to its source."""
        return self._closed

    def close(self) -> None:
        """
        Release the frame to its source.

        Safe to call more than once; the release hook only runs the first time.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if self._on_release is not None:
            self._on_release(self)

    def __enter__(self) -> "RawFrame":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"RawFrame(frame_id={self.frame_id}, format={self.format.value}, "
            f"size={self.width}x{self.height}, closed={self._closed})"
        )


# =============================================================================
# Frame Builders
# =============================================================================

def raw_frame_from_i420(
    bgr: np.ndarray,
    frame_id: int = -1,
    timestamp: Optional[float] = None,
    on_release: Optional[Callable[[RawFrame], None]] = None,
) -> RawFrame:
    """
    Build a fully planar YUV_420_888 frame from a BGR image.

    Chroma planes have unit pixel stride and row stride width // 2.

    Args:
        bgr: BGR image (H, W, 3), uint8, even width and height

    Returns:
        RawFrame with three tightly packed planes
    """
    height, width = bgr.shape[:2]
    i420 = cv2.cvtColor(bgr, cv2.COLOR_BGR2YUV_I420).reshape(-1)

    y_size = width * height
    c_size = y_size // 4
    y = i420[:y_size].tobytes()
    u = i420[y_size:y_size + c_size].tobytes()
    v = i420[y_size + c_size:y_size + 2 * c_size].tobytes()

    return RawFrame(
        format=PixelFormat.YUV_420_888,
        width=width,
        height=height,
        planes=(
            PixelPlane(y, row_stride=width, pixel_stride=1),
            PixelPlane(u, row_stride=width // 2, pixel_stride=1),
            PixelPlane(v, row_stride=width // 2, pixel_stride=1),
        ),
        frame_id=frame_id,
        timestamp=timestamp,
        on_release=on_release,
    )


def raw_frame_from_semi_planar(
    bgr: np.ndarray,
    row_padding: int = 0,
    frame_id: int = -1,
    timestamp: Optional[float] = None,
    on_release: Optional[Callable[[RawFrame], None]] = None,
) -> RawFrame:
    """
    Build a semi-planar YUV_420_888 frame from a BGR image.

    Mimics the layout most phone sensors emit: one interleaved UV
    buffer exposed as two overlapping planes with pixel stride 2. The
    V plane starts one byte after U; each plane ends on its own last
    sample.

    Args:
        bgr: BGR image (H, W, 3), uint8, even width and height
        row_padding: Extra bytes appended to every row of every plane

    Returns:
        RawFrame with strided planes
    """
    height, width = bgr.shape[:2]
    i420 = cv2.cvtColor(bgr, cv2.COLOR_BGR2YUV_I420).reshape(-1)

    y_size = width * height
    c_size = y_size // 4
    cw, ch = width // 2, height // 2
    u = i420[y_size:y_size + c_size].reshape(ch, cw)
    v = i420[y_size + c_size:y_size + 2 * c_size].reshape(ch, cw)

    y_stride = width + row_padding
    y_plane = np.zeros((height, y_stride), dtype=np.uint8)
    y_plane[:, :width] = i420[:y_size].reshape(height, width)

    uv_stride = width + row_padding
    uv = np.zeros((ch, uv_stride), dtype=np.uint8)
    uv[:, 0:2 * cw:2] = u
    uv[:, 1:2 * cw:2] = v
    # The last row carries no padding and the buffer ends on the final V sample
    uv_bytes = uv.reshape(-1)[:(ch - 1) * uv_stride + 2 * cw].tobytes()

    return RawFrame(
        format=PixelFormat.YUV_420_888,
        width=width,
        height=height,
        planes=(
            PixelPlane(y_plane.tobytes(), row_stride=y_stride, pixel_stride=1),
            PixelPlane(uv_bytes[:-1], row_stride=uv_stride, pixel_stride=2),
            PixelPlane(uv_bytes[1:], row_stride=uv_stride, pixel_stride=2),
        ),
        frame_id=frame_id,
        timestamp=timestamp,
        on_release=on_release,
    )
