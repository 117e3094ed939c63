"""
Pixel Converter
===============

Turns a YUV_420_888 camera frame into a decoded BGR still image.

Steps:
    1. Copy the luma plane into the head of a width*height*3/2 buffer
    2. Append the chroma samples in V-before-U order
       - unit pixel stride on both chroma planes: bulk copy, V plane
         then U plane (YV12 layout)
       - otherwise: walk the half-resolution grid and write V,U pairs
         read at row*row_stride + col*pixel_stride (NV21 layout)
    3. Round-trip the buffer through a JPEG encode/decode

Design Rules:
    - This is the ONLY place in the codebase that touches raw planes
    - Out-of-range chroma reads are zero-filled, never fatal
    - Odd widths and heights lose their last column or row (4:2:0 needs even sizes)
    - Encode and decode failures raise; no silent black frames
    - Never releases the input frame (the pipeline owns its lifetime)
"""

import logging
from typing import Tuple

import cv2
import numpy as np

from smile_agent.models.frame import PixelFormat, PixelPlane, RawFrame
from smile_agent.models.image import ChromaLayout, DecodedImage


logger = logging.getLogger(__name__)


class ConversionError(Exception):
    """Base class for pixel conversion failures."""
    pass


class UnsupportedFormat(ConversionError):
    """Raised when a frame is not a decodable planar YUV 4:2:0 frame."""
    pass


class EncodeFailed(ConversionError):
    """Raised when the assembled buffer cannot be encoded to a still image."""
    pass


class DecodeFailed(ConversionError):
    """Raised when the encoded still image cannot be decoded."""
    pass


def even_size(frame: RawFrame) -> Tuple[int, int]:
    """Frame size rounded down to even width and height."""
    return frame.width - frame.width % 2, frame.height - frame.height % 2


def _gather_plane(plane: PixelPlane, rows: int, cols: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Read a rows x cols sample grid from a strided plane.

    Sample (r, c) is read from byte r*row_stride + c*pixel_stride.

    Returns:
        (samples, valid): uint8 samples with unreadable positions set to 0,
        and a boolean mask of the positions that were readable
    """
    source = np.frombuffer(plane.buffer, dtype=np.uint8)
    index = (
        np.arange(rows, dtype=np.int64)[:, None] * plane.row_stride
        + np.arange(cols, dtype=np.int64)[None, :] * plane.pixel_stride
    )
    valid = index < source.size

    samples = np.zeros((rows, cols), dtype=np.uint8)
    samples[valid] = source[index[valid]]
    return samples, valid


class PixelConverter:
    """
    Converter from YUV_420_888 frames to decoded images.

    Attributes:
        jpeg_quality: Quality factor for the still-image round trip (1-100)

    Example:
        converter = PixelConverter(jpeg_quality=90)

        with frame:
            image = converter.convert(frame)
    """

    def __init__(self, jpeg_quality: int = 90) -> None:
        if not 1 <= jpeg_quality <= 100:
            raise ValueError("jpeg_quality must be in [1, 100]")
        self.jpeg_quality = jpeg_quality

    def convert(self, frame: RawFrame) -> DecodedImage:
        """
        Convert a raw frame to a decoded BGR image.

        Args:
            frame: YUV_420_888 frame (not released by this call)

        Returns:
            DecodedImage of the frame cropped to even width and height

        Raises:
            UnsupportedFormat: Wrong format tag, planes or dimensions
            EncodeFailed: Colour conversion or JPEG encode failed
            DecodeFailed: JPEG decode failed
        """
        buffer, layout = self.to_yuv_buffer(frame)
        width, height = even_size(frame)

        try:
            yuv = buffer.reshape(height * 3 // 2, width)
            bgr = cv2.cvtColor(yuv, layout.cv2_code)
            ok, encoded = cv2.imencode(
                ".jpg", bgr, [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality]
            )
        except cv2.error as e:
            raise EncodeFailed(f"Encode failed for frame {frame.frame_id}: {e}")

        if not ok:
            raise EncodeFailed(
                f"Encode failed for frame {frame.frame_id}: cv2.imencode returned False"
            )

        try:
            decoded = cv2.imdecode(encoded, cv2.IMREAD_COLOR)
        except cv2.error as e:
            raise DecodeFailed(f"Decode failed for frame {frame.frame_id}: {e}")

        if decoded is None:
            raise DecodeFailed(
                f"Decode failed for frame {frame.frame_id}: cv2.imdecode returned None"
            )
        if decoded.shape[:2] != (height, width):
            raise DecodeFailed(
                f"Decoded shape {decoded.shape} does not match "
                f"{width}x{height} for frame {frame.frame_id}"
            )

        return DecodedImage(width=width, height=height, data=decoded)

    def to_yuv_buffer(self, frame: RawFrame) -> Tuple[np.ndarray, ChromaLayout]:
        """
        Assemble the contiguous YUV 4:2:0 buffer for a frame.

        Args:
            frame: YUV_420_888 frame

        Returns:
            (buffer, layout): flat uint8 array of width*height*3/2 bytes and
            the chroma layout it was written in

        Raises:
            UnsupportedFormat: Wrong format tag, planes or dimensions
        """
        self._validate(frame)

        width, height = even_size(frame)
        y_size = width * height
        chroma_w, chroma_h = width // 2, height // 2
        chroma_size = chroma_w * chroma_h

        out = np.zeros(y_size + 2 * chroma_size, dtype=np.uint8)

        y_plane, u_plane, v_plane = frame.planes[:3]
        luma, _ = _gather_plane(y_plane, height, width)
        out[:y_size] = luma.reshape(-1)

        u, u_valid = _gather_plane(u_plane, chroma_h, chroma_w)
        v, v_valid = _gather_plane(v_plane, chroma_h, chroma_w)

        if u_plane.pixel_stride == 1 and v_plane.pixel_stride == 1:
            out[y_size:y_size + chroma_size] = v.reshape(-1)
            out[y_size + chroma_size:] = u.reshape(-1)
            layout = ChromaLayout.YV12
        else:
            # A cell is only written when both of its samples are readable
            cell_valid = u_valid & v_valid
            pairs = np.zeros((chroma_h, chroma_w, 2), dtype=np.uint8)
            pairs[..., 0] = np.where(cell_valid, v, 0)
            pairs[..., 1] = np.where(cell_valid, u, 0)
            out[y_size:] = pairs.reshape(-1)
            layout = ChromaLayout.NV21

            skipped = cell_valid.size - int(cell_valid.sum())
            if skipped:
                logger.debug(
                    f"Frame {frame.frame_id}: {skipped} chroma cells out of range, zero-filled"
                )

        return out, layout

    def _validate(self, frame: RawFrame) -> None:
        if frame.format != PixelFormat.YUV_420_888:
            raise UnsupportedFormat(
                f"Unsupported pixel format for frame {frame.frame_id}: {frame.format.value}"
            )
        if len(frame.planes) < 3:
            raise UnsupportedFormat(
                f"Frame {frame.frame_id} has {len(frame.planes)} planes, expected 3"
            )
        if frame.width < 2 or frame.height < 2:
            raise UnsupportedFormat(
                f"Frame {frame.frame_id} has unsupported size {frame.width}x{frame.height}"
            )
