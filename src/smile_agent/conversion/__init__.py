"""
Conversion Module
=================

Camera pixel buffer to decoded image conversion.

Components:
    - PixelConverter: YUV_420_888 frame -> DecodedImage
    - ConversionError: Base failure, with UnsupportedFormat,
      EncodeFailed and DecodeFailed subclasses
"""

from smile_agent.conversion.pixel_converter import (
    ConversionError,
    DecodeFailed,
    EncodeFailed,
    PixelConverter,
    UnsupportedFormat,
)

__all__ = [
    "PixelConverter",
    "ConversionError",
    "UnsupportedFormat",
    "EncodeFailed",
    "DecodeFailed",
]
