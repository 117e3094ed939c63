"""
Reason Codes
============

Fixed set of machine-readable reason codes for analysis outcomes.

Each analyzed frame ends with exactly ONE reason code that explains
the SmileResult it produced.

Rules:
    - No free-text explanations
    - One clear cause per code
    - Every code except SMILING maps to is_smiling=False
"""

from enum import Enum


class ReasonCode(str, Enum):
    """
    Machine-readable analysis outcome codes.

    Attributes:
        SMILING: Face found and both ratios passed their thresholds
        NOT_SMILING: Face found, ratios below thresholds
        NO_FACE: Detector returned no landmark sets
        INSUFFICIENT_LANDMARKS: First face had fewer points than required
        DEGENERATE_GEOMETRY: Zero face width or mouth height
        UNSUPPORTED_FORMAT: Frame was not a decodable planar YUV frame
        ENCODE_FAILED: Still-image encode of the assembled buffer failed
        DECODE_FAILED: Decoding the encoded still image failed
        DETECTOR_UNAVAILABLE: Detector not initialized or already released
        DETECTOR_ERROR: Detector raised while processing the image
        INTERNAL_ERROR: Unexpected failure anywhere else in analysis
    """

    # Decisions
    SMILING = "SMILING"
    NOT_SMILING = "NOT_SMILING"

    # Landmark fallbacks
    NO_FACE = "NO_FACE"
    INSUFFICIENT_LANDMARKS = "INSUFFICIENT_LANDMARKS"
    DEGENERATE_GEOMETRY = "DEGENERATE_GEOMETRY"

    # Pixel pipeline faults
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    ENCODE_FAILED = "ENCODE_FAILED"
    DECODE_FAILED = "DECODE_FAILED"

    # Detector faults
    DETECTOR_UNAVAILABLE = "DETECTOR_UNAVAILABLE"
    DETECTOR_ERROR = "DETECTOR_ERROR"

    INTERNAL_ERROR = "INTERNAL_ERROR"
