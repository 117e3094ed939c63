"""
Detection Module
================

Facial landmark detection as a pluggable black box.

The pipeline consumes ONLY landmark sets from this module, never
detector internals.

Components:
    - LandmarkDetector: Protocol for detection backends
    - MockLandmarkDetector: Deterministic mock for testing
    - MediaPipeFaceLandmarker: MediaPipe Tasks FaceLandmarker (production)
"""

from smile_agent.detection.detector import (
    DetectorError,
    DetectorUnavailable,
    LandmarkDetector,
    MockLandmarkDetector,
    build_synthetic_face,
)

# MediaPipe imported separately to avoid mandatory dependency
try:
    from smile_agent.detection.mediapipe_detector import MediaPipeFaceLandmarker
    _MEDIAPIPE_AVAILABLE = True
except ImportError:
    _MEDIAPIPE_AVAILABLE = False
    MediaPipeFaceLandmarker = None  # type: ignore

__all__ = [
    "LandmarkDetector",
    "MockLandmarkDetector",
    "MediaPipeFaceLandmarker",
    "DetectorUnavailable",
    "DetectorError",
    "build_synthetic_face",
    "_MEDIAPIPE_AVAILABLE",
]
