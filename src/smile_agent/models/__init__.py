"""
Data Models
===========

Typed values passed between the stages of the smile analysis pipeline.

Models:
    Frames:
        - PixelFormat, PixelPlane, RawFrame: Capture handles
        - DecodedImage, ChromaLayout: Conversion output

    Landmarks:
        - LandmarkPoint, LandmarkSet: Detector output

    Results:
        - SmileResult: Decision for one frame
        - SmileMetrics: Geometry behind a decision
        - AnalysisOutcome: Result plus frame metadata
        - ReasonCode: Why a result was produced

    Input:
        - FrameMessage: Wire schema for remote frames
"""

from smile_agent.models.frame import PixelFormat, PixelPlane, RawFrame
from smile_agent.models.image import ChromaLayout, DecodedImage
from smile_agent.models.landmarks import LandmarkPoint, LandmarkSet
from smile_agent.models.reason_codes import ReasonCode
from smile_agent.models.result import AnalysisOutcome, SmileMetrics, SmileResult
from smile_agent.models.input import FrameMessage, PlaneMessage

__all__ = [
    # Frames
    "PixelFormat",
    "PixelPlane",
    "RawFrame",
    "ChromaLayout",
    "DecodedImage",
    # Landmarks
    "LandmarkPoint",
    "LandmarkSet",
    # Results
    "SmileResult",
    "SmileMetrics",
    "AnalysisOutcome",
    "ReasonCode",
    # Input
    "FrameMessage",
    "PlaneMessage",
]
