"""
Result Models
=============

Values produced by one frame analysis.

    SmileResult     - the decision handed to the capture caller
    SmileMetrics    - the geometry behind a decision (debug only)
    AnalysisOutcome - SmileResult plus frame and timing metadata
"""

from dataclasses import dataclass
from typing import Optional

from smile_agent.models.reason_codes import ReasonCode


@dataclass(frozen=True, slots=True)
class SmileResult:
    """
    Smile decision for one frame.

    Attributes:
        is_smiling: Whether the subject is smiling
        mouth_width_ratio: Mouth width divided by face width (0.0 on fallback)
    """

    is_smiling: bool
    mouth_width_ratio: float

    @classmethod
    def not_smiling(cls) -> "SmileResult":
        """Safe default used on every fallback path."""
        return cls(is_smiling=False, mouth_width_ratio=0.0)

    def to_dict(self) -> dict:
        return {
            "is_smiling": self.is_smiling,
            "mouth_width_ratio": round(self.mouth_width_ratio, 5),
        }


@dataclass(frozen=True, slots=True)
class SmileMetrics:
    """
    Geometry measured from one landmark set.

    Ratios are non-finite when their denominator is zero.
    """

    mouth_width: float
    mouth_height: float
    face_width: float
    width_ratio: float
    aspect_ratio: float

    def __repr__(self) -> str:
        return (
            f"SmileMetrics(width_ratio={self.width_ratio:.4f}, "
            f"aspect_ratio={self.aspect_ratio:.2f})"
        )


@dataclass(frozen=True, slots=True)
class AnalysisOutcome:
    """
    Everything the worker delivers for one analyzed frame.

    Attributes:
        result: Smile decision
        reason: Why the decision was made
        frame_id: Source frame counter
        timestamp: Capture timestamp of the frame
        faces_detected: Number of landmark sets the detector returned
        latency_ms: Wall time spent analyzing the frame
        metrics: Geometry, when a face was measured
    """

    result: SmileResult
    reason: ReasonCode
    frame_id: int
    timestamp: float
    faces_detected: int = 0
    latency_ms: float = 0.0
    metrics: Optional[SmileMetrics] = None

    @property
    def is_smiling(self) -> bool:
        return self.result.is_smiling

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "frame_id": self.frame_id,
            "timestamp": round(self.timestamp, 3),
            "reason": self.reason.value,
            "faces_detected": self.faces_detected,
            "latency_ms": round(self.latency_ms, 2),
            **self.result.to_dict(),
        }
