"""
Smile Classifier
================

Decides whether a face is smiling from its landmark geometry.

Geometry (face mesh indices):
    mouth_width  = |p61  - p291|   mouth corners
    mouth_height = |p13  - p14|    lip centres
    face_width   = |p234 - p454|   cheeks

    width_ratio  = mouth_width / face_width
    aspect_ratio = mouth_width / mouth_height

Decision:
    smiling = width_ratio > 0.045 AND aspect_ratio > 3.0

Fallbacks:
    - fewer than 468 points      -> SmileResult(False, 0.0)
    - zero face width or height  -> non-finite ratio, never smiling

Pure: same landmarks in, same result out. No logging above DEBUG.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from smile_agent.models.landmarks import (
    FACE_MESH_POINTS,
    LEFT_CHEEK,
    LEFT_MOUTH_CORNER,
    LOWER_LIP_CENTER,
    RIGHT_CHEEK,
    RIGHT_MOUTH_CORNER,
    UPPER_LIP_CENTER,
    LandmarkSet,
    PointLike,
)
from smile_agent.models.reason_codes import ReasonCode
from smile_agent.models.result import SmileMetrics, SmileResult


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SmileThresholds:
    """
    Decision thresholds.

    Attributes:
        min_landmarks: Minimum landmark count for a usable face mesh
        min_width_ratio: width_ratio must be strictly greater than this
        min_aspect_ratio: aspect_ratio must be strictly greater than this
    """

    min_landmarks: int = FACE_MESH_POINTS
    min_width_ratio: float = 0.045
    min_aspect_ratio: float = 3.0

    def __post_init__(self) -> None:
        if self.min_landmarks <= RIGHT_CHEEK:
            raise ValueError(f"min_landmarks must be > {RIGHT_CHEEK}")


def distance(a: PointLike, b: PointLike) -> float:
    """Euclidean distance, computed in double precision."""
    dx = float(a.x) - float(b.x)
    dy = float(a.y) - float(b.y)
    return math.hypot(dx, dy)


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0.0:
        return math.inf if numerator > 0.0 else math.nan
    return numerator / denominator


class SmileClassifier:
    """
    Landmark geometry smile classifier.

    Example:
        classifier = SmileClassifier()
        result = classifier.classify(landmarks)
        if result.is_smiling:
            ...
    """

    def __init__(self, thresholds: Optional[SmileThresholds] = None) -> None:
        self.thresholds = thresholds or SmileThresholds()

    def measure(self, landmarks: LandmarkSet) -> Optional[SmileMetrics]:
        """
        Measure mouth and face geometry.

        Returns:
            SmileMetrics, or None if there are too few landmarks
        """
        if len(landmarks) < self.thresholds.min_landmarks:
            return None

        mouth_width = distance(landmarks[LEFT_MOUTH_CORNER], landmarks[RIGHT_MOUTH_CORNER])
        mouth_height = distance(landmarks[UPPER_LIP_CENTER], landmarks[LOWER_LIP_CENTER])
        face_width = distance(landmarks[LEFT_CHEEK], landmarks[RIGHT_CHEEK])

        return SmileMetrics(
            mouth_width=mouth_width,
            mouth_height=mouth_height,
            face_width=face_width,
            width_ratio=_ratio(mouth_width, face_width),
            aspect_ratio=_ratio(mouth_width, mouth_height),
        )

    def evaluate(self, landmarks: LandmarkSet) -> Tuple[SmileResult, ReasonCode, Optional[SmileMetrics]]:
        """
        Classify a landmark set and explain the decision.

        Returns:
            (result, reason, metrics) - metrics is None when the landmark
            set was too short to measure
        """
        metrics = self.measure(landmarks)
        if metrics is None:
            return SmileResult.not_smiling(), ReasonCode.INSUFFICIENT_LANDMARKS, None

        if not (math.isfinite(metrics.width_ratio) and math.isfinite(metrics.aspect_ratio)):
            logger.debug(f"Degenerate face geometry: {metrics}")
            return SmileResult.not_smiling(), ReasonCode.DEGENERATE_GEOMETRY, metrics

        is_smiling = (
            metrics.width_ratio > self.thresholds.min_width_ratio
            and metrics.aspect_ratio > self.thresholds.min_aspect_ratio
        )
        result = SmileResult(is_smiling=is_smiling, mouth_width_ratio=metrics.width_ratio)
        reason = ReasonCode.SMILING if is_smiling else ReasonCode.NOT_SMILING
        return result, reason, metrics

    def classify(self, landmarks: LandmarkSet) -> SmileResult:
        """
        Classify a landmark set.

        Args:
            landmarks: Ordered face mesh points

        Returns:
            SmileResult; SmileResult(False, 0.0) for short landmark sets
        """
        result, _, _ = self.evaluate(landmarks)
        return result
