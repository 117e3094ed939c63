"""
Landmark Detector
=================

Capability interface for facial landmark detection.

The pipeline treats the detector as a black box: it hands over a
decoded image and receives zero or more landmark sets, each an ordered
sequence of face mesh points. Any object with this shape satisfies
the pipeline (mock, on-device model, remote service).

Lifecycle:
    initialize() once before first use -> detect() per frame -> close()

Design Rules:
    - detect() before initialize() or after close() raises DetectorUnavailable
    - Failures inside detect() raise DetectorError
    - The mock never touches pixel data
"""

import logging
import math
from typing import List, Optional, Protocol, Sequence

from smile_agent.models.image import DecodedImage
from smile_agent.models.landmarks import (
    FACE_MESH_POINTS,
    LEFT_CHEEK,
    LEFT_MOUTH_CORNER,
    LOWER_LIP_CENTER,
    RIGHT_CHEEK,
    RIGHT_MOUTH_CORNER,
    UPPER_LIP_CENTER,
    LandmarkPoint,
    LandmarkSet,
)


logger = logging.getLogger(__name__)


class DetectorUnavailable(Exception):
    """Raised when the detector failed to initialize or was already released."""
    pass


class DetectorError(Exception):
    """Raised when the detector fails while processing an image."""
    pass


class LandmarkDetector(Protocol):
    """
    Protocol for landmark detection backends.

    Implemented by:
        - MockLandmarkDetector (testing, offline runs)
        - MediaPipeFaceLandmarker (production)
    """

    @property
    def ready(self) -> bool:
        """Whether initialize() succeeded and close() has not been called."""
        ...

    def initialize(self) -> None:
        """
        Load the detector.

        Raises:
            DetectorUnavailable: If the detector cannot be set up
        """
        ...

    def detect(self, image: DecodedImage) -> List[LandmarkSet]:
        """
        Detect faces in an image.

        Args:
            image: Decoded still image

        Returns:
            One landmark set per detected face (may be empty)
        """
        ...

    def close(self) -> None:
        """Release the detector. Further detect() calls fail."""
        ...


def build_synthetic_face(
    mouth_width: float,
    mouth_height: float,
    face_width: float,
    num_points: int = FACE_MESH_POINTS,
    center: tuple = (0.0, 0.0),
) -> List[LandmarkPoint]:
    """
    Build a landmark set with the mouth and cheek points at fixed distances.

    All points not used by the smile geometry sit at the centre.

    Args:
        mouth_width: Distance between the mouth corners
        mouth_height: Distance between the lip centres
        face_width: Distance between the cheeks
        num_points: Length of the landmark set
        center: Face centre

    Returns:
        List of num_points LandmarkPoint
    """
    cx, cy = center
    points = [LandmarkPoint(cx, cy) for _ in range(num_points)]

    placements = {
        LEFT_MOUTH_CORNER: (cx - mouth_width / 2, cy),
        RIGHT_MOUTH_CORNER: (cx + mouth_width / 2, cy),
        UPPER_LIP_CENTER: (cx, cy - mouth_height / 2),
        LOWER_LIP_CENTER: (cx, cy + mouth_height / 2),
        LEFT_CHEEK: (cx - face_width / 2, cy),
        RIGHT_CHEEK: (cx + face_width / 2, cy),
    }
    for index, (x, y) in placements.items():
        if index < num_points:
            points[index] = LandmarkPoint(x, y)

    return points


class MockLandmarkDetector:
    """
    Deterministic mock detector.

    Either returns a fixed list of landmark sets for every image, or,
    when none is given, synthesizes one face per call whose mouth
    widens and narrows on a slow sinusoid so that a little over half
    of each cycle classifies as smiling.

    Attributes:
        faces: Fixed landmark sets returned by detect(), or None
        cycle_period: Calls per synthetic smile cycle
        fail_initialize: Make initialize() raise DetectorUnavailable
        error: Exception raised by every detect() call, if set
        detect_calls: Number of detect() calls made
    """

    def __init__(
        self,
        faces: Optional[Sequence[LandmarkSet]] = None,
        cycle_period: int = 90,
        fail_initialize: bool = False,
        error: Optional[Exception] = None,
    ) -> None:
        if cycle_period < 1:
            raise ValueError("cycle_period must be >= 1")

        self.faces = None if faces is None else [list(face) for face in faces]
        self.cycle_period = cycle_period
        self.fail_initialize = fail_initialize
        self.error = error
        self.detect_calls = 0

        self._ready = False
        self._closed = False

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def closed(self) -> bool:
        return self._closed

    def initialize(self) -> None:
        if self._closed:
            raise DetectorUnavailable("MockLandmarkDetector was closed")
        if self.fail_initialize:
            raise DetectorUnavailable("MockLandmarkDetector configured to fail")
        self._ready = True
        if self.faces is not None:
            logger.info(f"MockLandmarkDetector initialized: {len(self.faces)} fixed faces")
        else:
            logger.info(f"MockLandmarkDetector initialized: period={self.cycle_period} calls")

    def detect(self, image: DecodedImage) -> List[LandmarkSet]:
        if not self._ready:
            raise DetectorUnavailable("MockLandmarkDetector is not initialized")

        self.detect_calls += 1
        if self.error is not None:
            raise self.error

        if self.faces is not None:
            return [list(face) for face in self.faces]

        phase = (2 * math.pi * self.detect_calls) / self.cycle_period
        mouth_width = 0.05 + 0.01 * math.sin(phase)
        return [build_synthetic_face(
            mouth_width=mouth_width,
            mouth_height=0.016,
            face_width=1.0,
            center=(0.5, 0.5),
        )]

    def close(self) -> None:
        self._ready = False
        self._closed = True
