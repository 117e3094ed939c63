"""
MediaPipe Face Landmarker
=========================

Production landmark detector backed by the MediaPipe Tasks
FaceLandmarker (468-point face mesh plus iris points).

Runs in IMAGE mode: every call is an independent still image, which
matches the pipeline's keep-only-latest frame policy.

Setup:
    Download face_landmarker.task from
    https://storage.googleapis.com/mediapipe-models/face_landmarker/face_landmarker/float16/1/face_landmarker.task
    and point detector.model_path at it.
"""

import logging
from pathlib import Path
from typing import List, Optional

import mediapipe as mp
from mediapipe.tasks import python as mp_python
from mediapipe.tasks.python import vision

from smile_agent.detection.detector import DetectorError, DetectorUnavailable
from smile_agent.models.image import DecodedImage
from smile_agent.models.landmarks import LandmarkPoint, LandmarkSet


logger = logging.getLogger(__name__)


class MediaPipeFaceLandmarker:
    """
    LandmarkDetector backed by mediapipe.tasks.vision.FaceLandmarker.

    Landmarks are returned in normalized image coordinates, the unit the
    default smile thresholds were tuned on. Set pixel_coordinates=True to
    scale them by the image size instead; on non-square images this shifts
    both smile ratios and needs retuned thresholds.

    Attributes:
        model_path: Path to the .task model asset
        num_faces: Maximum number of faces per image
        pixel_coordinates: Return pixel instead of normalized coordinates
    """

    def __init__(
        self,
        model_path: str,
        num_faces: int = 1,
        min_face_detection_confidence: float = 0.5,
        min_face_presence_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        pixel_coordinates: bool = False,
    ) -> None:
        self.model_path = Path(model_path)
        self.num_faces = num_faces
        self.min_face_detection_confidence = min_face_detection_confidence
        self.min_face_presence_confidence = min_face_presence_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self.pixel_coordinates = pixel_coordinates

        self._landmarker: Optional[vision.FaceLandmarker] = None

    @property
    def ready(self) -> bool:
        return self._landmarker is not None

    def initialize(self) -> None:
        """
        Create the FaceLandmarker.

        Raises:
            DetectorUnavailable: Model asset missing or MediaPipe setup failed
        """
        if self._landmarker is not None:
            return

        if not self.model_path.exists():
            raise DetectorUnavailable(f"Model asset not found: {self.model_path}")

        try:
            base_options = mp_python.BaseOptions(model_asset_path=str(self.model_path))
            options = vision.FaceLandmarkerOptions(
                base_options=base_options,
                running_mode=vision.RunningMode.IMAGE,
                num_faces=self.num_faces,
                min_face_detection_confidence=self.min_face_detection_confidence,
                min_face_presence_confidence=self.min_face_presence_confidence,
                min_tracking_confidence=self.min_tracking_confidence,
                output_face_blendshapes=False,
                output_facial_transformation_matrixes=False,
            )
            self._landmarker = vision.FaceLandmarker.create_from_options(options)
        except Exception as e:
            raise DetectorUnavailable(f"FaceLandmarker setup failed: {e}") from e

        logger.info(
            f"MediaPipeFaceLandmarker initialized: model={self.model_path}, "
            f"num_faces={self.num_faces}"
        )

    def detect(self, image: DecodedImage) -> List[LandmarkSet]:
        if self._landmarker is None:
            raise DetectorUnavailable("MediaPipeFaceLandmarker is not initialized")

        try:
            mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=image.to_rgb())
            result = self._landmarker.detect(mp_image)
        except Exception as e:
            raise DetectorError(f"FaceLandmarker detect failed: {e}") from e

        return self.to_landmark_sets(result.face_landmarks, image.width, image.height)

    def to_landmark_sets(self, faces, width: int, height: int) -> List[LandmarkSet]:
        """
        Convert MediaPipe landmark lists to LandmarkPoint lists.

        With pixel_coordinates, x is scaled by width and y by height. On a
        non-square image that changes mouth and face proportions, so the
        thresholds tuned on normalized points no longer apply as-is.
        """
        sx, sy = (width, height) if self.pixel_coordinates else (1.0, 1.0)
        return [
            [LandmarkPoint(lm.x * sx, lm.y * sy) for lm in face]
            for face in faces
        ]

    def close(self) -> None:
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
            logger.info("MediaPipeFaceLandmarker closed")
