"""
Camera Frame Source
===================

Local camera source built on OpenCV VideoCapture.

Reads BGR frames on a background thread, repackages them as planar
YUV_420_888 RawFrames and hands them to the pipeline. Like a real
sensor pipeline, it owns a bounded pool of frame buffers: when every
buffer is still held downstream, new captures are skipped until a
frame is released.
"""

import logging
import threading
from typing import Callable, Optional

import cv2

from smile_agent.models.frame import RawFrame, raw_frame_from_i420


logger = logging.getLogger(__name__)


class CameraFrameSource:
    """
    Background-thread camera reader.

    Attributes:
        camera_index: OpenCV device index
        sink: Thread-safe callable receiving frames
            (usually pipeline.submit_threadsafe)
        pool_size: Maximum frames held downstream at once

    Example:
        source = CameraFrameSource(0, pipeline.submit_threadsafe)
        source.start()
        ...
        source.stop()
    """

    def __init__(
        self,
        camera_index: int,
        sink: Callable[[RawFrame], None],
        pool_size: int = 4,
    ) -> None:
        if pool_size < 1:
            raise ValueError("pool_size must be >= 1")

        self.camera_index = camera_index
        self.sink = sink
        self.pool_size = pool_size

        self._pool = threading.BoundedSemaphore(pool_size)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.frames_captured: int = 0
        self.frames_skipped: int = 0
        self.frames_released: int = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Open the camera and start the reader thread."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="camera-source", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the reader thread and close the camera."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        cap = cv2.VideoCapture(self.camera_index)
        if not cap.isOpened():
            logger.error(f"Camera {self.camera_index} could not be opened")
            return

        logger.info(f"Camera {self.camera_index} opened")
        frame_id = 0
        try:
            while not self._stop_event.is_set():
                ok, bgr = cap.read()
                if not ok:
                    logger.warning("Camera read failed, stopping source")
                    break

                if not self._pool.acquire(blocking=False):
                    self.frames_skipped += 1
                    continue

                # YUV 4:2:0 needs even dimensions
                height, width = bgr.shape[:2]
                bgr = bgr[: height - height % 2, : width - width % 2]

                frame = raw_frame_from_i420(
                    bgr, frame_id=frame_id, on_release=self._on_release
                )
                frame_id += 1
                self.frames_captured += 1
                self.sink(frame)
        finally:
            cap.release()
            logger.info(f"Camera {self.camera_index} released")

    def _on_release(self, frame: RawFrame) -> None:
        self.frames_released += 1
        self._pool.release()

    def get_metrics(self) -> dict:
        """Get source metrics for observability."""
        return {
            "frames_captured": self.frames_captured,
            "frames_skipped": self.frames_skipped,
            "frames_released": self.frames_released,
            "pool_size": self.pool_size,
        }
