"""
Frame Analysis Pipeline
=======================

Orchestrates per-frame smile analysis under a single-outstanding-frame
policy.

    producer --submit()--> LatestFrameSlot --run()--> worker thread
                                                    |
                       on_result(outcome) <---------+  (event loop)

Concurrency Model:
    - Frames are submitted on the event loop; a newer frame replaces
      a waiting one (the replaced frame is released, never analyzed)
    - One frame is analyzed at a time, on one dedicated worker thread,
      so outcomes are delivered in submission order
    - Outcomes are delivered on the event loop that runs the worker,
      never on the worker thread
    - shutdown() stops intake, waits for the in-flight frame, closes
      the detector; no callback fires after it returns

Release Guarantee:
    Every frame handed to analyze()/submit() is closed exactly once:
    by analyze() through `with frame:`, by the slot when replaced, or
    by shutdown() when still pending.
"""

import asyncio
import dataclasses
import logging
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from smile_agent.classification.smile import SmileClassifier
from smile_agent.conversion.pixel_converter import PixelConverter
from smile_agent.detection.detector import LandmarkDetector
from smile_agent.models.frame import RawFrame
from smile_agent.models.reason_codes import ReasonCode
from smile_agent.models.result import AnalysisOutcome, SmileResult
from smile_agent.pipeline.graph import SmileAnalysisGraph
from smile_agent.pipeline.slot import LatestFrameSlot


logger = logging.getLogger(__name__)


ResultCallback = Callable[[AnalysisOutcome], None]


class FrameAnalysisPipeline:
    """
    Convert -> detect -> classify pipeline with guaranteed frame release.

    Attributes:
        detector: Landmark detector (initialized by initialize())
        graph: Per-frame analysis graph
        on_result: Callback receiving one AnalysisOutcome per analyzed frame

    Example:
        pipeline = FrameAnalysisPipeline(
            detector=MockLandmarkDetector(),
            on_result=controller.on_outcome,
        )
        if await pipeline.initialize():
            pipeline.start()

        pipeline.submit(frame)
        ...
        await pipeline.shutdown()
    """

    def __init__(
        self,
        detector: LandmarkDetector,
        converter: Optional[PixelConverter] = None,
        classifier: Optional[SmileClassifier] = None,
        on_result: Optional[ResultCallback] = None,
        log_every_n_frames: int = 30,
    ) -> None:
        self.detector = detector
        self.graph = SmileAnalysisGraph(
            detector=detector,
            converter=converter,
            classifier=classifier,
        )
        self.on_result = on_result
        self.log_every_n_frames = log_every_n_frames

        self._slot = LatestFrameSlot()
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="smile-analysis"
        )
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._worker_task: Optional[asyncio.Task] = None
        self._closed: bool = False

        # Metrics
        self._frames_submitted: int = 0
        self._frames_analyzed: int = 0
        self._callback_errors: int = 0
        self._reasons: Counter = Counter()
        self._last_outcome: Optional[AnalysisOutcome] = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def ready(self) -> bool:
        """Whether the detector is initialized and the pipeline is open."""
        return self.detector.ready and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_outcome(self) -> Optional[AnalysisOutcome]:
        return self._last_outcome

    async def initialize(self) -> bool:
        """
        Initialize the detector on the worker thread.

        Returns:
            True if the detector is ready. False is the only way a
            detector setup failure is reported.
        """
        try:
            await asyncio.wrap_future(self._executor.submit(self.detector.initialize))
        except Exception as e:
            logger.error(f"Landmark detector initialization failed: {e}")
            return False

        logger.info("Landmark detector ready")
        return True

    def start(self) -> asyncio.Task:
        """
        Start the worker on the running event loop.

        Outcomes are delivered on this loop.
        """
        if self._closed:
            raise RuntimeError("FrameAnalysisPipeline is shut down")
        if self._worker_task is not None:
            return self._worker_task

        self._loop = asyncio.get_running_loop()
        self._worker_task = asyncio.create_task(self.run(), name="frame_analysis")
        return self._worker_task

    async def shutdown(self) -> None:
        """
        Stop analysis and release every resource.

        After this returns: no pending frame is held, the worker has
        stopped, the in-flight frame (if any) has been released, the
        detector is closed and on_result will not be called again.
        """
        if self._closed:
            return
        self._closed = True
        logger.info("FrameAnalysisPipeline shutting down...")

        released = self._slot.clear()
        if released:
            logger.debug("Released pending frame on shutdown")

        if self._worker_task is not None:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass

        # Waits for an analysis still running on the worker thread
        await asyncio.to_thread(self._executor.shutdown, True)

        self.detector.close()
        logger.info("FrameAnalysisPipeline shut down")

    # =========================================================================
    # Intake
    # =========================================================================

    def submit(self, frame: RawFrame) -> bool:
        """
        Hand a frame to the worker (event loop thread only).

        Returns:
            False if the frame was rejected or replaced an older one.
        """
        if self._closed:
            frame.close()
            return False

        self._frames_submitted += 1
        return self._slot.put(frame)

    def submit_threadsafe(self, frame: RawFrame) -> None:
        """Hand a frame to the worker from a thread other than the loop's."""
        loop = self._loop
        if loop is None or self._closed:
            frame.close()
            return
        try:
            loop.call_soon_threadsafe(self.submit, frame)
        except RuntimeError:
            # Loop already closed
            frame.close()

    # =========================================================================
    # Analysis
    # =========================================================================

    def analyze(self, frame: RawFrame) -> SmileResult:
        """
        Analyze one frame synchronously.

        The frame is released before this returns, whatever happens.
        """
        return self.analyze_outcome(frame).result

    def analyze_outcome(self, frame: RawFrame) -> AnalysisOutcome:
        """
        Analyze one frame synchronously and return the full outcome.

        Never raises for per-frame failures; they become reason codes.
        """
        started = time.perf_counter()

        with frame:
            try:
                if not self.detector.ready:
                    outcome = AnalysisOutcome(
                        result=SmileResult.not_smiling(),
                        reason=ReasonCode.DETECTOR_UNAVAILABLE,
                        frame_id=frame.frame_id,
                        timestamp=frame.timestamp,
                    )
                else:
                    outcome = self.graph.run(frame)
            except Exception as e:
                logger.error(f"Analysis error (frame={frame.frame_id}): {e}")
                outcome = AnalysisOutcome(
                    result=SmileResult.not_smiling(),
                    reason=ReasonCode.INTERNAL_ERROR,
                    frame_id=frame.frame_id,
                    timestamp=frame.timestamp,
                )

        outcome = dataclasses.replace(
            outcome, latency_ms=(time.perf_counter() - started) * 1000.0
        )
        self._record(outcome)
        return outcome

    def _record(self, outcome: AnalysisOutcome) -> None:
        self._frames_analyzed += 1
        self._reasons[outcome.reason.value] += 1
        self._last_outcome = outcome

        if self._frames_analyzed % self.log_every_n_frames == 0:
            logger.info(
                f"Analysis [frame {self._frames_analyzed}]: "
                f"reason={outcome.reason.value}, "
                f"ratio={outcome.result.mouth_width_ratio:.4f}, "
                f"latency={outcome.latency_ms:.1f}ms, "
                f"dropped={self._slot.dropped_count}"
            )

    # =========================================================================
    # Worker
    # =========================================================================

    async def run(self) -> None:
        """
        Worker loop: take the latest frame, analyze it off-loop, deliver.

        Use start() rather than scheduling this directly.
        """
        logger.info("Frame analysis worker started")

        while not self._closed:
            try:
                frame = await self._slot.get(timeout=1.0)
                if frame is None:
                    continue

                future = self._executor.submit(self.analyze_outcome, frame)
                try:
                    outcome = await asyncio.wrap_future(future)
                except asyncio.CancelledError:
                    # Not started yet: the worker thread will never close it
                    if future.cancel():
                        frame.close()
                    raise

                self._deliver(outcome)

            except asyncio.CancelledError:
                logger.info("Frame analysis worker cancelled")
                break
            except Exception as e:
                logger.error(f"Worker error: {e}")
                await asyncio.sleep(0.1)

        logger.info("Frame analysis worker stopped")

    def _deliver(self, outcome: AnalysisOutcome) -> None:
        if self._closed or self.on_result is None:
            return
        try:
            self.on_result(outcome)
        except Exception as e:
            self._callback_errors += 1
            logger.error(f"Result callback failed (frame={outcome.frame_id}): {e}")

    def get_metrics(self) -> dict:
        """Get pipeline metrics for observability."""
        last = self._last_outcome
        return {
            "ready": self.ready,
            "frames_submitted": self._frames_submitted,
            "frames_analyzed": self._frames_analyzed,
            "frames_dropped": self._slot.dropped_count,
            "callback_errors": self._callback_errors,
            "reasons": dict(self._reasons),
            "last_latency_ms": round(last.latency_ms, 2) if last else None,
        }
