"""
SmileCaptureAgent Main Application
==================================

FastAPI entry point for the smile capture agent.

Wiring:
    frame source -> FrameAnalysisPipeline -> CaptureController -> capture event

The photograph itself is taken by whoever listens for capture events
(WebSocket clients of /ws/results); this service only decides WHEN.

Endpoints:
    GET  /          - Service information
    GET  /health    - Liveness probe (is process alive?)
    GET  /ready     - Readiness probe (landmark detector initialized?)
    GET  /metrics   - Pipeline, throttle and source counters
    GET  /result    - Latest analysis outcome
    GET  /captures  - Recent capture events
    WS   /ws/results - Real-time outcome and capture stream
"""

import asyncio
import logging
import os
import signal
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Deque, Optional

from fastapi import FastAPI, WebSocket
from fastapi.responses import JSONResponse

from smile_agent.config import settings
from smile_agent.capture import CaptureController, CaptureThrottle
from smile_agent.classification import SmileClassifier, SmileThresholds
from smile_agent.conversion import PixelConverter
from smile_agent.detection import (
    LandmarkDetector,
    MediaPipeFaceLandmarker,
    MockLandmarkDetector,
    _MEDIAPIPE_AVAILABLE,
)
from smile_agent.models.result import AnalysisOutcome
from smile_agent.pipeline import FrameAnalysisPipeline
from smile_agent.stream import CameraFrameSource, FrameConsumer


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_shutdown_flag: bool = False

_pipeline: Optional[FrameAnalysisPipeline] = None
_controller: Optional[CaptureController] = None

# Frame sources (at most one is active)
_frame_consumer: Optional[FrameConsumer] = None
_consumer_task: Optional[asyncio.Task] = None
_camera_source: Optional[CameraFrameSource] = None

_capture_events: Deque[dict] = deque(maxlen=50)
_capture_seq: int = 0
_startup_time: float = 0.0
_detector_ready: bool = False


# =============================================================================
# Getters
# =============================================================================

def get_pipeline() -> Optional[FrameAnalysisPipeline]:
    return _pipeline

def get_controller() -> Optional[CaptureController]:
    return _controller

def get_frame_consumer() -> Optional[FrameConsumer]:
    return _frame_consumer

def is_ready() -> bool:
    return _detector_ready and _pipeline is not None and _pipeline.ready


# =============================================================================
# Signal Handlers
# =============================================================================

def _handle_sigterm(signum, frame):
    """Handle SIGTERM for graceful shutdown."""
    global _shutdown_flag
    logger.info("Received SIGTERM, initiating graceful shutdown...")
    _shutdown_flag = True


# =============================================================================
# Factories
# =============================================================================

def create_detector() -> LandmarkDetector:
    """
    Create landmark detector based on config.

    Fails fast if the MediaPipe backend is requested but not installed.
    A missing model asset is NOT fatal here; it surfaces as readiness.
    """
    backend = settings.detector.backend

    if backend == "mock":
        logger.info("Using MockLandmarkDetector")
        return MockLandmarkDetector()

    elif backend == "mediapipe":
        if not _MEDIAPIPE_AVAILABLE:
            raise RuntimeError(
                "MediaPipe backend requested but mediapipe is not installed. "
                "Install with: pip install 'smile-capture-agent[mediapipe]'"
            )

        logger.info(f"Using MediaPipeFaceLandmarker: model={settings.detector.model_path}")
        return MediaPipeFaceLandmarker(
            model_path=settings.detector.model_path,
            num_faces=settings.detector.num_faces,
            min_face_detection_confidence=settings.detector.min_face_detection_confidence,
            min_face_presence_confidence=settings.detector.min_face_presence_confidence,
            min_tracking_confidence=settings.detector.min_tracking_confidence,
            pixel_coordinates=settings.detector.pixel_coordinates,
        )

    else:
        raise ValueError(f"Unknown detector backend: {backend}")


def record_capture(outcome: AnalysisOutcome) -> None:
    """Capture action: publish a capture event for listening clients."""
    global _capture_seq
    _capture_seq += 1
    _capture_events.append({
        "seq": _capture_seq,
        "captured_at": time.time(),
        **outcome.to_dict(),
    })


def handle_outcome(outcome: AnalysisOutcome) -> None:
    """Result callback, runs on the event loop."""
    if _controller is not None:
        _controller.on_outcome(outcome)


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _pipeline, _controller, _detector_ready, _startup_time
    global _frame_consumer, _consumer_task, _camera_source

    signal.signal(signal.SIGTERM, _handle_sigterm)

    _startup_time = time.time()
    logger.info(f"Starting {settings.agent.name} {settings.agent.version}")

    # Capture decision
    _controller = CaptureController(
        throttle=CaptureThrottle(cooldown_ms=settings.capture.cooldown_ms),
        action=record_capture,
    )

    # Analysis pipeline
    _pipeline = FrameAnalysisPipeline(
        detector=create_detector(),
        converter=PixelConverter(jpeg_quality=settings.conversion.jpeg_quality),
        classifier=SmileClassifier(SmileThresholds(
            min_landmarks=settings.classifier.min_landmarks,
            min_width_ratio=settings.classifier.min_width_ratio,
            min_aspect_ratio=settings.classifier.min_aspect_ratio,
        )),
        on_result=handle_outcome,
    )
    _detector_ready = await _pipeline.initialize()
    if not _detector_ready:
        logger.error("Landmark detector not ready; frames will not be classified")
    _pipeline.start()

    # Frame source
    kind = settings.source.kind
    if kind == "websocket":
        logger.info(f"Frame stream URL: {settings.source.url}")
        _frame_consumer = FrameConsumer(
            url=settings.source.url,
            sink=_pipeline.submit,
            reconnect_backoff_ms=settings.source.reconnect_backoff_ms,
            max_reconnect_attempts=settings.source.max_reconnect_attempts,
        )
        _consumer_task = asyncio.create_task(_frame_consumer.run(), name="frame_consumer")
    elif kind == "camera":
        _camera_source = CameraFrameSource(
            camera_index=settings.source.camera_index,
            sink=_pipeline.submit_threadsafe,
        )
        _camera_source.start()
    elif kind != "none":
        raise ValueError(f"Unknown frame source: {kind}")

    logger.info(f"All components started (source={kind})")

    yield

    # Shutdown
    logger.info("Shutting down gracefully...")

    global _shutdown_flag
    _shutdown_flag = True

    if _frame_consumer:
        await _frame_consumer.stop()
    if _consumer_task:
        try:
            await asyncio.wait_for(_consumer_task, timeout=5.0)
        except asyncio.TimeoutError:
            _consumer_task.cancel()
            try:
                await _consumer_task
            except asyncio.CancelledError:
                pass
    if _camera_source:
        await asyncio.to_thread(_camera_source.stop)

    await _pipeline.shutdown()

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="SmileCaptureAgent",
    description="Smile-triggered capture decisions from a live camera stream",
    version=settings.agent.version,
    lifespan=lifespan,
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "SmileCaptureAgent",
        "version": settings.agent.version,
        "name": settings.agent.name,
        "status": "running",
        "detector_backend": settings.detector.backend,
        "source": settings.source.kind,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe - can frames be classified?

    Returns 200 once the landmark detector is initialized, 503 otherwise.
    """
    consumer = get_frame_consumer()
    stream_connected = consumer.connected if consumer else False

    body = {
        "detector_ready": is_ready(),
        "stream_connected": stream_connected,
    }
    if is_ready():
        return JSONResponse({"status": "ready", **body})
    return JSONResponse({"status": "not_ready", **body}, status_code=503)


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed metrics for observability."""
    pipeline = get_pipeline()
    controller = get_controller()
    consumer = get_frame_consumer()

    source_metrics = {}
    if consumer:
        source_metrics = {"stream_connected": consumer.connected, **consumer.metrics.to_dict()}
    elif _camera_source:
        source_metrics = _camera_source.get_metrics()

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "detector_backend": settings.detector.backend,
        "pipeline": pipeline.get_metrics() if pipeline else {},
        "capture": controller.get_metrics() if controller else {},
        "source": source_metrics,
    })


@app.get("/result")
async def result() -> JSONResponse:
    """Get the latest analysis outcome."""
    pipeline = get_pipeline()
    outcome = pipeline.last_outcome if pipeline else None

    if outcome is None:
        return JSONResponse(
            {"error": "No frame analyzed yet"},
            status_code=503,
        )
    return JSONResponse(outcome.to_dict())


@app.get("/captures")
async def captures() -> JSONResponse:
    """Recent capture events, newest last."""
    return JSONResponse({"captures": list(_capture_events)})


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws/results")
async def results_stream(websocket: WebSocket) -> None:
    """WebSocket endpoint pushing the latest outcome and new capture events."""
    await websocket.accept()
    logger.info("Client connected to /ws/results")

    last_sent_frame: Optional[int] = None
    last_seq = _capture_seq

    try:
        while not _shutdown_flag:
            pipeline = get_pipeline()
            outcome = pipeline.last_outcome if pipeline else None
            if outcome is not None and outcome.frame_id != last_sent_frame:
                await websocket.send_json({"type": "result", **outcome.to_dict()})
                last_sent_frame = outcome.frame_id

            for event in list(_capture_events):
                if event["seq"] > last_seq:
                    await websocket.send_json({"type": "capture", **event})
                    last_seq = event["seq"]

            await asyncio.sleep(0.1)

    except Exception as e:
        logger.warning(f"WebSocket error: {e}")
    finally:
        logger.info("Client disconnected from /ws/results")


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "smile_agent.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
