#!/usr/bin/env python3
"""
Camera Soak Run
===============

Standalone script to exercise the full analysis pipeline on a local camera.

This script:
    1. Opens the camera and feeds frames to FrameAnalysisPipeline
    2. Runs for a configurable duration
    3. Logs pipeline and capture stats every N seconds
    4. Reports final summary (including frame release accounting)

Prerequisites:
    - A camera reachable by OpenCV
    - For real landmarks: pip install '.[mediapipe]' and a face_landmarker.task

Usage:
    python scripts/run_camera.py --duration 60
    python scripts/run_camera.py --backend mediapipe --model models/face_landmarker.task
"""

import argparse
import asyncio
import logging
import os
import sys
import time

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from smile_agent.capture import CaptureController, CaptureThrottle
from smile_agent.detection import MediaPipeFaceLandmarker, MockLandmarkDetector
from smile_agent.pipeline import FrameAnalysisPipeline
from smile_agent.stream import CameraFrameSource


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run(
    camera_index: int,
    backend: str,
    model_path: str,
    duration: int,
    report_interval: int,
) -> dict:
    """
    Run the soak test.

    Returns:
        Final metrics dict
    """
    logger.info("=" * 60)
    logger.info("Camera Soak Run")
    logger.info("=" * 60)
    logger.info(f"Camera index: {camera_index}")
    logger.info(f"Detector backend: {backend}")
    logger.info(f"Duration: {duration} seconds")
    logger.info("=" * 60)

    if backend == "mediapipe":
        if MediaPipeFaceLandmarker is None:
            raise SystemExit("mediapipe is not installed")
        detector = MediaPipeFaceLandmarker(model_path=model_path)
    else:
        detector = MockLandmarkDetector()

    controller = CaptureController(
        throttle=CaptureThrottle(cooldown_ms=2000),
        action=lambda outcome: logger.info(f"📸 capture at frame {outcome.frame_id}"),
    )
    pipeline = FrameAnalysisPipeline(detector=detector, on_result=controller.on_outcome)

    if not await pipeline.initialize():
        logger.error("Detector failed to initialize")
        return {"frames_analyzed": 0}
    pipeline.start()

    source = CameraFrameSource(camera_index, sink=pipeline.submit_threadsafe)
    source.start()

    start_time = time.time()
    last_report_time = start_time

    try:
        while time.time() - start_time < duration:
            if time.time() - last_report_time >= report_interval:
                metrics = pipeline.get_metrics()
                logger.info("-" * 40)
                logger.info(f"Progress Report (elapsed: {time.time() - start_time:.0f}s)")
                logger.info(f"  Frames captured: {source.frames_captured}")
                logger.info(f"  Frames analyzed: {metrics['frames_analyzed']}")
                logger.info(f"  Frames dropped: {metrics['frames_dropped']}")
                logger.info(f"  Last latency: {metrics['last_latency_ms']} ms")
                logger.info(f"  Captures: {controller.captures}")
                last_report_time = time.time()

            await asyncio.sleep(0.5)

    except KeyboardInterrupt:
        logger.info("Run interrupted by user")
    finally:
        await asyncio.to_thread(source.stop)
        await pipeline.shutdown()

    total_time = time.time() - start_time
    metrics = pipeline.get_metrics()
    source_metrics = source.get_metrics()

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {total_time:.1f} seconds")
    logger.info(f"Frames captured: {source_metrics['frames_captured']}")
    logger.info(f"Frames released: {source_metrics['frames_released']}")
    logger.info(f"Frames skipped (pool exhausted): {source_metrics['frames_skipped']}")
    logger.info(f"Frames analyzed: {metrics['frames_analyzed']}")
    logger.info(f"Reasons: {metrics['reasons']}")
    logger.info(f"Captures: {controller.captures} (suppressed {controller.suppressed})")
    logger.info("=" * 60)

    # Every captured frame must have been released
    leaked = source_metrics["frames_captured"] - source_metrics["frames_released"]
    if leaked:
        logger.error(f"❌ {leaked} frames were never released")
    else:
        logger.info("✅ All frames released")

    return {
        "duration": total_time,
        "frames_analyzed": metrics["frames_analyzed"],
        "leaked": leaked,
        "captures": controller.captures,
    }


def main():
    parser = argparse.ArgumentParser(description="Smile pipeline camera soak run")
    parser.add_argument("--camera", type=int, default=0, help="OpenCV camera index")
    parser.add_argument(
        "--backend",
        choices=["mock", "mediapipe"],
        default="mock",
        help="Landmark detector backend (default: mock)",
    )
    parser.add_argument(
        "--model",
        type=str,
        default=os.environ.get("SMILE_MODEL_PATH", "./models/face_landmarker.task"),
        help="Path to face_landmarker.task",
    )
    parser.add_argument("--duration", type=int, default=60, help="Seconds to run")
    parser.add_argument(
        "--report-interval",
        type=int,
        default=10,
        help="Seconds between progress reports (default: 10)",
    )

    args = parser.parse_args()

    result = asyncio.run(run(
        camera_index=args.camera,
        backend=args.backend,
        model_path=args.model,
        duration=args.duration,
        report_interval=args.report_interval,
    ))

    sys.exit(0 if result["frames_analyzed"] > 0 and not result.get("leaked") else 1)


if __name__ == "__main__":
    main()
