"""
SmileCaptureAgent
=================

Smile-triggered capture decisions for a live camera frame stream.

Each camera frame is converted from its raw YUV planes into a decoded
image, passed to a facial landmark detector, and classified as smiling
or not from mouth and face geometry. A debounce decides which smiles
turn into capture triggers.

Components:
    - conversion: YUV_420_888 planes -> decoded image
    - detection: Landmark detector protocol, mock and MediaPipe backends
    - classification: Landmark geometry smile heuristic
    - capture: Cooldown throttle and capture controller
    - pipeline: LangGraph per-frame analysis, keep-latest worker
    - stream: WebSocket and camera frame sources

Example:
    from smile_agent.detection import MockLandmarkDetector
    from smile_agent.pipeline import FrameAnalysisPipeline

    pipeline = FrameAnalysisPipeline(detector=MockLandmarkDetector())
    await pipeline.initialize()
    result = pipeline.analyze(frame)
"""

__version__ = "0.1.0"
__author__ = "SmileCapture Project"

__all__ = [
    "__version__",
]
