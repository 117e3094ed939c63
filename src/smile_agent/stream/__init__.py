"""
Stream Module
=============

Frame sources feeding the analysis pipeline.

    - FrameConsumer: WebSocket client for remote raw frames
    - CameraFrameSource: Local OpenCV camera reader

Example:
    from smile_agent.stream import FrameConsumer

    consumer = FrameConsumer(
        url="ws://localhost:8000/ws/frames",
        sink=pipeline.submit,
    )
    task = asyncio.create_task(consumer.run())
"""

from smile_agent.stream.camera import CameraFrameSource
from smile_agent.stream.consumer import FrameConsumer, FrameConsumerMetrics


__all__ = [
    "CameraFrameSource",
    "FrameConsumer",
    "FrameConsumerMetrics",
]
