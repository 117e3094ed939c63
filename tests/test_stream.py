"""
Frame Source Tests
==================

Tests for the WebSocket frame consumer and the camera source.
"""

import asyncio
import base64
import json

import cv2
import numpy as np
import websockets

from smile_agent.models.frame import PixelFormat, raw_frame_from_semi_planar
from smile_agent.stream import CameraFrameSource, FrameConsumer


def _message(bgr, frame_id=0):
    frame = raw_frame_from_semi_planar(bgr, row_padding=4, frame_id=frame_id)
    return json.dumps({
        "frame_id": frame_id,
        "timestamp": 1707321234.567,
        "format": "YUV_420_888",
        "width": frame.width,
        "height": frame.height,
        "planes": [
            {
                "data": base64.b64encode(plane.buffer).decode("ascii"),
                "row_stride": plane.row_stride,
                "pixel_stride": plane.pixel_stride,
            }
            for plane in frame.planes
        ],
    })


def _consumer():
    return FrameConsumer(url="ws://localhost:0/ws/frames", sink=lambda frame: True)


class TestFrameConsumerParse:
    """Tests for FrameConsumer.parse."""

    def test_valid_message(self, sample_bgr):
        consumer = _consumer()

        frame = consumer.parse(_message(sample_bgr, frame_id=5))

        assert frame is not None
        assert frame.frame_id == 5
        assert frame.format is PixelFormat.YUV_420_888
        assert (frame.width, frame.height) == (32, 16)
        assert [p.pixel_stride for p in frame.planes] == [1, 2, 2]
        assert frame.planes[0].row_stride == 36

    def test_release_is_counted(self, sample_bgr):
        consumer = _consumer()
        frame = consumer.parse(_message(sample_bgr))

        frame.close()
        frame.close()

        assert consumer.metrics.frames_released == 1

    def test_invalid_base64(self, sample_bgr):
        consumer = _consumer()
        payload = json.loads(_message(sample_bgr))
        payload["planes"][1]["data"] = "not base64!!"

        assert consumer.parse(json.dumps(payload)) is None
        assert consumer.metrics.parse_errors == 1

    def test_unknown_format_tag(self, sample_bgr):
        consumer = _consumer()
        payload = json.loads(_message(sample_bgr))
        payload["format"] = "HEIC"

        assert consumer.parse(json.dumps(payload)) is None
        assert consumer.metrics.parse_errors == 1

    def test_not_json(self):
        consumer = _consumer()

        assert consumer.parse("{broken") is None
        assert consumer.metrics.parse_errors == 1

    def test_frame_gap_warns_but_accepts(self, sample_bgr):
        consumer = _consumer()
        consumer.metrics.last_frame_id = 5

        frame = consumer.parse(_message(sample_bgr, frame_id=8))

        assert frame is not None
        assert consumer.metrics.validation_warnings == 1

    def test_consecutive_frames_no_warning(self, sample_bgr):
        consumer = _consumer()
        consumer.metrics.last_frame_id = 5

        consumer.parse(_message(sample_bgr, frame_id=6))

        assert consumer.metrics.validation_warnings == 0


class FakeConnection:
    """Stand-in for a websockets client connection replaying fixed messages."""

    def __init__(self, messages):
        self.messages = list(messages)
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.closed = True
        return False

    def __aiter__(self):
        return self._replay()

    async def _replay(self):
        for message in self.messages:
            yield message

    async def close(self):
        self.closed = True


class TestFrameConsumerRun:
    """Tests for the receive and reconnect loop."""

    def test_frames_reach_sink_across_reconnects(self, sample_bgr, monkeypatch):
        messages = [_message(sample_bgr, frame_id=i) for i in (0, 1)]
        monkeypatch.setattr(websockets, "connect", lambda url, **kwargs: FakeConnection(messages))
        received = []
        consumer = FrameConsumer(
            url="ws://frames.test/ws", sink=received.append,
            reconnect_backoff_ms=10, max_reconnect_attempts=1,
        )

        asyncio.run(asyncio.wait_for(consumer.run(), timeout=5.0))

        assert [f.frame_id for f in received] == [0, 1, 0, 1]
        assert consumer.metrics.frames_received == 4
        assert consumer.metrics.reconnect_count == 1
        assert not consumer.connected

    def test_gives_up_after_max_attempts(self, monkeypatch):
        calls = []

        def refuse(url, **kwargs):
            calls.append(url)
            raise ConnectionRefusedError("no producer")

        monkeypatch.setattr(websockets, "connect", refuse)
        consumer = FrameConsumer(
            url="ws://frames.test/ws", sink=lambda frame: True,
            reconnect_backoff_ms=10, max_reconnect_attempts=2,
        )

        asyncio.run(asyncio.wait_for(consumer.run(), timeout=5.0))

        assert len(calls) == 3
        assert consumer.metrics.reconnect_count == 2

    def test_stop_interrupts_backoff(self, monkeypatch):
        def refuse(url, **kwargs):
            raise ConnectionRefusedError("no producer")

        monkeypatch.setattr(websockets, "connect", refuse)
        consumer = FrameConsumer(
            url="ws://frames.test/ws", sink=lambda frame: True,
            reconnect_backoff_ms=60000,
        )

        async def scenario():
            task = asyncio.create_task(consumer.run())
            await asyncio.sleep(0.05)
            await consumer.stop()
            await asyncio.wait_for(task, timeout=1.0)

        asyncio.run(scenario())

        assert consumer.metrics.reconnect_count == 1


class FakeCapture:
    """Stand-in for cv2.VideoCapture yielding a fixed number of frames."""

    def __init__(self, index, frames=5, shape=(17, 33, 3)):
        self.index = index
        self.remaining = frames
        self.shape = shape
        self.released = False

    def isOpened(self):
        return True

    def read(self):
        if self.remaining == 0:
            return False, None
        self.remaining -= 1
        return True, np.full(self.shape, 100, dtype=np.uint8)

    def release(self):
        self.released = True


class TestCameraFrameSource:
    """Tests for the camera reader loop."""

    def test_pool_exhaustion_skips_frames(self, monkeypatch):
        monkeypatch.setattr(cv2, "VideoCapture", FakeCapture)
        held = []
        source = CameraFrameSource(0, sink=held.append, pool_size=2)

        source._run()

        assert source.frames_captured == 2
        assert source.frames_skipped == 3
        assert [f.frame_id for f in held] == [0, 1]

    def test_frames_cropped_to_even_size(self, monkeypatch):
        monkeypatch.setattr(cv2, "VideoCapture", FakeCapture)
        held = []
        source = CameraFrameSource(0, sink=held.append, pool_size=1)

        source._run()

        assert (held[0].width, held[0].height) == (32, 16)

    def test_release_returns_buffer_to_pool(self, monkeypatch):
        monkeypatch.setattr(cv2, "VideoCapture", FakeCapture)
        source = CameraFrameSource(0, sink=lambda frame: frame.close(), pool_size=1)

        source._run()

        metrics = source.get_metrics()
        assert metrics["frames_captured"] == 5
        assert metrics["frames_released"] == 5
        assert metrics["frames_skipped"] == 0
