"""
Frame Consumer
===============

WebSocket client for consuming raw camera frames from a remote producer.

This module provides the FrameConsumer class which:
    - Connects to the producer's frame endpoint
    - Receives and validates FrameMessage payloads
    - Warns on frame ordering violations
    - Handles reconnection with backoff
    - Hands RawFrames to the analysis pipeline

Design Rules:
    - Does NOT decode pixel data (planes are passed through as bytes)
    - Logs validation warnings but continues processing
    - Reconnects automatically on disconnect
    - Exposes metrics for health monitoring
"""

import asyncio
import binascii
import logging
from typing import Callable, Optional

import websockets
from pydantic import ValidationError
from websockets.exceptions import WebSocketException

from smile_agent.models.frame import RawFrame
from smile_agent.models.input import FrameMessage


logger = logging.getLogger(__name__)


FrameSink = Callable[[RawFrame], bool]


class FrameConsumerMetrics:
    """Metrics for FrameConsumer observability."""

    __slots__ = (
        "frames_received",
        "frames_released",
        "reconnect_count",
        "last_frame_id",
        "validation_warnings",
        "parse_errors",
    )

    def __init__(self) -> None:
        self.frames_received: int = 0
        self.frames_released: int = 0
        self.reconnect_count: int = 0
        self.last_frame_id: int = -1
        self.validation_warnings: int = 0
        self.parse_errors: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "frames_received": self.frames_received,
            "frames_released": self.frames_released,
            "reconnect_count": self.reconnect_count,
            "last_frame_id": self.last_frame_id,
            "validation_warnings": self.validation_warnings,
            "parse_errors": self.parse_errors,
        }


class FrameConsumer:
    """
    WebSocket consumer for raw frames.

    Attributes:
        url: WebSocket URL to connect to
        sink: Callable receiving each RawFrame (usually pipeline.submit)
        connected: Whether currently connected
        metrics: Operational metrics

    Example:
        consumer = FrameConsumer(
            url="ws://localhost:8000/ws/frames",
            sink=pipeline.submit,
            reconnect_backoff_ms=500,
        )

        task = asyncio.create_task(consumer.run())

        # Later, stop gracefully
        await consumer.stop()
        await task
    """

    def __init__(
        self,
        url: str,
        sink: FrameSink,
        reconnect_backoff_ms: int = 500,
        max_reconnect_attempts: int = 0,
    ) -> None:
        """
        Initialize frame consumer.

        Args:
            url: WebSocket URL of the frame producer
            sink: Callable receiving validated frames
            reconnect_backoff_ms: Backoff between reconnect attempts
            max_reconnect_attempts: Max attempts (0 = unlimited)
        """
        self.url = url
        self.sink = sink
        self.reconnect_backoff_ms = reconnect_backoff_ms
        self.max_reconnect_attempts = max_reconnect_attempts

        self._websocket = None
        self._connected: bool = False
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()

        self.metrics = FrameConsumerMetrics()

    @property
    def connected(self) -> bool:
        """Whether currently connected to the producer."""
        return self._connected

    async def run(self) -> None:
        """
        Receive frames until stop() is called.

        Each session ends on disconnect or error; the next one starts after
        reconnect_backoff_ms. Gives up once max_reconnect_attempts is spent.
        """
        self._running = True
        self._stop_event.clear()
        logger.info(f"FrameConsumer starting: {self.url}")

        while self._running:
            try:
                await self._session()
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.warning(f"Frame stream session ended: {e}")
            finally:
                self._connected = False
                self._websocket = None

            if not self._running or self._attempts_exhausted():
                break

            self.metrics.reconnect_count += 1
            logger.info(
                f"Reconnect {self.metrics.reconnect_count} in {self.reconnect_backoff_ms}ms"
            )
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.reconnect_backoff_ms / 1000.0
                )
            except asyncio.TimeoutError:
                continue

        self._running = False
        logger.info("FrameConsumer stopped")

    async def stop(self) -> None:
        """Stop receiving and close the open connection, if any."""
        self._running = False
        self._stop_event.set()

        ws, self._websocket = self._websocket, None
        if ws is not None:
            await ws.close()

    def _attempts_exhausted(self) -> bool:
        limit = self.max_reconnect_attempts
        if limit and self.metrics.reconnect_count >= limit:
            logger.error(f"Giving up on {self.url} after {limit} reconnects")
            return True
        return False

    async def _session(self) -> None:
        """One connection: every message becomes a RawFrame for the sink."""
        async with websockets.connect(self.url, max_size=None) as ws:
            self._websocket = ws
            self._connected = True
            logger.info(f"Frame stream connected: {self.url}")

            async for raw in ws:
                frame = self.parse(raw)
                if frame is None:
                    continue
                self.metrics.frames_received += 1
                self.metrics.last_frame_id = frame.frame_id
                self.sink(frame)
                if not self._running:
                    break

    def parse(self, raw) -> Optional[RawFrame]:
        """
        Parse and validate a raw WebSocket message.

        Logs warnings for ordering violations but does not reject frames.

        Args:
            raw: JSON text (or bytes) from the WebSocket

        Returns:
            RawFrame, or None on parse error
        """
        try:
            message = FrameMessage.model_validate_json(raw)
            frame = message.to_raw_frame(on_release=self._on_release)
        except (ValidationError, binascii.Error, ValueError) as e:
            self.metrics.parse_errors += 1
            logger.error(f"Invalid frame message: {e}")
            return None

        last_id = self.metrics.last_frame_id
        if last_id >= 0 and frame.frame_id != last_id + 1:
            self.metrics.validation_warnings += 1
            if frame.frame_id <= last_id:
                logger.warning(
                    f"Frame ID went backwards: got {frame.frame_id}, "
                    f"expected {last_id + 1}"
                )
            else:
                logger.warning(
                    f"Frame ID gap: got {frame.frame_id}, expected {last_id + 1} "
                    f"(gap of {frame.frame_id - last_id - 1} frames)"
                )

        return frame

    def _on_release(self, frame: RawFrame) -> None:
        self.metrics.frames_released += 1
