"""
Latest Frame Slot
=================

Async-safe single-frame handoff between a frame producer and the
analysis worker.

This module provides the LatestFrameSlot class, the "keep only the
latest frame" backpressure policy: a frame that arrives while the
previous one is still waiting replaces it, and the replaced frame is
released straight back to its source.

Design Rules:
    - Capacity of exactly one frame
    - A replaced frame is closed immediately (it will never be analyzed)
    - Exposes minimal metrics for observability
    - Must be used from the event loop thread
"""

import asyncio
import logging
from typing import Optional

from smile_agent.models.frame import RawFrame


logger = logging.getLogger(__name__)


class LatestFrameSlot:
    """
    Async-safe slot holding at most one pending frame.

    Attributes:
        dropped_count: Number of frames replaced before being taken
        total_put: Total frames ever put into the slot

    Example:
        slot = LatestFrameSlot()

        # Producer
        slot.put(frame)

        # Consumer
        frame = await slot.get()
    """

    def __init__(self) -> None:
        self._frame: Optional[RawFrame] = None
        self._event = asyncio.Event()
        self._dropped_count: int = 0
        self._total_put: int = 0

    @property
    def size(self) -> int:
        """Number of pending frames (0 or 1)."""
        return 0 if self._frame is None else 1

    @property
    def dropped_count(self) -> int:
        """Number of frames dropped because a newer one arrived."""
        return self._dropped_count

    @property
    def total_put(self) -> int:
        """Total frames ever put into the slot."""
        return self._total_put

    def put(self, frame: RawFrame) -> bool:
        """
        Make `frame` the pending frame, dropping any older one.

        Args:
            frame: Frame to hand over

        Returns:
            True if nothing was dropped, False if an older frame was replaced.
        """
        self._total_put += 1

        dropped, self._frame = self._frame, frame
        self._event.set()

        if dropped is None:
            return True

        self._dropped_count += 1
        dropped.close()
        logger.debug(
            f"Dropped frame {dropped.frame_id} for newer frame {frame.frame_id}. "
            f"Total dropped: {self._dropped_count}"
        )
        return False

    async def get(self, timeout: Optional[float] = None) -> Optional[RawFrame]:
        """
        Take the pending frame, waiting for one if necessary.

        Args:
            timeout: Maximum seconds to wait. None = wait forever.

        Returns:
            The pending frame, or None if timeout occurred.
        """
        while self._frame is None:
            self._event.clear()
            try:
                if timeout is not None:
                    await asyncio.wait_for(self._event.wait(), timeout=timeout)
                else:
                    await self._event.wait()
            except asyncio.TimeoutError:
                return None

        frame, self._frame = self._frame, None
        return frame

    def get_nowait(self) -> Optional[RawFrame]:
        """
        Take the pending frame without waiting.

        Returns:
            The pending frame if available, None otherwise.
        """
        frame, self._frame = self._frame, None
        return frame

    def clear(self) -> int:
        """
        Release the pending frame, if any.

        Returns:
            Number of frames released.
        """
        frame = self.get_nowait()
        if frame is None:
            return 0
        frame.close()
        return 1

    def metrics(self) -> dict:
        """
        Get slot metrics for observability.

        Returns:
            Dict with size, dropped_count, total_put
        """
        return {
            "size": self.size,
            "dropped_count": self._dropped_count,
            "total_put": self._total_put,
        }
