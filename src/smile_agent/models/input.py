"""
Input Message Schema
====================

This module defines the Pydantic model for raw frame messages received
from a remote frame producer over WebSocket.

Input Contract:
    {
        "frame_id": 1234,
        "timestamp": 1707321234.567,
        "format": "YUV_420_888",
        "width": 640,
        "height": 480,
        "planes": [
            {"data": "<base64>", "row_stride": 640, "pixel_stride": 1},
            {"data": "<base64>", "row_stride": 640, "pixel_stride": 2},
            {"data": "<base64>", "row_stride": 640, "pixel_stride": 2}
        ]
    }

Example:
    from smile_agent.models.input import FrameMessage

    raw = await websocket.recv()
    message = FrameMessage.model_validate_json(raw)
    frame = message.to_raw_frame()
"""

import base64
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from smile_agent.models.frame import PixelFormat, PixelPlane, RawFrame


class PlaneMessage(BaseModel):
    """One pixel plane, base64 encoded."""

    data: str = Field(..., description="Base64-encoded plane bytes")
    row_stride: int = Field(..., ge=1, description="Bytes per row")
    pixel_stride: int = Field(..., ge=1, description="Bytes per sample")


class FrameMessage(BaseModel):
    """
    Schema for raw frame messages.

    Attributes:
        frame_id: Monotonically increasing frame counter
        timestamp: UNIX timestamp when the frame was captured
        format: Pixel format tag
        width: Frame width in pixels
        height: Frame height in pixels
        planes: Pixel planes in Y, U, V order
    """

    frame_id: int = Field(..., ge=0, description="Frame counter from source")
    timestamp: float = Field(..., gt=0, description="UNIX capture timestamp")
    format: PixelFormat = Field(..., description="Pixel format tag")
    width: int = Field(..., ge=1, description="Frame width in pixels")
    height: int = Field(..., ge=1, description="Frame height in pixels")
    planes: List[PlaneMessage] = Field(
        default_factory=list,
        max_length=3,
        description="Pixel planes in Y, U, V order",
    )

    def to_raw_frame(
        self,
        on_release: Optional[Callable[[RawFrame], None]] = None,
    ) -> RawFrame:
        """
        Build a RawFrame from this message.

        Raises:
            binascii.Error: If a plane is not valid base64
        """
        planes = [
            PixelPlane(
                buffer=base64.b64decode(plane.data, validate=True),
                row_stride=plane.row_stride,
                pixel_stride=plane.pixel_stride,
            )
            for plane in self.planes
        ]
        return RawFrame(
            format=self.format,
            width=self.width,
            height=self.height,
            planes=planes,
            frame_id=self.frame_id,
            timestamp=self.timestamp,
            on_release=on_release,
        )
