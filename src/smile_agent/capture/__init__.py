"""
Capture Module
==============

Debounced capture triggering.

Components:
    - CaptureThrottle: Atomic check-and-update cooldown window
    - CaptureController: Outcome -> throttle -> capture action
"""

from smile_agent.capture.throttle import CaptureThrottle, wall_clock_ms
from smile_agent.capture.trigger import CaptureAction, CaptureController

__all__ = [
    "CaptureThrottle",
    "CaptureController",
    "CaptureAction",
    "wall_clock_ms",
]
