"""
Capture Controller
==================

Caller-side glue between analysis outcomes and the capture action.

For every delivered outcome:
    smiling? -> throttle.should_trigger()? -> capture action

The capture action itself (taking and storing the photograph) lives
outside this package; it is passed in as a callable.
"""

import logging
from typing import Callable, Optional

from smile_agent.capture.throttle import CaptureThrottle
from smile_agent.models.result import AnalysisOutcome


logger = logging.getLogger(__name__)


CaptureAction = Callable[[AnalysisOutcome], None]


class CaptureController:
    """
    Turns smiling outcomes into debounced capture actions.

    Attributes:
        throttle: Debounce shared by every caller of this controller
        action: Callable invoked once per accepted trigger
        captures: Number of actions invoked
        suppressed: Smiling outcomes rejected by the throttle
        failures: Actions that raised

    Example:
        controller = CaptureController(CaptureThrottle(), take_photo)
        pipeline = FrameAnalysisPipeline(..., on_result=controller.on_outcome)
    """

    def __init__(
        self,
        throttle: CaptureThrottle,
        action: CaptureAction,
    ) -> None:
        self.throttle = throttle
        self.action = action

        self.captures: int = 0
        self.suppressed: int = 0
        self.failures: int = 0
        self.last_capture: Optional[AnalysisOutcome] = None

    def on_outcome(self, outcome: AnalysisOutcome) -> bool:
        """
        Handle one analysis outcome.

        Returns:
            True if the capture action was invoked
        """
        if not outcome.is_smiling:
            return False

        if not self.throttle.should_trigger():
            self.suppressed += 1
            return False

        self.captures += 1
        self.last_capture = outcome
        logger.info(
            f"Smile capture triggered (frame={outcome.frame_id}, "
            f"ratio={outcome.result.mouth_width_ratio:.4f})"
        )

        try:
            self.action(outcome)
        except Exception as e:
            self.failures += 1
            logger.error(f"Capture action failed (frame={outcome.frame_id}): {e}")

        return True

    def get_metrics(self) -> dict:
        """Get controller metrics for observability."""
        return {
            "captures": self.captures,
            "suppressed": self.suppressed,
            "failures": self.failures,
            "last_capture_frame_id": (
                self.last_capture.frame_id if self.last_capture else None
            ),
            "throttle": self.throttle.get_metrics(),
        }
