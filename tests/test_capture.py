"""
Capture Tests
=============

Tests for the capture throttle and the capture controller.
"""

import threading

import pytest

from smile_agent.capture import CaptureController, CaptureThrottle
from smile_agent.models.reason_codes import ReasonCode
from smile_agent.models.result import AnalysisOutcome, SmileResult


def _outcome(is_smiling, frame_id=0):
    return AnalysisOutcome(
        result=SmileResult(is_smiling=is_smiling, mouth_width_ratio=0.05 if is_smiling else 0.03),
        reason=ReasonCode.SMILING if is_smiling else ReasonCode.NOT_SMILING,
        frame_id=frame_id,
        timestamp=1707321234.5,
    )


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class TestCaptureThrottle:
    """Tests for the cooldown debounce."""

    def test_first_trigger_accepted(self):
        throttle = CaptureThrottle(cooldown_ms=2000)

        assert throttle.last_trigger_time is None
        assert throttle.should_trigger(now_ms=0) is True
        assert throttle.last_trigger_time == 0

    def test_cooldown_sequence(self):
        throttle = CaptureThrottle(cooldown_ms=2000)

        assert throttle.should_trigger(now_ms=0) is True
        assert throttle.should_trigger(now_ms=500) is False
        assert throttle.should_trigger(now_ms=2100) is True
        assert throttle.last_trigger_time == 2100

    def test_rejection_does_not_extend_cooldown(self):
        throttle = CaptureThrottle(cooldown_ms=2000)

        throttle.should_trigger(now_ms=0)
        throttle.should_trigger(now_ms=1999)

        assert throttle.last_trigger_time == 0
        assert throttle.should_trigger(now_ms=2000) is True

    def test_earlier_timestamp_rejected(self):
        throttle = CaptureThrottle(cooldown_ms=2000)
        throttle.should_trigger(now_ms=10000)

        assert throttle.should_trigger(now_ms=5000) is False
        assert throttle.last_trigger_time == 10000

    def test_uses_clock_when_no_time_given(self):
        clock = FakeClock(1000.0)
        throttle = CaptureThrottle(cooldown_ms=2000, clock=clock)

        assert throttle.should_trigger() is True
        clock.now = 2500.0
        assert throttle.should_trigger() is False
        clock.now = 3000.0
        assert throttle.should_trigger() is True

    def test_zero_cooldown_accepts_everything(self):
        throttle = CaptureThrottle(cooldown_ms=0)

        assert all(throttle.should_trigger(now_ms=5) for _ in range(3))

    def test_negative_cooldown_rejected(self):
        with pytest.raises(ValueError):
            CaptureThrottle(cooldown_ms=-1)

    def test_concurrent_callers_single_winner(self):
        """Simultaneous callers inside one window: exactly one is accepted."""
        throttle = CaptureThrottle(cooldown_ms=2000)
        barrier = threading.Barrier(8)
        results = []
        lock = threading.Lock()

        def call():
            barrier.wait()
            accepted = throttle.should_trigger(now_ms=1000.0)
            with lock:
                results.append(accepted)

        threads = [threading.Thread(target=call) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1
        assert throttle.accepted_count == 1
        assert throttle.rejected_count == 7

    def test_metrics(self):
        throttle = CaptureThrottle(cooldown_ms=2000)
        throttle.should_trigger(now_ms=0)
        throttle.should_trigger(now_ms=1)

        metrics = throttle.get_metrics()

        assert metrics["accepted"] == 1
        assert metrics["rejected"] == 1
        assert metrics["last_trigger_time"] == 0


class TestCaptureController:
    """Tests for the outcome -> capture action glue."""

    def test_smile_triggers_action(self):
        captured = []
        controller = CaptureController(
            CaptureThrottle(clock=FakeClock(0.0)), captured.append
        )

        assert controller.on_outcome(_outcome(True, frame_id=3)) is True
        assert [o.frame_id for o in captured] == [3]
        assert controller.last_capture.frame_id == 3

    def test_no_smile_no_action(self):
        captured = []
        controller = CaptureController(CaptureThrottle(), captured.append)

        assert controller.on_outcome(_outcome(False)) is False
        assert captured == []
        assert controller.throttle.accepted_count == 0

    def test_smile_within_cooldown_suppressed(self):
        clock = FakeClock(0.0)
        captured = []
        controller = CaptureController(CaptureThrottle(clock=clock), captured.append)

        controller.on_outcome(_outcome(True, frame_id=1))
        clock.now = 1000.0
        controller.on_outcome(_outcome(True, frame_id=2))
        clock.now = 2500.0
        controller.on_outcome(_outcome(True, frame_id=3))

        assert [o.frame_id for o in captured] == [1, 3]
        assert controller.captures == 2
        assert controller.suppressed == 1

    def test_action_failure_is_counted(self):
        def broken(outcome):
            raise IOError("disk full")

        controller = CaptureController(CaptureThrottle(clock=FakeClock()), broken)

        assert controller.on_outcome(_outcome(True)) is True
        assert controller.failures == 1
        assert controller.get_metrics()["failures"] == 1
