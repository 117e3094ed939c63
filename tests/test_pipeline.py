"""
Pipeline Tests
==============

Tests for per-frame analysis, frame release and the keep-latest worker.
"""

import asyncio
import threading
import time

import cv2
import pytest

from smile_agent.detection import MockLandmarkDetector, build_synthetic_face
from smile_agent.models.frame import PixelFormat, RawFrame, raw_frame_from_i420
from smile_agent.models.reason_codes import ReasonCode
from smile_agent.models.result import SmileResult
from smile_agent.pipeline import FrameAnalysisPipeline, LatestFrameSlot


def _ready_detector(**kwargs):
    detector = MockLandmarkDetector(**kwargs)
    detector.initialize()
    return detector


async def _wait_for(predicate, timeout=5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class TestAnalyze:
    """Tests for synchronous single-frame analysis."""

    def test_smiling_frame(self, planar_frame, release_counter, smiling_face):
        pipeline = FrameAnalysisPipeline(_ready_detector(faces=[smiling_face]))

        result = pipeline.analyze(planar_frame)

        assert result.is_smiling is True
        assert result.mouth_width_ratio == pytest.approx(0.05)
        assert release_counter.count == 1

    def test_outcome_carries_frame_metadata(self, sample_bgr, release_counter, smiling_face):
        pipeline = FrameAnalysisPipeline(_ready_detector(faces=[smiling_face]))
        frame = raw_frame_from_i420(
            sample_bgr, frame_id=42, timestamp=1707321234.5, on_release=release_counter
        )

        outcome = pipeline.analyze_outcome(frame)

        assert outcome.reason is ReasonCode.SMILING
        assert outcome.frame_id == 42
        assert outcome.timestamp == 1707321234.5
        assert outcome.faces_detected == 1
        assert outcome.latency_ms > 0
        assert pipeline.last_outcome is outcome

    def test_only_first_face_is_classified(self, planar_frame, smiling_face, neutral_face):
        pipeline = FrameAnalysisPipeline(
            _ready_detector(faces=[smiling_face, neutral_face])
        )

        outcome = pipeline.analyze_outcome(planar_frame)

        assert outcome.is_smiling is True
        assert outcome.faces_detected == 2

    def test_no_face(self, planar_frame, release_counter):
        pipeline = FrameAnalysisPipeline(_ready_detector(faces=[]))

        outcome = pipeline.analyze_outcome(planar_frame)

        assert outcome.result == SmileResult.not_smiling()
        assert outcome.reason is ReasonCode.NO_FACE
        assert release_counter.count == 1

    def test_short_landmark_set(self, planar_frame):
        face = build_synthetic_face(50, 5, 1000, num_points=100)
        pipeline = FrameAnalysisPipeline(_ready_detector(faces=[face]))

        outcome = pipeline.analyze_outcome(planar_frame)

        assert outcome.result == SmileResult.not_smiling()
        assert outcome.reason is ReasonCode.INSUFFICIENT_LANDMARKS

    def test_detector_not_initialized(self, planar_frame, release_counter, smiling_face):
        detector = MockLandmarkDetector(faces=[smiling_face])
        pipeline = FrameAnalysisPipeline(detector)

        outcome = pipeline.analyze_outcome(planar_frame)

        assert outcome.reason is ReasonCode.DETECTOR_UNAVAILABLE
        assert detector.detect_calls == 0
        assert release_counter.count == 1


class TestFrameRelease:
    """Every frame is released exactly once, whatever happens."""

    def test_unsupported_format(self, release_counter, smiling_face):
        pipeline = FrameAnalysisPipeline(_ready_detector(faces=[smiling_face]))
        frame = RawFrame(PixelFormat.JPEG, 32, 16, on_release=release_counter)

        outcome = pipeline.analyze_outcome(frame)

        assert outcome.reason is ReasonCode.UNSUPPORTED_FORMAT
        assert outcome.result == SmileResult.not_smiling()
        assert release_counter.count == 1

    def test_encode_failure(self, planar_frame, release_counter, smiling_face, monkeypatch):
        monkeypatch.setattr(cv2, "imencode", lambda *args, **kwargs: (False, None))
        pipeline = FrameAnalysisPipeline(_ready_detector(faces=[smiling_face]))

        outcome = pipeline.analyze_outcome(planar_frame)

        assert outcome.reason is ReasonCode.ENCODE_FAILED
        assert release_counter.count == 1

    def test_decode_failure(self, planar_frame, release_counter, smiling_face, monkeypatch):
        monkeypatch.setattr(cv2, "imdecode", lambda *args, **kwargs: None)
        pipeline = FrameAnalysisPipeline(_ready_detector(faces=[smiling_face]))

        outcome = pipeline.analyze_outcome(planar_frame)

        assert outcome.reason is ReasonCode.DECODE_FAILED
        assert release_counter.count == 1

    def test_detector_error(self, planar_frame, release_counter):
        pipeline = FrameAnalysisPipeline(
            _ready_detector(error=RuntimeError("inference crashed"))
        )

        outcome = pipeline.analyze_outcome(planar_frame)

        assert outcome.reason is ReasonCode.DETECTOR_ERROR
        assert outcome.result == SmileResult.not_smiling()
        assert release_counter.count == 1

    def test_release_is_idempotent(self, planar_frame, release_counter):
        planar_frame.close()
        planar_frame.close()
        with planar_frame:
            pass

        assert release_counter.count == 1
        assert planar_frame.closed


class TestLatestFrameSlot:
    """Tests for the keep-latest handoff."""

    def test_newer_frame_replaces_waiting_one(self, sample_bgr, release_counter):
        slot = LatestFrameSlot()
        first = raw_frame_from_i420(sample_bgr, frame_id=1, on_release=release_counter)
        second = raw_frame_from_i420(sample_bgr, frame_id=2, on_release=release_counter)

        assert slot.put(first) is True
        assert slot.put(second) is False

        assert first.closed
        assert release_counter.released == [1]
        assert slot.dropped_count == 1
        assert slot.get_nowait() is second
        assert slot.size == 0

    def test_get_times_out_when_empty(self):
        slot = LatestFrameSlot()

        assert asyncio.run(slot.get(timeout=0.01)) is None

    def test_clear_releases_pending_frame(self, planar_frame, release_counter):
        slot = LatestFrameSlot()
        slot.put(planar_frame)

        assert slot.clear() == 1
        assert release_counter.count == 1
        assert slot.clear() == 0


class TestWorker:
    """Tests for the asynchronous worker."""

    def test_initialize_reports_readiness(self):
        async def scenario():
            ok = FrameAnalysisPipeline(MockLandmarkDetector())
            broken = FrameAnalysisPipeline(MockLandmarkDetector(fail_initialize=True))

            results = (await ok.initialize(), await broken.initialize())
            ready = (ok.ready, broken.ready)

            await ok.shutdown()
            await broken.shutdown()
            return results, ready

        results, ready = asyncio.run(scenario())

        assert results == (True, False)
        assert ready == (True, False)

    def test_only_latest_frame_is_analyzed(self, sample_bgr, release_counter, smiling_face):
        """Frames submitted before the worker runs collapse to the newest."""
        delivered = []

        async def scenario():
            pipeline = FrameAnalysisPipeline(
                MockLandmarkDetector(faces=[smiling_face]), on_result=delivered.append
            )
            await pipeline.initialize()
            pipeline.start()

            for frame_id in (1, 2, 3):
                pipeline.submit(
                    raw_frame_from_i420(sample_bgr, frame_id=frame_id, on_release=release_counter)
                )

            await _wait_for(lambda: delivered)
            await pipeline.shutdown()
            return pipeline.get_metrics()

        metrics = asyncio.run(scenario())

        assert [o.frame_id for o in delivered] == [3]
        assert sorted(release_counter.released) == [1, 2, 3]
        assert metrics["frames_dropped"] == 2
        assert metrics["frames_analyzed"] == 1

    def test_outcomes_delivered_in_order_on_loop_thread(self, sample_bgr, release_counter):
        delivered = []
        threads = []

        def on_result(outcome):
            delivered.append(outcome.frame_id)
            threads.append(threading.get_ident())

        async def scenario():
            pipeline = FrameAnalysisPipeline(MockLandmarkDetector(), on_result=on_result)
            await pipeline.initialize()
            pipeline.start()

            for frame_id in range(5):
                pipeline.submit(
                    raw_frame_from_i420(sample_bgr, frame_id=frame_id, on_release=release_counter)
                )
                await _wait_for(lambda: len(delivered) == frame_id + 1)

            await pipeline.shutdown()

        asyncio.run(scenario())

        assert delivered == [0, 1, 2, 3, 4]
        assert set(threads) == {threading.get_ident()}
        assert release_counter.count == 5

    def test_submit_from_another_thread(self, sample_bgr, release_counter):
        delivered = []

        async def scenario():
            pipeline = FrameAnalysisPipeline(MockLandmarkDetector(), on_result=delivered.append)
            await pipeline.initialize()
            pipeline.start()

            frame = raw_frame_from_i420(sample_bgr, frame_id=9, on_release=release_counter)
            await asyncio.to_thread(pipeline.submit_threadsafe, frame)
            await _wait_for(lambda: delivered)
            await pipeline.shutdown()

        asyncio.run(scenario())

        assert [o.frame_id for o in delivered] == [9]
        assert release_counter.count == 1

    def test_shutdown_releases_pending_and_silences_callbacks(
        self, sample_bgr, release_counter
    ):
        delivered = []
        detector = MockLandmarkDetector()

        async def scenario():
            pipeline = FrameAnalysisPipeline(detector, on_result=delivered.append)
            await pipeline.initialize()
            pipeline.start()

            # Worker has not run yet: the frame is still pending at shutdown
            pipeline.submit(raw_frame_from_i420(sample_bgr, frame_id=1, on_release=release_counter))
            await pipeline.shutdown()

            late = raw_frame_from_i420(sample_bgr, frame_id=2, on_release=release_counter)
            accepted = pipeline.submit(late)
            await asyncio.sleep(0.05)
            return pipeline, accepted

        pipeline, accepted = asyncio.run(scenario())

        assert accepted is False
        assert sorted(release_counter.released) == [1, 2]
        assert delivered == []
        assert pipeline.closed
        assert not pipeline.ready
        assert detector.closed

    def test_callback_error_does_not_stop_worker(self, sample_bgr, release_counter):
        delivered = []

        def flaky(outcome):
            delivered.append(outcome.frame_id)
            if outcome.frame_id == 0:
                raise RuntimeError("listener crashed")

        async def scenario():
            pipeline = FrameAnalysisPipeline(MockLandmarkDetector(), on_result=flaky)
            await pipeline.initialize()
            pipeline.start()

            for frame_id in range(2):
                pipeline.submit(
                    raw_frame_from_i420(sample_bgr, frame_id=frame_id, on_release=release_counter)
                )
                await _wait_for(lambda: len(delivered) == frame_id + 1)

            await pipeline.shutdown()
            return pipeline.get_metrics()

        metrics = asyncio.run(scenario())

        assert delivered == [0, 1]
        assert metrics["callback_errors"] == 1

    def test_shutdown_waits_for_in_flight_frame(self, sample_bgr, release_counter, smiling_face):
        """A frame mid-analysis at shutdown is released and its outcome dropped."""
        delivered = []
        started = threading.Event()

        class SlowDetector(MockLandmarkDetector):
            def detect(self, image):
                started.set()
                time.sleep(0.2)
                return super().detect(image)

        detector = SlowDetector(faces=[smiling_face])

        async def scenario():
            pipeline = FrameAnalysisPipeline(detector, on_result=delivered.append)
            await pipeline.initialize()
            pipeline.start()

            pipeline.submit(raw_frame_from_i420(sample_bgr, frame_id=1, on_release=release_counter))
            assert await asyncio.to_thread(started.wait, 5.0)

            pipeline.submit(raw_frame_from_i420(sample_bgr, frame_id=2, on_release=release_counter))
            await pipeline.shutdown()
            await asyncio.sleep(0.05)

        asyncio.run(scenario())

        assert sorted(release_counter.released) == [1, 2]
        assert delivered == []
        assert detector.closed
        assert detector.detect_calls == 1
