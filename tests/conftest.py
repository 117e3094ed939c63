"""
Test Configuration
==================

Pytest fixtures and test configuration for SmileCaptureAgent.
"""

import numpy as np
import pytest


class ReleaseCounter:
    """Release hook that records every frame handed back to the source."""

    def __init__(self):
        self.released = []

    def __call__(self, frame):
        self.released.append(frame.frame_id)

    @property
    def count(self):
        return len(self.released)


@pytest.fixture
def release_counter():
    """Provide a fresh frame release hook."""
    return ReleaseCounter()


@pytest.fixture
def sample_bgr():
    """Provide a small deterministic BGR image (16 rows x 32 columns)."""
    rng = np.random.default_rng(seed=7)
    return rng.integers(0, 256, size=(16, 32, 3), dtype=np.uint8)


@pytest.fixture
def gray_bgr():
    """Provide a uniform mid-gray BGR image."""
    return np.full((16, 32, 3), 128, dtype=np.uint8)


@pytest.fixture
def planar_frame(sample_bgr, release_counter):
    """Provide a planar YUV_420_888 frame with unit-stride chroma."""
    from smile_agent.models.frame import raw_frame_from_i420

    return raw_frame_from_i420(sample_bgr, frame_id=1, on_release=release_counter)


@pytest.fixture
def smiling_face():
    """Landmarks with mouth 50, lip gap 5, face 1000 (ratio 0.05, aspect 10)."""
    from smile_agent.detection import build_synthetic_face

    return build_synthetic_face(mouth_width=50, mouth_height=5, face_width=1000)


@pytest.fixture
def neutral_face():
    """Landmarks with a narrow mouth (ratio 0.03, aspect 1.5)."""
    from smile_agent.detection import build_synthetic_face

    return build_synthetic_face(mouth_width=30, mouth_height=20, face_width=1000)
