"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from pulse_monitor.pulse_detector import PulseDetector


@pytest.fixture
def detector() -> PulseDetector:
    """Detector seeded at the middle of a 0.3 – 0.9 signal range."""
    return PulseDetector(threshold=0.6)
