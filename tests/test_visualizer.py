"""
Unit tests for the strip-chart Visualizer.
Run with:  pytest tests/test_visualizer.py
"""

from __future__ import annotations

import numpy as np

from pulse_monitor.pulse_detector import PulseReading
from pulse_monitor.visualizer import Visualizer, _FLASH_FRAMES, _RED


def _reading(bpm=0, inside_beat=False) -> PulseReading:
    return PulseReading(bpm=bpm, ibi=750, amplitude=0.12,
                        inside_beat=inside_beat, last_beat_time=0)


class TestVisualizer:

    def test_draw_creates_canvas_of_configured_size(self):
        vis = Visualizer(resolution=(320, 240), waveform_height=100, show_fps=False)
        frame = vis.draw(_reading())
        assert frame.shape == (240, 320, 3)
        assert frame.dtype == np.uint8

    def test_draw_in_place_on_given_frame(self):
        vis = Visualizer(resolution=(320, 240), waveform_height=100)
        frame = np.zeros((240, 320, 3), dtype=np.uint8)
        out = vis.draw(_reading(bpm=72), frame=frame)
        assert out is frame
        assert frame.any()

    def test_waveform_panel_drawn_after_samples(self):
        vis = Visualizer(resolution=(200, 200), waveform_height=100, show_fps=False)
        empty = vis.draw(_reading()).copy()
        for v in np.sin(np.linspace(0, 4 * np.pi, 150)):
            vis.update_waveform(0.6 + 0.3 * v, 0.6)
        drawn = vis.draw(_reading())
        assert not np.array_equal(empty[100:], drawn[100:])

    def test_beat_indicator_flashes_then_fades(self):
        vis = Visualizer(resolution=(640, 360), show_fps=False)
        centre = (60, 600)   # (row, col)

        frame = vis.draw(_reading(bpm=80), beat=True)
        assert tuple(frame[centre]) == _RED

        for _ in range(_FLASH_FRAMES):
            frame = vis.draw(_reading(bpm=80))
        assert tuple(frame[centre]) != _RED
