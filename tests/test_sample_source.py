"""
Unit tests for the sample sources.
Run with:  pytest tests/test_sample_source.py
"""

from __future__ import annotations

import numpy as np
import pytest

from pulse_monitor.pulse_detector import PulseDetector
from pulse_monitor.sample_source import CsvSampleSource, SyntheticPulseSource


# ---------------------------------------------------------------------------
# SyntheticPulseSource tests
# ---------------------------------------------------------------------------

class TestSyntheticPulseSource:

    def test_read_before_open_raises(self):
        src = SyntheticPulseSource()
        with pytest.raises(RuntimeError):
            src.read_sample()

    @pytest.mark.parametrize(
        "kwargs",
        [{"bpm": 0}, {"bpm": -60}, {"interval_ms": 0}, {"low": 0.9, "high": 0.3}],
    )
    def test_invalid_parameters_rejected(self, kwargs):
        with pytest.raises(ValueError):
            SyntheticPulseSource(**kwargs)

    def test_duration_limits_stream(self):
        with SyntheticPulseSource(bpm=60, interval_ms=10, duration_s=1.0) as src:
            samples = list(src.samples())
        assert src.total_samples == 100
        assert len(samples) == 100

    def test_first_sample_has_no_elapsed_time(self):
        with SyntheticPulseSource(interval_ms=20, duration_s=0.5) as src:
            elapsed = [dt for _, dt in src.samples()]
        assert elapsed[0] == 0
        assert set(elapsed[1:]) == {20}

    def test_values_stay_in_range(self):
        with SyntheticPulseSource(bpm=90, low=0.2, high=1.0, duration_s=3.0, dicrotic=0.4) as src:
            values = np.array([v for v, _ in src.samples()])
        assert values.min() >= 0.2 - 1e-9
        assert values.max() <= 1.0 + 1e-9
        assert values[0] == pytest.approx(0.6)

    def test_noise_is_reproducible_with_seed(self):
        def _values(seed):
            with SyntheticPulseSource(duration_s=1.0, noise=0.05, seed=seed) as src:
                return [v for v, _ in src.samples()]

        assert _values(7) == _values(7)
        assert _values(7) != _values(8)

    def test_close_stops_stream(self):
        src = SyntheticPulseSource()
        src.open()
        gen = src.samples()
        next(gen)
        src.close()
        assert list(gen) == []

    @pytest.mark.parametrize("bpm", [60.0, 75.0, 100.0])
    def test_detector_tracks_synthetic_rate(self, bpm):
        det = PulseDetector(threshold=0.6)
        with SyntheticPulseSource(bpm=bpm, interval_ms=10, duration_s=20.0) as src:
            for value, elapsed_ms in src.samples():
                det.push(value, elapsed_ms)
        assert abs(det.bpm - bpm) <= 2, f"Expected ~{bpm} BPM, got {det.bpm}"


# ---------------------------------------------------------------------------
# CsvSampleSource tests
# ---------------------------------------------------------------------------

class TestCsvSampleSource:

    def test_single_column_uses_fixed_interval(self, tmp_path):
        path = tmp_path / "trace.csv"
        path.write_text("0.5\n0.6\n0.7\n")
        with CsvSampleSource(path, interval_ms=8) as src:
            samples = list(src.samples())
        assert samples == [(0.5, 0), (0.6, 8), (0.7, 8)]

    def test_two_columns_use_timestamp_deltas(self, tmp_path):
        path = tmp_path / "trace.csv"
        path.write_text("# timestamp_ms,value\n100,0.5\n108,0.6\n120,0.7\n")
        with CsvSampleSource(path) as src:
            samples = list(src.samples())
        assert samples == [(0.5, 0), (0.6, 8), (0.7, 12)]

    def test_header_rows_skipped(self, tmp_path):
        path = tmp_path / "trace.csv"
        path.write_text("timestamp_ms,value\n0,0.1\n10,0.2\n")
        with CsvSampleSource(path, skip_rows=1) as src:
            assert src.total_samples == 2
            assert src.read_sample() == (0.1, 0)
            assert src.read_sample() == (0.2, 10)
            assert src.read_sample() is None

    def test_missing_file(self, tmp_path):
        src = CsvSampleSource(tmp_path / "nope.csv")
        with pytest.raises(FileNotFoundError):
            src.open()

    def test_backwards_timestamps_rejected(self, tmp_path):
        path = tmp_path / "trace.csv"
        path.write_text("0,0.5\n10,0.6\n5,0.7\n")
        with pytest.raises(ValueError, match="backwards"):
            CsvSampleSource(path).open()

    def test_too_many_columns(self, tmp_path):
        path = tmp_path / "trace.csv"
        path.write_text("0,0.5,1\n10,0.6,1\n")
        with pytest.raises(ValueError):
            CsvSampleSource(path).open()

    def test_read_before_open_raises(self, tmp_path):
        with pytest.raises(RuntimeError):
            CsvSampleSource(tmp_path / "trace.csv").read_sample()

    def test_replayed_trace_drives_detector(self, tmp_path):
        t = np.arange(0, 15000, 10)
        values = 0.6 + 0.3 * np.sin(2 * np.pi * t / 800.0)   # 75 BPM
        path = tmp_path / "trace.csv"
        np.savetxt(path, np.column_stack([t, values]), delimiter=",", fmt=["%d", "%.6f"])

        det = PulseDetector(threshold=0.6)
        with CsvSampleSource(path) as src:
            for value, elapsed_ms in src.samples():
                det.push(value, elapsed_ms)
        assert abs(det.bpm - 75) <= 2
