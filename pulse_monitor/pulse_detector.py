"""
Sample-by-sample pulse detector.

Algorithm
---------
The detector is fed one conditioned PPG sample at a time together with the
number of milliseconds elapsed since the previous sample.  On every call it:

1. Tracks the trough of the wave (only after 3/5 of the last inter-beat
   interval, so the dicrotic notch is ignored) and the peak above the
   current threshold.
2. Declares a beat when the signal rises through the threshold at least
   250 ms and 3/5 of an IBI after the previous beat.  The first beat after a
   reset is discarded, the second seeds the 10-slot IBI history so the BPM
   is plausible straight away.
3. Ends the beat on the downward crossing and re-centres the threshold
   half-way between the last peak and trough.
4. Falls back to the configured threshold if no beat has been seen for
   2.5 s (finger removed, sensor dropout).

No samples are buffered; each call is a complete state transition.
"""

from __future__ import annotations

import logging
from typing import Callable, List, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)

RATE_HISTORY_LEN = 10
DEFAULT_IBI_MS = 750          # 80 BPM
TIMEOUT_IBI_MS = 600          # 100 BPM
SEED_LEVEL = 0.6              # peak / trough seed, half of a 0 – 1.2 V range
SEED_AMPLITUDE = 0.12         # 1/10 of the input range
MIN_BEAT_INTERVAL_MS = 250
BEAT_TIMEOUT_MS = 2500

TraceSink = Callable[..., None]


class PulseReading(NamedTuple):
    """Point-in-time view of the detector outputs."""

    bpm: int
    ibi: int
    amplitude: float
    inside_beat: bool
    last_beat_time: int


class PulseDetector:
    """
    Adaptive-threshold heartbeat detector.

    Parameters
    ----------
    threshold:
        Calibration seed for the adaptive threshold, in signal units.  The
        threshold returns to this value after every timeout.
    trace:
        Optional diagnostic sink with the signature of
        :meth:`logging.Logger.debug` (``trace(msg, *args)``).  Receives
        peak/trough updates and beat transitions.  Never affects results.
    """

    def __init__(self, threshold: float, trace: Optional[TraceSink] = None) -> None:
        self._trace = trace
        self._signal: float = 0.0
        self._threshold_setting: float = threshold
        self._threshold: float = threshold
        self._rate: List[int] = [0] * RATE_HISTORY_LEN
        self.reset()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(self, threshold: float) -> None:
        """Set the calibration seed and apply it to the live threshold."""
        self._threshold_setting = threshold
        self._threshold = threshold
        logger.debug("Threshold configured: %.4f", threshold)

    def reset(self) -> None:
        """Restore every algorithmic field to its startup value."""
        self._rate = [0] * RATE_HISTORY_LEN
        self._start_of_beat = False
        self._bpm = 0
        self._ibi = DEFAULT_IBI_MS
        self._pulse = False
        self._sample_counter = 0
        self._last_beat_time = 0
        self._time_since_beat = 0
        self._peak = SEED_LEVEL
        self._trough = SEED_LEVEL
        self._threshold = self._threshold_setting
        self._amplitude = SEED_AMPLITUDE
        self._first_beat = True
        self._second_beat = False
        self._beat_count = 0
        logger.debug("Detector reset (threshold=%.4f)", self._threshold_setting)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    @property
    def signal(self) -> float:
        """Latest conditioned sample.  Write it before :meth:`process_sample`."""
        return self._signal

    @signal.setter
    def signal(self, value: float) -> None:
        self._signal = value

    def push(self, value: float, elapsed_ms: int) -> bool:
        """
        Store *value* as the latest sample and process it.

        Returns *True* when this sample produced a counted beat.  The
        start-of-beat flag is left set for :meth:`saw_start_of_beat`.
        """
        self._signal = value
        before = self._beat_count
        self.process_sample(elapsed_ms)
        return self._beat_count != before

    def process_sample(self, elapsed_ms: int) -> None:
        """
        Advance the detector by one sample.

        Parameters
        ----------
        elapsed_ms:
            Milliseconds since the previous call (non-negative integer).
        """
        signal = self._signal
        self._emit("sample: %.6f", signal)

        self._sample_counter += elapsed_ms
        n = self._sample_counter - self._last_beat_time
        self._time_since_beat = n
        self._emit("sample_counter (%d), last_beat_time (%d)",
                   self._sample_counter, self._last_beat_time)

        # 3/5 of the last IBI skips the dicrotic notch
        settle = (self._ibi // 5) * 3

        if signal < self._threshold and n > settle:
            if signal < self._trough:
                self._trough = signal
                self._emit("Trough found: %.6f", self._trough)

        if signal > self._threshold and signal > self._peak:
            self._peak = signal
            self._emit("Peak found: %.6f", self._peak)

        if n > MIN_BEAT_INTERVAL_MS:
            if signal > self._threshold and not self._pulse and n > settle:
                if not self._on_beat():
                    return

        if signal < self._threshold and self._pulse:
            self._end_beat()

        if n > BEAT_TIMEOUT_MS:
            self._on_timeout(n)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def bpm(self) -> int:
        """Beats per minute from the 10-beat running average (0 if unknown)."""
        return self._bpm

    @property
    def ibi(self) -> int:
        """Most recent inter-beat interval in ms."""
        return self._ibi

    @property
    def amplitude(self) -> float:
        """Peak-to-trough amplitude of the last completed beat."""
        return self._amplitude

    @property
    def last_beat_time(self) -> int:
        """Detector clock value (ms) at the most recent beat onset."""
        return self._last_beat_time

    def saw_start_of_beat(self) -> bool:
        """Return the start-of-beat flag and clear it."""
        seen = self._start_of_beat
        self._start_of_beat = False
        return seen

    def is_inside_beat(self) -> bool:
        return self._pulse

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def threshold_setting(self) -> float:
        return self._threshold_setting

    @property
    def peak(self) -> float:
        return self._peak

    @property
    def trough(self) -> float:
        return self._trough

    @property
    def sample_counter(self) -> int:
        return self._sample_counter

    @property
    def time_since_beat(self) -> int:
        """Milliseconds between the last beat and the latest sample."""
        return self._time_since_beat

    @property
    def beat_count(self) -> int:
        """Beats counted towards the BPM average since the last reset."""
        return self._beat_count

    @property
    def rate_history(self) -> Tuple[int, ...]:
        """The last 10 inter-beat intervals, oldest first."""
        return tuple(self._rate)

    def snapshot(self) -> PulseReading:
        return PulseReading(
            bpm=self._bpm,
            ibi=self._ibi,
            amplitude=self._amplitude,
            inside_beat=self._pulse,
            last_beat_time=self._last_beat_time,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _on_beat(self) -> bool:
        """
        Register a beat onset.

        Returns *False* for the discarded first beat after a reset, in which
        case the rest of the sample is skipped.
        """
        self._pulse = True
        self._ibi = self._sample_counter - self._last_beat_time
        self._last_beat_time = self._sample_counter
        self._emit("Beat found, updated IBI is %d, updated last_beat_time is %d",
                   self._ibi, self._last_beat_time)

        if self._second_beat:
            self._second_beat = False
            self._rate = [self._ibi] * RATE_HISTORY_LEN

        if self._first_beat:
            # no previous beat to measure from
            self._first_beat = False
            self._second_beat = True
            return False

        self._rate = self._rate[1:] + [self._ibi]
        average = sum(self._rate) // RATE_HISTORY_LEN
        self._bpm = 60000 // average if average > 0 else 0
        self._start_of_beat = True
        self._beat_count += 1
        return True

    def _end_beat(self) -> None:
        self._emit("Beat is over")
        self._pulse = False
        self._amplitude = self._peak - self._trough
        self._threshold = self._trough + self._amplitude / 2
        self._peak = self._threshold
        self._trough = self._threshold

    def _on_timeout(self, n: int) -> None:
        self._emit("Time since last beat (N = %d) is greater than %d ms, so reset variables",
                   n, BEAT_TIMEOUT_MS)
        self._threshold = self._threshold_setting
        self._peak = SEED_LEVEL
        self._trough = SEED_LEVEL
        self._last_beat_time = self._sample_counter
        self._time_since_beat = 0
        self._first_beat = True
        self._second_beat = False
        self._start_of_beat = False
        self._bpm = 0
        self._ibi = TIMEOUT_IBI_MS
        self._pulse = False
        self._amplitude = SEED_AMPLITUDE

    def _emit(self, msg: str, *args) -> None:
        if self._trace is not None:
            self._trace(msg, *args)
