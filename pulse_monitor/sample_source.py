"""
Sample sources for the pulse detector.

Each source stands in for the ADC: it yields ``(value, elapsed_ms)`` pairs
where *value* is an already-conditioned PPG sample and *elapsed_ms* the time
since the previous sample.  Two backends are provided:

* :class:`SyntheticPulseSource` – a generated pulse wave, handy for demos
  and for development without a sensor attached.
* :class:`CsvSampleSource` – replays a recorded trace from a CSV file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Generator, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

Sample = Tuple[float, int]


class SyntheticPulseSource:
    """
    Generated pulse waveform.

    Parameters
    ----------
    bpm:
        Heart rate of the generated wave.
    interval_ms:
        Sampling interval in milliseconds.
    low, high:
        Signal range.  The wave oscillates around their midpoint.
    duration_s:
        Length of the stream in seconds.  *None* streams until closed.
    dicrotic:
        Relative weight of a second harmonic that adds a dicrotic notch
        (0 = pure sine).
    noise:
        Standard deviation of additive Gaussian noise, in signal units.
    seed:
        Seed for the noise generator.
    """

    def __init__(
        self,
        bpm: float = 75.0,
        interval_ms: int = 10,
        low: float = 0.3,
        high: float = 0.9,
        duration_s: Optional[float] = None,
        dicrotic: float = 0.0,
        noise: float = 0.0,
        seed: Optional[int] = None,
    ) -> None:
        if bpm <= 0:
            raise ValueError(f"bpm must be positive, got {bpm}")
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        if high <= low:
            raise ValueError(f"high ({high}) must be greater than low ({low})")

        self.bpm = bpm
        self.interval_ms = int(interval_ms)
        self.low = low
        self.high = high
        self.duration_s = duration_s
        self.dicrotic = dicrotic
        self.noise = noise
        self.seed = seed

        self._rng: Optional[np.random.Generator] = None
        self._index = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Start the stream from t = 0."""
        self._rng = np.random.default_rng(self.seed)
        self._index = 0
        logger.info(
            "Synthetic source opened – bpm=%.1f interval=%d ms range=[%.3f, %.3f]",
            self.bpm, self.interval_ms, self.low, self.high,
        )

    def close(self) -> None:
        if self._rng is None:
            return
        self._rng = None
        logger.info("Synthetic source closed after %d samples.", self._index)

    def __enter__(self) -> "SyntheticPulseSource":
        self.open()
        return self

    def __exit__(self, *_) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Sample acquisition
    # ------------------------------------------------------------------

    @property
    def total_samples(self) -> Optional[int]:
        """Number of samples in the stream, or *None* if unbounded."""
        if self.duration_s is None:
            return None
        return int(self.duration_s * 1000 // self.interval_ms)

    def read_sample(self) -> Sample | None:
        """
        Generate the next sample.

        Returns *None* once ``duration_s`` has been reached.
        """
        if self._rng is None:
            raise RuntimeError("Source is not open.  Call open() first.")

        total = self.total_samples
        if total is not None and self._index >= total:
            return None

        t = self._index * self.interval_ms / 1000.0
        phase = 2 * np.pi * (self.bpm / 60.0) * t
        wave = np.sin(phase) + self.dicrotic * np.sin(2 * phase)
        # keep the peak-to-peak swing inside [low, high]
        wave /= 1.0 + abs(self.dicrotic)

        mid = (self.high + self.low) / 2.0
        half = (self.high - self.low) / 2.0
        value = mid + half * wave
        if self.noise > 0:
            value += self._rng.normal(0.0, self.noise)

        elapsed = 0 if self._index == 0 else self.interval_ms
        self._index += 1
        return float(value), elapsed

    def samples(self) -> Generator[Sample, None, None]:
        """
        Yield samples until the stream ends or the source is closed.

        Usage::

            with SyntheticPulseSource(bpm=72) as src:
                for value, elapsed_ms in src.samples():
                    process(value, elapsed_ms)
        """
        while self._rng is not None:
            sample = self.read_sample()
            if sample is None:
                break
            yield sample


class CsvSampleSource:
    """
    Replays a recorded PPG trace.

    The file holds either one column (sample values taken every
    ``interval_ms``) or two columns ``timestamp_ms, value``.  Lines starting
    with ``#`` are ignored.

    Parameters
    ----------
    path:
        CSV file to read.
    interval_ms:
        Sampling interval used for single-column files.
    skip_rows:
        Number of header lines to skip.
    """

    def __init__(
        self,
        path: str | Path,
        interval_ms: int = 10,
        skip_rows: int = 0,
    ) -> None:
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        self.path = Path(path)
        self.interval_ms = int(interval_ms)
        self.skip_rows = skip_rows

        self._values: Optional[np.ndarray] = None
        self._elapsed: Optional[np.ndarray] = None
        self._index = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Load the whole trace into memory."""
        if not self.path.is_file():
            raise FileNotFoundError(f"No such sample file: {self.path}")

        data = np.loadtxt(
            self.path, delimiter=",", comments="#",
            skiprows=self.skip_rows, ndmin=2,
        )
        n_cols = data.shape[1] if data.size else 0
        if n_cols == 0:
            logger.warning("%s contains no samples.", self.path)
            values = np.array([], dtype=np.float64)
            elapsed = np.array([], dtype=np.int64)
        elif n_cols == 1:
            values = data[:, 0]
            elapsed = np.full(len(values), self.interval_ms, dtype=np.int64)
        elif n_cols == 2:
            timestamps = np.rint(data[:, 0]).astype(np.int64)
            values = data[:, 1]
            elapsed = np.diff(timestamps, prepend=timestamps[:1])
            if (elapsed < 0).any():
                row = int(np.argmax(elapsed < 0))
                raise ValueError(
                    f"{self.path}: timestamp goes backwards at sample {row} "
                    f"({timestamps[row - 1]} -> {timestamps[row]} ms)"
                )
        else:
            raise ValueError(
                f"{self.path}: expected 1 or 2 columns, found {n_cols}"
            )
        if len(elapsed):
            elapsed[0] = 0

        self._values = values.astype(np.float64)
        self._elapsed = elapsed
        self._index = 0
        logger.info("Loaded %d samples from %s", len(self._values), self.path)

    def close(self) -> None:
        if self._values is None:
            return
        self._values = None
        self._elapsed = None
        logger.info("CSV source closed.")

    def __enter__(self) -> "CsvSampleSource":
        self.open()
        return self

    def __exit__(self, *_) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Sample acquisition
    # ------------------------------------------------------------------

    @property
    def total_samples(self) -> Optional[int]:
        return None if self._values is None else len(self._values)

    def read_sample(self) -> Sample | None:
        """Return the next ``(value, elapsed_ms)`` pair, or *None* at EOF."""
        if self._values is None:
            raise RuntimeError("Source is not open.  Call open() first.")
        if self._index >= len(self._values):
            return None
        i = self._index
        self._index += 1
        return float(self._values[i]), int(self._elapsed[i])

    def samples(self) -> Generator[Sample, None, None]:
        while self._values is not None:
            sample = self.read_sample()
            if sample is None:
                break
            yield sample
