"""
Real-time strip-chart visualiser.

Draws the following elements onto a dark canvas (or an existing frame):
  • BPM readout, or a waiting hint while no rate is known.
  • IBI / amplitude line.
  • A beat indicator that flashes on every counted beat.
  • A scrolling waveform strip with the adaptive threshold overlaid.
  • Optional frame-rate counter.
"""

from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np

from pulse_monitor.pulse_detector import PulseReading


# ---------------------------------------------------------------------------
# Colour palette (BGR)
# ---------------------------------------------------------------------------
_GREEN  = (0, 220,  80)
_RED    = (0,  50, 220)
_YELLOW = (0, 210, 210)
_WHITE  = (255, 255, 255)
_BLACK  = (0, 0, 0)
_DARK   = (30, 30, 30)

_FLASH_FRAMES = 6


class Visualizer:
    """
    Renders detector output as an OpenCV image.

    Parameters
    ----------
    resolution:
        (width, height) of the rendered frame.
    waveform_height:
        Pixel height of the scrolling waveform panel at the bottom.
    show_fps:
        Whether to overlay the render rate in the top-right corner.
    """

    def __init__(
        self,
        resolution: Tuple[int, int] = (640, 360),
        waveform_height: int = 200,
        show_fps: bool = True,
    ) -> None:
        self.w, self.h = resolution
        self.waveform_height = min(waveform_height, self.h)
        self.show_fps = show_fps

        # One column per sample
        self._wave_buf = np.zeros(self.w, dtype=np.float64)
        self._thresh_buf = np.zeros(self.w, dtype=np.float64)
        self._filled = 0

        self._flash = 0

        self._fps_tick = cv2.getTickCount()
        self._fps_display: float = 0.0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def update_waveform(self, value: float, threshold: float) -> None:
        """Push a sample and the current threshold into the scroll buffers."""
        self._wave_buf = np.roll(self._wave_buf, -1)
        self._wave_buf[-1] = value
        self._thresh_buf = np.roll(self._thresh_buf, -1)
        self._thresh_buf[-1] = threshold
        self._filled = min(self._filled + 1, self.w)

    def draw(
        self,
        reading: PulseReading,
        beat: bool = False,
        frame: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Render *reading* and return the frame.

        Parameters
        ----------
        reading:
            Current detector outputs.
        beat:
            *True* when a beat was counted since the previous draw.
        frame:
            Optional BGR frame to draw on in-place.  A new dark canvas of
            the configured resolution is created when omitted.
        """
        if frame is None:
            frame = np.full((self.h, self.w, 3), 12, dtype=np.uint8)

        if beat:
            self._flash = _FLASH_FRAMES

        self._update_fps()
        self._draw_bpm(frame, reading)
        self._draw_beat_indicator(frame, reading.inside_beat)

        if self._filled > 1:
            self._draw_waveform(frame)

        if self.show_fps:
            cv2.putText(
                frame,
                f"FPS {self._fps_display:.1f}",
                (self.w - 100, 20),
                cv2.FONT_HERSHEY_SIMPLEX, 0.45, _WHITE, 1, cv2.LINE_AA,
            )

        if self._flash > 0:
            self._flash -= 1
        return frame

    # ------------------------------------------------------------------
    # Private drawing helpers
    # ------------------------------------------------------------------

    def _draw_bpm(self, frame: np.ndarray, reading: PulseReading) -> None:
        if reading.bpm > 0:
            col = _GREEN if 40 <= reading.bpm <= 180 else _YELLOW
            cv2.putText(
                frame, f"{reading.bpm} BPM",
                (16, 52), cv2.FONT_HERSHEY_SIMPLEX, 1.6, _BLACK, 5, cv2.LINE_AA,
            )
            cv2.putText(
                frame, f"{reading.bpm} BPM",
                (16, 52), cv2.FONT_HERSHEY_SIMPLEX, 1.6, col, 3, cv2.LINE_AA,
            )
        else:
            cv2.putText(
                frame, "Waiting for pulse...",
                (16, 52), cv2.FONT_HERSHEY_SIMPLEX, 0.7, _YELLOW, 2, cv2.LINE_AA,
            )
        cv2.putText(
            frame, f"IBI {reading.ibi} ms   amp {reading.amplitude:.3f}",
            (16, 80), cv2.FONT_HERSHEY_SIMPLEX, 0.45, _WHITE, 1, cv2.LINE_AA,
        )

    def _draw_beat_indicator(self, frame: np.ndarray, inside_beat: bool) -> None:
        centre = (self.w - 40, 60)
        if self._flash > 0:
            cv2.circle(frame, centre, 14, _RED, -1, cv2.LINE_AA)
        cv2.circle(frame, centre, 14, _RED if inside_beat else _DARK, 2, cv2.LINE_AA)

    def _draw_waveform(self, frame: np.ndarray) -> None:
        """Draw the scrolling waveform and threshold at the bottom of the frame."""
        panel_top = self.h - self.waveform_height
        cv2.rectangle(frame, (0, panel_top), (self.w, self.h), _DARK, -1)

        sig = self._wave_buf[-self._filled:]
        thr = self._thresh_buf[-self._filled:]
        mn = min(sig.min(), thr.min())
        mx = max(sig.max(), thr.max())
        rng = mx - mn if mx != mn else 1.0

        margin = 6
        plot_h = self.waveform_height - 2 * margin
        xs = np.arange(self.w - self._filled, self.w)

        def _to_pts(values: np.ndarray) -> np.ndarray:
            ys = (panel_top + margin + (1.0 - (values - mn) / rng) * plot_h).astype(int)
            return np.column_stack([xs, ys]).astype(np.int32)

        cv2.polylines(frame, [_to_pts(thr)[:, None, :]], False, _YELLOW, 1, cv2.LINE_AA)
        cv2.polylines(frame, [_to_pts(sig)[:, None, :]], False, _GREEN, 1, cv2.LINE_AA)

        cv2.putText(
            frame, "PPG",
            (4, panel_top + 14), cv2.FONT_HERSHEY_SIMPLEX, 0.4, _WHITE, 1, cv2.LINE_AA,
        )

    def _update_fps(self) -> None:
        now = cv2.getTickCount()
        elapsed = (now - self._fps_tick) / cv2.getTickFrequency()
        if elapsed > 0:
            self._fps_display = 1.0 / elapsed
        self._fps_tick = now
