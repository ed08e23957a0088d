#!/usr/bin/env python3
"""
Pulse Monitor – main entry point.

Usage
-----
    python main.py [OPTIONS]

Options
-------
    --source STR         Sample source: synthetic or csv (default: synthetic)
    --csv PATH           Recorded trace for --source csv
    --skip-rows INT      Header lines to skip in the CSV file (default: 0)
    --interval-ms INT    Sampling interval in ms (default: 10)
    --bpm FLOAT          Heart rate of the synthetic wave (default: 75)
    --duration FLOAT     Length of the synthetic stream in seconds
    --noise FLOAT        Gaussian noise added to the synthetic wave
    --dicrotic FLOAT     Dicrotic-notch harmonic weight of the synthetic wave
    --threshold FLOAT    Detector threshold seed (default: 0.6)
    --trace              Log detector internals at DEBUG level
    --save PATH          Save the rendered strip chart to a video file
    --headless           Run without display window (log BPM to stdout)

Keyboard shortcuts (when a window is open)
------------------------------------------
    q / ESC  – quit
    r        – reset the detector
    s        – save a single rendered frame as PNG
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import cv2

from pulse_monitor.pulse_detector import PulseDetector
from pulse_monitor.sample_source import CsvSampleSource, SyntheticPulseSource
from pulse_monitor.visualizer import Visualizer

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s – %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("pulse_monitor")

WINDOW_NAME = "Pulse Monitor"


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Heart rate from an analog pulse waveform",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--source", choices=("synthetic", "csv"), default="synthetic",
                        help="Where samples come from")
    parser.add_argument("--csv", type=Path, default=None,
                        help="Recorded trace (1 column: value, 2 columns: timestamp_ms,value)")
    parser.add_argument("--skip-rows", type=int, default=0,
                        help="Header lines to skip in the CSV file")
    parser.add_argument("--interval-ms", type=int, default=10,
                        help="Sampling interval in milliseconds")
    parser.add_argument("--bpm", type=float, default=75.0,
                        help="Heart rate of the synthetic wave")
    parser.add_argument("--duration", type=float, default=None,
                        help="Length of the synthetic stream in seconds (default: endless)")
    parser.add_argument("--noise", type=float, default=0.0,
                        help="Standard deviation of noise added to the synthetic wave")
    parser.add_argument("--dicrotic", type=float, default=0.0,
                        help="Dicrotic-notch harmonic weight of the synthetic wave")
    parser.add_argument("--threshold", type=float, default=0.6,
                        help="Detector threshold seed, in signal units")
    parser.add_argument("--trace", action="store_true",
                        help="Log detector internals at DEBUG level")
    parser.add_argument("--save", type=Path, default=None,
                        help="Save the rendered strip chart to this video file")
    parser.add_argument("--headless", action="store_true",
                        help="No display window; log BPM to stdout only")
    return parser.parse_args(argv)


def build_source(args: argparse.Namespace) -> SyntheticPulseSource | CsvSampleSource:
    if args.source == "csv":
        if args.csv is None:
            raise ValueError("--source csv requires --csv PATH")
        return CsvSampleSource(args.csv, interval_ms=args.interval_ms,
                               skip_rows=args.skip_rows)
    return SyntheticPulseSource(
        bpm=args.bpm,
        interval_ms=args.interval_ms,
        duration_s=args.duration,
        dicrotic=args.dicrotic,
        noise=args.noise,
    )


def build_detector(args: argparse.Namespace) -> PulseDetector:
    trace = None
    if args.trace:
        trace_logger = logging.getLogger("pulse_monitor.trace")
        trace_logger.setLevel(logging.DEBUG)
        trace = trace_logger.debug
    return PulseDetector(threshold=args.threshold, trace=trace)


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

def run(args: argparse.Namespace) -> int:
    try:
        source = build_source(args)
    except ValueError as exc:
        logger.error("Invalid source settings: %s", exc)
        return 1

    detector = build_detector(args)
    vis = None if args.headless and args.save is None else Visualizer()

    writer: cv2.VideoWriter | None = None
    if args.save:
        fourcc = cv2.VideoWriter_fourcc(*"mp4v")
        fps = 1000.0 / max(args.interval_ms, 1)
        writer = cv2.VideoWriter(str(args.save), fourcc, fps, (vis.w, vis.h))
        logger.info("Saving video to %s", args.save)

    logger.info("Starting pulse monitor (threshold=%.3f).", args.threshold)

    if not args.headless:
        cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)

    clock_ms = 0
    next_report_ms = 1000
    beats = 0

    try:
        with source:
            for value, elapsed_ms in source.samples():
                detector.signal = value
                detector.process_sample(elapsed_ms)
                clock_ms += elapsed_ms

                beat = detector.saw_start_of_beat()
                reading = detector.snapshot()
                if beat:
                    beats += 1
                    logger.debug("Beat #%d at %d ms – BPM=%d IBI=%d ms",
                                 beats, reading.last_beat_time, reading.bpm, reading.ibi)

                if clock_ms >= next_report_ms:
                    next_report_ms += 1000
                    if args.headless:
                        ts = time.strftime("%H:%M:%S")
                        if reading.bpm > 0:
                            print(f"[{ts}] t={clock_ms / 1000:.1f}s  BPM={reading.bpm}  "
                                  f"IBI={reading.ibi} ms  amp={reading.amplitude:.3f}")
                        else:
                            print(f"[{ts}] t={clock_ms / 1000:.1f}s  Waiting for pulse…")

                if vis is None:
                    continue

                vis.update_waveform(value, detector.threshold)
                rendered = vis.draw(reading, beat=beat)

                if writer is not None:
                    writer.write(rendered)

                if not args.headless:
                    cv2.imshow(WINDOW_NAME, rendered)
                    key = cv2.waitKey(max(1, elapsed_ms)) & 0xFF
                    if key in (ord("q"), 27):          # q or ESC
                        logger.info("Quit requested by user.")
                        break
                    elif key == ord("r"):
                        detector.reset()
                        logger.info("Detector reset.")
                    elif key == ord("s"):
                        fname = f"snapshot_{int(time.time())}.png"
                        cv2.imwrite(fname, rendered)
                        logger.info("Saved snapshot: %s", fname)

    except (FileNotFoundError, ValueError) as exc:
        logger.error("Cannot read samples: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        if writer is not None:
            writer.release()
        if not args.headless:
            cv2.destroyAllWindows()

    logger.info("Stream finished: %d beats, last BPM=%d", beats, detector.bpm)
    return 0


def cli() -> int:
    return run(parse_args())


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(cli())
