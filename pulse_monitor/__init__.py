"""
Pulse Monitor – beat-by-beat heart rate from an analog PPG sensor.
Feed conditioned samples into :class:`~pulse_monitor.pulse_detector.PulseDetector`
one at a time; it tracks the pulse wave with an adaptive threshold and
reports BPM, inter-beat interval, amplitude and beat onsets.
"""

__version__ = "0.1.0"
__author__ = "pulse_monitor"
