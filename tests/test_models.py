from __future__ import annotations

from datetime import datetime

from vitaltrace.core.models import (
    PulseCaptureReading,
    RateReading,
    StatusCode,
    latest_finite_reading,
    round_rate,
)


def test_round_rate_rounds_half_away_from_zero() -> None:
    assert round_rate(72.5) == 73
    assert round_rate(71.49) == 71
    assert round_rate(0.5) == 1
    assert round_rate(-0.5) == -1
    assert round_rate(-2.4) == -2


def test_status_code_parse_is_lenient() -> None:
    assert StatusCode.parse("OK") is StatusCode.OK
    assert StatusCode.parse("no-face") is StatusCode.NO_FACE
    assert StatusCode.parse("Too Dark") is StatusCode.TOO_DARK
    assert StatusCode.parse(StatusCode.MOVING) is StatusCode.MOVING
    assert StatusCode.parse("sensor_on_fire") is StatusCode.UNKNOWN
    assert StatusCode.parse(None) is StatusCode.UNKNOWN


def test_pulse_capture_reading_formatting() -> None:
    reading = PulseCaptureReading(bpm=68, captured_at=datetime(2024, 3, 5, 14, 7))
    assert reading.bpm_string == "68"
    assert reading.formatted_bpm == "68 BPM"
    assert reading.formatted_timestamp == "05 Mar 2024, 14:07"


def test_round_rate_maps_non_finite_to_zero() -> None:
    assert round_rate(float("nan")) == 0
    assert round_rate(float("inf")) == 0
    assert round_rate(float("-inf")) == 0


def test_latest_finite_reading_skips_bad_entries() -> None:
    readings = (RateReading(70.0, 0.5), RateReading(71.0, float("nan")), RateReading(float("inf"), 0.9))
    assert latest_finite_reading(readings) == RateReading(70.0, 0.5)
    assert latest_finite_reading(readings[1:]) is None
    assert latest_finite_reading(()) is None
