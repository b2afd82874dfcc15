from __future__ import annotations

import pytest

from fakes import FakeProcessor, FakeSurface
from vitaltrace.config import VitalTraceConfig
from vitaltrace.core.live_session import BREATHING, PULSE, LiveVitalsSession
from vitaltrace.core.models import EdgeMetrics, MetricsBuffer, RateReading, StatusCode, VitalSample
from vitaltrace.core.stream_reader import dispatch_record, iter_records
from vitaltrace.core.ticker import ManualTicker
from vitaltrace.core.trace_renderer import FrameStatus


class WallClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _samples(*pairs: tuple[float, float]) -> tuple[VitalSample, ...]:
    return tuple(VitalSample(t, v) for t, v in pairs)


def _pairs(buffer) -> list[tuple[float, float]]:
    return [(s.time, s.value) for s in buffer.snapshot()]


@pytest.fixture
def rig():
    processor = FakeProcessor()
    ticker = ManualTicker(20.0)
    clock = WallClock()
    session = LiveVitalsSession(processor, ticker=ticker, wall_clock=clock)
    surfaces = {PULSE: FakeSurface(), BREATHING: FakeSurface()}
    for key, surface in surfaces.items():
        session.bind_surface(key, surface)
    return session, processor, ticker, clock, surfaces


def _start(session, ticker) -> None:
    session.prepare()
    session.post_status(StatusCode.OK, "")
    ticker.tick(0.0)
    session.toggle_recording()
    ticker.advance()


def test_prepare_starts_processor_and_ticker(rig) -> None:
    session, processor, ticker, _, _ = rig
    assert not session.can_toggle_recording

    session.prepare()
    assert processor.calls == ["reset_metrics", "start_processing"]
    assert ticker.is_running
    assert session.is_processor_active
    # Processor running but status not OK yet.
    assert not session.can_toggle_recording

    session.post_status("ok", "")
    ticker.tick(0.0)
    assert session.can_toggle_recording


def test_toggle_starts_recording_and_renders_pulse(rig) -> None:
    session, processor, ticker, clock, surfaces = rig
    _start(session, ticker)

    assert session.is_recording
    assert session.recording_start == 1000.0
    assert "start_recording" in processor.calls

    session.post_metrics_buffer(
        MetricsBuffer(
            sent_at_s=1000.0,
            pulse_trace=_samples((0.0, 60.0), (1.0, 62.0)),
            pulse_rates=(RateReading(70.2, 0.4), RateReading(71.6, 0.9)),
            breathing_rates=(RateReading(13.4, 0.8),),
        )
    )
    ticker.advance()

    assert session.pulse_rate == 72
    assert session.breathing_rate == 13
    assert _pairs(session.pulse_trace) == [(1000.0, 60.0), (1001.0, 62.0)]
    assert surfaces[PULSE].last.status is FrameStatus.DRAWN
    assert surfaces[BREATHING].last.status is FrameStatus.AWAITING_SIGNAL


def test_metrics_without_timestamp_use_wall_clock(rig) -> None:
    session, _, ticker, clock, _ = rig
    _start(session, ticker)
    clock.now = 1005.0

    session.post_metrics_buffer(MetricsBuffer(pulse_trace=_samples((0.0, 1.0), (0.5, 2.0))))
    session.process_pending()

    assert _pairs(session.pulse_trace) == [(1005.0, 1.0), (1005.5, 2.0)]


def test_edge_metrics_are_relative_to_recording_start(rig) -> None:
    session, _, ticker, clock, _ = rig
    _start(session, ticker)
    clock.now = 1009.0

    session.post_edge_metrics(EdgeMetrics(breathing_upper_trace=_samples((2.0, 0.1), (3.0, 0.3))))
    session.process_pending()

    assert _pairs(session.breathing_trace) == [(1002.0, 0.1), (1003.0, 0.3)]


def test_overlapping_deliveries_are_deduplicated(rig) -> None:
    session, _, ticker, _, _ = rig
    _start(session, ticker)

    session.post_metrics_buffer(MetricsBuffer(sent_at_s=1000.0, pulse_trace=_samples((0.0, 1.0), (1.0, 2.0))))
    session.post_metrics_buffer(
        MetricsBuffer(sent_at_s=1000.0, pulse_trace=_samples((0.5, 9.0), (1.0, 9.0), (2.0, 3.0)))
    )
    session.process_pending()

    assert _pairs(session.pulse_trace) == [(1000.0, 1.0), (1001.0, 2.0), (1002.0, 3.0)]


def test_metrics_ignored_while_not_recording(rig) -> None:
    session, _, ticker, _, surfaces = rig
    session.prepare()
    session.post_metrics_buffer(
        MetricsBuffer(
            sent_at_s=1.0,
            pulse_trace=_samples((0.0, 1.0), (1.0, 2.0)),
            pulse_rates=(RateReading(80.0, 1.0),),
        )
    )
    ticker.tick(0.0)

    assert len(session.pulse_trace) == 0
    assert session.pulse_rate == 0
    assert surfaces[PULSE].frames == []


def test_negative_rates_clamp_to_zero(rig) -> None:
    session, _, ticker, _, _ = rig
    _start(session, ticker)

    session.post_metrics_buffer(MetricsBuffer(pulse_rates=(RateReading(-3.0, 0.5),)))
    session.process_pending()
    assert session.pulse_rate == 0


def test_trace_keeps_scrolling_between_bursts(rig) -> None:
    session, _, ticker, _, surfaces = rig
    _start(session, ticker)
    session.post_metrics_buffer(MetricsBuffer(sent_at_s=1000.0, pulse_trace=_samples((0.0, 1.0), (1.0, 2.0))))

    ticker.tick(10.0)
    ticker.tick(10.05)
    ticker.tick(10.10)

    tails = [frame.tail for frame in surfaces[PULSE].frames[-2:]]
    assert [t.value for t in tails] == [2.0, 2.0]
    assert [t.time for t in tails] == pytest.approx([1001.05, 1001.10])


def test_status_text_shows_hint_only_when_not_ok(rig) -> None:
    session, _, _, _, _ = rig
    changes: list[str | None] = []
    session.add_listener(lambda s: changes.append(s.status_text))

    session.post_status("no_face", "  Move into the frame  ")
    session.process_pending()
    assert session.status_code is StatusCode.NO_FACE
    assert session.status_text == "Move into the frame"

    session.post_status(StatusCode.OK, "   ")
    session.process_pending()
    assert session.status_text is None
    assert changes == ["Move into the frame", None]


def test_stop_recording_clears_traces(rig) -> None:
    session, processor, ticker, _, _ = rig
    _start(session, ticker)
    session.post_metrics_buffer(MetricsBuffer(sent_at_s=1000.0, pulse_trace=_samples((0.0, 1.0), (1.0, 2.0))))
    ticker.advance()
    assert len(session.pulse_trace) == 2

    session.toggle_recording()
    ticker.advance()

    assert "stop_recording" in processor.calls
    assert not session.is_recording
    assert session.recording_start is None
    assert len(session.pulse_trace) == 0
    assert session.traces[PULSE].renderer.tail_anchor is None


def test_start_recording_resets_previous_session(rig) -> None:
    session, _, ticker, clock, _ = rig
    _start(session, ticker)
    session.post_metrics_buffer(
        MetricsBuffer(sent_at_s=1000.0, pulse_trace=_samples((5.0, 1.0)), pulse_rates=(RateReading(70.0, 1.0),))
    )
    ticker.advance()
    session.toggle_recording()
    ticker.advance()

    clock.now = 2000.0
    session.toggle_recording()
    ticker.advance()

    assert session.is_recording
    assert session.recording_start == 2000.0
    assert session.pulse_rate == 0
    # Earlier timestamps are accepted again after the reset.
    session.post_metrics_buffer(MetricsBuffer(sent_at_s=1.0, pulse_trace=_samples((0.0, 4.0),)))
    session.process_pending()
    assert _pairs(session.pulse_trace) == [(1.0, 4.0)]


def test_teardown_stops_ticker_and_processor(rig) -> None:
    session, processor, ticker, _, _ = rig
    _start(session, ticker)
    session.teardown()

    assert not ticker.is_running
    assert not ticker.advance()
    assert processor.calls[-3:] == ["stop_recording", "stop_processing", "reset_metrics"]
    assert not session.is_recording
    assert not session.is_processor_active
    assert session.recording_start is None
    assert not session.can_toggle_recording


def test_teardown_drops_undelivered_recording_state(rig) -> None:
    session, _, ticker, _, _ = rig
    session.prepare()
    session.post_status(StatusCode.OK, "")
    ticker.tick(0.0)
    session.toggle_recording()  # recording state is still queued
    session.teardown()

    assert session.process_pending() == 0
    session.prepare()
    ticker.tick(1.0)
    assert not session.is_recording


def test_full_queue_drops_oldest_delivery() -> None:
    processor = FakeProcessor()
    session = LiveVitalsSession(
        processor,
        config=VitalTraceConfig(pending_queue_size=2),
        ticker=ManualTicker(),
    )
    session.post_status("no_face", "first")
    session.post_status("too_dark", "second")
    session.post_status("moving", "third")

    assert session.process_pending() == 2
    assert session.status_code is StatusCode.MOVING
    assert session.status_hint == "third"


def test_failures_in_listeners_and_surfaces_are_contained(rig) -> None:
    session, _, ticker, _, _ = rig
    seen: list[bool] = []

    def _broken(_session) -> None:
        raise RuntimeError("listener failed")

    session.add_listener(_broken)
    session.add_listener(lambda s: seen.append(s.is_recording))
    session.bind_surface(PULSE, FakeSurface(fail=True))

    _start(session, ticker)
    session.post_metrics_buffer(MetricsBuffer(sent_at_s=1000.0, pulse_trace=_samples((0.0, 1.0), (1.0, 2.0))))
    ticker.advance()

    assert seen and seen[-1] is True
    assert session.traces[PULSE].last_frame.status is FrameStatus.DRAWN


def test_traces_render_at_default_size_without_surface() -> None:
    processor = FakeProcessor()
    ticker = ManualTicker()
    session = LiveVitalsSession(
        processor,
        config=VitalTraceConfig(plot_width_px=101, plot_height_px=50),
        ticker=ticker,
        wall_clock=WallClock(0.0),
    )
    _start(session, ticker)
    session.post_metrics_buffer(MetricsBuffer(sent_at_s=0.0, pulse_trace=_samples((0.0, 1.0), (12.0, 2.0))))
    ticker.advance()

    frame = session.traces[PULSE].last_frame
    assert frame.status is FrameStatus.DRAWN
    assert frame.x.tolist() == pytest.approx([0.0, 100.0])
    assert frame.y.tolist() == pytest.approx([50.0, 0.0])


def test_non_finite_rates_keep_previous_values(rig) -> None:
    session, _, ticker, _, surfaces = rig
    _start(session, ticker)
    session.post_metrics_buffer(
        MetricsBuffer(pulse_rates=(RateReading(70.0, 0.9),), breathing_rates=(RateReading(12.0, 0.9),))
    )
    ticker.advance()

    line = (
        '{"type": "metrics", "sent_at_s": 1000, '
        '"pulse": {"rate": [[NaN, 0.9]], "trace": [[1, 5], [2, 6]]}, '
        '"breathing": {"rate": [[Infinity, 0.5], [-Infinity, 0.5]]}}'
    )
    for record in iter_records([line]):
        dispatch_record(record, session)
    ticker.advance()

    assert session.pulse_rate == 70
    assert session.breathing_rate == 12
    assert _pairs(session.pulse_trace) == [(1001.0, 5.0), (1002.0, 6.0)]
    assert surfaces[PULSE].last.status is FrameStatus.DRAWN


def test_latest_finite_rate_wins(rig) -> None:
    session, _, ticker, _, _ = rig
    _start(session, ticker)
    session.post_metrics_buffer(MetricsBuffer(pulse_rates=(RateReading(64.4, 0.8), RateReading(float("nan"), 0.9))))
    session.process_pending()
    assert session.pulse_rate == 64
