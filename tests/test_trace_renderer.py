from __future__ import annotations

import math

import numpy as np
import pytest

from vitaltrace.core.models import VitalSample
from vitaltrace.core.trace_renderer import (
    MIN_VALUE_RANGE,
    FrameStatus,
    ScrollingTraceRenderer,
)

SIZE = (321.0, 72.0)


def _series(*pairs: tuple[float, float]) -> tuple[VitalSample, ...]:
    return tuple(VitalSample(t, v) for t, v in pairs)


def test_window_includes_extrapolated_tail_after_one_second() -> None:
    renderer = ScrollingTraceRenderer(12.0)
    samples = _series((0, 60), (5, 70), (11, 65))

    first = renderer.render(100.0, samples, SIZE)
    assert first.status is FrameStatus.DRAWN
    assert first.tail is None
    assert len(first.points) == 3

    frame = renderer.render(101.0, samples, SIZE)
    assert frame.status is FrameStatus.DRAWN
    assert frame.tail == VitalSample(12.0, 65.0)
    assert frame.window is not None
    assert frame.window.window_start == pytest.approx(0.0)
    assert len(frame.points) == 4
    assert frame.x[-1] == pytest.approx(SIZE[0] - 1.0)
    assert frame.x[0] == pytest.approx(0.0)
    # 70 is the max of the window and sits on the top edge, 60 on the bottom.
    assert frame.y[1] == pytest.approx(0.0)
    assert frame.y[0] == pytest.approx(SIZE[1])


def test_tail_holds_value_and_advances_with_ticks() -> None:
    renderer = ScrollingTraceRenderer(12.0)
    samples = _series((0, 1.0), (1, 3.0))

    renderer.render(10.0, samples, SIZE)
    tails = [renderer.render(now, samples, SIZE).tail for now in (10.05, 10.10, 10.35)]

    assert all(t is not None and t.value == 3.0 for t in tails)
    times = [t.time for t in tails]
    assert times == pytest.approx([1.05, 1.10, 1.35])
    assert np.diff(times).tolist() == pytest.approx([0.05, 0.25])


def test_anchor_moves_to_arrival_tick_of_new_sample() -> None:
    renderer = ScrollingTraceRenderer(12.0)
    samples = _series((0, 1.0), (1, 2.0))
    renderer.render(50.0, samples, SIZE)
    renderer.render(52.0, samples, SIZE)
    assert renderer.tail_anchor == 50.0

    samples = samples + _series((1.5, 4.0))
    frame = renderer.render(52.5, samples, SIZE)
    assert renderer.tail_anchor == 52.5
    assert frame.tail is None

    frame = renderer.render(53.0, samples, SIZE)
    assert frame.tail == VitalSample(2.0, 4.0)


def test_points_older_than_window_are_excluded() -> None:
    renderer = ScrollingTraceRenderer(12.0)
    samples = _series((0, 1.0), (5, 9.0), (20, 2.0), (21, 3.0))

    frame = renderer.render(0.0, samples, SIZE)
    assert frame.window is not None
    assert [s.time for s in frame.window.samples] == [20, 21]
    assert frame.window.min_value == 2.0
    assert frame.window.max_value == 3.0
    assert len(frame.points) == 2


def test_coordinates_stay_inside_drawing_area() -> None:
    rng = np.random.default_rng(7)
    times = np.cumsum(rng.uniform(0.01, 0.6, size=200))
    values = rng.normal(0.0, 50.0, size=200)
    samples = tuple(VitalSample(float(t), float(v)) for t, v in zip(times, values))
    renderer = ScrollingTraceRenderer(12.0)

    for now in (0.0, 0.05, 0.5, 3.0):
        frame = renderer.render(now, samples, SIZE)
        assert frame.status is FrameStatus.DRAWN
        assert np.all(frame.x >= 0.0) and np.all(frame.x <= SIZE[0] - 1.0)
        assert np.all(frame.y >= 0.0) and np.all(frame.y <= SIZE[1])
        assert frame.window is not None
        assert all(s.time >= frame.window.window_start for s in frame.window.samples)


def test_flat_window_draws_mid_height_line() -> None:
    renderer = ScrollingTraceRenderer(12.0)
    frame = renderer.render(0.0, _series((0, 5.0), (1, 5.0), (2, 5.0)), SIZE)

    assert frame.status is FrameStatus.DRAWN
    assert np.all(np.isfinite(frame.y))
    assert frame.y.tolist() == pytest.approx([36.0, 36.0, 36.0])
    assert frame.window is not None
    assert frame.window.value_range == MIN_VALUE_RANGE


def test_non_finite_values_are_skipped() -> None:
    renderer = ScrollingTraceRenderer(12.0)
    frame = renderer.render(0.0, _series((0, 1.0), (1, math.nan), (2, 3.0), (3, math.inf)), SIZE)

    assert frame.status is FrameStatus.DRAWN
    assert len(frame.points) == 2
    assert frame.window is not None
    assert (frame.window.min_value, frame.window.max_value) == (1.0, 3.0)


def test_empty_series_shows_placeholder_and_clears_anchor() -> None:
    renderer = ScrollingTraceRenderer(12.0, label="Pulse", color="red")
    renderer.render(1.0, _series((0, 1.0), (1, 2.0)), SIZE)
    frame = renderer.render(2.0, (), SIZE)

    assert frame.status is FrameStatus.AWAITING_SIGNAL
    assert frame.show_placeholder
    assert not frame.has_line
    assert (frame.label, frame.color) == ("Pulse", "red")
    assert renderer.tail_anchor is None


def test_single_sample_draws_once_tail_extends_it() -> None:
    renderer = ScrollingTraceRenderer(12.0)
    samples = _series((3, 70.0))

    first = renderer.render(10.0, samples, SIZE)
    assert first.status is FrameStatus.INSUFFICIENT_DATA
    assert not first.show_placeholder

    second = renderer.render(10.5, samples, SIZE)
    assert second.status is FrameStatus.DRAWN
    assert len(second.points) == 2


def test_zero_sized_surface_yields_no_line() -> None:
    renderer = ScrollingTraceRenderer(12.0)
    frame = renderer.render(0.0, _series((0, 1.0), (1, 2.0)), (0.0, 72.0))
    assert frame.status is FrameStatus.NO_SURFACE
    assert frame.points == []


def test_reset_forgets_anchor() -> None:
    renderer = ScrollingTraceRenderer(12.0)
    renderer.render(4.0, _series((0, 1.0), (1, 2.0)), SIZE)
    renderer.reset()
    assert renderer.tail_anchor is None


@pytest.mark.parametrize("window", [0.0, -1.0, math.nan])
def test_window_must_be_positive(window: float) -> None:
    with pytest.raises(ValueError):
        ScrollingTraceRenderer(window)
