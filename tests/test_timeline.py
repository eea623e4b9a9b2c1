from __future__ import annotations

import json

import pytest

from framelock.errors import CaptureConfigError
from framelock.timeline import MarkerType, build_timeline, dump_timeline_json, frame_time_mapping


def _summary(timeline) -> list[tuple[float, str]]:
    return [(m.time, m.type.value) for m in timeline.markers]


def test_frame_time_mapping_starts_at_zero() -> None:
    to_time = frame_time_mapping(1000.0)
    assert [to_time(i) for i in (1, 2, 3)] == [0.0, 1000.0, 2000.0]
    with pytest.raises(CaptureConfigError):
        frame_time_mapping(0.0)


def test_first_capture_at_gap_threshold_gets_no_early_marker() -> None:
    timeline = build_timeline(frame_count=10, frame_num_to_time=lambda i: i * 100.0)
    assert _summary(timeline) == [(float(t), "capture") for t in range(100, 1001, 100)]
    assert [m.frame_index for m in timeline.captures()] == list(range(1, 11))


def test_first_capture_past_gap_threshold_gets_early_marker() -> None:
    timeline = build_timeline(frame_count=2, frame_num_to_time=lambda i: i * 101.0)
    assert _summary(timeline) == [
        (20.0, "animate_only"),
        (101.0, "capture"),
        (202.0, "capture"),
    ]


def test_early_marker_constants_are_configurable() -> None:
    timeline = build_timeline(
        frame_count=1,
        frame_num_to_time=lambda i: 0.0,
        start_delay_ms=60.0,
        early_marker_time_ms=5.0,
        early_marker_gap_ms=50.0,
    )
    assert _summary(timeline) == [(5.0, "animate_only"), (60.0, "capture")]


def test_start_delay_offsets_every_capture() -> None:
    timeline = build_timeline(frame_count=3, frame_num_to_time=frame_time_mapping(50.0), start_delay_ms=1000.0)
    captures = [m.time for m in timeline.captures()]
    assert captures == [1000.0, 1050.0, 1100.0]
    assert timeline.markers[0].type is MarkerType.ANIMATE_ONLY
    assert timeline.markers[0].time == 20.0


def test_subdivision_inserts_evenly_spaced_animation_markers() -> None:
    timeline = build_timeline(
        frame_count=2,
        frame_num_to_time=lambda i: (i - 1) * 100.0,
        max_animation_frame_duration=16.0,
    )
    animate = [m.time for m in timeline.markers if m.type is MarkerType.ANIMATE_ONLY]
    assert len(animate) == 6
    assert animate == pytest.approx([100.0 * k / 7.0 for k in range(1, 7)])
    assert [m.type for m in (timeline.markers[0], timeline.markers[-1])] == [MarkerType.CAPTURE, MarkerType.CAPTURE]


def test_subdivision_skips_gaps_within_cap() -> None:
    timeline = build_timeline(
        frame_count=4,
        frame_num_to_time=frame_time_mapping(1000.0 / 60.0),
        max_animation_frame_duration=20.0,
    )
    assert all(m.type is MarkerType.CAPTURE for m in timeline.markers)


def test_low_fps_capture_with_cap_samples_animation_densely() -> None:
    timeline = build_timeline(
        frame_count=2,
        frame_num_to_time=frame_time_mapping(1000.0),
        max_animation_frame_duration=20.0,
    )
    times = [m.time for m in timeline.markers]
    assert len(timeline.markers) == 51
    assert max(b - a for a, b in zip(times, times[1:])) <= 20.0 + 1e-9


def test_run_function_marker_precedes_first_capture() -> None:
    action = lambda: None  # noqa: E731
    timeline = build_timeline(frame_count=2, frame_num_to_time=frame_time_mapping(40.0), before_first_capture=action)
    first, second = timeline.markers[:2]
    assert first.type is MarkerType.RUN_FUNCTION
    assert first.payload is action
    assert second.type is MarkerType.CAPTURE
    assert first.time == second.time == 0.0
    assert first.id < second.id


def test_markers_sorted_by_time_then_id() -> None:
    timeline = build_timeline(
        frame_count=5,
        frame_num_to_time=lambda i: 300.0 if i in (2, 3) else i * 150.0,
        max_animation_frame_duration=64.0,
        before_first_capture=lambda: None,
    )
    keys = [(m.time, m.id) for m in timeline.markers]
    assert keys == sorted(keys)
    coincident = [m.frame_index for m in timeline.captures() if m.time == 300.0]
    assert coincident == [2, 3]


def test_zero_frames_builds_empty_capture_set() -> None:
    assert len(build_timeline(frame_count=0, frame_num_to_time=frame_time_mapping(10.0))) == 0
    timeline = build_timeline(
        frame_count=0,
        frame_num_to_time=frame_time_mapping(10.0),
        start_delay_ms=30.0,
        before_first_capture=lambda: None,
    )
    assert _summary(timeline) == [(30.0, "run_function")]


def test_invalid_builder_configuration() -> None:
    with pytest.raises(CaptureConfigError):
        build_timeline(frame_count=-1, frame_num_to_time=frame_time_mapping(10.0))
    with pytest.raises(CaptureConfigError):
        build_timeline(frame_count=3, frame_num_to_time=frame_time_mapping(10.0), max_animation_frame_duration=0)


def test_frame_index_only_on_capture_markers() -> None:
    timeline = build_timeline(frame_count=1, frame_num_to_time=lambda i: 500.0)
    early = timeline.markers[0]
    assert early.type is MarkerType.ANIMATE_ONLY
    with pytest.raises(AttributeError):
        _ = early.frame_index


def test_dump_timeline_json() -> None:
    timeline = build_timeline(frame_count=2, frame_num_to_time=lambda i: i * 200.0)
    rows = json.loads(dump_timeline_json(timeline))
    assert rows == [
        {"id": 2, "time": 20.0, "type": "animate_only", "frame": None},
        {"id": 0, "time": 200.0, "type": "capture", "frame": 1},
        {"id": 1, "time": 400.0, "type": "capture", "frame": 2},
    ]
