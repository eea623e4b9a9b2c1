from __future__ import annotations

import enum
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import msgspec

from .errors import CaptureConfigError

EARLY_MARKER_TIME_MS = 20.0
EARLY_MARKER_GAP_MS = 100.0


class MarkerType(enum.Enum):
    CAPTURE = "capture"
    ANIMATE_ONLY = "animate_only"
    RUN_FUNCTION = "run_function"


@dataclass(frozen=True, slots=True)
class Marker:
    time: float
    type: MarkerType
    id: int
    payload: Any = field(default=None, compare=False)

    @property
    def frame_index(self) -> int:
        if self.type is not MarkerType.CAPTURE:
            raise AttributeError(f"{self.type.value} marker has no frame index")
        return int(self.payload)


class MarkerRow(msgspec.Struct, forbid_unknown_fields=True):
    id: int
    time: float
    type: str
    frame: int | None = None


def frame_time_mapping(frame_duration_ms: float) -> Callable[[int], float]:
    """Map a 1-based frame number to its offset: frame 1 lands on 0 ms."""
    duration = float(frame_duration_ms)
    if not (duration > 0.0):
        raise CaptureConfigError(f"frame duration must be positive, got {duration}")

    def frame_num_to_time(frame_index: int) -> float:
        return float(int(frame_index) - 1) * duration

    return frame_num_to_time


@dataclass(frozen=True, slots=True)
class Timeline:
    markers: tuple[Marker, ...]
    frame_count: int
    frame_num_to_time: Callable[[int], float]

    def __len__(self) -> int:
        return len(self.markers)

    def __iter__(self):
        return iter(self.markers)

    def captures(self) -> tuple[Marker, ...]:
        return tuple(m for m in self.markers if m.type is MarkerType.CAPTURE)

    def to_rows(self) -> list[MarkerRow]:
        rows: list[MarkerRow] = []
        for marker in self.markers:
            frame = marker.frame_index if marker.type is MarkerType.CAPTURE else None
            rows.append(MarkerRow(id=int(marker.id), time=float(marker.time), type=marker.type.value, frame=frame))
        return rows


def dump_timeline_json(timeline: Timeline) -> bytes:
    return msgspec.json.encode(timeline.to_rows())


class _MarkerFactory:
    __slots__ = ("markers", "_next_id")

    def __init__(self) -> None:
        self.markers: list[Marker] = []
        self._next_id = 0

    def add(self, time: float, marker_type: MarkerType, payload: Any = None) -> Marker:
        marker = Marker(time=float(time), type=marker_type, id=self._next_id, payload=payload)
        self._next_id += 1
        self.markers.append(marker)
        return marker


def _subdivide(factory: _MarkerFactory, max_duration: float) -> None:
    times = sorted({m.time for m in factory.markers})
    for start, end in zip(times, times[1:]):
        gap = end - start
        if gap <= max_duration:
            continue
        parts = int(math.ceil(gap / max_duration))
        step = gap / float(parts)
        for idx in range(1, parts):
            factory.add(start + step * float(idx), MarkerType.ANIMATE_ONLY)


def build_timeline(
    *,
    frame_count: int,
    frame_num_to_time: Callable[[int], float],
    start_delay_ms: float = 0.0,
    max_animation_frame_duration: float | None = None,
    before_first_capture: Callable[[], Any] | None = None,
    early_marker_time_ms: float = EARLY_MARKER_TIME_MS,
    early_marker_gap_ms: float = EARLY_MARKER_GAP_MS,
) -> Timeline:
    """Lay out every marker of a capture session ahead of playback.

    Markers come out sorted by `(time, id)`; ids follow creation order, so the
    `before_first_capture` action (created first) runs right before frame 1.
    A long gap before the first capture gets one early animation tick so
    programs that bootstrap their loop inside a frame callback start running.
    With `max_animation_frame_duration`, gaps between markers are split so no
    animation tick spans more than that.
    """

    frame_count = int(frame_count)
    if frame_count < 0:
        raise CaptureConfigError(f"frame count must not be negative, got {frame_count}")
    if max_animation_frame_duration is not None and not (float(max_animation_frame_duration) > 0.0):
        raise CaptureConfigError(
            f"maximum animation frame duration must be positive, got {max_animation_frame_duration}"
        )
    start_delay_ms = float(start_delay_ms)

    capture_times = [start_delay_ms + float(frame_num_to_time(idx)) for idx in range(1, frame_count + 1)]

    factory = _MarkerFactory()
    if before_first_capture is not None:
        first_time = capture_times[0] if capture_times else start_delay_ms
        factory.add(first_time, MarkerType.RUN_FUNCTION, before_first_capture)

    for idx, time in enumerate(capture_times, start=1):
        factory.add(time, MarkerType.CAPTURE, idx)

    if capture_times and capture_times[0] > float(early_marker_gap_ms):
        factory.add(float(early_marker_time_ms), MarkerType.ANIMATE_ONLY)

    if max_animation_frame_duration is not None:
        _subdivide(factory, float(max_animation_frame_duration))

    markers = tuple(sorted(factory.markers, key=lambda m: (m.time, m.id)))
    return Timeline(markers=markers, frame_count=frame_count, frame_num_to_time=frame_num_to_time)
