from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .capture import Capturer
from .log import CaptureLog
from .sandbox import Sandbox, go_to_time
from .timeline import MarkerType, Timeline

SkipFramePredicate = Callable[[int, int], bool]


@dataclass(slots=True)
class DriverResult:
    frames_captured: int = 0
    frames_skipped: int = 0
    markers_run: int = 0
    stopped_early: bool = False
    final_time_ms: float = 0.0


class TimelineDriver:
    """Plays a built timeline against a sandbox, one marker at a time.

    A stop request is honoured only between markers. `after_capture` runs
    exactly once however the loop ends; on failure the original exception is
    re-raised after it.
    """

    def __init__(
        self,
        sandbox: Sandbox,
        timeline: Timeline,
        capturer: Capturer,
        *,
        should_skip_frame: SkipFramePredicate | None = None,
        log: CaptureLog | None = None,
    ) -> None:
        self._sandbox = sandbox
        self._timeline = timeline
        self._capturer = capturer
        self._should_skip_frame = should_skip_frame
        self._log = log or CaptureLog(quiet=True)
        self._stop_requested = False
        self.result = DriverResult()

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def request_stop(self, *_args: Any) -> None:
        self._stop_requested = True

    def _finalize(self) -> None:
        after_capture = getattr(self._capturer, "after_capture", None)
        if after_capture is not None:
            after_capture()

    def _run_marker(self, marker_type: MarkerType, time: float, payload: Any) -> None:
        result = self.result
        if marker_type is MarkerType.RUN_FUNCTION:
            payload()
            return

        result.final_time_ms = go_to_time(self._sandbox, time, animate=True)
        if marker_type is MarkerType.ANIMATE_ONLY:
            return

        frame_index = int(payload)
        frame_count = int(self._timeline.frame_count)
        if self._should_skip_frame is not None and self._should_skip_frame(frame_index, frame_count):
            result.frames_skipped += 1
            self._log.trace("skip", frame=frame_index, time_ms=time)
            return
        self._capturer.capture(frame_index, frame_count)
        result.frames_captured += 1
        self._log.trace("capture", frame=frame_index, time_ms=time)

    def run(self) -> DriverResult:
        result = self.result
        try:
            for marker in self._timeline.markers:
                if self._stop_requested:
                    result.stopped_early = True
                    self._log.trace("stop", marker=marker.id, time_ms=marker.time)
                    break
                self._run_marker(marker.type, marker.time, marker.payload)
                result.markers_run += 1
        except BaseException as error:
            try:
                self._finalize()
            except Exception as flush_error:
                error.add_note(f"after_capture also failed: {flush_error}")
            raise
        self._finalize()
        return result
