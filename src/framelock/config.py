from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Literal, TypeAlias

import msgspec

from .errors import CaptureConfigError

DEFAULT_FPS = 60.0
DEFAULT_DURATION_S = 5.0

CaptureMode: TypeAlias = Literal["screenshot", "canvas"]
CAPTURE_MODES: tuple[str, ...] = ("screenshot", "canvas")


@dataclass(frozen=True, slots=True)
class FramePlan:
    frame_count: int
    fps: float

    @property
    def frame_duration_ms(self) -> float:
        return 1000.0 / float(self.fps)


def _positive(name: str, value: float | None) -> float | None:
    if value is None:
        return None
    value = float(value)
    if math.isnan(value) or value <= 0.0:
        raise CaptureConfigError(f"{name} must be positive, got {value}")
    return value


def resolve_frame_plan(*, fps: float | None = None, duration: float | None = None, frames: int | None = None) -> FramePlan:
    """Work out frame count and rate from whichever of fps/duration/frames were given.

    frames wins over duration for the count; with frames and duration but no
    fps, the rate is derived from them.
    """

    fps = _positive("fps", fps)
    duration = _positive("duration", duration)
    if frames is not None:
        if isinstance(frames, bool) or int(frames) != frames or int(frames) <= 0:
            raise CaptureConfigError(f"frames must be a positive integer, got {frames}")
        frame_count = int(frames)
        if fps is None:
            fps = frame_count / duration if duration is not None else DEFAULT_FPS
    else:
        if fps is None:
            fps = DEFAULT_FPS
        seconds = duration if duration is not None else DEFAULT_DURATION_S
        frame_count = int(math.ceil(seconds * fps - 1e-9))
        if frame_count <= 0:
            raise CaptureConfigError(f"capture of {seconds}s at {fps} fps has no frames")
    return FramePlan(frame_count=frame_count, fps=float(fps))


@dataclass(frozen=True, slots=True)
class CaptureConfig:
    fps: float | None = None
    duration: float | None = None
    frames: int | None = None
    start: float = 0.0
    start_delay: float = 0.0
    start_time: float = 0.0
    viewport_width: int = 800
    viewport_height: int = 600
    selector: str | None = None
    x_offset: float | None = None
    y_offset: float | None = None
    left: float | None = None
    top: float | None = None
    right: float = 0.0
    bottom: float = 0.0
    width: float | None = None
    height: float | None = None
    round_to_even_width: bool = False
    round_to_even_height: bool = False
    unrandomize: Any = None
    max_animation_frame_duration: float | None = None
    stop_function_name: str | None = None
    capture_mode: CaptureMode = "screenshot"
    screenshot_type: Literal["png", "jpeg"] = "png"
    screenshot_quality: int | None = None
    canvas_mode: str | None = None
    transparent_background: bool = False
    output_directory: Path | None = None
    output_pattern: str | None = None
    quiet: bool = False
    log_to_stderr: bool = False
    trace_log: Path | None = None

    def __post_init__(self) -> None:
        if self.capture_mode not in CAPTURE_MODES:
            raise CaptureConfigError(f"unknown capture mode {self.capture_mode!r}; expected one of {', '.join(CAPTURE_MODES)}")
        if self.screenshot_type not in ("png", "jpeg"):
            raise CaptureConfigError(f"screenshot type must be png or jpeg, got {self.screenshot_type!r}")
        if float(self.start) < 0.0:
            raise CaptureConfigError(f"start must not be negative, got {self.start}")
        if float(self.start_delay) < 0.0:
            raise CaptureConfigError(f"start delay must not be negative, got {self.start_delay}")
        if int(self.viewport_width) <= 0 or int(self.viewport_height) <= 0:
            raise CaptureConfigError(f"viewport must be positive, got {self.viewport_width}x{self.viewport_height}")
        _positive("maximum animation frame duration", self.max_animation_frame_duration)
        if self.screenshot_quality is not None and not (0 <= int(self.screenshot_quality) <= 100):
            raise CaptureConfigError(f"screenshot quality must be within 0..100, got {self.screenshot_quality}")

    def frame_plan(self) -> FramePlan:
        return resolve_frame_plan(fps=self.fps, duration=self.duration, frames=self.frames)

    @property
    def start_delay_ms(self) -> float:
        return 1000.0 * float(self.start)

    def merged(self, **overrides: Any) -> CaptureConfig:
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)


class CaptureConfigFile(msgspec.Struct, forbid_unknown_fields=True, omit_defaults=True):
    fps: float | None = None
    duration: float | None = None
    frames: int | None = None
    start: float | None = None
    start_delay: float | None = None
    start_time: float | None = None
    viewport: list[int] | None = None
    selector: str | None = None
    x_offset: float | None = None
    y_offset: float | None = None
    left: float | None = None
    top: float | None = None
    right: float | None = None
    bottom: float | None = None
    width: float | None = None
    height: float | None = None
    round_to_even_width: bool | None = None
    round_to_even_height: bool | None = None
    unrandomize: bool | int | str | list[int] | None = None
    max_animation_frame_duration: float | None = None
    stop_function_name: str | None = None
    capture_mode: str | None = None
    screenshot_type: str | None = None
    screenshot_quality: int | None = None
    canvas_mode: str | None = None
    transparent_background: bool | None = None
    output_directory: str | None = None
    output_pattern: str | None = None
    quiet: bool | None = None


def config_from_file_struct(data: CaptureConfigFile) -> CaptureConfig:
    values: dict[str, Any] = {}
    known = {f.name for f in fields(CaptureConfig)}
    for name in data.__struct_fields__:
        value = getattr(data, name)
        if value is None:
            continue
        if name == "viewport":
            if len(value) != 2:
                raise CaptureConfigError(f"viewport must be [width, height], got {value!r}")
            values["viewport_width"], values["viewport_height"] = int(value[0]), int(value[1])
        elif name == "output_directory":
            values[name] = Path(value)
        elif name in known:
            values[name] = value
    return CaptureConfig(**values)


def load_config_file(path: Path) -> CaptureConfig:
    """Read a TOML capture config; unknown keys are rejected."""
    path = Path(path)
    try:
        data = msgspec.toml.decode(path.read_bytes(), type=CaptureConfigFile)
    except (msgspec.DecodeError, msgspec.ValidationError) as exc:
        raise CaptureConfigError(f"invalid config file {path}: {exc}") from exc
    return config_from_file_struct(data)
