from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .canvas import CanvasCapturer, decode_data_url, normalize_canvas_mode
from .geometry import CaptureClip, ClipOptions, compute_clip
from .output import FrameOutput, FrameProcessor, default_file_name, write_frame
from .screenshot import ScreenshotCapturer, encode_image


@runtime_checkable
class Capturer(Protocol):
    """Per-frame capture hook. `before_capture` and `after_capture` are optional."""

    def capture(self, frame_index: int, frame_count: int) -> Any: ...


__all__ = [
    "CanvasCapturer",
    "CaptureClip",
    "Capturer",
    "ClipOptions",
    "FrameOutput",
    "FrameProcessor",
    "ScreenshotCapturer",
    "compute_clip",
    "decode_data_url",
    "default_file_name",
    "encode_image",
    "normalize_canvas_mode",
    "write_frame",
]
