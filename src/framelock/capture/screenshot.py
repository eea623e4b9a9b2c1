from __future__ import annotations

import io
from typing import Any, Literal, TypeAlias

from PIL import Image

from ..errors import CaptureConfigError
from ..log import CaptureLog
from ..sandbox import HostEnv, Sandbox
from .geometry import CaptureClip, ClipOptions, compute_clip
from .output import FrameOutput, write_frame

ScreenshotType: TypeAlias = Literal["png", "jpeg"]


def encode_image(image: Image.Image, image_type: str, *, quality: int | None = None) -> bytes:
    buffer = io.BytesIO()
    if image_type == "jpeg":
        params: dict[str, Any] = {}
        if quality is not None:
            params["quality"] = int(quality)
        image.convert("RGB").save(buffer, format="JPEG", **params)
    elif image_type == "png":
        image.save(buffer, format="PNG")
    else:
        raise CaptureConfigError(f"unsupported screenshot type: {image_type!r}")
    return buffer.getvalue()


class ScreenshotCapturer:
    """Captures the composited host surface, cropped to the clip rectangle."""

    def __init__(
        self,
        sandbox: Sandbox,
        output: FrameOutput,
        *,
        clip_options: ClipOptions | None = None,
        selector: str | None = None,
        image_type: ScreenshotType = "png",
        quality: int | None = None,
        transparent_background: bool = False,
        log: CaptureLog | None = None,
    ) -> None:
        if image_type not in ("png", "jpeg"):
            raise CaptureConfigError(f"unsupported screenshot type: {image_type!r}")
        self._sandbox = sandbox
        self._output = output
        self._clip_options = clip_options or ClipOptions()
        self._selector = selector
        self._image_type = image_type
        self._quality = quality
        self._transparent_background = bool(transparent_background)
        self._log = log or CaptureLog(quiet=True)
        self.clip: CaptureClip | None = None

    def before_capture(self) -> CaptureClip:
        region = None
        if self._selector:
            region = self._sandbox.get_region(self._selector)
            if region is None:
                self._log.echo(f"Warning: no element found for {self._selector}")
        self.clip = compute_clip(self._sandbox.viewport, self._clip_options, region)
        return self.clip

    def _render(self, env: HostEnv, box: tuple[int, int, int, int]) -> bytes:
        image = env.snapshot(transparent_background=self._transparent_background).crop(box)
        return encode_image(image, self._image_type, quality=self._quality)

    def capture(self, frame_index: int, frame_count: int) -> bytes:
        if self.clip is None:
            self.before_capture()
        assert self.clip is not None
        path = self._output.file_path(frame_index, frame_count)
        suffix = f" to {path}" if path is not None else ""
        self._log.echo(f"Capturing Frame {int(frame_index)}{suffix}...")
        data = self._sandbox.evaluate(self._render, self.clip.box())
        if path is not None:
            write_frame(path, data)
        if self._output.frame_processor is not None:
            self._output.frame_processor(data, int(frame_index), int(frame_count))
        return data
