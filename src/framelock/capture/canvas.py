from __future__ import annotations

import base64
import binascii
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

from ..errors import FrameWriteError
from ..log import CaptureLog
from ..sandbox import DEFAULT_CANVAS, HostEnv, Sandbox
from .output import FrameOutput, write_frame

DEFAULT_CANVAS_MODE = "png"


def normalize_canvas_mode(mode: str | None, *, file_name: str | None = None) -> str:
    if not mode and file_name and "." in file_name:
        mode = file_name.rsplit(".", 1)[-1]
    if not mode:
        mode = DEFAULT_CANVAS_MODE
    mode = str(mode).lower()
    if mode == "jpg":
        mode = "jpeg"
    if not mode.startswith("image/"):
        mode = "image/" + mode
    return mode


def decode_data_url(data_url: str) -> bytes:
    _, sep, payload = str(data_url).partition(",")
    if not sep:
        raise FrameWriteError("canvas returned an invalid data url")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise FrameWriteError(f"canvas data url is not valid base64: {exc}") from exc


class CanvasCapturer:
    """Pulls encoded canvas pixels out of the sandbox.

    File writes are queued on a single worker and only awaited in
    `after_capture`, so capture of frame N+1 does not wait on disk.
    """

    def __init__(
        self,
        sandbox: Sandbox,
        output: FrameOutput,
        *,
        selector: str | None = None,
        canvas_mode: str | None = None,
        quality: float | None = None,
        wait_for_writing: bool = False,
        log: CaptureLog | None = None,
    ) -> None:
        self._sandbox = sandbox
        self._output = output
        self._canvas_name = selector or DEFAULT_CANVAS
        self._canvas_mode = canvas_mode
        self._quality = quality
        self._wait_for_writing = bool(wait_for_writing)
        self._log = log or CaptureLog(quiet=True)
        self._executor: ThreadPoolExecutor | None = None
        self._pending_writes: list[Future[None]] = []

    def _read_canvas(self, env: HostEnv, name: str, mime: str, quality: float | None) -> str:
        return env.canvas_to_data_url(name, mime, quality)

    def _queue_write(self, path: Path, data: bytes) -> None:
        if self._wait_for_writing:
            write_frame(path, data)
            return
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="framelock-write")
        self._pending_writes.append(self._executor.submit(write_frame, path, data))

    def capture(self, frame_index: int, frame_count: int) -> bytes:
        path = self._output.file_path(frame_index, frame_count)
        mime = normalize_canvas_mode(self._canvas_mode, file_name=path.name if path is not None else None)
        suffix = f" to {path}" if path is not None else ""
        self._log.echo(f"Capturing Frame {int(frame_index)}{suffix}...")
        data_url = self._sandbox.evaluate(self._read_canvas, self._canvas_name, mime, self._quality)
        data = decode_data_url(data_url)
        if path is not None:
            self._queue_write(path, data)
        if self._output.frame_processor is not None:
            self._output.frame_processor(data, int(frame_index), int(frame_count))
        return data

    def after_capture(self) -> None:
        pending, self._pending_writes = self._pending_writes, []
        try:
            errors = [exc for exc in (future.exception() for future in pending) if exc is not None]
        finally:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None
        if errors:
            raise errors[0]
