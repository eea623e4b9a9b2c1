from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..errors import FrameWriteError

FrameProcessor = Callable[[bytes, int, int], Any]
FileNameConverter = Callable[[int, int], "str | None"]


def default_file_name(frame_index: int, frame_count: int, *, extension: str = "png") -> str:
    width = len(str(int(frame_count)))
    return f"{int(frame_index):0{width}d}.{extension}"


@dataclass(frozen=True, slots=True)
class FrameOutput:
    """Where captured frames go: numbered files, a processor callback, or both."""

    output_directory: Path | None = None
    output_pattern: str | None = None
    frame_processor: FrameProcessor | None = None
    file_name_converter: FileNameConverter | None = None
    extension: str = "png"

    def file_name(self, frame_index: int, frame_count: int) -> str | None:
        if self.file_name_converter is not None:
            return self.file_name_converter(frame_index, frame_count)
        if self.output_pattern:
            try:
                return self.output_pattern % int(frame_index)
            except (TypeError, ValueError) as exc:
                raise FrameWriteError(f"bad output pattern {self.output_pattern!r}: {exc}") from exc
        if self.frame_processor is not None and self.output_directory is None:
            return None
        return default_file_name(frame_index, frame_count, extension=self.extension)

    def file_path(self, frame_index: int, frame_count: int) -> Path | None:
        name = self.file_name(frame_index, frame_count)
        if not name:
            return None
        base = self.output_directory if self.output_directory is not None else Path.cwd()
        return (Path(base) / name).resolve()


def write_frame(path: Path, data: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as exc:
        raise FrameWriteError(f"failed to write frame to {path}: {exc}") from exc
