from __future__ import annotations

import datetime as dt
import os
from pathlib import Path
from threading import Lock

import typer


def _format_value(value: object) -> str:
    text = str(value)
    return text.replace("\n", "\\n")


def _format_fields(fields: dict[str, object]) -> str:
    parts: list[str] = []
    for key in sorted(fields):
        parts.append(f"{key}={_format_value(fields[key])}")
    return " ".join(parts)


class CaptureLog:
    """Operator-facing progress output plus an optional trace file.

    Progress lines go through `typer.echo`; `quiet` silences them and
    `to_stderr` keeps stdout free when frames are streamed there. Trace lines
    are `<utc timestamp> event=<name> key=value ...`.
    """

    def __init__(self, *, quiet: bool = False, to_stderr: bool = False, trace_path: Path | None = None) -> None:
        self.quiet = bool(quiet)
        self.to_stderr = bool(to_stderr)
        self._trace_path = Path(trace_path) if trace_path is not None else None
        self._lock = Lock()
        if self._trace_path is not None:
            self._trace_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def trace_path(self) -> Path | None:
        return self._trace_path

    def __call__(self, message: str) -> None:
        self.echo(message)

    def echo(self, message: str) -> None:
        if not self.quiet:
            typer.echo(message, err=self.to_stderr)
        self.trace("message", text=message)

    def error(self, message: str) -> None:
        typer.echo(message, err=True)
        self.trace("error", text=message)

    def trace(self, event: str, **fields: object) -> None:
        if self._trace_path is None:
            return
        timestamp = dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds")
        line = f"{timestamp} event={str(event).strip()}"
        payload = _format_fields(fields)
        if payload:
            line += f" {payload}"
        line += "\n"
        with self._lock:
            with self._trace_path.open("a", encoding="utf-8") as handle:
                handle.write(line)


def default_trace_name(prefix: str = "capture") -> str:
    timestamp = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%dT%H%M%S.%fZ")
    return f"{prefix}-pid{os.getpid()}-{timestamp}.log"
