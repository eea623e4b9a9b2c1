from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("framelock")
except PackageNotFoundError:  # pragma: no cover
    # Running from a source checkout without installed metadata.
    __version__ = "0.0.0+dev"

__all__ = [
    "capture",
    "cli",
    "clock",
    "config",
    "demo",
    "driver",
    "errors",
    "log",
    "rand",
    "sandbox",
    "session",
    "timeline",
]
