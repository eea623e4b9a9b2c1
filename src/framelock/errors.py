from __future__ import annotations


class CaptureConfigError(ValueError):
    """Invalid capture configuration, raised before playback starts."""


class SandboxError(RuntimeError):
    pass


class SandboxExecutionError(SandboxError):
    """A function run inside the sandbox raised."""


class FrameWriteError(OSError):
    pass
