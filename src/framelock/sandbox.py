from __future__ import annotations

import base64
import datetime as dt
import importlib
import importlib.util
import io
import random as _system_random
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from PIL import Image

from .clock import VirtualClock
from .errors import SandboxError, SandboxExecutionError
from .rand import XorShift128

DEFAULT_VIEWPORT = (800, 600)
DEFAULT_CANVAS = "canvas"


@dataclass(frozen=True, slots=True)
class Viewport:
    width: int = DEFAULT_VIEWPORT[0]
    height: int = DEFAULT_VIEWPORT[1]


@dataclass(frozen=True, slots=True)
class Region:
    """A named rectangle the program publishes, the analogue of an element's bounding box."""

    left: float
    top: float
    width: float
    height: float
    scroll_x: float = 0.0
    scroll_y: float = 0.0


@dataclass(frozen=True, slots=True)
class HostOverrides:
    clock: VirtualClock
    rng: XorShift128 | None = None


Program = Callable[["HostEnv"], Any]


class HostEnv:
    """Everything a hosted program may touch for time, randomness and drawing."""

    def __init__(self, overrides: HostOverrides, *, viewport: Viewport) -> None:
        self._clock = overrides.clock
        if overrides.rng is not None:
            self.random: Callable[[], float] = overrides.rng.random
        else:
            self.random = _system_random.random
        self.viewport = viewport
        self.canvases: dict[str, Image.Image] = {
            DEFAULT_CANVAS: Image.new("RGBA", (int(viewport.width), int(viewport.height)), (0, 0, 0, 0)),
        }
        self.background: tuple[int, int, int, int] = (255, 255, 255, 255)
        self.regions: dict[str, Region] = {}
        self.exposed: dict[str, Callable[..., Any]] = {}
        self.state: dict[str, Any] = {}

        self.set_timeout = self._clock.set_timeout
        self.set_interval = self._clock.set_interval
        self.clear_timeout = self._clock.clear_timeout
        self.clear_interval = self._clock.clear_interval
        self.request_animation_frame = self._clock.request_animation_frame
        self.cancel_animation_frame = self._clock.cancel_animation_frame

    @property
    def canvas(self) -> Image.Image:
        return self.canvases[DEFAULT_CANVAS]

    def now(self) -> float:
        return self._clock.now()

    def performance_now(self) -> float:
        return self._clock.elapsed

    def datetime(self) -> dt.datetime:
        return self._clock.datetime()

    def create_canvas(self, name: str, width: int, height: int) -> Image.Image:
        image = Image.new("RGBA", (int(width), int(height)), (0, 0, 0, 0))
        self.canvases[str(name)] = image
        return image

    def define_region(self, name: str, left: float, top: float, width: float, height: float) -> None:
        self.regions[str(name)] = Region(left=float(left), top=float(top), width=float(width), height=float(height))

    def snapshot(self, *, transparent_background: bool = False) -> Image.Image:
        frame = self.canvas.copy()
        if transparent_background:
            return frame
        base = Image.new("RGBA", frame.size, self.background)
        base.alpha_composite(frame)
        return base

    def canvas_to_data_url(self, name: str = DEFAULT_CANVAS, mime: str = "image/png", quality: float | None = None) -> str:
        image = self.canvases.get(str(name))
        if image is None:
            raise KeyError(f"no canvas named {name!r}")
        fmt = mime.split("/", 1)[-1].upper()
        if fmt == "JPG":
            fmt = "JPEG"
        buffer = io.BytesIO()
        if fmt == "JPEG":
            params: dict[str, Any] = {}
            if quality is not None:
                params["quality"] = int(round(float(quality) * 100.0)) if float(quality) <= 1.0 else int(quality)
            image.convert("RGB").save(buffer, format="JPEG", **params)
        else:
            image.save(buffer, format=fmt)
        payload = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:{mime};base64,{payload}"


class Sandbox(Protocol):
    viewport: Viewport

    def install(self, overrides: HostOverrides) -> None: ...

    def load(self, program: Program) -> None: ...

    def evaluate(self, fn: Callable[..., Any], *args: Any) -> Any: ...

    def expose_function(self, name: str, fn: Callable[..., Any]) -> None: ...

    def get_region(self, name: str) -> Region | None: ...


class LocalSandbox:
    """Runs a Python program in-process against the overridden host surface.

    Overrides must be installed before the program loads; everything the
    engine does to the program afterwards goes through `evaluate`.
    """

    def __init__(self, *, viewport: Viewport | None = None) -> None:
        self.viewport = viewport or Viewport()
        self._env: HostEnv | None = None
        self._loaded = False
        self._pending_exposed: dict[str, Callable[..., Any]] = {}

    @property
    def env(self) -> HostEnv:
        if self._env is None:
            raise SandboxError("sandbox overrides are not installed")
        return self._env

    @property
    def clock(self) -> VirtualClock:
        return self.env._clock

    def install(self, overrides: HostOverrides) -> None:
        if self._loaded:
            raise SandboxError("overrides must be installed before the program loads")
        self._env = HostEnv(overrides, viewport=self.viewport)
        self._env.exposed.update(self._pending_exposed)

    def expose_function(self, name: str, fn: Callable[..., Any]) -> None:
        self._pending_exposed[str(name)] = fn
        if self._env is not None:
            self._env.exposed[str(name)] = fn

    def load(self, program: Program) -> None:
        env = self.env
        self._loaded = True
        try:
            program(env)
        except Exception as exc:
            raise SandboxExecutionError(f"program failed while loading: {exc}") from exc

    def evaluate(self, fn: Callable[..., Any], *args: Any) -> Any:
        env = self.env
        try:
            return fn(env, *args)
        except SandboxError:
            raise
        except Exception as exc:
            raise SandboxExecutionError(f"{type(exc).__name__}: {exc}") from exc

    def get_region(self, name: str) -> Region | None:
        return self.env.regions.get(str(name))


def go_to_time(sandbox: Sandbox, ms: float, *, animate: bool) -> float:
    """Advance the sandboxed clock to `ms` and optionally run one animation tick."""

    def _step(env: HostEnv, target: float, run_frames: bool) -> float:
        clock = env._clock
        clock.advance_to(target)
        if run_frames:
            clock.run_animation_frames()
        return clock.elapsed

    return float(sandbox.evaluate(_step, float(ms), bool(animate)))


def load_program(ref: str) -> Program:
    """Resolve `package.module:function` or `path/to/file.py:function`.

    The function name defaults to `main`.
    """

    target, sep, attr = ref.partition(":")
    attr = attr if sep else "main"
    if not target:
        raise SandboxError(f"invalid program reference: {ref!r}")

    if target.endswith(".py") or "/" in target or "\\" in target:
        path = Path(target)
        if not path.is_file():
            raise SandboxError(f"program file not found: {path}")
        module_name = f"_framelock_program_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise SandboxError(f"cannot load program file: {path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            sys.modules.pop(module_name, None)
            raise SandboxExecutionError(f"program failed while importing: {exc}") from exc
    else:
        try:
            module = importlib.import_module(target)
        except ImportError as exc:
            raise SandboxError(f"cannot import program module {target!r}: {exc}") from exc
        except Exception as exc:
            raise SandboxExecutionError(f"program failed while importing: {exc}") from exc

    program = getattr(module, attr, None)
    if not callable(program):
        raise SandboxError(f"{target} has no callable {attr!r}")
    return program
