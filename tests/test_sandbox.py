from __future__ import annotations

import base64
import sys
from pathlib import Path

import pytest

from framelock.clock import VirtualClock
from framelock.errors import SandboxError, SandboxExecutionError
from framelock.rand import XorShift128
from framelock.sandbox import HostOverrides, LocalSandbox, Viewport, go_to_time, load_program


def _installed(**kwargs) -> LocalSandbox:
    sandbox = LocalSandbox(viewport=Viewport(16, 8))
    sandbox.install(HostOverrides(**kwargs))
    return sandbox


def test_env_requires_install() -> None:
    sandbox = LocalSandbox()
    with pytest.raises(SandboxError):
        _ = sandbox.env
    with pytest.raises(SandboxError):
        sandbox.load(lambda host: None)


def test_install_after_load_is_rejected() -> None:
    sandbox = _installed(clock=VirtualClock())
    sandbox.load(lambda host: None)
    with pytest.raises(SandboxError):
        sandbox.install(HostOverrides(clock=VirtualClock()))


def test_host_time_and_random_come_from_overrides() -> None:
    clock = VirtualClock(start_time=5000.0)
    sandbox = _installed(clock=clock, rng=XorShift128(1))
    seen: dict[str, object] = {}

    def program(host) -> None:
        seen["now"] = host.now()
        seen["perf"] = host.performance_now()
        seen["draw"] = host.random()

    sandbox.load(program)
    assert seen == {"now": 5000.0, "perf": 0.0, "draw": 0.52166801924438921}
    assert sandbox.env.canvas.size == (16, 8)


def test_program_timers_run_under_virtual_time() -> None:
    sandbox = _installed(clock=VirtualClock())
    fired: list[float] = []
    sandbox.load(lambda host: host.set_timeout(lambda: fired.append(host.performance_now()), 250))
    assert go_to_time(sandbox, 100, animate=False) == 100.0
    assert fired == []
    assert go_to_time(sandbox, 300, animate=True) == 300.0
    assert fired == [250.0]


def test_exposed_functions_reach_the_program() -> None:
    sandbox = LocalSandbox()
    calls: list[tuple] = []
    sandbox.expose_function("early", lambda *args: calls.append(("early",) + args))
    sandbox.install(HostOverrides(clock=VirtualClock()))
    sandbox.expose_function("late", lambda *args: calls.append(("late",) + args))

    def program(host) -> None:
        host.exposed["early"](1)
        host.exposed["late"]()

    sandbox.load(program)
    assert calls == [("early", 1), ("late",)]


def test_program_errors_are_wrapped() -> None:
    sandbox = _installed(clock=VirtualClock())

    def program(host) -> None:
        raise ValueError("bad program")

    with pytest.raises(SandboxExecutionError, match="bad program"):
        sandbox.load(program)


def test_evaluate_wraps_errors_raised_by_callbacks() -> None:
    sandbox = _installed(clock=VirtualClock())

    def program(host) -> None:
        def boom() -> None:
            raise ZeroDivisionError("tick")

        host.set_timeout(boom, 10)

    sandbox.load(program)
    with pytest.raises(SandboxExecutionError, match="ZeroDivisionError: tick"):
        go_to_time(sandbox, 20, animate=False)


def test_canvas_data_url_round_trips_pixels() -> None:
    sandbox = _installed(clock=VirtualClock())
    url = sandbox.env.canvas_to_data_url()
    header, _, payload = url.partition(",")
    assert header == "data:image/png;base64"
    assert base64.b64decode(payload).startswith(b"\x89PNG")

    jpeg = sandbox.env.canvas_to_data_url(mime="image/jpeg", quality=0.5)
    assert base64.b64decode(jpeg.partition(",")[2]).startswith(b"\xff\xd8")

    with pytest.raises(KeyError):
        sandbox.env.canvas_to_data_url("missing")


def test_regions() -> None:
    sandbox = _installed(clock=VirtualClock())
    sandbox.load(lambda host: host.define_region("title", 1, 2, 3, 4))
    region = sandbox.get_region("title")
    assert region is not None
    assert (region.left, region.top, region.width, region.height) == (1.0, 2.0, 3.0, 4.0)
    assert sandbox.get_region("other") is None


def test_load_program_references(tmp_path: Path) -> None:
    from framelock import demo

    assert load_program("framelock.demo:countdown") is demo.countdown

    script = tmp_path / "scene.py"
    script.write_text("def main(host):\n    host.state['ran'] = True\n", encoding="utf-8")
    program = load_program(str(script))
    sandbox = _installed(clock=VirtualClock())
    sandbox.load(program)
    assert sandbox.env.state == {"ran": True}

    with pytest.raises(SandboxError):
        load_program("framelock.demo:nothing_here")
    with pytest.raises(SandboxError):
        load_program("framelock_missing_module_xyz:main")
    with pytest.raises(SandboxError):
        load_program(str(tmp_path / "absent.py"))
    with pytest.raises(SandboxError):
        load_program(":main")


def test_program_file_failing_at_import_is_wrapped(tmp_path: Path) -> None:
    script = tmp_path / "broken_scene.py"
    script.write_text("raise RuntimeError('import boom')\n", encoding="utf-8")
    with pytest.raises(SandboxExecutionError, match="import boom"):
        load_program(f"{script}:main")
    assert "_framelock_program_broken_scene" not in sys.modules
