from __future__ import annotations

from pathlib import Path

import typer

from .config import CaptureConfig, load_config_file
from .errors import CaptureConfigError, FrameWriteError, SandboxError
from .log import CaptureLog, default_trace_name
from .rand import generate_random_seed
from .sandbox import load_program
from .session import build_session_timeline, run_capture
from .timeline import dump_timeline_json

app = typer.Typer(add_completion=False)


def _parse_viewport(text: str | None) -> tuple[int, int] | None:
    if text is None:
        return None
    parts = [p.strip() for p in str(text).split(",") if p.strip()]
    if len(parts) != 2:
        raise CaptureConfigError(f"viewport must be WIDTH,HEIGHT, got {text!r}")
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        raise CaptureConfigError(f"viewport must be WIDTH,HEIGHT, got {text!r}") from None


def _flag(value: bool) -> bool | None:
    return True if value else None


def _resolve_trace_log(path: Path | None) -> Path | None:
    if path is None:
        return None
    if path.is_dir():
        return path / default_trace_name()
    return path


@app.command("capture")
def cmd_capture(
    program: str = typer.Argument(..., help="hosted program as module:function or path.py:function"),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="TOML file with capture settings"),
    output_directory: Path | None = typer.Option(None, "--output-directory", "-o", help="save frames to directory (default: ./)"),
    output_pattern: str | None = typer.Option(None, "--output-pattern", "-O", help="printf-style file name (e.g. image-%03d.png)"),
    fps: float | None = typer.Option(None, "--fps", "-R", help="frames per second to capture (default: 60)"),
    duration: float | None = typer.Option(None, "--duration", "-d", help="duration of capture in seconds (default: 5)"),
    frames: int | None = typer.Option(None, "--frames", help="number of frames to capture"),
    selector: str | None = typer.Option(None, "--selector", "-S", help="named region (screenshot) or canvas (canvas mode) to capture"),
    output_stdout: bool = typer.Option(False, "--output-stdout", help="write encoded frames to stdout"),
    viewport: str | None = typer.Option(None, "--viewport", "-V", help="viewport in pixels, e.g. 800,600"),
    transparent_background: bool = typer.Option(False, "--transparent-background", help="keep transparency (png only)"),
    round_to_even_width: bool = typer.Option(False, "--round-to-even-width", help="round capture width up to even"),
    round_to_even_height: bool = typer.Option(False, "--round-to-even-height", help="round capture height up to even"),
    start: float | None = typer.Option(None, "--start", "-s", help="run n virtual seconds before the first frame"),
    start_delay: float | None = typer.Option(None, "--start-delay", help="wait n real seconds after loading"),
    start_time: float | None = typer.Option(None, "--start-time", help="virtual epoch time in ms seen by the program (default: 0)"),
    x_offset: float | None = typer.Option(None, "--x-offset", "-x", help="x offset of capture in pixels"),
    y_offset: float | None = typer.Option(None, "--y-offset", "-y", help="y offset of capture in pixels"),
    width: float | None = typer.Option(None, "--width", "-W", help="width of capture in pixels"),
    height: float | None = typer.Option(None, "--height", "-H", help="height of capture in pixels"),
    left: float | None = typer.Option(None, "--left", "-l", help="left edge of capture; same as --x-offset"),
    right: float | None = typer.Option(None, "--right", "-r", help="right edge of capture in pixels"),
    top: float | None = typer.Option(None, "--top", "-t", help="top edge of capture; same as --y-offset"),
    bottom: float | None = typer.Option(None, "--bottom", "-b", help="bottom edge of capture in pixels"),
    unrandomize: str | None = typer.Option(
        None,
        "--unrandomize",
        "-u",
        help="replace random() with a seeded PRNG: up to 4 comma-separated seeds, '' for defaults, or 'random-seed'",
    ),
    unrandomize_defaults: bool = typer.Option(
        False,
        "--unrandomize-defaults",
        "-U",
        help="replace random() with a seeded PRNG using the default seeds; same as -u ''",
    ),
    max_animation_frame_duration: float | None = typer.Option(
        None,
        "--max-animation-frame-duration",
        help="longest virtual ms one animation tick may span; extra ticks are inserted between frames",
    ),
    capture_mode: str | None = typer.Option(None, "--capture-mode", help="screenshot (default) or canvas"),
    canvas_mode: str | None = typer.Option(None, "--canvas-mode", help="image type for canvas mode (default: png)"),
    screenshot_type: str | None = typer.Option(None, "--screenshot-type", help="png or jpeg"),
    screenshot_quality: int | None = typer.Option(None, "--screenshot-quality", help="quality for lossy output (0-100)"),
    stop_function_name: str | None = typer.Option(None, "--stop-function-name", help="exposed callback the program calls to stop early"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="suppress progress output"),
    trace_log: Path | None = typer.Option(None, "--trace-log", help="append a timestamped event trace to this file or directory"),
) -> None:
    """Capture frames of a hosted program under virtual time."""
    if unrandomize is None and unrandomize_defaults:
        unrandomize = ""
    try:
        base = load_config_file(config_file) if config_file is not None else CaptureConfig()
        dims = _parse_viewport(viewport)
        config = base.merged(
            fps=fps,
            duration=duration,
            frames=frames,
            start=start,
            start_delay=start_delay,
            start_time=start_time,
            viewport_width=dims[0] if dims else None,
            viewport_height=dims[1] if dims else None,
            selector=selector,
            x_offset=x_offset,
            y_offset=y_offset,
            left=left,
            top=top,
            right=right,
            bottom=bottom,
            width=width,
            height=height,
            round_to_even_width=_flag(round_to_even_width),
            round_to_even_height=_flag(round_to_even_height),
            unrandomize=unrandomize,
            max_animation_frame_duration=max_animation_frame_duration,
            stop_function_name=stop_function_name,
            capture_mode=capture_mode,
            screenshot_type=screenshot_type,
            screenshot_quality=screenshot_quality,
            canvas_mode=canvas_mode,
            transparent_background=_flag(transparent_background),
            output_directory=output_directory,
            output_pattern=output_pattern,
            quiet=_flag(quiet),
            log_to_stderr=_flag(output_stdout),
            trace_log=_resolve_trace_log(trace_log),
        )
    except CaptureConfigError as exc:
        typer.echo(f"invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2) from exc

    log = CaptureLog(quiet=config.quiet, to_stderr=config.log_to_stderr, trace_path=config.trace_log)

    frame_processor = None
    if output_stdout:
        stdout = typer.get_binary_stream("stdout")

        def frame_processor(buffer: bytes, _frame_index: int, _frame_count: int) -> None:
            stdout.write(buffer)
            stdout.flush()

    try:
        hosted = load_program(program)
        result = run_capture(config, hosted, frame_processor=frame_processor, log=log)
    except CaptureConfigError as exc:
        log.error(f"invalid configuration: {exc}")
        raise typer.Exit(code=2) from exc
    except (SandboxError, FrameWriteError) as exc:
        log.error(f"capture failed: {exc}")
        raise typer.Exit(code=1) from exc

    driver = result.driver
    log.echo(f"Captured {driver.frames_captured} of {result.plan.frame_count} frames")


@app.command("timeline")
def cmd_timeline(
    config_file: Path | None = typer.Option(None, "--config", "-c", help="TOML file with capture settings"),
    fps: float | None = typer.Option(None, "--fps", "-R", help="frames per second (default: 60)"),
    duration: float | None = typer.Option(None, "--duration", "-d", help="duration in seconds (default: 5)"),
    frames: int | None = typer.Option(None, "--frames", help="number of frames"),
    start: float | None = typer.Option(None, "--start", "-s", help="virtual seconds before the first frame"),
    max_animation_frame_duration: float | None = typer.Option(None, "--max-animation-frame-duration"),
) -> None:
    """Print the marker timeline a capture would play, as JSON."""
    try:
        base = load_config_file(config_file) if config_file is not None else CaptureConfig()
        config = base.merged(
            fps=fps,
            duration=duration,
            frames=frames,
            start=start,
            max_animation_frame_duration=max_animation_frame_duration,
        )
        timeline = build_session_timeline(config, config.frame_plan())
    except CaptureConfigError as exc:
        typer.echo(f"invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    typer.echo(dump_timeline_json(timeline).decode("utf-8"))


@app.command("seed")
def cmd_seed() -> None:
    """Print a fresh seed usable with --unrandomize."""
    typer.echo(str(generate_random_seed()))


def main(argv: list[str] | None = None) -> None:
    app(prog_name="framelock", args=argv)


if __name__ == "__main__":
    main()
