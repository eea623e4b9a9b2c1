from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from .capture import CanvasCapturer, Capturer, ClipOptions, FrameOutput, FrameProcessor, ScreenshotCapturer
from .clock import VirtualClock
from .config import CaptureConfig, FramePlan
from .driver import DriverResult, SkipFramePredicate, TimelineDriver
from .log import CaptureLog
from .rand import XorShift128, parse_seed_option
from .sandbox import HostOverrides, LocalSandbox, Program, Sandbox, Viewport
from .timeline import Timeline, build_timeline, frame_time_mapping


@dataclass(frozen=True, slots=True)
class CaptureSessionResult:
    plan: FramePlan
    timeline: Timeline
    seeds: tuple[int, ...] | None
    driver: DriverResult


def build_session_timeline(config: CaptureConfig, plan: FramePlan, capturer: Capturer | None = None) -> Timeline:
    before_capture = getattr(capturer, "before_capture", None) if capturer is not None else None
    return build_timeline(
        frame_count=plan.frame_count,
        frame_num_to_time=frame_time_mapping(plan.frame_duration_ms),
        start_delay_ms=config.start_delay_ms,
        max_animation_frame_duration=config.max_animation_frame_duration,
        before_first_capture=before_capture,
    )


def make_capturer(
    config: CaptureConfig,
    sandbox: Sandbox,
    *,
    frame_processor: FrameProcessor | None = None,
    log: CaptureLog,
) -> Capturer:
    extension = "png"
    if config.capture_mode == "screenshot" and config.screenshot_type == "jpeg":
        extension = "jpg"
    elif config.capture_mode == "canvas" and config.canvas_mode:
        extension = str(config.canvas_mode).rsplit("/", 1)[-1].lower()
    output = FrameOutput(
        output_directory=config.output_directory,
        output_pattern=config.output_pattern,
        frame_processor=frame_processor,
        extension=extension,
    )
    if config.capture_mode == "canvas":
        return CanvasCapturer(
            sandbox,
            output,
            selector=config.selector,
            canvas_mode=config.canvas_mode,
            quality=(config.screenshot_quality / 100.0) if config.screenshot_quality is not None else None,
            log=log,
        )
    return ScreenshotCapturer(
        sandbox,
        output,
        clip_options=ClipOptions(
            x_offset=config.x_offset,
            y_offset=config.y_offset,
            left=config.left,
            top=config.top,
            right=config.right,
            bottom=config.bottom,
            width=config.width,
            height=config.height,
            round_to_even_width=config.round_to_even_width,
            round_to_even_height=config.round_to_even_height,
        ),
        selector=config.selector,
        image_type=config.screenshot_type,
        quality=config.screenshot_quality,
        transparent_background=config.transparent_background,
        log=log,
    )


def run_capture(
    config: CaptureConfig,
    program: Program,
    *,
    frame_processor: FrameProcessor | None = None,
    should_skip_frame: SkipFramePredicate | None = None,
    sandbox: Sandbox | None = None,
    capturer_factory: Callable[[Sandbox], Capturer] | None = None,
    log: CaptureLog | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> CaptureSessionResult:
    """Capture `program` frame by frame under virtual time.

    Configuration is validated and the whole timeline is built before the
    program is loaded, so a bad config never produces partial output.
    """

    if log is None:
        log = CaptureLog(quiet=config.quiet, to_stderr=config.log_to_stderr, trace_path=config.trace_log)
    plan = config.frame_plan()
    seeds = parse_seed_option(config.unrandomize, log=log.echo)

    if sandbox is None:
        sandbox = LocalSandbox(viewport=Viewport(int(config.viewport_width), int(config.viewport_height)))
    if capturer_factory is not None:
        capturer = capturer_factory(sandbox)
    else:
        capturer = make_capturer(config, sandbox, frame_processor=frame_processor, log=log)
    timeline = build_session_timeline(config, plan, capturer)
    log.trace(
        "timeline",
        frames=plan.frame_count,
        fps=plan.fps,
        markers=len(timeline),
        seeds=",".join(str(s) for s in seeds) if seeds is not None else "off",
    )

    rng = XorShift128.from_seeds(seeds) if seeds is not None else None
    sandbox.install(HostOverrides(clock=VirtualClock(start_time=config.start_time), rng=rng))

    driver = TimelineDriver(sandbox, timeline, capturer, should_skip_frame=should_skip_frame, log=log)
    if config.stop_function_name:
        sandbox.expose_function(config.stop_function_name, driver.request_stop)

    sandbox.load(program)
    log.echo("Program loaded")
    if float(config.start_delay) > 0.0:
        sleep(float(config.start_delay))

    result = driver.run()
    if result.stopped_early:
        log.echo(f"Capture stopped early after {result.frames_captured} frames")
    return CaptureSessionResult(plan=plan, timeline=timeline, seeds=seeds, driver=result)
