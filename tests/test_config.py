from __future__ import annotations

from pathlib import Path

import pytest

from framelock.config import CaptureConfig, load_config_file, resolve_frame_plan
from framelock.errors import CaptureConfigError


def test_frame_plan_defaults_to_five_seconds_at_60fps() -> None:
    plan = resolve_frame_plan()
    assert (plan.frame_count, plan.fps) == (300, 60.0)


@pytest.mark.parametrize(
    ("kwargs", "expected"),
    [
        ({"fps": 24.0, "duration": 2.0}, (48, 24.0)),
        ({"fps": 30.0, "duration": 0.05}, (2, 30.0)),
        ({"frames": 10}, (10, 60.0)),
        ({"frames": 10, "duration": 2.0}, (10, 5.0)),
        ({"frames": 3, "fps": 1.0, "duration": 9.0}, (3, 1.0)),
    ],
)
def test_frame_plan_resolution(kwargs: dict, expected: tuple[int, float]) -> None:
    plan = resolve_frame_plan(**kwargs)
    assert (plan.frame_count, plan.fps) == expected


def test_frame_plan_rejects_non_positive_values() -> None:
    with pytest.raises(CaptureConfigError):
        resolve_frame_plan(fps=0)
    with pytest.raises(CaptureConfigError):
        resolve_frame_plan(duration=-1.0)
    with pytest.raises(CaptureConfigError):
        resolve_frame_plan(frames=0)
    with pytest.raises(CaptureConfigError):
        resolve_frame_plan(frames=2.5)


def test_frame_duration_ms() -> None:
    assert resolve_frame_plan(fps=4.0, frames=1).frame_duration_ms == 250.0


def test_capture_config_validation() -> None:
    with pytest.raises(CaptureConfigError, match="capture mode"):
        CaptureConfig(capture_mode="video")
    with pytest.raises(CaptureConfigError):
        CaptureConfig(screenshot_type="gif")
    with pytest.raises(CaptureConfigError):
        CaptureConfig(start=-1.0)
    with pytest.raises(CaptureConfigError):
        CaptureConfig(viewport_width=0)
    with pytest.raises(CaptureConfigError):
        CaptureConfig(max_animation_frame_duration=0)
    with pytest.raises(CaptureConfigError):
        CaptureConfig(screenshot_quality=101)


def test_start_delay_ms_and_merge_skips_none() -> None:
    config = CaptureConfig(start=1.5, fps=30.0)
    assert config.start_delay_ms == 1500.0
    merged = config.merged(fps=None, duration=2.0, quiet=True)
    assert merged.fps == 30.0
    assert merged.duration == 2.0
    assert merged.quiet is True
    assert config.duration is None


def test_load_config_file(tmp_path: Path) -> None:
    path = tmp_path / "capture.toml"
    path.write_text(
        "\n".join(
            [
                "fps = 12.0",
                "frames = 4",
                "viewport = [320, 240]",
                'unrandomize = "1,2"',
                'output_directory = "frames"',
                "max_animation_frame_duration = 16.0",
            ]
        ),
        encoding="utf-8",
    )
    config = load_config_file(path)
    assert config.fps == 12.0
    assert config.frames == 4
    assert (config.viewport_width, config.viewport_height) == (320, 240)
    assert config.unrandomize == "1,2"
    assert config.output_directory == Path("frames")
    assert config.max_animation_frame_duration == 16.0


def test_load_config_file_rejects_unknown_keys_and_bad_values(tmp_path: Path) -> None:
    unknown = tmp_path / "unknown.toml"
    unknown.write_text("fpss = 1\n", encoding="utf-8")
    with pytest.raises(CaptureConfigError, match="invalid config file"):
        load_config_file(unknown)

    bad_viewport = tmp_path / "viewport.toml"
    bad_viewport.write_text("viewport = [1, 2, 3]\n", encoding="utf-8")
    with pytest.raises(CaptureConfigError, match="viewport"):
        load_config_file(bad_viewport)

    bad_mode = tmp_path / "mode.toml"
    bad_mode.write_text('capture_mode = "video"\n', encoding="utf-8")
    with pytest.raises(CaptureConfigError):
        load_config_file(bad_mode)
