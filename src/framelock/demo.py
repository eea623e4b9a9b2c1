"""Small hosted programs used for smoke runs and tests.

    framelock capture framelock.demo:bouncing_ball --frames 30 -o out/
"""

from __future__ import annotations

import math

from PIL import ImageDraw

from .sandbox import HostEnv

BALL_RADIUS = 16.0


def bouncing_ball(host: HostEnv) -> None:
    width = float(host.viewport.width)
    height = float(host.viewport.height)
    state = host.state
    state["x"] = width * host.random()
    state["y"] = height * host.random()
    state["heading"] = math.tau * host.random()
    state["speed"] = 0.2  # px per virtual ms
    state["last"] = host.now()
    state["ticks"] = 0
    hue = int(host.random() * 255.0)

    def frame(timestamp: float) -> None:
        dt_ms = timestamp - state["last"]
        state["last"] = timestamp
        x = state["x"] + math.cos(state["heading"]) * state["speed"] * dt_ms
        y = state["y"] + math.sin(state["heading"]) * state["speed"] * dt_ms
        if x < BALL_RADIUS or x > width - BALL_RADIUS:
            state["heading"] = math.pi - state["heading"]
            x = min(max(x, BALL_RADIUS), width - BALL_RADIUS)
        if y < BALL_RADIUS or y > height - BALL_RADIUS:
            state["heading"] = -state["heading"]
            y = min(max(y, BALL_RADIUS), height - BALL_RADIUS)
        state["x"] = x
        state["y"] = y
        state["ticks"] += 1

        canvas = host.canvas
        draw = ImageDraw.Draw(canvas)
        draw.rectangle((0, 0, canvas.width, canvas.height), fill=(16, 16, 24, 255))
        draw.ellipse(
            (x - BALL_RADIUS, y - BALL_RADIUS, x + BALL_RADIUS, y + BALL_RADIUS),
            fill=(hue, 255 - hue, 128, 255),
        )
        host.request_animation_frame(frame)

    host.request_animation_frame(frame)


def countdown(host: HostEnv) -> None:
    """Draws one bar per elapsed second and asks to stop after `state["stop_after"]` seconds."""
    state = host.state
    state.setdefault("stop_after", 3)
    state["seconds"] = 0

    def tick() -> None:
        state["seconds"] += 1
        draw = ImageDraw.Draw(host.canvas)
        left = 10 * state["seconds"]
        draw.rectangle((left, 0, left + 5, 20), fill=(255, 255, 255, 255))
        if state["seconds"] >= state["stop_after"]:
            host.clear_interval(interval_id)
            stop = host.exposed.get("stopCapture")
            if stop is not None:
                stop()

    interval_id = host.set_interval(tick, 1000)
