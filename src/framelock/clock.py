from __future__ import annotations

import datetime as dt
import enum
import heapq
import math
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias

BlockKind: TypeAlias = Literal["timeout", "interval"]

MIN_DELAY_MS = 1.0


class ClockState(enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    DRAINING = "draining"


@dataclass(slots=True, order=True)
class PendingBlock:
    """A segment of hosted code scheduled to run at a virtual time."""

    time: float
    id: int
    fn: Callable[..., Any] = field(compare=False)
    args: tuple[Any, ...] = field(default=(), compare=False)
    kind: BlockKind = field(default="timeout", compare=False)


@dataclass(slots=True)
class IntervalChain:
    id: int
    interval_ms: float
    fn: Callable[..., Any]
    args: tuple[Any, ...] = ()
    active: bool = True
    pending_id: int | None = None


@dataclass(frozen=True, slots=True)
class AnimationFrameRequest:
    id: int
    fn: Callable[[float], Any]


def normalize_delay(delay_ms: object) -> float:
    # Every scheduled block lands strictly after the current time.
    if isinstance(delay_ms, bool) or not isinstance(delay_ms, (int, float)):
        return MIN_DELAY_MS
    delay = float(delay_ms)
    if math.isnan(delay) or delay <= 0.0:
        return MIN_DELAY_MS
    return delay


class VirtualClock:
    """Simulated clock and timer queue installed in place of real time.

    Time only moves in `advance_to` and `process_next_block`. Timeouts and
    interval links share one id namespace and run in `(time, id)` order;
    animation frame requests wait for an explicit `run_animation_frames` tick.
    """

    def __init__(self, *, start_time: float = 0.0) -> None:
        self._start_time = float(start_time)
        self._time = float(start_time)
        self._next_id = 1
        self._pending: list[PendingBlock] = []
        self._cancelled: set[int] = set()
        self._intervals: dict[int, IntervalChain] = {}
        self._current_frames: deque[AnimationFrameRequest] = deque()
        self._next_frames: list[AnimationFrameRequest] = []
        self._draining = False

    @property
    def start_time(self) -> float:
        return self._start_time

    @property
    def current_time(self) -> float:
        return self._time

    @property
    def elapsed(self) -> float:
        return self._time - self._start_time

    @property
    def id_counter(self) -> int:
        return self._next_id

    @property
    def state(self) -> ClockState:
        if self._draining:
            return ClockState.DRAINING
        if self.pending_count:
            return ClockState.PENDING
        return ClockState.IDLE

    @property
    def pending_count(self) -> int:
        return len(self._pending) - len(self._cancelled)

    @property
    def queued_animation_frames(self) -> int:
        return len(self._next_frames)

    def now(self) -> float:
        return self._time

    def datetime(self) -> dt.datetime:
        return dt.datetime.fromtimestamp(self._time / 1000.0, tz=dt.timezone.utc)

    def _allocate_id(self) -> int:
        block_id = self._next_id
        self._next_id += 1
        return block_id

    def _push(self, fn: Callable[..., Any], delay_ms: object, args: tuple[Any, ...], kind: BlockKind) -> int:
        block = PendingBlock(
            time=self._time + normalize_delay(delay_ms),
            id=self._allocate_id(),
            fn=fn,
            args=args,
            kind=kind,
        )
        heapq.heappush(self._pending, block)
        return block.id

    def set_timeout(self, fn: Callable[..., Any], delay_ms: object = 0, *args: Any) -> int:
        return self._push(fn, delay_ms, tuple(args), "timeout")

    def set_interval(self, fn: Callable[..., Any], interval_ms: object = 0, *args: Any) -> int:
        chain = IntervalChain(id=self._allocate_id(), interval_ms=normalize_delay(interval_ms), fn=fn, args=tuple(args))
        self._intervals[chain.id] = chain

        def _fire() -> None:
            chain.pending_id = None
            chain.fn(*chain.args)
            if chain.active:
                chain.pending_id = self._push(_fire, chain.interval_ms, (), "interval")

        chain.pending_id = self._push(_fire, chain.interval_ms, (), "interval")
        return chain.id

    def _remove_pending(self, block_id: int) -> None:
        for block in self._pending:
            if block.id == block_id:
                self._cancelled.add(block_id)
                return

    def cancel(self, block_id: int) -> None:
        """Cancel a timeout, interval or animation frame request by id.

        Unknown and already-fired ids are ignored.
        """

        block_id = int(block_id)
        chain = self._intervals.pop(block_id, None)
        if chain is None:
            owner = next((c for c in self._intervals.values() if c.pending_id == block_id), None)
            if owner is not None:
                chain = self._intervals.pop(owner.id)
        if chain is not None:
            chain.active = False
            if chain.pending_id is not None:
                self._remove_pending(chain.pending_id)
                chain.pending_id = None
        self._remove_pending(block_id)
        self._next_frames = [req for req in self._next_frames if req.id != block_id]
        self._current_frames = deque(req for req in self._current_frames if req.id != block_id)

    clear_timeout = cancel
    clear_interval = cancel
    cancel_animation_frame = cancel

    def request_animation_frame(self, fn: Callable[[float], Any]) -> int:
        request = AnimationFrameRequest(id=self._allocate_id(), fn=fn)
        self._next_frames.append(request)
        return request.id

    def _pop_live(self) -> PendingBlock | None:
        while self._pending:
            block = heapq.heappop(self._pending)
            if block.id in self._cancelled:
                self._cancelled.discard(block.id)
                continue
            return block
        return None

    def _peek_live(self) -> PendingBlock | None:
        while self._pending and self._pending[0].id in self._cancelled:
            block = heapq.heappop(self._pending)
            self._cancelled.discard(block.id)
        if not self._pending:
            return None
        return self._pending[0]

    def _run_block(self, block: PendingBlock) -> None:
        if block.time > self._time:
            self._time = block.time
        block.fn(*block.args)

    def process_next_block(self) -> bool:
        """Run the earliest pending block whatever its time. Returns False when idle."""
        block = self._pop_live()
        if block is None:
            return False
        self._draining = True
        try:
            self._run_block(block)
        finally:
            self._draining = False
        return True

    def advance_to(self, ms: float) -> float:
        """Run every block due by `start_time + ms`, then settle on that time.

        Blocks scheduled by a running block are picked up in the same drain when
        they are due. Time never moves backward.
        """

        target = self._start_time + float(ms)
        self._draining = True
        try:
            while True:
                block = self._peek_live()
                if block is None or block.time > target:
                    break
                heapq.heappop(self._pending)
                self._run_block(block)
        finally:
            self._draining = False
        if target > self._time:
            self._time = target
        return self._time

    def run_animation_frames(self) -> int:
        """Run one animation tick.

        Requests made while the tick runs go to the next generation. Every
        callback in the tick gets the same frame timestamp.
        """

        self._current_frames, self._next_frames = deque(self._next_frames), []
        frame_time = self._time
        ran = 0
        while self._current_frames:
            request = self._current_frames.popleft()
            request.fn(frame_time)
            ran += 1
        return ran
