from __future__ import annotations

import secrets
from collections.abc import Callable, Sequence

from .errors import CaptureConfigError

# Default seeds are only used when every supplied seed normalizes to zero; an
# all-zero xorshift state never leaves zero.
DEFAULT_SEEDS: tuple[int, int, int, int] = (10, 20, 0, 0)
SEED_ITERATIONS = 10
RANDOM_SEED_LIMIT = 1_000_000_000
RANDOM_SEED_OPTION = "random-seed"

_SHIFT1 = 23
_SHIFT2 = 17
_SHIFT3 = 26

_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF
_WORD_LIMIT = 1 << 32
_MANTISSA_LIMIT = 1 << 53


class SeedError(CaptureConfigError):
    pass


class XorShift128:
    """xorshift128+ generator standing in for the hosted program's `random()`.

    State is two 64-bit words, each packed from a pair of 32-bit seeds:
      state0 = seed1 (high) : seed3 (low)
      state1 = seed2 (high) : seed4 (low)
    """

    __slots__ = ("_state0", "_state1")

    def __init__(self, seed1: int = 0, seed2: int = 0, seed3: int = 0, seed4: int = 0) -> None:
        seeds = (int(seed1) & _MASK32, int(seed2) & _MASK32, int(seed3) & _MASK32, int(seed4) & _MASK32)
        if not any(seeds):
            seeds = DEFAULT_SEEDS
        s1, s2, s3, s4 = seeds
        self._state0 = (s1 << 32) | s3
        self._state1 = (s2 << 32) | s4
        for _ in range(SEED_ITERATIONS):
            self._step()

    @classmethod
    def from_seeds(cls, seeds: Sequence[int]) -> XorShift128:
        if len(seeds) > 4:
            raise SeedError(f"at most 4 seeds are supported, got {len(seeds)}")
        return cls(*seeds)

    @property
    def state(self) -> tuple[int, int]:
        return self._state0, self._state1

    def _step(self) -> None:
        x = self._state1
        y = self._state0
        y ^= (y << _SHIFT1) & _MASK64
        y ^= y >> _SHIFT2
        y ^= x
        y ^= x >> _SHIFT3
        self._state0 = x
        self._state1 = y

    def _to_double(self) -> float:
        hi = (self._state0 >> 32) + (self._state1 >> 32)
        lo = (self._state0 & _MASK32) + (self._state1 & _MASK32)
        if lo >= _WORD_LIMIT:
            hi += 1
            lo -= _WORD_LIMIT
        hi &= 0x001FFFFF
        return float(hi * _WORD_LIMIT + lo) / float(_MANTISSA_LIMIT)

    def random(self) -> float:
        self._step()
        return self._to_double()


def generate_random_seed() -> int:
    return secrets.randbelow(RANDOM_SEED_LIMIT) + 1


def _parse_seed_part(part: str) -> int:
    text = part.strip()
    try:
        return int(text, 0) if text.lower().startswith("0x") else int(text)
    except ValueError:
        raise SeedError(f"invalid seed component: {part!r}") from None


def parse_seed_option(
    value: object,
    *,
    log: Callable[[str], None] | None = None,
) -> tuple[int, ...] | None:
    """Normalize an unrandomize option into a tuple of seeds.

    Returns None when randomness should be left alone. `"random-seed"` draws a
    fresh seed from the system source and reports it through `log` so the run
    can be reproduced.
    """

    if value is None or value is False:
        return None
    if value is True:
        return ()
    if isinstance(value, int):
        return (int(value),)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return ()
        if text == RANDOM_SEED_OPTION:
            seed = generate_random_seed()
            if log is not None:
                log(f"Generated seed: {seed}")
            return (seed,)
        seeds = tuple(_parse_seed_part(part) for part in text.split(","))
    elif isinstance(value, Sequence):
        parts: list[int] = []
        for item in value:
            if isinstance(item, bool) or not isinstance(item, int):
                raise SeedError(f"invalid seed component: {item!r}")
            parts.append(int(item))
        seeds = tuple(parts)
    else:
        raise SeedError(f"unsupported seed option: {value!r}")

    if len(seeds) > 4:
        raise SeedError(f"at most 4 seeds are supported, got {len(seeds)}")
    return seeds
