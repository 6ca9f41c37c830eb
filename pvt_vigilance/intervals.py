from __future__ import annotations

import random


def _to_ms(seconds: float) -> int:
    return int(round(float(seconds) * 1000.0))


class RandomIntervalGenerator:
    """Inter-stimulus intervals drawn uniformly from a whole-millisecond range.

    - Deterministic when seeded: same seed and bounds give the same stream.
    - Bounds are inclusive; ``min_interval_s <= max_interval_s`` is validated
      by ``PvtConfig`` and not re-checked here.
    """

    def __init__(self, *, min_interval_s: float, max_interval_s: float, seed: int | None = None) -> None:
        self._min_ms = _to_ms(min_interval_s)
        self._max_ms = _to_ms(max_interval_s)
        self._seed = None if seed is None else int(seed)
        self._rng = random.Random(self._seed)

    @property
    def seed(self) -> int | None:
        return self._seed

    @property
    def min_interval_s(self) -> float:
        return self._min_ms / 1000.0

    @property
    def max_interval_s(self) -> float:
        return self._max_ms / 1000.0

    def next(self) -> float:
        """Return the next interval in seconds."""
        if self._min_ms >= self._max_ms:
            return self._min_ms / 1000.0
        return self._rng.randint(self._min_ms, self._max_ms) / 1000.0

    def generate_many(self, count: int) -> list[float]:
        return [self.next() for _ in range(int(count))]
