import numpy as np
from typing import Iterator, Tuple

CurvaturePair = Tuple[np.ndarray, np.ndarray, float]


class LimitedMemoryStore:
    """
    Fixed-capacity ring buffer of curvature pairs (s, y, y.s).

    Slots are pre-allocated; `head` is the next write position and `count`
    the number of valid entries. The oldest valid entry sits at
    (head - count) mod m.
    """

    def __init__(self, m: int, n: int):
        if m < 0:
            raise ValueError(f"Memory size must be non-negative, got {m}")
        self.m = m
        self.n = n
        self.s = np.zeros((m, n), dtype=float)
        self.y = np.zeros((m, n), dtype=float)
        self.ys = np.zeros(m, dtype=float)
        self.head = 0
        self.count = 0

    def __len__(self) -> int:
        return self.count

    def push(self, s: np.ndarray, y: np.ndarray) -> float:
        """Store a new pair, overwriting the oldest once full. Returns y.s."""
        s = np.asarray(s, dtype=float)
        y = np.asarray(y, dtype=float)
        if s.shape != (self.n,) or y.shape != (self.n,):
            raise ValueError(f"Curvature pair shapes {s.shape}, {y.shape} do not match dimension {self.n}")
        ys = float(y.dot(s))
        if self.m == 0:
            return ys
        self.s[self.head] = s
        self.y[self.head] = y
        self.ys[self.head] = ys
        self.head = (self.head + 1) % self.m
        self.count = min(self.count + 1, self.m)
        return ys

    def _slot(self, k: int) -> int:
        # k-th valid entry counted from the oldest
        return (self.head - self.count + k) % self.m

    def iterate_newest_to_oldest(self) -> Iterator[CurvaturePair]:
        for k in reversed(range(self.count)):
            j = self._slot(k)
            yield self.s[j], self.y[j], self.ys[j]

    def iterate_oldest_to_newest(self) -> Iterator[CurvaturePair]:
        for k in range(self.count):
            j = self._slot(k)
            yield self.s[j], self.y[j], self.ys[j]

    def newest(self) -> CurvaturePair:
        if self.count == 0:
            raise IndexError("Limited memory is empty")
        j = self._slot(self.count - 1)
        return self.s[j], self.y[j], self.ys[j]
