"""
accumulator.py - One-pass sums over masked pixel pairs

Shared numerical core of the correlation and split-coefficient stages.
Which pairs take part is decided by an ``accept`` predicate: a callable
taking the two value arrays and returning a boolean array (a closure, not a
subclass). Optional constants are subtracted from every accepted value
before summing, which gives centred sums for the classic Pearson's formula.

Usage:
    from coloctools.core.accumulator import Accumulator

    acc = Accumulator(pairs, accept=lambda x, y: y > 0)
    acc.x, acc.count

    centred = Accumulator(pairs, offsets=(mean1, mean2))
    r = centred.xy / np.sqrt(centred.xx * centred.yy)
"""

from typing import Callable, Optional, Tuple

import numpy as np

from coloctools.core.pairs import MaskedPairIterator

Predicate = Callable[[np.ndarray, np.ndarray], np.ndarray]


def accept_all(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    return np.ones(x.shape, dtype=bool)


class Accumulator:
    """Sums x, y, x², y², xy and the count of the accepted pairs."""

    def __init__(self, pairs: Optional[MaskedPairIterator] = None,
                 accept: Optional[Predicate] = None,
                 offsets: Tuple[float, float] = (0.0, 0.0)):
        self.count = 0
        self.x = 0.0
        self.y = 0.0
        self.xx = 0.0
        self.yy = 0.0
        self.xy = 0.0
        if pairs is not None:
            x, y = pairs.values()
            self.add(x, y, accept=accept, offsets=offsets)

    def add(self, x: np.ndarray, y: np.ndarray,
            accept: Optional[Predicate] = None,
            offsets: Tuple[float, float] = (0.0, 0.0)) -> "Accumulator":
        """Fold another batch of pairs into the sums."""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        if accept is not None:
            keep = np.asarray(accept(x, y), dtype=bool)
            x = x[keep]
            y = y[keep]
        dx = x - offsets[0]
        dy = y - offsets[1]
        self.count += int(dx.size)
        self.x += float(dx.sum())
        self.y += float(dy.sum())
        self.xx += float(np.dot(dx, dx))
        self.yy += float(np.dot(dy, dy))
        self.xy += float(np.dot(dx, dy))
        return self

    def __add__(self, other: "Accumulator") -> "Accumulator":
        merged = Accumulator()
        for field in ("count", "x", "y", "xx", "yy", "xy"):
            setattr(merged, field, getattr(self, field) + getattr(other, field))
        return merged

    def __repr__(self):
        return (f"Accumulator(count={self.count}, x={self.x:g}, y={self.y:g}, "
                f"xx={self.xx:g}, yy={self.yy:g}, xy={self.xy:g})")
