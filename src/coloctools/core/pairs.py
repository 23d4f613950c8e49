"""
pairs.py - Masked iteration over co-registered pixel pairs

Every statistic in the package is computed over the (ch1, ch2) value pairs
of the pixels a mask selects. MaskedPairIterator yields exactly one pair per
mask-true coordinate, always in the same (C) order, and can be replayed as
often as needed.

Usage:
    from coloctools.core.pairs import MaskedPairIterator

    pairs = MaskedPairIterator(ch1, ch2, mask)
    x, y = pairs.values()          # vectorised access
    for a, b in pairs:             # pair-by-pair access
        ...
"""

from typing import Iterator, Optional, Tuple

import numpy as np

from coloctools.core.mask import Mask
from coloctools.errors import MissingPreconditionError


class MaskedPairIterator:
    """Replayable iterator over the masked (ch1, ch2) pairs of two images."""

    def __init__(self, channel1: np.ndarray, channel2: np.ndarray,
                 mask: Optional[Mask] = None):
        channel1 = np.asarray(channel1)
        channel2 = np.asarray(channel2)
        if channel1.shape != channel2.shape:
            raise MissingPreconditionError(
                f"Channel shapes differ: {channel1.shape} vs {channel2.shape}")
        if mask is None:
            mask = Mask.everywhere(channel1.shape)
        if mask.shape != channel1.shape:
            raise MissingPreconditionError(
                f"Mask shape {mask.shape} does not match image shape {channel1.shape}")

        self.channel1 = channel1
        self.channel2 = channel2
        self.mask = mask
        self._cache = None
        self._position = 0

    def values(self) -> Tuple[np.ndarray, np.ndarray]:
        """Masked channel values as two aligned 1-D float64 arrays."""
        if self._cache is None:
            selector = self.mask.array
            x = self.channel1[selector].astype(np.float64)
            y = self.channel2[selector].astype(np.float64)
            x.flags.writeable = False
            y.flags.writeable = False
            self._cache = (x, y)
        return self._cache

    def coordinates(self) -> Tuple[np.ndarray, ...]:
        """Index arrays of the masked pixels, in iteration order."""
        return np.nonzero(self.mask.array)

    def reset(self):
        """Restart pair-by-pair iteration from the first masked pixel."""
        self._position = 0

    def __len__(self):
        return len(self.values()[0])

    def __iter__(self) -> Iterator[Tuple[float, float]]:
        self.reset()
        return self

    def __next__(self) -> Tuple[float, float]:
        x, y = self.values()
        if self._position >= len(x):
            raise StopIteration
        pair = (float(x[self._position]), float(y[self._position]))
        self._position += 1
        return pair
