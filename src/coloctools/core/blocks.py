"""
blocks.py - Spatial block shuffling for the randomisation tests

Both significance tests (Costes and the max Kendall tau p-value) rebuild
channel 1 from a random permutation of non-overlapping blocks. Blocks that
run past the image border read mirrored data; writes that fall outside the
image are discarded.
"""

import itertools
import math
from typing import List, Sequence, Tuple

import numpy as np


def block_origins(offset: Sequence[int], size: Sequence[int],
                  block_shape: Sequence[int]) -> List[Tuple[int, ...]]:
    """Corners of the blocks tiling a region.

    Args:
        offset: Start of the region per axis.
        size: Extent of the region per axis.
        block_shape: Block edge length per axis.

    Returns:
        List of block origins, ceil(size / edge) per axis.
    """
    axes = []
    for o, s, b in zip(offset, size, block_shape):
        n_blocks = max(1, int(math.ceil(s / float(b))))
        axes.append([o + k * b for k in range(n_blocks)])
    return list(itertools.product(*axes))


def shuffle_blocks(source: np.ndarray, destination: np.ndarray,
                   origins: Sequence[Tuple[int, ...]],
                   block_shape: Sequence[int], rng: np.random.Generator,
                   zero_first: bool = False) -> np.ndarray:
    """Write the blocks of ``source`` into ``destination`` in random order.

    Block i of the permuted order is copied to the position of block i of
    the original order.

    Args:
        source: Image the blocks are read from.
        destination: Buffer (same shape) receiving the shuffled blocks.
        origins: Block corners from ``block_origins``.
        block_shape: Block edge length per axis.
        rng: Random generator driving the permutation.
        zero_first: Clear ``destination`` before writing.

    Returns:
        ``destination``.
    """
    if zero_first:
        destination[...] = 0

    shape = source.shape
    corners = np.asarray(origins, dtype=int).reshape(len(origins), source.ndim)
    pad_after = [max(0, int(corners[:, i].max()) + block_shape[i] - shape[i])
                 for i in range(source.ndim)]
    if any(pad_after):
        padded = np.pad(source, [(0, p) for p in pad_after], mode="reflect")
    else:
        padded = source

    order = rng.permutation(len(origins))
    for target, picked in zip(origins, order):
        start = origins[picked]
        src = tuple(slice(s, s + b) for s, b in zip(start, block_shape))
        # Clip the write to the image, dropping anything beyond the border
        extent = [min(b, n - t) for t, b, n in zip(target, block_shape, shape)]
        if any(e <= 0 for e in extent):
            continue
        dst = tuple(slice(t, t + e) for t, e in zip(target, extent))
        block = padded[src]
        destination[dst] = block[tuple(slice(0, e) for e in extent)]
    return destination
