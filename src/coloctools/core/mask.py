"""
mask.py - Analysis masks and their bounding boxes

A mask decides which pixels take part in a colocalization job. Three kinds
exist: no mask (every pixel), a regular rectangular ROI (offset + size) and
an irregular boolean mask image.

Usage:
    from coloctools.core.mask import Mask

    mask = Mask.everywhere(image.shape)
    roi = Mask.from_rectangle(image.shape, offset=(10, 20), size=(64, 64))
    cells = Mask.from_array(binary_mask)
    box = cells.bounding_box()
"""

import hashlib
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from coloctools.errors import MissingPreconditionError


# ============================================================================
# MASK KINDS
# ============================================================================

MASK_NONE = "none"
MASK_REGULAR = "regular"
MASK_IRREGULAR = "irregular"

# Human-readable label reported in results per kind
MASK_LABELS = {
    MASK_NONE: "None",
    MASK_REGULAR: "ROI",
    MASK_IRREGULAR: "mask image",
}


@dataclass(frozen=True)
class BoundingBox:
    """Minimal enclosing region of a mask: per-axis offset and size."""
    offset: Tuple[int, ...]
    size: Tuple[int, ...]

    @property
    def ndim(self) -> int:
        return len(self.offset)

    @property
    def end(self) -> Tuple[int, ...]:
        """Exclusive upper corner."""
        return tuple(o + s for o, s in zip(self.offset, self.size))

    def slices(self) -> Tuple[slice, ...]:
        return tuple(slice(o, o + s) for o, s in zip(self.offset, self.size))


class Mask:
    """Immutable pixel mask over an n-D analysis window.

    Use the constructors ``everywhere``, ``from_rectangle`` and
    ``from_array`` rather than calling ``Mask()`` directly.
    """

    def __init__(self, array: np.ndarray, kind: str, box: BoundingBox):
        array = np.array(array, dtype=bool)
        array.flags.writeable = False
        self._array = array
        self._kind = kind
        self._box = box
        self._identifier = None

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def everywhere(cls, shape: Sequence[int]) -> "Mask":
        """Always-true mask covering the whole image."""
        shape = tuple(int(s) for s in shape)
        box = BoundingBox(offset=(0,) * len(shape), size=shape)
        return cls(np.ones(shape, dtype=bool), MASK_NONE, box)

    @classmethod
    def from_rectangle(cls, shape: Sequence[int], offset: Sequence[int],
                       size: Optional[Sequence[int]] = None) -> "Mask":
        """Rectangular ROI, always true inside the rectangle.

        Missing trailing dimensions of ``offset`` default to 0, missing
        dimensions of ``size`` to the remaining extent of the image.

        Args:
            shape: Image shape.
            offset: Per-axis start of the rectangle.
            size: Per-axis extent of the rectangle.

        Raises:
            MissingPreconditionError: If the rectangle does not fit.
        """
        shape = tuple(int(s) for s in shape)
        offset = [int(o) for o in offset]
        size = [int(s) for s in (size or [])]
        if len(offset) > len(shape) or len(size) > len(shape):
            raise MissingPreconditionError(
                "ROI has more dimensions than the image.")

        offset += [0] * (len(shape) - len(offset))
        for i, (o, dim) in enumerate(zip(offset, shape)):
            if o > dim or o < 0:
                raise MissingPreconditionError(
                    f"Dimension {i} of ROI offset is larger than image dimension.")
        for i in range(len(size), len(shape)):
            size.append(shape[i] - offset[i])
        for i, (o, s, dim) in enumerate(zip(offset, size, shape)):
            if s < 1 or o + s > dim:
                raise MissingPreconditionError(
                    f"Dimension {i} of ROI size is larger than what fits in.")

        box = BoundingBox(offset=tuple(offset), size=tuple(size))
        array = np.zeros(shape, dtype=bool)
        array[box.slices()] = True
        return cls(array, MASK_REGULAR, box)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "Mask":
        """Irregular mask from a boolean (or 0/non-zero) image.

        Raises:
            MissingPreconditionError: If no pixel is set.
        """
        array = np.asarray(array) != 0
        coords = np.nonzero(array)
        if coords[0].size == 0:
            raise MissingPreconditionError("The mask does not contain any pixel.")
        lower = tuple(int(c.min()) for c in coords)
        upper = tuple(int(c.max()) + 1 for c in coords)
        box = BoundingBox(offset=lower,
                          size=tuple(u - l for l, u in zip(lower, upper)))
        return cls(array, MASK_IRREGULAR, box)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def array(self) -> np.ndarray:
        """Read-only boolean view of the mask."""
        return self._array

    @property
    def shape(self) -> Tuple[int, ...]:
        return self._array.shape

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def label(self) -> str:
        return MASK_LABELS[self._kind]

    @property
    def is_irregular(self) -> bool:
        return self._kind == MASK_IRREGULAR

    @property
    def identifier(self) -> str:
        """Short stable hash of the mask bits, used in job names."""
        if self._identifier is None:
            digest = hashlib.md5(np.packbits(self._array).tobytes())
            digest.update(str(self._array.shape).encode())
            self._identifier = digest.hexdigest()[:8]
        return self._identifier

    def contains(self, coord: Sequence[int]) -> bool:
        """True if the pixel at ``coord`` is part of the mask."""
        coord = tuple(int(c) for c in coord)
        if len(coord) != self._array.ndim:
            return False
        if any(c < 0 or c >= s for c, s in zip(coord, self._array.shape)):
            return False
        return bool(self._array[coord])

    def bounding_box(self) -> BoundingBox:
        return self._box

    def count(self) -> int:
        """Number of pixels inside the mask."""
        return int(np.count_nonzero(self._array))

    def __repr__(self):
        return (f"Mask(kind={self._kind!r}, shape={self.shape}, "
                f"offset={self._box.offset}, size={self._box.size})")
