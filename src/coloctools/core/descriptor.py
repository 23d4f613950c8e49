"""
descriptor.py - Everything a colocalization job knows about its input

The Descriptor owns both channel buffers, the mask and its bounding box,
channel names and a job name, plus per-channel statistics computed once over
the masked pixels. The auto-threshold stage publishes its threshold pair
here exactly once; all other stages only read.

Usage:
    from coloctools.core.descriptor import Descriptor

    desc = Descriptor(ch1, ch2, mask=Mask.from_array(cells),
                      names=("GFP", "mCherry"))
    desc.mean1, desc.max2, desc.job_name
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from coloctools.core.mask import BoundingBox, Mask
from coloctools.core.pairs import MaskedPairIterator
from coloctools.errors import MissingPreconditionError

logger = logging.getLogger(__name__)


def representable_range(dtype) -> Tuple[float, float]:
    """Smallest and largest value a pixel of ``dtype`` can hold."""
    dtype = np.dtype(dtype)
    if dtype == np.bool_:
        return 0.0, 1.0
    if np.issubdtype(dtype, np.integer):
        info = np.iinfo(dtype)
        return float(info.min), float(info.max)
    info = np.finfo(dtype)
    return float(info.min), float(info.max)


@dataclass(frozen=True)
class ThresholdPair:
    """Upper thresholds of both channels.

    The lower thresholds are fixed at each channel's representable minimum.
    """
    ch1_max: float
    ch2_max: float
    ch1_min: float
    ch2_min: float


@dataclass(frozen=True)
class ChannelStats:
    mean: float
    min: float
    max: float
    integral: float


class Descriptor:
    """Input of one colocalization job.

    Args:
        channel1: First channel buffer.
        channel2: Second channel buffer, same shape as ``channel1``.
        mask: Mask restricting the analysis, None for the whole image.
        names: Display names of the two channels.

    Raises:
        MissingPreconditionError: Shapes disagree or the mask is empty.
    """

    def __init__(self, channel1: np.ndarray, channel2: np.ndarray,
                 mask: Optional[Mask] = None,
                 names: Tuple[str, str] = ("Channel 1", "Channel 2")):
        self.channel1 = np.asarray(channel1)
        self.channel2 = np.asarray(channel2)
        if self.channel1.ndim < 1:
            raise MissingPreconditionError("Channel images must have at least one dimension.")
        if mask is None:
            mask = Mask.everywhere(self.channel1.shape)
        self.mask = mask
        # Validates shapes
        self._pairs = MaskedPairIterator(self.channel1, self.channel2, mask)
        if len(self._pairs) == 0:
            raise MissingPreconditionError("The mask does not contain any pixel.")

        self.name1, self.name2 = names
        self.range1 = representable_range(self.channel1.dtype)
        self.range2 = representable_range(self.channel2.dtype)

        x, y = self._pairs.values()
        self.stats1 = _channel_stats(x)
        self.stats2 = _channel_stats(y)
        self._threshold = None

        logger.debug("Descriptor %s: %d masked pixels, mask=%s",
                     self.job_name, len(x), mask.kind)

    # ------------------------------------------------------------------
    # Derived data
    # ------------------------------------------------------------------

    def pairs(self) -> MaskedPairIterator:
        """Replayable iterator over the masked pairs."""
        self._pairs.reset()
        return self._pairs

    def bounding_box(self) -> BoundingBox:
        return self.mask.bounding_box()

    @property
    def job_name(self) -> str:
        return (f"Colocalization_of_{self.name1}_versus_{self.name2}"
                f"_{self.mask.identifier}")

    @property
    def pixel_count(self) -> int:
        return len(self._pairs)

    @property
    def mean1(self) -> float:
        return self.stats1.mean

    @property
    def mean2(self) -> float:
        return self.stats2.mean

    @property
    def min1(self) -> float:
        return self.stats1.min

    @property
    def min2(self) -> float:
        return self.stats2.min

    @property
    def max1(self) -> float:
        return self.stats1.max

    @property
    def max2(self) -> float:
        return self.stats2.max

    @property
    def integral1(self) -> float:
        return self.stats1.integral

    @property
    def integral2(self) -> float:
        return self.stats2.integral

    # ------------------------------------------------------------------
    # Threshold pair
    # ------------------------------------------------------------------

    @property
    def threshold(self) -> Optional[ThresholdPair]:
        return self._threshold

    def set_threshold(self, ch1_max: float, ch2_max: float) -> ThresholdPair:
        """Publish the auto-threshold result. Allowed only once."""
        if self._threshold is not None:
            raise RuntimeError("Threshold pair has already been set for this job.")
        self._threshold = ThresholdPair(ch1_max=float(ch1_max),
                                        ch2_max=float(ch2_max),
                                        ch1_min=self.range1[0],
                                        ch2_min=self.range2[0])
        return self._threshold

    def swapped(self) -> "Descriptor":
        """Same job with the channels exchanged."""
        return Descriptor(self.channel2, self.channel1, self.mask,
                          names=(self.name2, self.name1))


def _channel_stats(values: np.ndarray) -> ChannelStats:
    return ChannelStats(mean=float(values.mean()),
                        min=float(values.min()),
                        max=float(values.max()),
                        integral=float(values.sum()))
