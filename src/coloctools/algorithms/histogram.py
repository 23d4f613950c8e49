"""
histogram.py - 2D intensity histograms (scatter plot density)

Histogram2D bins channel 1 against channel 2 on a 256 x 256 grid.
LiHistogram2D puts Li's product of mean differences on the x axis and one
channel's intensity on the y axis. The y axis is stored top-down: row 0
holds the brightest bin.

Usage:
    from coloctools.algorithms.histogram import Histogram2D, LiHistogram2D

    hist = Histogram2D()
    hist.execute(descriptor)
    hist.data.counts.shape      # (256, 256)
"""

import logging
from typing import Optional, Tuple

import numpy as np

from coloctools.algorithms.base import Algorithm
from coloctools.core.descriptor import Descriptor
from coloctools.results import HistogramData, ResultHandler

logger = logging.getLogger(__name__)

DEFAULT_BINS = 256


def intensity_bin_width(max_value: float, bins: int = DEFAULT_BINS) -> float:
    """Width of an intensity bin: 1 for small ranges, else fit max with 0.5 margin."""
    if max_value < bins:
        return 1.0
    return (bins - 0.50001) / max_value


def _truncate(values: np.ndarray) -> np.ndarray:
    # Truncation toward zero, not floor
    return np.trunc(values).astype(np.int64)


class Histogram2D(Algorithm):
    """Channel 1 vs. channel 2 intensity histogram.

    Args:
        title: Name of the histogram in the results.
        swap_channels: Put channel 2 on the x axis.
        bins: Number of bins per axis.
    """

    def __init__(self, title: str = "2D intensity histogram",
                 swap_channels: bool = False, bins: int = DEFAULT_BINS):
        super().__init__(title)
        self.title = title
        self.swap_channels = swap_channels
        self.x_bins = bins
        self.y_bins = bins
        self.data: Optional[HistogramData] = None

    # ------------------------------------------------------------------
    # Binning, overridden by the Li variant
    # ------------------------------------------------------------------

    def _axis_values(self, container: Descriptor) -> Tuple[np.ndarray, np.ndarray]:
        x, y = container.pairs().values()
        if self.swap_channels:
            return y, x
        return x, y

    def _setup(self, container: Descriptor, x: np.ndarray, y: np.ndarray):
        max_x = float(x.max())
        max_y = float(y.max())
        self.x_bin_width = intensity_bin_width(max_x, self.x_bins)
        self.y_bin_width = intensity_bin_width(max_y, self.y_bins)
        self.x_min, self.x_max = 0.0, max_x
        self.y_min, self.y_max = 0.0, max_y
        if self.swap_channels:
            self.x_label, self.y_label = container.name2, container.name1
        else:
            self.x_label, self.y_label = container.name1, container.name2

    def x_bin(self, values: np.ndarray) -> np.ndarray:
        return _truncate(values * self.x_bin_width + 0.5)

    def y_bin(self, values: np.ndarray) -> np.ndarray:
        return (self.y_bins - 1) - _truncate(values * self.y_bin_width + 0.5)

    # ------------------------------------------------------------------

    def execute(self, container: Descriptor):
        x, y = self._axis_values(container)
        self._setup(container, x, y)

        xb = self.x_bin(x)
        yb = self.y_bin(y)
        inside = (xb >= 0) & (xb < self.x_bins) & (yb >= 0) & (yb < self.y_bins)
        ignored = int(x.size - np.count_nonzero(inside))

        flat = np.bincount(xb[inside] * self.y_bins + yb[inside],
                           minlength=self.x_bins * self.y_bins)
        counts = flat.reshape(self.x_bins, self.y_bins)

        if ignored > 0:
            self.add_warning(
                "Ignored pixels while generating histogram.",
                f"{ignored} pixels were ignored while generating the 2D "
                f"histogram \"{self.title}\" because the grid was too small.")

        self.data = HistogramData(
            title=self.title, counts=counts,
            x_bin_width=self.x_bin_width, y_bin_width=self.y_bin_width,
            x_min=self.x_min, x_max=self.x_max,
            y_min=self.y_min, y_max=self.y_max,
            x_label=self.x_label, y_label=self.y_label,
            ignored=ignored)

    def report_values(self, handler: ResultHandler):
        if self.data is not None:
            handler.handle_histogram(self.data)


class LiHistogram2D(Histogram2D):
    """Li's product of mean differences vs. the intensity of one channel.

    Args:
        title: Name of the histogram in the results.
        use_ch1: Plot channel 1 on the y axis, else channel 2.
    """

    def __init__(self, title: str, use_ch1: bool = True, bins: int = DEFAULT_BINS):
        super().__init__(title, swap_channels=False, bins=bins)
        self.use_ch1 = use_ch1

    def _axis_values(self, container: Descriptor) -> Tuple[np.ndarray, np.ndarray]:
        x, y = container.pairs().values()
        products = (x - container.mean1) * (y - container.mean2)
        return products, (x if self.use_ch1 else y)

    def _setup(self, container: Descriptor, x: np.ndarray, y: np.ndarray):
        self.li_min = float(x.min())
        self.li_max = float(x.max())
        li_diff = abs(self.li_max - self.li_min)
        channel_max = container.max1 if self.use_ch1 else container.max2
        channel_min = container.min1 if self.use_ch1 else container.min2
        self.x_bin_width = self.x_bins / (li_diff + 1.0)
        self.y_bin_width = self.y_bins / max(channel_max + 1.0, 1.0)
        self.x_min, self.x_max = self.li_min, self.li_max
        self.y_min, self.y_max = channel_min, channel_max
        name = container.name1 if self.use_ch1 else container.name2
        self.x_label = f"({container.name1}-MeanCh1)*({container.name2}-MeanCh2)"
        self.y_label = name

    def x_bin(self, values: np.ndarray) -> np.ndarray:
        return _truncate((values - self.li_min) * self.x_bin_width)

    def y_bin(self, values: np.ndarray) -> np.ndarray:
        return (self.y_bins - 1) - _truncate(values * self.y_bin_width)
