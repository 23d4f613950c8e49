"""
input_check.py - Sanity checks and basic statistics of the input channels

Runs first in every job. Flags negative pixel values, large zero-zero
(background in both channels) areas and saturated pixels, and reports the
per-channel intensity statistics the other stages build on.
"""

import logging

import numpy as np

from coloctools.algorithms.base import Algorithm
from coloctools.core.descriptor import Descriptor
from coloctools.results import ResultHandler

logger = logging.getLogger(__name__)

# Pixels this close to zero (sum of channels) or to the max count as such
EPSILON = 0.00001
MAX_ZERO_ZERO_RATIO = 0.1
MAX_SATURATION_RATIO = 0.1


class InputCheck(Algorithm):

    def __init__(self):
        super().__init__("Input Check")
        self.zero_zero_ratio = float("nan")
        self.saturation_ratio1 = float("nan")
        self.saturation_ratio2 = float("nan")
        self._container = None

    def execute(self, container: Descriptor):
        self._container = container
        x, y = container.pairs().values()

        if container.min1 < 0 or container.min2 < 0:
            self.add_warning(
                "Negative minimum pixel value found.",
                "The minimum pixel value of at least one of the channels is "
                "negative. Negative values might break the logic of some "
                "analysis methods by breaking a basic assumption: the "
                "pixel value is assumed to be proportional to the number of "
                "photons detected in a pixel. Negative photon counts make no "
                "physical sense. Set negative pixel values to zero, or shift "
                "pixel intensities higher so there are no negative pixel values.")

        zero_zero = int(np.count_nonzero(np.abs(x + y) < EPSILON))
        saturated1 = int(np.count_nonzero(np.abs(container.max1 - x) < EPSILON))
        saturated2 = int(np.count_nonzero(np.abs(container.max2 - y) < EPSILON))

        self.zero_zero_ratio = zero_zero / float(x.size)
        # Saturation ratios relate to half the pixel count
        half = x.size * 0.5
        self.saturation_ratio1 = saturated1 / half
        self.saturation_ratio2 = saturated2 / half

        if self.zero_zero_ratio > MAX_ZERO_ZERO_RATIO:
            self.add_warning(
                "Zero-zero ratio too high",
                f"The ratio between zero-zero pixels and other pixels is larger "
                f"than {MAX_ZERO_ZERO_RATIO:.2f}. It is {self.zero_zero_ratio:.2f}. "
                f"Maybe you should use a ROI.")
        if self.saturation_ratio1 > MAX_SATURATION_RATIO:
            self.add_warning(
                "Saturated ch1 ratio too high",
                f"The ratio between saturated pixels and other pixels in channel 1 "
                f"is larger than {MAX_SATURATION_RATIO:.2f}. It is "
                f"{self.saturation_ratio1:.2f}. Maybe you should use a ROI.")
        if self.saturation_ratio2 > MAX_SATURATION_RATIO:
            self.add_warning(
                "Saturated ch2 ratio too high",
                f"The ratio between saturated pixels and other pixels in channel 2 "
                f"is larger than {MAX_SATURATION_RATIO:.2f}. It is "
                f"{self.saturation_ratio2:.2f}. Maybe you should use a ROI.")

    def report_values(self, handler: ResultHandler):
        c = self._container
        if c is None:
            return
        handler.handle_value("Coloc_Job_Name", c.job_name)
        handler.handle_value("% zero-zero pixels", self.zero_zero_ratio * 100.0, 2)
        handler.handle_value("% saturated ch1 pixels", self.saturation_ratio1 * 100.0, 2)
        handler.handle_value("% saturated ch2 pixels", self.saturation_ratio2 * 100.0, 2)
        handler.handle_value("Channel 1 Max", c.max1, 3)
        handler.handle_value("Channel 1 Min", c.min1, 3)
        handler.handle_value("Channel 1 Mean", c.mean1, 3)
        handler.handle_value("Channel 1 Integrated (Sum) Intensity", c.integral1, 3)
        handler.handle_value("Channel 2 Max", c.max2, 3)
        handler.handle_value("Channel 2 Min", c.min2, 3)
        handler.handle_value("Channel 2 Mean", c.mean2, 3)
        handler.handle_value("Channel 2 Integrated (Sum) Intensity", c.integral2, 3)
        handler.handle_value("Mask Type Used", c.mask.label)
        handler.handle_value("Mask ID Used", c.mask.identifier)
