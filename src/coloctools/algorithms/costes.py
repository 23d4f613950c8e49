"""
costes.py - Costes' randomisation test for Pearson's r

Is the observed Pearson's r higher than chance, given how blurry (spatially
autocorrelated) each channel is? Channel 1 is cut into PSF-sized blocks,
the blocks are shuffled, the result is smoothed with a Gaussian of the PSF
width and correlated against the untouched channel 2. Repeating this gives
a null distribution of r; the observed r is scored against its normal fit.

Usage:
    from coloctools.algorithms.costes import CostesSignificanceTest

    costes = CostesSignificanceTest(psf=3, rounds=10, rng=np.random.default_rng(1))
    costes.execute(descriptor)
    costes.p_value, costes.shuffled_mean
"""

import logging
from typing import Optional

import numpy as np
from skimage.filters import gaussian

from coloctools.algorithms.base import Algorithm
from coloctools.algorithms.pearsons import fast_pearsons
from coloctools.core.blocks import block_origins, shuffle_blocks
from coloctools.core.descriptor import Descriptor
from coloctools.core.pairs import MaskedPairIterator
from coloctools.core.statistics import clamp, phi, std_deviation
from coloctools.errors import MissingPreconditionError
from coloctools.results import ResultHandler

logger = logging.getLogger(__name__)

DEFAULT_PSF = 3
DEFAULT_ROUNDS = 10
MAX_RETRIES = 3


class CostesSignificanceTest(Algorithm):
    """Block-shuffle significance test of Pearson's r.

    Args:
        psf: Block edge length and Gaussian sigma, in pixels.
        rounds: Number of shuffled images.
        keep_shuffled: Hand the last smoothed shuffled image to the result sink.
        rng: Random generator driving the block permutation.
    """

    def __init__(self, psf: int = DEFAULT_PSF, rounds: int = DEFAULT_ROUNDS,
                 keep_shuffled: bool = False,
                 rng: Optional[np.random.Generator] = None):
        super().__init__("Costes significance test")
        if psf < 1:
            raise ValueError(f"psf must be >= 1, got {psf}")
        if rounds < 1:
            raise ValueError(f"rounds must be >= 1, got {rounds}")
        self.psf = int(psf)
        self.rounds = int(rounds)
        self.keep_shuffled = keep_shuffled
        self.rng = rng if rng is not None else np.random.default_rng()

        self.observed_r = float("nan")
        self.shuffled_rs = []
        self.shuffled_mean = float("nan")
        self.shuffled_std = float("nan")
        self.p_value = float("nan")
        self.ratio_not_less = 0.0
        self.last_shuffled = None

    def execute(self, container: Descriptor):
        self.observed_r = fast_pearsons(container.pairs())

        channel1 = container.channel1.astype(np.float64)
        box = container.bounding_box()
        block_shape = [self.psf] * channel1.ndim
        origins = block_origins(box.offset, box.size, block_shape)
        logger.debug("Costes: %d blocks of edge %d over %s",
                     len(origins), self.psf, box.size)

        shuffled = np.zeros_like(channel1)
        irregular = container.mask.is_irregular
        self.shuffled_rs = []
        # Retries are counted per round
        retries = 0
        while len(self.shuffled_rs) < self.rounds:
            shuffle_blocks(channel1, shuffled, origins, block_shape, self.rng,
                           zero_first=irregular)
            smoothed = gaussian(shuffled, sigma=self.psf, mode="mirror",
                                preserve_range=True)
            pairs = MaskedPairIterator(smoothed, container.channel2, container.mask)
            try:
                self.shuffled_rs.append(fast_pearsons(pairs))
                retries = 0
            except MissingPreconditionError as e:
                if retries >= MAX_RETRIES:
                    raise MissingPreconditionError(
                        f"Maximum retries have been made ({MAX_RETRIES}), "
                        f"but errors keep on coming: {e}") from e
                retries += 1
                logger.warning("Costes round %d failed (%s), retrying",
                               len(self.shuffled_rs) + 1, e)

        self.last_shuffled = smoothed
        self._calculate_statistics()
        if np.isnan(self.p_value):
            self.add_warning(
                "Costes P-Value undefined",
                f"The spread of the shuffled Pearson's R values could not be "
                f"estimated from {len(self.shuffled_rs)} randomisation(s), so "
                f"no p-value is available. Use at least two randomisations.")

    def _calculate_statistics(self):
        values = np.asarray(self.shuffled_rs, dtype=np.float64)
        self.shuffled_mean = float(values.mean())
        self.shuffled_std = std_deviation(values)
        self.p_value = clamp(phi(self.observed_r, self.shuffled_mean,
                                 self.shuffled_std), 0.0, 1.0)
        not_less = int(np.count_nonzero(values - self.observed_r > -0.00001))
        self.ratio_not_less = values.size / float(not_less) if not_less else 0.0

    def report_values(self, handler: ResultHandler):
        if self.keep_shuffled and self.last_shuffled is not None:
            handler.handle_image(self.last_shuffled, "Smoothed & shuffled channel 1")
        handler.handle_value("Costes P-Value", self.p_value, 2)
        handler.handle_value("Costes Shuffled Mean", self.shuffled_mean, 2)
        handler.handle_value("Costes Shuffled Std.D.", self.shuffled_std, 2)
        handler.handle_value("Ratio of rand. Pearsons >= actual Pearsons value",
                             self.ratio_not_less, 2)
