"""
colocalise.py - Run every colocalization stage on an image pair

Builds the Descriptor, runs the input check and the threshold regression,
then the selected stages in a fixed order. A stage whose preconditions are
not met becomes a warning and the run carries on. Finally every stage
reports its warnings and values to the result sinks.

Usage:
    from coloctools import colocalise, ColocSettings

    results = colocalise(ch1, ch2, mask=cell_mask, names=("GFP", "RFP"),
                         settings=ColocSettings(psf=3, seed=42))
    results.get("Pearson's R value (no threshold)")
"""

import logging
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from coloctools.algorithms.base import Algorithm
from coloctools.algorithms.costes import CostesSignificanceTest
from coloctools.algorithms.histogram import Histogram2D, LiHistogram2D
from coloctools.algorithms.input_check import InputCheck
from coloctools.algorithms.kendall import MaxKendallTau
from coloctools.algorithms.li import LiICQ
from coloctools.algorithms.manders import MandersColocalization
from coloctools.algorithms.pearsons import Implementation, PearsonsCorrelation
from coloctools.algorithms.rank import KendallTauRankCorrelation, SpearmanRankCorrelation
from coloctools.algorithms.threshold import AutoThresholdRegression
from coloctools.config import ColocSettings
from coloctools.core.descriptor import Descriptor
from coloctools.core.mask import Mask
from coloctools.errors import MissingPreconditionError
from coloctools.results import AnalysisResults, AnalysisWarning, ResultHandler

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]

INPUT_PROBLEM = "Problem with input data"


def build_algorithms(settings: ColocSettings,
                     rng: np.random.Generator) -> List[Algorithm]:
    """Stages selected by ``settings``, in execution order."""
    pearsons = PearsonsCorrelation(Implementation.FAST)
    stages: List[Algorithm] = []
    if settings.use_input_check:
        stages.append(InputCheck())
    stages.append(AutoThresholdRegression(settings.regression, pearsons))
    if settings.use_pearsons:
        stages.append(pearsons)
    if settings.use_li_histograms:
        stages.append(LiHistogram2D("Li - Ch1", use_ch1=True))
        stages.append(LiHistogram2D("Li - Ch2", use_ch1=False))
    if settings.use_li_icq:
        stages.append(LiICQ())
    if settings.use_spearman:
        stages.append(SpearmanRankCorrelation())
    if settings.use_manders:
        stages.append(MandersColocalization())
    if settings.use_kendall_tau:
        stages.append(KendallTauRankCorrelation())
    if settings.use_max_kendall_tau:
        stages.append(MaxKendallTau(settings.kendall_randomisations, rng=rng))
    if settings.use_histogram:
        stages.append(Histogram2D("2D intensity histogram"))
    if settings.use_costes:
        stages.append(CostesSignificanceTest(settings.psf,
                                             settings.costes_randomisations,
                                             keep_shuffled=settings.keep_shuffled_image,
                                             rng=rng))
    return stages


def run_algorithms(container: Descriptor, stages: Sequence[Algorithm],
                   handlers: Sequence[ResultHandler],
                   progress: Optional[ProgressCallback] = None):
    """Execute ``stages`` on ``container`` and report them to ``handlers``."""
    total = len(stages)
    for count, stage in enumerate(stages, start=1):
        if progress is not None:
            progress(count, total, stage.name)
        logger.info("[%d/%d] %s", count, total, stage.name)
        try:
            stage.execute(container)
        except MissingPreconditionError as e:
            logger.warning("%s skipped: %s", stage.name, e)
            warning = AnalysisWarning(INPUT_PROBLEM, f"{stage.name}: {e}")
            for handler in handlers:
                handler.handle_warning(warning)
            stage.failed = True

    for stage in stages:
        if stage.failed:
            # Only warnings are meaningful for a stage that did not finish
            for handler in handlers:
                for warning in stage.warnings:
                    handler.handle_warning(warning)
            continue
        for handler in handlers:
            stage.process_results(handler)

    for handler in handlers:
        handler.process_results()


def colocalise(channel1: np.ndarray, channel2: np.ndarray,
               mask: Optional[Union[Mask, np.ndarray]] = None,
               settings: Optional[ColocSettings] = None,
               names: Tuple[str, str] = ("Channel 1", "Channel 2"),
               handlers: Optional[Sequence[ResultHandler]] = None,
               progress: Optional[ProgressCallback] = None,
               rng: Optional[np.random.Generator] = None) -> AnalysisResults:
    """Run a full colocalization analysis of two channels.

    Args:
        channel1: First channel image.
        channel2: Second channel image, same shape.
        mask: Mask object, boolean array, or None for the whole image.
        settings: Algorithm selection and parameters (defaults if None).
        names: Channel names used in the job name and histogram labels.
        handlers: Extra result sinks, fed alongside the returned results.
        progress: Called as ``progress(count, total, stage_name)``.
        rng: Random generator for the randomisation tests. Defaults to
            one seeded from ``settings.seed``.

    Returns:
        AnalysisResults with values, warnings and histograms.

    Raises:
        ValueError: If ``settings`` are invalid.
    """
    settings = (settings or ColocSettings()).validate()
    if rng is None:
        rng = np.random.default_rng(settings.seed)

    results = AnalysisResults()
    sinks = [results] + list(handlers or [])

    try:
        if mask is not None and not isinstance(mask, Mask):
            mask = Mask.from_array(mask)
        container = Descriptor(channel1, channel2, mask, names=names)
    except MissingPreconditionError as e:
        logger.warning("Cannot set up colocalization job: %s", e)
        warning = AnalysisWarning(INPUT_PROBLEM, f"Input: {e}")
        for sink in sinks:
            sink.handle_warning(warning)
            sink.process_results()
        return results

    logger.info("Running %s (%d pixels)", container.job_name, container.pixel_count)
    run_algorithms(container, build_algorithms(settings, rng), sinks, progress)
    return results


def colocalise_masks(channel1: np.ndarray, channel2: np.ndarray,
                     masks: Sequence[Union[Mask, np.ndarray]],
                     settings: Optional[ColocSettings] = None,
                     names: Tuple[str, str] = ("Channel 1", "Channel 2"),
                     progress: Optional[ProgressCallback] = None,
                     rng: Optional[np.random.Generator] = None) -> List[AnalysisResults]:
    """One independent job per mask."""
    settings = (settings or ColocSettings()).validate()
    if rng is None:
        rng = np.random.default_rng(settings.seed)
    return [colocalise(channel1, channel2, mask, settings, names,
                       progress=progress, rng=rng)
            for mask in masks]
