"""
coloctools - Pixel-intensity colocalization statistics

Compares two co-registered image channels, optionally inside a mask:
auto-threshold regression, Pearson's r, Manders' split coefficients,
Li's ICQ, Spearman and Kendall rank correlations, 2D intensity histograms
and the Costes randomisation test.

Usage:
    from coloctools import colocalise, ColocSettings, Mask

    results = colocalise(ch1, ch2, mask=Mask.from_array(cells))
    print(format_results_table(results))

    coloctools run ch1.tif ch2.tif --mask cells.tif   # command line
"""

__version__ = "0.1.0"

from coloctools.colocalise import colocalise, colocalise_masks
from coloctools.config import ColocSettings, settings_from_env
from coloctools.core.descriptor import Descriptor
from coloctools.core.mask import Mask
from coloctools.errors import MissingPreconditionError
from coloctools.results import (
    AnalysisResults,
    AnalysisWarning,
    HistogramData,
    ResultHandler,
    ValueResult,
    format_results_table,
)

__all__ = [
    "__version__",
    "colocalise",
    "colocalise_masks",
    "ColocSettings",
    "settings_from_env",
    "Descriptor",
    "Mask",
    "MissingPreconditionError",
    "AnalysisResults",
    "AnalysisWarning",
    "HistogramData",
    "ResultHandler",
    "ValueResult",
    "format_results_table",
]
