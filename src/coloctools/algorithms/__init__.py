"""
Analysis stages. Each stage executes against a Descriptor and reports
warnings and named values to a ResultHandler.
"""

from coloctools.algorithms.base import Algorithm
from coloctools.algorithms.costes import CostesSignificanceTest
from coloctools.algorithms.histogram import Histogram2D, LiHistogram2D
from coloctools.algorithms.input_check import InputCheck
from coloctools.algorithms.kendall import MaxKendallTau
from coloctools.algorithms.li import LiICQ
from coloctools.algorithms.manders import MandersColocalization
from coloctools.algorithms.pearsons import PearsonsCorrelation
from coloctools.algorithms.rank import KendallTauRankCorrelation, SpearmanRankCorrelation
from coloctools.algorithms.threshold import AutoThresholdRegression

__all__ = [
    "Algorithm",
    "AutoThresholdRegression",
    "CostesSignificanceTest",
    "Histogram2D",
    "InputCheck",
    "KendallTauRankCorrelation",
    "LiHistogram2D",
    "LiICQ",
    "MandersColocalization",
    "MaxKendallTau",
    "PearsonsCorrelation",
    "SpearmanRankCorrelation",
]
