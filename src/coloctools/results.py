"""
results.py - Named results, warnings and histograms of a colocalization run

AnalysisResults is the core result sink: stages hand it values, warnings,
histograms and images, and it keeps them in arrival order. Additional sinks
(report writers, GUIs) implement the same ResultHandler methods.

Usage:
    from coloctools.results import AnalysisResults

    results = colocalise(ch1, ch2)
    results.get("Pearson's R value (no threshold)")
    print(format_results_table(results))
    results.to_dataframe().to_csv("coloc.csv", index=False)
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np


@dataclass
class ValueResult:
    """A named number (with display precision) or a named string."""
    name: str
    number: Optional[float] = None
    decimals: int = 3
    text: Optional[str] = None

    @property
    def is_number(self) -> bool:
        return self.text is None

    @property
    def value(self) -> Union[float, str]:
        return self.number if self.is_number else self.text

    def formatted(self) -> str:
        if not self.is_number:
            return self.text
        if self.number is None or np.isnan(self.number):
            return "NaN"
        return f"{self.number:.{self.decimals}f}"


@dataclass(frozen=True)
class AnalysisWarning:
    """Advisory message: a short title and a longer explanation."""
    short_message: str
    long_message: str


@dataclass
class HistogramData:
    """2D count grid plus the calibration needed to draw its axes.

    ``counts`` is indexed ``[x_bin, y_bin]``; y bins run top-down, so the
    highest channel value sits in row 0.
    """
    title: str
    counts: np.ndarray
    x_bin_width: float
    y_bin_width: float
    x_min: float
    x_max: float
    y_min: float
    y_max: float
    x_label: str
    y_label: str
    ignored: int = 0

    @property
    def total(self) -> int:
        return int(self.counts.sum())

    def axis_values(self) -> Tuple[np.ndarray, np.ndarray]:
        """Calibrated x and y value of every bin index."""
        x_bins, y_bins = self.counts.shape
        xs = self.x_min + np.arange(x_bins) / self.x_bin_width
        ys = self.y_min + np.arange(y_bins) / self.y_bin_width
        return xs, ys

    def to_table(self) -> str:
        """Tab-separated (x value, y value, count) rows, one per bin.

        Axis values get no decimals for unit bins, else three.
        """
        x_decimals = 0 if abs(self.x_bin_width - 1.0) < 0.00001 else 3
        y_decimals = 0 if abs(self.y_bin_width - 1.0) < 0.00001 else 3
        xs, ys = self.axis_values()
        lines = ["X value\tY value\tcount"]
        for i, x in enumerate(xs):
            for j, y in enumerate(ys):
                lines.append(f"{x:.{x_decimals}f}\t{y:.{y_decimals}f}\t"
                             f"{int(self.counts[i, j])}")
        return "\n".join(lines)


class ResultHandler:
    """Interface of a result sink. Every method is a no-op by default."""

    def handle_value(self, name: str, value: Union[float, str], decimals: int = 3):
        pass

    def handle_warning(self, warning: AnalysisWarning):
        pass

    def handle_histogram(self, histogram: HistogramData):
        pass

    def handle_image(self, image: np.ndarray, name: str):
        pass

    def process_results(self):
        """Called once after every stage has reported."""
        pass


class AnalysisResults(ResultHandler):
    """Ordered collection of everything a run produced."""

    def __init__(self):
        self.values: List[ValueResult] = []
        self.warnings: List[AnalysisWarning] = []
        self.histograms: List[HistogramData] = []
        self.images: Dict[str, np.ndarray] = {}

    def handle_value(self, name: str, value: Union[float, str], decimals: int = 3):
        if isinstance(value, str):
            self.values.append(ValueResult(name=name, text=value))
        else:
            self.values.append(ValueResult(name=name, number=float(value),
                                           decimals=decimals))

    def handle_warning(self, warning: AnalysisWarning):
        self.warnings.append(warning)

    def handle_histogram(self, histogram: HistogramData):
        self.histograms.append(histogram)

    def handle_image(self, image: np.ndarray, name: str):
        self.images[name] = image

    # ------------------------------------------------------------------
    # Lookup / export
    # ------------------------------------------------------------------

    def get(self, name: str, default: Any = None) -> Any:
        """Value of the first result called ``name``."""
        for result in self.values:
            if result.name == name:
                return result.value
        return default

    def get_histogram(self, title: str) -> Optional[HistogramData]:
        for histogram in self.histograms:
            if histogram.title == title:
                return histogram
        return None

    def names(self) -> List[str]:
        return [r.name for r in self.values]

    def to_dataframe(self):
        """Results as a DataFrame with columns name, value, formatted."""
        import pandas as pd

        rows = [{'name': r.name, 'value': r.value, 'formatted': r.formatted()}
                for r in self.values]
        return pd.DataFrame(rows, columns=['name', 'value', 'formatted'])

    def warnings_dataframe(self):
        import pandas as pd

        rows = [{'warning': w.short_message, 'details': w.long_message}
                for w in self.warnings]
        return pd.DataFrame(rows, columns=['warning', 'details'])


def format_results_table(results: AnalysisResults) -> str:
    """Format results and warnings as a plain-text table for console output."""
    if not results.values and not results.warnings:
        return "No results."

    width = max([len(r.name) for r in results.values] + [len("Result")])
    lines = [f"{'Result':<{width}}  Value", "-" * (width + 14)]
    for r in results.values:
        lines.append(f"{r.name:<{width}}  {r.formatted()}")

    if results.warnings:
        lines.append("")
        lines.append(f"Warnings ({len(results.warnings)}):")
        for w in results.warnings:
            lines.append(f"  - {w.short_message}: {w.long_message}")
    return "\n".join(lines)
