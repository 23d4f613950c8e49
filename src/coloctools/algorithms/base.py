"""
base.py - Common shape of an analysis stage

A stage runs once against a Descriptor (``execute``), collects warnings
while it works, and afterwards reports warnings then values to a result
sink (``process_results``).
"""

import logging
from typing import List

from coloctools.core.descriptor import Descriptor
from coloctools.errors import MissingPreconditionError
from coloctools.results import AnalysisWarning, ResultHandler

logger = logging.getLogger(__name__)

__all__ = ["Algorithm", "MissingPreconditionError"]


class Algorithm:
    """Base class of the analysis stages."""

    def __init__(self, name: str):
        self.name = name
        self.warnings: List[AnalysisWarning] = []
        self.failed = False

    def execute(self, container: Descriptor):
        raise NotImplementedError

    def add_warning(self, short_message: str, long_message: str):
        logger.info("%s: %s (%s)", self.name, short_message, long_message)
        self.warnings.append(AnalysisWarning(short_message, long_message))

    def report_values(self, handler: ResultHandler):
        """Send this stage's values, histograms and images to ``handler``."""

    def process_results(self, handler: ResultHandler):
        for warning in self.warnings:
            handler.handle_warning(warning)
        self.report_values(handler)

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r})"
