"""Exceptions raised by the colocalization engine."""


class MissingPreconditionError(Exception):
    """Input data does not satisfy what an analysis stage needs.

    Raised for mismatched dimensions, empty masks, too few samples or a
    degenerate (zero / NaN) denominator. The orchestrator turns it into a
    warning and carries on with the next stage.
    """
