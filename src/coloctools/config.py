"""
config.py - Analysis settings for coloctools

Settings Resolution Order:
1. Explicit values (function arguments, CLI flags)
2. Environment variables COLOCTOOLS_*
3. Built-in defaults (DEFAULT_SETTINGS)

Usage:
    from coloctools.config import ColocSettings, settings_from_env

    settings = settings_from_env()
    settings = ColocSettings(psf=4, costes_randomisations=50)
    settings.validate()

Environment Variable Override:
    Linux/Mac:
        export COLOCTOOLS_PSF=4
        export COLOCTOOLS_REGRESSION=costes

    Windows (PowerShell):
        $env:COLOCTOOLS_PSF = "4"
"""

import logging
import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULT_SETTINGS = {
    'psf': 3,
    'costes_randomisations': 10,
    'kendall_randomisations': 10,
    'regression': 'bisection',
    'seed': None,
    'use_input_check': True,
    'use_pearsons': True,
    'use_li_histograms': True,
    'use_li_icq': True,
    'use_spearman': True,
    'use_manders': True,
    'use_kendall_tau': True,
    'use_max_kendall_tau': True,
    'use_histogram': True,
    'use_costes': True,
    'keep_shuffled_image': False,
}

REGRESSION_STRATEGIES = ('bisection', 'costes')

# Environment variable -> (settings key, parser)
ENV_VARS = {
    'COLOCTOOLS_PSF': ('psf', int),
    'COLOCTOOLS_COSTES_RANDOMISATIONS': ('costes_randomisations', int),
    'COLOCTOOLS_KENDALL_RANDOMISATIONS': ('kendall_randomisations', int),
    'COLOCTOOLS_REGRESSION': ('regression', str),
    'COLOCTOOLS_SEED': ('seed', int),
}


def get_default_settings() -> Dict[str, Any]:
    """Return a copy of the built-in defaults."""
    return dict(DEFAULT_SETTINGS)


# =============================================================================
# SETTINGS
# =============================================================================

@dataclass
class ColocSettings:
    """Algorithm selection and parameters of a colocalization run."""
    psf: int = DEFAULT_SETTINGS['psf']
    costes_randomisations: int = DEFAULT_SETTINGS['costes_randomisations']
    kendall_randomisations: int = DEFAULT_SETTINGS['kendall_randomisations']
    regression: str = DEFAULT_SETTINGS['regression']
    seed: Optional[int] = DEFAULT_SETTINGS['seed']
    use_input_check: bool = True
    use_pearsons: bool = True
    use_li_histograms: bool = True
    use_li_icq: bool = True
    use_spearman: bool = True
    use_manders: bool = True
    use_kendall_tau: bool = True
    use_max_kendall_tau: bool = True
    use_histogram: bool = True
    use_costes: bool = True
    keep_shuffled_image: bool = False

    def validate(self) -> "ColocSettings":
        """Check parameter ranges.

        Raises:
            ValueError: If a parameter is out of range.
        """
        if self.psf < 1:
            raise ValueError(f"PSF radius must be >= 1, got {self.psf}")
        if self.costes_randomisations < 1:
            raise ValueError(
                f"Costes randomisations must be >= 1, got {self.costes_randomisations}")
        if self.kendall_randomisations < 1:
            raise ValueError(
                f"Kendall randomisations must be >= 1, got {self.kendall_randomisations}")
        if self.regression not in REGRESSION_STRATEGIES:
            raise ValueError(f"Unknown regression: {self.regression}. "
                             f"Valid: {REGRESSION_STRATEGIES}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ColocSettings":
        """Build settings from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(d) - known
        if unknown:
            logger.warning("Ignoring unknown settings: %s", ", ".join(sorted(unknown)))
        return cls(**{k: v for k, v in d.items() if k in known})


def settings_from_env(environ: Optional[Mapping[str, str]] = None,
                      **overrides) -> ColocSettings:
    """Defaults, updated from COLOCTOOLS_* variables, then from ``overrides``.

    Overrides that are None are skipped, so unset CLI flags fall through.

    Raises:
        ValueError: If an environment variable cannot be parsed or the
            resulting settings are invalid.
    """
    environ = os.environ if environ is None else environ
    values = get_default_settings()
    for var, (key, parse) in ENV_VARS.items():
        raw = environ.get(var)
        if raw is None or raw == "":
            continue
        try:
            values[key] = parse(raw)
        except ValueError as e:
            raise ValueError(f"Invalid value for {var}: {raw!r}") from e
    values.update({k: v for k, v in overrides.items() if v is not None})
    return ColocSettings.from_dict(values).validate()
