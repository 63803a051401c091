"""
Prior specifications for the Bayesian GAM.

A PriorSpec names one distribution for each population-level parameter:
- intercept: model intercept
- b: coefficient of the smooth's linear (unpenalized) part
- sds: standard deviation of the smooth's penalized coefficients
- sigma: residual standard deviation
- sd_group: standard deviation of site / scale intercepts (group effects only)

Every field must be set before a fit starts; there is no silent fallback.
"""

import numpy as np
import pymc as pm
from dataclasses import dataclass, field, asdict
from scipy.stats import median_abs_deviation
from typing import Dict, Optional


# Distribution -> required parameters
SUPPORTED_DISTS = {
    'Normal': ('mu', 'sigma'),
    'StudentT': ('nu', 'mu', 'sigma'),
    'Uniform': ('lower', 'upper'),
    'Flat': (),
    'HalfNormal': ('sigma',),
    'HalfStudentT': ('nu', 'sigma'),
    'HalfCauchy': ('beta',),
    'Exponential': ('lam',),
    'Gamma': ('alpha', 'beta'),
    'InverseGamma': ('alpha', 'beta'),
    'HalfFlat': (),
}

POSITIVE_DISTS = {'HalfNormal', 'HalfStudentT', 'HalfCauchy', 'Exponential',
                  'Gamma', 'InverseGamma', 'HalfFlat'}

PRIOR_FIELDS = ('intercept', 'b', 'sds', 'sigma')
SCALE_FIELDS = ('sds', 'sigma', 'sd_group')


@dataclass
class Prior:
    """One prior distribution: a PyMC distribution name and its parameters."""
    dist: str
    params: Dict[str, float] = field(default_factory=dict)

    def validate(self, name: str, positive: bool = False) -> None:
        if self.dist not in SUPPORTED_DISTS:
            raise ValueError(
                f"Prior '{name}': unsupported distribution '{self.dist}' "
                f"(supported: {sorted(SUPPORTED_DISTS)})"
            )
        required = SUPPORTED_DISTS[self.dist]
        missing = [p for p in required if self.params.get(p) is None]
        if missing:
            raise ValueError(f"Prior '{name}': {self.dist} is missing parameters {missing}")
        extra = sorted(set(self.params) - set(required))
        if extra:
            raise ValueError(f"Prior '{name}': unexpected parameters {extra} for {self.dist}")
        if positive and self.dist not in POSITIVE_DISTS:
            raise ValueError(
                f"Prior '{name}' is a scale parameter and needs a positive distribution, "
                f"got {self.dist}"
            )

    def build(self, name: str, **kwargs):
        """Create the PyMC random variable (inside a model context)."""
        return getattr(pm, self.dist)(name, **self.params, **kwargs)

    def __str__(self):
        args = ', '.join(f'{k}={v:.4g}' for k, v in self.params.items())
        return f'{self.dist}({args})'


@dataclass
class PriorSpec:
    intercept: Optional[Prior] = None
    b: Optional[Prior] = None
    sds: Optional[Prior] = None
    sigma: Optional[Prior] = None
    sd_group: Optional[Prior] = None
    label: str = 'custom'

    def validate(self, group_effects: bool = False) -> None:
        """Raise ValueError unless every prior the model needs is fully specified."""
        needed = PRIOR_FIELDS + (('sd_group',) if group_effects else ())
        unset = [f for f in needed if getattr(self, f) is None]
        if unset:
            raise ValueError(f"PriorSpec '{self.label}' leaves priors unset: {unset}")
        for f in needed:
            getattr(self, f).validate(f, positive=f in SCALE_FIELDS)

    def to_dict(self) -> Dict:
        return asdict(self)

    def describe(self) -> str:
        rows = [f"{f:<10} ~ {getattr(self, f)}"
                for f in PRIOR_FIELDS + ('sd_group',) if getattr(self, f) is not None]
        return '\n'.join(rows)


def prior_from_dict(d: Dict) -> Prior:
    """Prior from a mapping like {'dist': 'Normal', 'mu': 0, 'sigma': 1}."""
    d = dict(d)
    if 'dist' not in d:
        raise ValueError(f"Prior mapping needs a 'dist' key: {d}")
    dist = d.pop('dist')
    return Prior(dist=dist, params={k: float(v) for k, v in d.items()})


def priors_from_config(cfg: Dict, label: str = 'informative') -> PriorSpec:
    """PriorSpec from a config section keyed by prior field name."""
    cfg = dict(cfg)
    unknown = sorted(set(cfg) - set(PRIOR_FIELDS + ('sd_group',)))
    if unknown:
        raise ValueError(f"Unknown prior fields in config: {unknown}")
    spec = PriorSpec(label=label, **{k: prior_from_dict(v) for k, v in cfg.items()})
    return spec


def default_priors(y: np.ndarray) -> PriorSpec:
    """
    Weak default priors scaled to the response.

    Student-t(3) intercept centred on the median, flat linear coefficient,
    half-Student-t(3) scales with scale max(2.5, MAD(y)).
    """
    y = np.asarray(y, dtype=float)
    scale = float(max(2.5, median_abs_deviation(y, scale='normal')))
    return PriorSpec(
        intercept=Prior('StudentT', {'nu': 3.0, 'mu': float(np.median(y)), 'sigma': scale}),
        b=Prior('Flat'),
        sds=Prior('HalfStudentT', {'nu': 3.0, 'sigma': 2.5}),
        sigma=Prior('HalfStudentT', {'nu': 3.0, 'sigma': scale}),
        sd_group=Prior('HalfStudentT', {'nu': 3.0, 'sigma': scale}),
        label='default',
    )
