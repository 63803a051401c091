# GAM module for hive weight time series
"""
Frequentist GAM fitting for colony weight over time.

Key components:
- basis: Low-rank Gaussian-process smoothing basis
- fitting: REML smoothing selection with scaled-t errors and term selection
- diagnostics: Basis-dimension check, residual diagnostics, model summary
- visualization: Fitted smooth and residual check plots
"""

from .basis import GPBasis, matern_covariance
from .fitting import GamConfig, GamFit, fit_gam, smoothing_summary
from .diagnostics import (
    check_basis_dimension, residual_diagnostics, smooth_test,
    summarize_gam, format_gam_summary, print_gam_report,
)
from .visualization import plot_gam_smooth, plot_gam_check

__all__ = [
    'GPBasis',
    'matern_covariance',
    'GamConfig',
    'GamFit',
    'fit_gam',
    'smoothing_summary',
    'check_basis_dimension',
    'residual_diagnostics',
    'smooth_test',
    'summarize_gam',
    'format_gam_summary',
    'print_gam_report',
    'plot_gam_smooth',
    'plot_gam_check',
]
