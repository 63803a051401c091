# Exploratory plotting module
"""
Exploratory comparison of curve fits to colony weight.

Key components:
- curves: Polynomial OLS fits and the automatic GAM smoother
- visualization: fig1-fig5 scatter-plus-curve plots
"""

from .curves import fit_polynomial_curve, fit_auto_smoother
from .visualization import plot_fitted_curves, plot_exploratory_figures

__all__ = [
    'fit_polynomial_curve',
    'fit_auto_smoother',
    'plot_fitted_curves',
    'plot_exploratory_figures',
]
