"""
Curve fits for the exploratory plots.

Key functions:
- fit_polynomial_curve: OLS polynomial of a given degree (degree 1 = straight line)
- fit_auto_smoother: pygam LinearGAM with grid-searched smoothing
"""

import numpy as np
import pandas as pd
import statsmodels.api as sm
from pygam import LinearGAM, s
from typing import Dict


def _scaled_covariate(x: np.ndarray, ref: np.ndarray) -> np.ndarray:
    # Seconds since epoch are ~1e9; raw powers up to 8 are numerically singular
    return (x - ref.mean()) / ref.std()


def fit_polynomial_curve(df: pd.DataFrame,
                         degree: int,
                         x: str = 'timestamp_num',
                         y: str = 'weight',
                         n_grid: int = 200) -> Dict:
    """
    Fit y on a polynomial of x by ordinary least squares.

    Args:
        df: Observation table
        degree: polynomial degree (1 = linear)
        x, y: covariate and response columns
        n_grid: points on the prediction grid

    Returns:
        Dict with:
        - X_grid: (n_grid,) covariate grid
        - curve: (n_grid,) fitted values on the grid
        - degree: polynomial degree
        - r_squared: in-sample R^2
        - model: statsmodels results object
    """
    x_obs = df[x].to_numpy(dtype=float)
    y_obs = df[y].to_numpy(dtype=float)

    u = _scaled_covariate(x_obs, x_obs)
    design = np.vander(u, degree + 1, increasing=True)
    model = sm.OLS(y_obs, design).fit()

    X_grid = np.linspace(x_obs.min(), x_obs.max(), n_grid)
    u_grid = _scaled_covariate(X_grid, x_obs)
    curve = model.predict(np.vander(u_grid, degree + 1, increasing=True))

    return {
        'X_grid': X_grid,
        'curve': curve,
        'degree': degree,
        'r_squared': float(model.rsquared),
        'model': model,
    }


def fit_auto_smoother(df: pd.DataFrame,
                      x: str = 'timestamp_num',
                      y: str = 'weight',
                      n_splines: int = 20,
                      n_grid: int = 200) -> Dict:
    """
    Library-default automatic smoother: LinearGAM with lambda chosen by gridsearch.

    Returns:
        Dict with X_grid, curve, ci_lower, ci_upper, lam, gam
    """
    x_obs = df[x].to_numpy(dtype=float)
    y_obs = df[y].to_numpy(dtype=float)
    u = _scaled_covariate(x_obs, x_obs)

    gam = LinearGAM(s(0, n_splines=n_splines)).gridsearch(u.reshape(-1, 1), y_obs, progress=False)
    lam = gam.lam[0] if hasattr(gam.lam, '__len__') else gam.lam
    if hasattr(lam, '__len__'):
        lam = lam[0]

    X_grid = np.linspace(x_obs.min(), x_obs.max(), n_grid)
    u_grid = _scaled_covariate(X_grid, x_obs).reshape(-1, 1)
    ci = gam.confidence_intervals(u_grid, width=0.95)

    return {
        'X_grid': X_grid,
        'curve': gam.predict(u_grid),
        'ci_lower': ci[:, 0],
        'ci_upper': ci[:, 1],
        'lam': float(lam),
        'gam': gam,
    }
