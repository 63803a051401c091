"""
Visualization for Bayesian GAM fits.

Key functions:
- plot_bayes_trace: Per-chain trace and density plots (convergence check)
- plot_bayes_smooth: Posterior conditional smooth with credible band
"""

import numpy as np
import pandas as pd
import arviz as az
import matplotlib.pyplot as plt
from typing import Optional

from .fitting import BayesFit, conditional_smooth


def plot_bayes_trace(fit: BayesFit, save_path: Optional[str] = None) -> plt.Figure:
    """Trace and marginal density of the population-level parameters, one line per chain."""
    axes = az.plot_trace(fit.idata, var_names=fit.var_names, compact=False)
    fig = np.asarray(axes).ravel()[0].figure
    fig.suptitle(f"MCMC trace: {fit.name} ({fit.priors.label} priors)", fontsize=12)
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig


def plot_bayes_smooth(fit: BayesFit,
                      df: pd.DataFrame,
                      n_grid: int = 200,
                      prob: float = 0.95,
                      save_path: Optional[str] = None) -> plt.Figure:
    """
    Observed weights with the posterior mean of Intercept + f(x) and its
    credible band.
    """
    x_obs = df[fit.x_name].to_numpy(dtype=float)
    x_grid = np.linspace(x_obs.min(), x_obs.max(), n_grid)
    cs = conditional_smooth(fit, x_grid, prob=prob)
    t_grid = pd.to_datetime(x_grid, unit='s')

    fig, ax = plt.subplots(figsize=(10, 5))
    ax.scatter(df['timestamp'], df[fit.y_name], s=6, alpha=0.3, color='gray', label='Observations')
    ax.plot(t_grid, cs['mean'], color='darkblue', linewidth=2, label='Posterior mean')
    ax.fill_between(t_grid, cs['lower'], cs['upper'], alpha=0.3, color='steelblue',
                    label=f'{prob * 100:.0f}% credible interval')

    ax.set_xlabel('Time', fontsize=12)
    ax.set_ylabel(f'{fit.y_name} (normalized)', fontsize=12)
    ax.set_title(f"Conditional smooth: {fit.name} ({fit.priors.label} priors, "
                 f"{cs['n_draws']:,} draws)", fontsize=12)
    ax.legend(loc='best', fontsize=10)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig
