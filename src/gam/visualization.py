"""
Visualization for fitted GAMs.

Key functions:
- plot_gam_smooth: Data with the fitted smooth and 95% band (fig6)
- plot_gam_check: Four-panel residual check
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
import statsmodels.api as sm
from typing import Optional

from .fitting import GamFit


def plot_gam_smooth(fit: GamFit,
                    df: pd.DataFrame,
                    n_grid: int = 200,
                    save_path: Optional[str] = None) -> plt.Figure:
    """
    Observed weights with the fitted mean curve and pointwise 95% interval.
    """
    x_grid = np.linspace(fit.x.min(), fit.x.max(), n_grid)
    mu, se = fit.predict(x_grid, se_fit=True)
    t_grid = pd.to_datetime(x_grid, unit='s')

    fig, ax = plt.subplots(figsize=(10, 5))
    ax.scatter(df['timestamp'], df[fit.y_name], s=6, alpha=0.3, color='gray', label='Observations')
    ax.plot(t_grid, mu, 'k-', linewidth=2, label=f"{fit.smooth_label}, edf={fit.edf_smooth:.2f}")
    ax.fill_between(t_grid, mu - 1.96 * se, mu + 1.96 * se,
                    alpha=0.3, color='steelblue', label='95% CI')

    ax.set_xlabel('Time', fontsize=12)
    ax.set_ylabel(f'{fit.y_name} (normalized)', fontsize=12)
    ax.set_title(f'GAM fit: k={fit.config.k}, bs="{fit.config.basis}", '
                 f'{fit.config.method}, family={fit.config.family}\n'
                 f'Deviance explained {fit.deviance_explained * 100:.1f}%', fontsize=12)
    ax.legend(loc='best', fontsize=10)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig


def plot_gam_check(fit: GamFit, save_path: Optional[str] = None) -> plt.Figure:
    """
    Residual check: Q-Q plot, residuals vs linear predictor, histogram,
    response vs fitted.
    """
    rsd = fit.deviance_residuals

    fig, axes = plt.subplots(2, 2, figsize=(12, 10))

    sm.qqplot(rsd, line='q', ax=axes[0, 0], markersize=3, alpha=0.5)
    axes[0, 0].set_title('Q-Q plot of deviance residuals', fontsize=11)

    axes[0, 1].scatter(fit.fitted, rsd, s=6, alpha=0.4, color='steelblue')
    axes[0, 1].axhline(0, color='red', linestyle='--', alpha=0.7)
    axes[0, 1].set_xlabel('Linear predictor', fontsize=10)
    axes[0, 1].set_ylabel('Residuals', fontsize=10)
    axes[0, 1].set_title('Residuals vs linear predictor', fontsize=11)

    sns.histplot(rsd, bins=50, kde=True, color='steelblue', ax=axes[1, 0])
    axes[1, 0].set_xlabel('Residuals', fontsize=10)
    axes[1, 0].set_title('Histogram of residuals', fontsize=11)

    axes[1, 1].scatter(fit.fitted, fit.y, s=6, alpha=0.4, color='steelblue')
    lims = [min(fit.fitted.min(), fit.y.min()), max(fit.fitted.max(), fit.y.max())]
    axes[1, 1].plot(lims, lims, 'r--', alpha=0.7)
    axes[1, 1].set_xlabel('Fitted values', fontsize=10)
    axes[1, 1].set_ylabel('Response', fontsize=10)
    axes[1, 1].set_title('Response vs fitted values', fontsize=11)

    for ax in axes.flat:
        ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig
