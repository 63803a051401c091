"""
Exploratory scatter-plus-curve figures.

Key functions:
- plot_fitted_curves: Scatter of weight over time with one or more curves
- plot_exploratory_figures: Writes fig1-fig5 (linear, cubic, degree 8, overlay, auto smoother)
"""

import pandas as pd
import matplotlib.pyplot as plt
from pathlib import Path
from typing import Dict, List, Optional

from .curves import fit_polynomial_curve, fit_auto_smoother


CURVE_STYLES = {
    1: {'color': 'tab:blue', 'label': 'Linear'},
    3: {'color': 'tab:orange', 'label': 'Cubic'},
    8: {'color': 'tab:green', 'label': 'Polynomial (degree 8)'},
}


def plot_fitted_curves(df: pd.DataFrame,
                       curves: List[Dict],
                       title: str,
                       y: str = 'weight',
                       save_path: Optional[str] = None) -> plt.Figure:
    """
    Scatter of y over time with fitted curves overlaid.

    Each curve dict needs X_grid (seconds since epoch) and curve; label, color
    and optional ci_lower / ci_upper are used when present.
    """
    fig, ax = plt.subplots(figsize=(10, 5))
    ax.scatter(df['timestamp'], df[y], s=6, alpha=0.3, color='gray', label='Observations')

    for c in curves:
        t_grid = pd.to_datetime(c['X_grid'], unit='s')
        ax.plot(t_grid, c['curve'], linewidth=2, color=c.get('color'), label=c.get('label'))
        if 'ci_lower' in c:
            ax.fill_between(t_grid, c['ci_lower'], c['ci_upper'],
                            alpha=0.25, color=c.get('color'))

    ax.set_xlabel('Time', fontsize=12)
    ax.set_ylabel(f'{y} (normalized)', fontsize=12)
    ax.set_title(title, fontsize=12)
    ax.legend(loc='best', fontsize=10)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig


def plot_exploratory_figures(df: pd.DataFrame,
                             output_dir: str,
                             degrees: tuple = (1, 3, 8),
                             n_splines: int = 20) -> Dict:
    """
    Write fig1-fig5 into output_dir, overwriting existing files.

    Returns:
        Dict with the polynomial fits by degree, the smoother fit and saved paths
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    poly = {}
    for d in degrees:
        fit = fit_polynomial_curve(df, degree=d)
        style = CURVE_STYLES.get(d, {'color': None, 'label': f'Polynomial (degree {d})'})
        fit.update(style)
        poly[d] = fit

    paths = []
    for i, d in enumerate(degrees, start=1):
        path = out / f'fig{i}.png'
        fig = plot_fitted_curves(df, [poly[d]],
                                 title=f"{poly[d]['label']} fit (R$^2$={poly[d]['r_squared']:.3f})",
                                 save_path=str(path))
        plt.close(fig)
        paths.append(path)
        print(f"[OK] Saved: {path}")

    path = out / f'fig{len(degrees) + 1}.png'
    fig = plot_fitted_curves(df, [poly[d] for d in degrees],
                             title='Linear vs polynomial fits', save_path=str(path))
    plt.close(fig)
    paths.append(path)
    print(f"[OK] Saved: {path}")

    smoother = fit_auto_smoother(df, n_splines=n_splines)
    smoother.update({'color': 'tab:red', 'label': f"Automatic GAM smoother (lam={smoother['lam']:.3g})"})
    path = out / f'fig{len(degrees) + 2}.png'
    fig = plot_fitted_curves(df, [smoother], title='Automatic smoothing', save_path=str(path))
    plt.close(fig)
    paths.append(path)
    print(f"[OK] Saved: {path}")

    return {'polynomial': poly, 'smoother': smoother, 'paths': paths}
