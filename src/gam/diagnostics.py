"""
Diagnostics for fitted GAMs.

Key functions:
- check_basis_dimension: k-index and permutation p-value for the basis size
- residual_diagnostics: moments of the deviance residuals
- summarize_gam: parametric and smooth term tables, deviance explained
- format_gam_summary / print_gam_report: text report

Nothing here modifies the fit; the report is for the analyst to judge.
"""

import numpy as np
import pandas as pd
from scipy import stats
from typing import Dict, Optional
from tqdm.auto import tqdm

from .fitting import GamFit


def check_basis_dimension(fit: GamFit,
                          n_rep: int = 400,
                          seed: int = 42,
                          verbose: bool = False) -> Dict:
    """
    Basis-dimension check for the smooth.

    Residuals ordered by the covariate should show no more neighbour
    similarity than randomly ordered ones. The k-index is the mean squared
    difference of neighbouring ordered residuals (halved) relative to the
    residual variance; values well below 1 with a small p-value suggest the
    basis size, not the penalty, is limiting the smooth.

    Args:
        fit: fitted GAM
        n_rep: number of residual permutations
        seed: random seed
        verbose: show progress bar

    Returns:
        Dict with term, k_prime, edf, k_index, p_value
    """
    rng = np.random.default_rng(seed)
    rsd = fit.deviance_residuals
    order = np.argsort(fit.x, kind='mergesort')

    v_obs = np.mean(np.diff(rsd[order]) ** 2) / 2.0

    v_perm = np.empty(n_rep)
    for i in tqdm(range(n_rep), desc='k-check', disable=not verbose):
        v_perm[i] = np.mean(np.diff(rng.permutation(rsd)) ** 2) / 2.0

    return {
        'term': fit.smooth_label,
        'k_prime': fit.basis.n_coef,
        'edf': fit.edf_smooth,
        'k_index': float(v_obs / np.mean(rsd ** 2)),
        'p_value': float(np.mean(v_perm < v_obs)),
    }


def residual_diagnostics(fit: GamFit) -> Dict:
    """Summary statistics of the deviance residuals."""
    rsd = fit.deviance_residuals
    return {
        'n': int(len(rsd)),
        'mean': float(np.mean(rsd)),
        'sd': float(np.std(rsd, ddof=1)),
        'skewness': float(stats.skew(rsd)),
        'excess_kurtosis': float(stats.kurtosis(rsd)),
        'corr_fitted': float(np.corrcoef(fit.fitted, rsd)[0, 1]),
        'quantiles': {
            q: float(v) for q, v in zip(('min', 'q25', 'median', 'q75', 'max'),
                                        np.percentile(rsd, [0, 25, 50, 75, 100]))
        },
    }


def smooth_test(fit: GamFit) -> Dict:
    """
    Wald test that the smooth is zero everywhere.

    Uses the rank-r pseudo-inverse of the smooth's covariance with r set from
    the effective degrees of freedom.
    """
    idx = fit.smooth_index
    b = fit.coef[idx]
    V = fit.Vp[idx, idx]
    edf = fit.edf_smooth

    rank = int(min(len(b), max(1, np.ceil(edf - 0.05))))
    ev, vec = np.linalg.eigh(V)
    top = np.argsort(ev)[::-1][:rank]
    proj = vec[:, top].T @ b
    chi_sq = float(np.sum(proj ** 2 / ev[top]))

    return {
        'term': fit.smooth_label,
        'edf': edf,
        'ref_df': rank,
        'chi_sq': chi_sq,
        'p_value': float(stats.chi2.sf(chi_sq, rank)),
    }


def summarize_gam(fit: GamFit) -> Dict:
    """Model summary: family, parametric and smooth tables, fit statistics."""
    se0 = float(np.sqrt(fit.Vp[0, 0]))
    z0 = float(fit.coef[0] / se0)
    if fit.config.family == 'scat':
        family = f"Scaled t({fit.nu:.3f},{fit.sigma:.3f})"
    else:
        family = 'gaussian'

    return {
        'family': family,
        'link': 'identity',
        'formula': f"{fit.y_name} ~ s({fit.x_name}, k = {fit.config.k}, bs = \"{fit.config.basis}\")",
        'method': fit.config.method,
        'select': fit.config.select,
        'parametric': [{
            'term': '(Intercept)',
            'estimate': float(fit.coef[0]),
            'std_error': se0,
            'z_value': z0,
            'p_value': float(2.0 * stats.norm.sf(abs(z0))),
        }],
        'smooth': [smooth_test(fit)],
        'r_squared_adj': float(fit.r_squared_adj),
        'deviance_explained': float(fit.deviance_explained),
        'score': fit.score,
        'scale': fit.sigma ** 2,
        'n': fit.n,
        'converged': fit.converged,
        'n_iter': fit.n_iter,
    }


def _signif_stars(p: float) -> str:
    for cut, mark in ((0.001, '***'), (0.01, '**'), (0.05, '*'), (0.1, '.')):
        if p < cut:
            return mark
    return ''


def format_gam_summary(fit: GamFit,
                       k_check: Optional[Dict] = None,
                       residuals: Optional[Dict] = None) -> str:
    """Render the model summary (and optional diagnostics) as text."""
    summ = summarize_gam(fit)
    lines = [
        f"Family: {summ['family']}",
        f"Link function: {summ['link']}",
        '',
        'Formula:',
        summ['formula'],
        '',
        'Parametric coefficients:',
    ]

    par = pd.DataFrame(summ['parametric']).set_index('term')
    par[''] = [_signif_stars(p) for p in par['p_value']]
    lines.append(par.to_string(float_format=lambda v: f"{v:.4g}"))

    lines += ['', 'Approximate significance of smooth terms:']
    smo = pd.DataFrame(summ['smooth']).set_index('term')
    smo[''] = [_signif_stars(p) for p in smo['p_value']]
    lines.append(smo.to_string(float_format=lambda v: f"{v:.4g}"))

    lines += [
        '',
        f"R-sq.(adj) = {summ['r_squared_adj']:.3f}   "
        f"Deviance explained = {summ['deviance_explained'] * 100:.1f}%",
        f"-{summ['method']} = {summ['score']:.4f}  Scale est. = {summ['scale']:.5g}  n = {summ['n']}",
    ]

    if residuals is not None or k_check is not None:
        lines += ['', f"Method: {fit.config.method}   Optimizer: outer L-BFGS-B",
                  f"{'Full convergence' if fit.converged else 'Convergence NOT reached'} "
                  f"after {fit.n_iter} iteration(s): {fit.optimizer_message}"]

    if k_check is not None:
        lines += [
            '',
            'Basis dimension (k) checking results. Low p-value (k-index<1) may',
            'indicate that k is too low, especially if edf is close to k\'.',
            '',
            f"{'':<20}{'k_prime':>8}{'edf':>8}{'k-index':>9}{'p-value':>9}",
            f"{k_check['term']:<20}{k_check['k_prime']:>8d}{k_check['edf']:>8.2f}"
            f"{k_check['k_index']:>9.3f}{k_check['p_value']:>9.3f}",
        ]

    if residuals is not None:
        q = residuals['quantiles']
        lines += [
            '',
            'Deviance residuals:',
            f"  min={q['min']:.3f}  q25={q['q25']:.3f}  median={q['median']:.3f}  "
            f"q75={q['q75']:.3f}  max={q['max']:.3f}",
            f"  skewness={residuals['skewness']:.3f}  excess kurtosis={residuals['excess_kurtosis']:.3f}  "
            f"corr(fitted, resid)={residuals['corr_fitted']:.3f}",
        ]

    return '\n'.join(lines)


def print_gam_report(fit: GamFit, n_rep: int = 400, seed: int = 42) -> Dict:
    """Run both checks, print the full report, return its pieces."""
    k_check = check_basis_dimension(fit, n_rep=n_rep, seed=seed)
    resid = residual_diagnostics(fit)
    text = format_gam_summary(fit, k_check=k_check, residuals=resid)
    print(text)
    return {
        'summary': summarize_gam(fit),
        'k_check': k_check,
        'residuals': resid,
        'text': text,
    }
