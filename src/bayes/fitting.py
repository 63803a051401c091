"""
Bayesian GAM fitting by MCMC.

Key functions:
- build_model: PyMC model for y ~ s(x) with Gaussian errors
- fit_bayes_gam: Sample (or reload) one configuration, with checkpoint caching
- run_bayes_fits: Several configurations, each with its own checkpoint
- conditional_smooth: Posterior mean curve and credible band on a grid
- summarize_bayes: Posterior summary with R-hat and ESS

The smooth uses the same Gaussian-process basis as the frequentist fit, in
mixed-model form: the linear null-space column gets a fixed coefficient and
the penalized columns get coefficients sds * z with z ~ N(0, 1).
"""

import hashlib
import json
import os
import arviz as az
import numpy as np
import pandas as pd
import pymc as pm
from dataclasses import dataclass, asdict, replace
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..gam.basis import GPBasis
from .priors import PriorSpec


REFIT_POLICIES = ('never', 'on_change', 'always')
POPULATION_PARAMS = ['Intercept', 'b_s', 'sds_s', 'sigma']
GROUP_PARAMS = ['sd_site', 'sd_scale']
# Settings that fix the model structure a checkpoint was sampled under
MODEL_SETTINGS = ('k', 'kappa', 'max_knots', 'group_effects')


@dataclass
class BayesConfig:
    """Sampler and model configuration (defaults: 1000 iterations, 4 chains)."""
    k: int = 20
    kappa: float = 1.5
    max_knots: int = 2000
    iterations: int = 1000
    warmup: Optional[int] = None
    chains: int = 4
    cores: Optional[int] = None
    target_accept: float = 0.8
    seed: int = 1234
    group_effects: bool = False
    checkpoint_dir: str = 'models'
    refit: str = 'never'

    def __post_init__(self):
        if self.refit not in REFIT_POLICIES:
            raise ValueError(f"Unknown refit policy '{self.refit}', expected one of {REFIT_POLICIES}")
        if self.warmup is None:
            self.warmup = self.iterations // 2
        if not 0 < self.warmup < self.iterations:
            raise ValueError(f"warmup={self.warmup} must lie in (0, iterations={self.iterations})")
        if self.cores is None:
            self.cores = min(self.chains, os.cpu_count() or 1)

    @property
    def draws(self) -> int:
        return self.iterations - self.warmup


@dataclass
class BayesFit:
    """A sampled (or reloaded) Bayesian GAM."""
    name: str
    idata: az.InferenceData
    basis: GPBasis
    priors: PriorSpec
    config: BayesConfig
    checkpoint_path: Path
    reused: bool
    x_name: str
    y_name: str

    @property
    def var_names(self) -> List[str]:
        return POPULATION_PARAMS + (GROUP_PARAMS if self.config.group_effects else [])


def _fit_basis(x_obs: np.ndarray, config: BayesConfig) -> GPBasis:
    return GPBasis(k=config.k, kappa=config.kappa, max_knots=config.max_knots).fit(x_obs)


def build_model(df: pd.DataFrame,
                priors: PriorSpec,
                config: BayesConfig,
                x: str = 'timestamp_num',
                y: str = 'weight') -> Tuple[pm.Model, GPBasis]:
    """
    PyMC model: y ~ Normal(Intercept + f(x) [+ site + site:scale], sigma).

    Returns:
        (model, fitted basis)
    """
    priors.validate(group_effects=config.group_effects)

    x_obs = df[x].to_numpy(dtype=float)
    y_obs = df[y].to_numpy(dtype=float)

    basis = _fit_basis(x_obs, config)
    Xf, Zr = basis.mixed_model_matrices(x_obs)

    coords = {'obs': np.arange(len(y_obs)), 'basis': np.arange(Zr.shape[1])}
    if config.group_effects:
        site_idx, sites = pd.factorize(df['site'].astype(str), sort=True)
        nested = df['site'].astype(str) + ':' + df['scale'].astype(str)
        scale_idx, scales = pd.factorize(nested, sort=True)
        coords['site'] = list(sites)
        coords['site_scale'] = list(scales)

    with pm.Model(coords=coords) as model:
        intercept = priors.intercept.build('Intercept')
        b = priors.b.build('b_s')
        sds = priors.sds.build('sds_s')
        z = pm.Normal('z_s', 0.0, 1.0, dims='basis')

        mu = intercept + Xf[:, 0] * b + pm.math.dot(Zr, sds * z)

        if config.group_effects:
            sd_site = priors.sd_group.build('sd_site')
            sd_scale = priors.sd_group.build('sd_scale')
            z_site = pm.Normal('z_site', 0.0, 1.0, dims='site')
            z_scale = pm.Normal('z_scale', 0.0, 1.0, dims='site_scale')
            mu = mu + sd_site * z_site[site_idx] + sd_scale * z_scale[scale_idx]

        sigma = priors.sigma.build('sigma')
        pm.Normal(y, mu=mu, sigma=sigma, observed=y_obs, dims='obs')

    return model, basis


def _config_hash(df: pd.DataFrame, priors: PriorSpec, config: BayesConfig,
                 x: str, y: str) -> Tuple[str, Dict]:
    """SHA256 over data, priors and the settings that change the posterior."""
    data_cols = [x, y] + (['site', 'scale'] if config.group_effects else [])
    data_digest = hashlib.sha256(
        pd.util.hash_pandas_object(df[data_cols], index=False).to_numpy().tobytes()
    ).hexdigest()
    settings = {k: v for k, v in asdict(config).items()
                if k not in ('checkpoint_dir', 'refit', 'cores')}
    payload = {
        'data': data_digest,
        'x': x,
        'y': y,
        'priors': priors.to_dict(),
        'config': settings,
    }
    key = hashlib.sha256(json.dumps(payload, sort_keys=True, default=str).encode()).hexdigest()
    return key, payload


def checkpoint_paths(name: str, checkpoint_dir: str) -> Tuple[Path, Path]:
    """(InferenceData netCDF path, metadata JSON path) for a checkpoint name."""
    base = Path(checkpoint_dir)
    return base / f'{name}.nc', base / f'{name}.json'


def _should_reuse(nc_path: Path, meta_path: Path, key: str, refit: str) -> bool:
    if refit == 'always' or not nc_path.exists():
        return False
    if refit == 'never':
        return True
    if not meta_path.exists():
        return False
    with open(meta_path) as f:
        return json.load(f).get('cache_key') == key


def _stored_model_config(meta_path: Path, config: BayesConfig) -> BayesConfig:
    """config with the model settings recorded in a checkpoint sidecar, if any."""
    if not meta_path.exists():
        return config
    with open(meta_path) as f:
        stored = json.load(f).get('config', {})
    return replace(config, **{k: stored[k] for k in MODEL_SETTINGS if k in stored})


def fit_bayes_gam(df: pd.DataFrame,
                  priors: PriorSpec,
                  checkpoint: str,
                  config: Optional[BayesConfig] = None,
                  x: str = 'timestamp_num',
                  y: str = 'weight',
                  verbose: bool = True) -> BayesFit:
    """
    Fit the Bayesian GAM, or reload it from its checkpoint.

    With refit='never' an existing checkpoint file is reloaded as-is; with
    'on_change' it is reloaded only if data, priors and sampler settings match
    the stored hash; 'always' resamples. A reloaded fit takes its basis
    settings (k, kappa, max_knots, group_effects) from the checkpoint sidecar,
    and no PyMC model is built for it.

    Args:
        df: Observation table
        priors: fully specified PriorSpec
        checkpoint: checkpoint name (file stem under config.checkpoint_dir)
        config: BayesConfig
        x, y: covariate and response columns
        verbose: progress output and sampler progress bar

    Returns:
        BayesFit
    """
    if config is None:
        config = BayesConfig()

    priors.validate(group_effects=config.group_effects)
    key, payload = _config_hash(df, priors, config, x, y)
    nc_path, meta_path = checkpoint_paths(checkpoint, config.checkpoint_dir)

    if _should_reuse(nc_path, meta_path, key, config.refit):
        idata = az.from_netcdf(str(nc_path))
        config = _stored_model_config(meta_path, config)
        basis = _fit_basis(df[x].to_numpy(dtype=float), config)
        n_stored = idata.posterior['z_s'].shape[-1]
        if n_stored != basis.n_coef - 1:
            raise ValueError(
                f"Checkpoint {nc_path} holds {n_stored} smooth coefficients but k={config.k} "
                f"gives {basis.n_coef - 1}; set k to match or refit with refit='always'"
            )
        if verbose:
            print(f"[OK] Loaded checkpoint: {nc_path}")
        reused = True
    else:
        model, basis = build_model(df, priors, config, x=x, y=y)
        if verbose:
            print(f"Sampling '{checkpoint}': {config.chains} chains x {config.iterations} iterations "
                  f"({config.warmup} warmup), {config.cores} cores")
        with model:
            idata = pm.sample(
                draws=config.draws,
                tune=config.warmup,
                chains=config.chains,
                cores=config.cores,
                target_accept=config.target_accept,
                random_seed=config.seed,
                progressbar=verbose,
            )
        nc_path.parent.mkdir(parents=True, exist_ok=True)
        idata.to_netcdf(str(nc_path))
        metadata = {
            'name': checkpoint,
            'cache_key': key,
            'created': datetime.now().isoformat(),
            'priors_label': priors.label,
            **payload,
        }
        with open(meta_path, 'w') as f:
            json.dump(metadata, f, indent=2, default=str)
        if verbose:
            print(f"[OK] Saved checkpoint: {nc_path}")
        reused = False

    return BayesFit(
        name=checkpoint,
        idata=idata,
        basis=basis,
        priors=priors,
        config=config,
        checkpoint_path=nc_path,
        reused=reused,
        x_name=x,
        y_name=y,
    )


def run_bayes_fits(df: pd.DataFrame,
                   fits: List[Tuple[str, PriorSpec]],
                   config: Optional[BayesConfig] = None,
                   verbose: bool = True) -> Dict[str, BayesFit]:
    """
    Fit several prior configurations, each to its own checkpoint.

    Names and priors are checked for all fits before any sampling starts.
    """
    if config is None:
        config = BayesConfig()

    names = [name for name, _ in fits]
    dupes = sorted({n for n in names if names.count(n) > 1})
    if dupes:
        raise ValueError(f"Checkpoint names must be distinct, repeated: {dupes}")
    for _, priors in fits:
        priors.validate(group_effects=config.group_effects)

    return {name: fit_bayes_gam(df, priors, name, config, verbose=verbose)
            for name, priors in fits}


def conditional_smooth(fit: BayesFit,
                       x_grid: np.ndarray,
                       prob: float = 0.95) -> Dict:
    """
    Posterior of Intercept + f(x) on a grid (group effects set to zero).

    Returns:
        Dict with X_grid, mean, lower, upper, n_draws
    """
    post = fit.idata.posterior
    intercept = post['Intercept'].values.reshape(-1)
    b = post['b_s'].values.reshape(-1)
    sds = post['sds_s'].values.reshape(-1)
    z = post['z_s'].values.reshape(len(intercept), -1)

    Xf, Zr = fit.basis.mixed_model_matrices(np.asarray(x_grid, dtype=float))
    draws = intercept[:, None] + b[:, None] * Xf[:, 0][None, :] + (z * sds[:, None]) @ Zr.T

    alpha = (1.0 - prob) / 2.0
    return {
        'X_grid': np.asarray(x_grid, dtype=float),
        'mean': draws.mean(axis=0),
        'lower': np.quantile(draws, alpha, axis=0),
        'upper': np.quantile(draws, 1.0 - alpha, axis=0),
        'n_draws': len(intercept),
    }


def summarize_bayes(fit: BayesFit, hdi_prob: float = 0.95) -> pd.DataFrame:
    """arviz summary (mean, sd, HDI, ESS, R-hat) of the population-level parameters."""
    return az.summary(fit.idata, var_names=fit.var_names, hdi_prob=hdi_prob)


def sampler_diagnostics(fit: BayesFit) -> Dict:
    """Divergences and worst-case R-hat / bulk ESS across reported parameters."""
    summary = summarize_bayes(fit)
    diverging = fit.idata.sample_stats['diverging'].values
    return {
        'n_divergent': int(diverging.sum()),
        'max_r_hat': float(summary['r_hat'].max()),
        'min_ess_bulk': float(summary['ess_bulk'].min()),
        'chains': int(fit.idata.posterior.sizes['chain']),
        'draws': int(fit.idata.posterior.sizes['draw']),
    }
