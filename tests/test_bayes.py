"""
Tests for priors, the Bayesian GAM and checkpoint handling.

Sampling tests use a small table, a small basis and short chains on one core.
"""
import sys
import os
import shutil
from dataclasses import replace

import numpy as np
import pytest
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from src.hive import load_hive_data, make_synthetic_hive_data
from src.bayes import (
    Prior, PriorSpec, default_priors, priors_from_config,
    BayesConfig, build_model, fit_bayes_gam, run_bayes_fits, checkpoint_paths,
    conditional_smooth, summarize_bayes, sampler_diagnostics,
    plot_bayes_trace, plot_bayes_smooth,
)
import src.bayes.fitting as bayes_fitting


INFORMATIVE = {
    'intercept': {'dist': 'Normal', 'mu': 0.0, 'sigma': 1.0},
    'b': {'dist': 'Normal', 'mu': 0.0, 'sigma': 1.0},
    'sds': {'dist': 'Exponential', 'lam': 1.0},
    'sigma': {'dist': 'HalfNormal', 'sigma': 1.0},
}


@pytest.fixture(scope="module")
def small_df(tmp_path_factory):
    path = tmp_path_factory.mktemp("bayes") / "hive.csv"
    make_synthetic_hive_data(n_rows=150, n_sites=4, scales_per_site=2, seed=8).to_csv(path, index=False)
    return load_hive_data(path, verbose=False)


def _small_config(tmp_path, **kwargs):
    settings = dict(k=8, iterations=300, chains=2, cores=1, seed=99,
                    checkpoint_dir=str(tmp_path / 'models'))
    settings.update(kwargs)
    return BayesConfig(**settings)


# ---------------------------------------------------------------------------
# Priors
# ---------------------------------------------------------------------------

def test_informative_priors_from_config():
    spec = priors_from_config(INFORMATIVE)

    spec.validate()
    assert spec.label == 'informative'
    assert spec.sds == Prior('Exponential', {'lam': 1.0})


def test_unset_prior_rejected():
    cfg = dict(INFORMATIVE)
    cfg.pop('sigma')
    spec = priors_from_config(cfg)

    with pytest.raises(ValueError, match="sigma"):
        spec.validate()


def test_group_prior_required_with_group_effects():
    spec = priors_from_config(INFORMATIVE)
    with pytest.raises(ValueError, match="sd_group"):
        spec.validate(group_effects=True)


@pytest.mark.parametrize("field, prior, match", [
    ('intercept', Prior('Normal', {'mu': 0.0}), "missing parameters"),
    ('intercept', Prior('Cauchyish', {}), "unsupported"),
    ('sigma', Prior('Normal', {'mu': 0.0, 'sigma': 1.0}), "positive"),
    ('b', Prior('Normal', {'mu': 0.0, 'sigma': 1.0, 'nu': 3.0}), "unexpected"),
])
def test_malformed_prior_rejected(field, prior, match):
    spec = priors_from_config(INFORMATIVE)
    setattr(spec, field, prior)
    with pytest.raises(ValueError, match=match):
        spec.validate()


def test_unknown_prior_field_rejected():
    with pytest.raises(ValueError, match="Unknown prior fields"):
        priors_from_config({**INFORMATIVE, 'tau': {'dist': 'HalfNormal', 'sigma': 1.0}})


def test_default_priors_complete(small_df):
    spec = default_priors(small_df['weight'].to_numpy())

    spec.validate(group_effects=True)
    assert spec.intercept.params['mu'] == pytest.approx(small_df['weight'].median())
    assert spec.sigma.params['sigma'] >= 2.5


# ---------------------------------------------------------------------------
# Config and model construction
# ---------------------------------------------------------------------------

def test_bayes_config_defaults():
    cfg = BayesConfig()

    assert cfg.iterations == 1000
    assert cfg.warmup == 500 and cfg.draws == 500
    assert cfg.chains == 4
    assert 1 <= cfg.cores <= 4


@pytest.mark.parametrize("kwargs", [{'refit': 'sometimes'}, {'warmup': 1000}, {'warmup': 0}])
def test_bayes_config_rejects_bad_values(kwargs):
    with pytest.raises(ValueError):
        BayesConfig(**kwargs)


def test_model_structure(tmp_path, small_df):
    config = _small_config(tmp_path)
    model, basis = build_model(small_df, priors_from_config(INFORMATIVE), config)

    names = set(model.named_vars)
    assert {'Intercept', 'b_s', 'sds_s', 'z_s', 'sigma', 'weight'} <= names
    assert basis.n_coef == config.k - 1
    assert 'sd_site' not in names


def test_model_with_group_effects(tmp_path, small_df):
    config = _small_config(tmp_path, group_effects=True)
    spec = default_priors(small_df['weight'].to_numpy())
    model, _ = build_model(small_df, spec, config)

    assert {'sd_site', 'sd_scale', 'z_site', 'z_scale'} <= set(model.named_vars)
    assert len(model.coords['site']) == small_df['site'].nunique()
    assert len(model.coords['site_scale']) == small_df['scale'].nunique()


def test_duplicate_checkpoint_names_rejected(tmp_path, small_df):
    config = _small_config(tmp_path)
    spec = priors_from_config(INFORMATIVE)

    with pytest.raises(ValueError, match="distinct"):
        run_bayes_fits(small_df, [('bayes_gam', spec), ('bayes_gam', spec)], config, verbose=False)
    assert not (tmp_path / 'models').exists()


def test_incomplete_priors_rejected_before_sampling(tmp_path, small_df):
    config = _small_config(tmp_path)
    good = priors_from_config(INFORMATIVE)
    bad = PriorSpec(intercept=good.intercept, b=good.b, sds=good.sds, label='incomplete')

    with pytest.raises(ValueError, match="unset"):
        run_bayes_fits(small_df, [('first', good), ('second', bad)], config, verbose=False)
    assert not checkpoint_paths('first', config.checkpoint_dir)[0].exists()


# ---------------------------------------------------------------------------
# Sampling and checkpoints
# ---------------------------------------------------------------------------

@pytest.fixture(scope="module")
def sampled(tmp_path_factory, small_df):
    tmp = tmp_path_factory.mktemp("sampled")
    config = _small_config(tmp)
    fit = fit_bayes_gam(small_df, priors_from_config(INFORMATIVE), 'informative', config, verbose=False)
    return fit, config


def test_fit_writes_checkpoint(sampled):
    fit, config = sampled
    nc_path, meta_path = checkpoint_paths('informative', config.checkpoint_dir)

    assert not fit.reused
    assert nc_path.exists() and meta_path.exists()
    assert fit.idata.posterior.sizes['chain'] == 2
    assert fit.idata.posterior.sizes['draw'] == 150


def test_checkpoint_reused(sampled, small_df):
    fit, config = sampled
    again = fit_bayes_gam(small_df, priors_from_config(INFORMATIVE), 'informative', config, verbose=False)

    assert again.reused
    assert np.allclose(again.idata.posterior['Intercept'].values, fit.idata.posterior['Intercept'].values)


def test_reuse_keeps_checkpoint_basis(tmp_path, sampled, small_df, monkeypatch):
    fit, config = sampled
    shutil.copytree(config.checkpoint_dir, tmp_path / 'models')
    other_k = replace(config, k=12, refit='never', checkpoint_dir=str(tmp_path / 'models'))

    def no_model(*args, **kwargs):
        raise AssertionError("model built for a reloaded checkpoint")
    monkeypatch.setattr(bayes_fitting, 'build_model', no_model)

    again = fit_bayes_gam(small_df, priors_from_config(INFORMATIVE), 'informative', other_k, verbose=False)

    assert again.reused
    assert again.config.k == config.k
    assert again.basis.n_coef == config.k - 1
    x = small_df['timestamp_num'].to_numpy()
    cs = conditional_smooth(again, np.linspace(x.min(), x.max(), 20))
    assert np.allclose(cs['mean'], conditional_smooth(fit, np.linspace(x.min(), x.max(), 20))['mean'])


def test_reuse_without_sidecar_rejects_other_k(tmp_path, sampled, small_df):
    _, config = sampled
    nc_path, _ = checkpoint_paths('informative', config.checkpoint_dir)
    (tmp_path / 'models').mkdir()
    shutil.copy(nc_path, tmp_path / 'models' / nc_path.name)
    other_k = replace(config, k=12, refit='never', checkpoint_dir=str(tmp_path / 'models'))

    with pytest.raises(ValueError, match="smooth coefficients"):
        fit_bayes_gam(small_df, priors_from_config(INFORMATIVE), 'informative', other_k, verbose=False)


def test_changed_priors_refit_on_change(tmp_path, sampled, small_df):
    _, config = sampled
    shutil.copytree(config.checkpoint_dir, tmp_path / 'models')
    on_change = replace(config, refit='on_change', checkpoint_dir=str(tmp_path / 'models'))

    unchanged = fit_bayes_gam(small_df, priors_from_config(INFORMATIVE), 'informative', on_change, verbose=False)
    assert unchanged.reused

    changed = {**INFORMATIVE, 'sigma': {'dist': 'HalfNormal', 'sigma': 2.0}}

    refit = fit_bayes_gam(small_df, priors_from_config(changed), 'informative', on_change, verbose=False)
    assert not refit.reused

    same = fit_bayes_gam(small_df, priors_from_config(changed), 'informative', on_change, verbose=False)
    assert same.reused


def test_same_seed_reproduces_posterior(tmp_path, sampled, small_df):
    fit, _ = sampled
    config = _small_config(tmp_path)
    other = fit_bayes_gam(small_df, priors_from_config(INFORMATIVE), 'informative', config, verbose=False)

    a = summarize_bayes(fit)
    b = summarize_bayes(other)
    tolerance = 4 * a['sd'] / np.sqrt(a['ess_bulk']) + 1e-8
    assert ((a['mean'] - b['mean']).abs() <= tolerance).all()


def test_posterior_summaries(sampled):
    fit, _ = sampled
    summary = summarize_bayes(fit)

    assert list(summary.index) == ['Intercept', 'b_s', 'sds_s', 'sigma']
    assert {'mean', 'sd', 'r_hat', 'ess_bulk'} <= set(summary.columns)

    diag = sampler_diagnostics(fit)
    assert diag['chains'] == 2 and diag['draws'] == 150
    assert diag['n_divergent'] >= 0


def test_conditional_smooth(sampled, small_df):
    fit, _ = sampled
    x = small_df['timestamp_num'].to_numpy()
    grid = np.linspace(x.min(), x.max(), 40)
    cs = conditional_smooth(fit, grid)

    assert cs['mean'].shape == (40,)
    assert cs['n_draws'] == 300
    assert np.all(cs['lower'] <= cs['mean']) and np.all(cs['mean'] <= cs['upper'])
    # The smooth follows the data
    assert abs(cs['mean'].mean() - small_df['weight'].mean()) < 0.5


def test_bayes_plots_written(tmp_path, sampled, small_df):
    fit, _ = sampled
    fig = plot_bayes_trace(fit, save_path=str(tmp_path / 'trace.png'))
    plt.close(fig)
    fig = plot_bayes_smooth(fit, small_df, save_path=str(tmp_path / 'smooth.png'))
    plt.close(fig)

    assert (tmp_path / 'trace.png').stat().st_size > 0
    assert (tmp_path / 'smooth.png').stat().st_size > 0
