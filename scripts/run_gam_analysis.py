#!/usr/bin/env python3
"""
GAM Analysis of Hive Weight Time Series

This script runs the complete analysis workflow:
1. Load hive-scale observations
2. Exploratory plots (linear, cubic, degree-8 polynomial, automatic smoother)
3. Frequentist GAM fit (GP basis, REML, scaled-t, term selection)
4. Diagnostics (basis dimension, residuals, summary) and fitted smooth plot
5. Bayesian GAM fits by MCMC (default and informative priors)
6. Bayesian trace and conditional smooth plots
7. Report generation

Usage:
    python scripts/run_gam_analysis.py
    python scripts/run_gam_analysis.py --config configs/default_config.yaml gam.k=30 bayes.enabled=false
"""

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.utils import load_config, config_section, set_seed
from src.meta_logger import save_run_metadata
from src.hive import load_hive_data, summarize_hive_data
from src.exploratory import plot_exploratory_figures
from src.gam import (
    GamConfig, fit_gam, smoothing_summary, print_gam_report,
    plot_gam_smooth, plot_gam_check,
)
from src.bayes import (
    BayesConfig, default_priors, priors_from_config, run_bayes_fits,
    summarize_bayes, sampler_diagnostics, plot_bayes_trace, plot_bayes_smooth,
)


def build_prior_specs(cfg, df):
    """(checkpoint name, PriorSpec) for every configured Bayesian fit."""
    informative = config_section(cfg, 'bayes.informative_priors')
    specs = []
    for entry in config_section(cfg, 'bayes.fits'):
        kind = entry['priors']
        if kind == 'default':
            priors = default_priors(df['weight'].to_numpy())
        elif kind == 'informative':
            priors = priors_from_config(informative, label='informative')
        else:
            raise ValueError(f"Unknown prior set '{kind}' for fit '{entry['name']}'")
        specs.append((entry['name'], priors))
    return specs


def main():
    parser = argparse.ArgumentParser(description="GAM analysis of hive weight time series")
    parser.add_argument("--config", type=str, default=str(PROJECT_ROOT / "configs" / "default_config.yaml"),
                        help="Path to YAML config (default: configs/default_config.yaml)")
    parser.add_argument("overrides", nargs="*",
                        help="Config overrides in dotlist form, e.g. gam.k=30")
    args = parser.parse_args()

    cfg = load_config(args.config, args.overrides)
    set_seed(cfg.repro.seed)

    print("=" * 60)
    print("GAM Analysis of Hive Weight Time Series")
    print("=" * 60)
    print(f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print()

    results_dir = Path(cfg.run.output_dir)
    results_dir.mkdir(parents=True, exist_ok=True)

    # ========== Step 1: Load Data ==========
    print("\n" + "=" * 40)
    print("Step 1: Load Data")
    print("=" * 40)

    df = load_hive_data(cfg.data.path, column_map=config_section(cfg, 'data.columns'))
    data_summary = summarize_hive_data(df)
    print(f"  Time span: {data_summary['time_start']} -> {data_summary['time_end']}")
    print(f"  Weight: mean={data_summary['weight_mean']:.3f}, sd={data_summary['weight_std']:.3f}")

    save_run_metadata(cfg, str(results_dir), extra={'data': data_summary})

    # ========== Step 2: Exploratory Plots ==========
    print("\n" + "=" * 40)
    print("Step 2: Exploratory Plots")
    print("=" * 40)

    exploratory = plot_exploratory_figures(
        df, str(results_dir),
        degrees=tuple(cfg.exploratory.degrees),
        n_splines=cfg.exploratory.n_splines,
    )
    for d, poly in exploratory['polynomial'].items():
        print(f"  degree {d}: R^2={poly['r_squared']:.3f}")
    print(f"  automatic smoother: lam={exploratory['smoother']['lam']:.3g}")

    # ========== Step 3: GAM Fitting ==========
    print("\n" + "=" * 40)
    print("Step 3: GAM Fitting (REML)")
    print("=" * 40)

    gam_config = GamConfig(**config_section(cfg, 'gam'))
    gam = fit_gam(df, config=gam_config, verbose=True)

    # ========== Step 4: Diagnostics ==========
    print("\n" + "=" * 40)
    print("Step 4: Diagnostics")
    print("=" * 40)
    print()

    report = print_gam_report(gam, n_rep=cfg.diagnostics.n_rep, seed=cfg.repro.seed)
    with open(results_dir / 'gam_summary.txt', 'w') as f:
        f.write(report['text'] + '\n')
    print(f"\n[OK] Saved: {results_dir / 'gam_summary.txt'}")

    fig = plot_gam_check(gam, save_path=str(results_dir / 'gam_check.png'))
    plt.close(fig)
    print(f"[OK] Saved: {results_dir / 'gam_check.png'}")

    fig = plot_gam_smooth(gam, df, save_path=str(results_dir / 'fig6.png'))
    plt.close(fig)
    print(f"[OK] Saved: {results_dir / 'fig6.png'}")

    # ========== Step 5: Bayesian GAM ==========
    bayes_report = {}
    if cfg.bayes.enabled:
        print("\n" + "=" * 40)
        print("Step 5: Bayesian GAM (MCMC)")
        print("=" * 40)

        bayes_settings = config_section(cfg, 'bayes')
        for key in ('enabled', 'fits', 'informative_priors'):
            bayes_settings.pop(key, None)
        bayes_config = BayesConfig(**bayes_settings)

        specs = build_prior_specs(cfg, df)
        for name, priors in specs:
            print(f"\n  {name} ({priors.label} priors):")
            for line in priors.describe().splitlines():
                print(f"    {line}")
        print()

        bayes_fits = run_bayes_fits(df, specs, bayes_config)

        # ========== Step 6: Bayesian Plots ==========
        print("\n" + "=" * 40)
        print("Step 6: Bayesian Plots")
        print("=" * 40)

        for name, bfit in bayes_fits.items():
            print(f"\nPosterior summary: {name}")
            summary = summarize_bayes(bfit)
            print(summary.to_string())
            diag = sampler_diagnostics(bfit)
            print(f"  divergences={diag['n_divergent']}, max R-hat={diag['max_r_hat']:.3f}, "
                  f"min bulk ESS={diag['min_ess_bulk']:.0f}")

            fig = plot_bayes_trace(bfit, save_path=str(results_dir / f'bayes_trace_{name}.png'))
            plt.close(fig)
            print(f"[OK] Saved: {results_dir / f'bayes_trace_{name}.png'}")

            fig = plot_bayes_smooth(bfit, df, save_path=str(results_dir / f'bayes_smooth_{name}.png'))
            plt.close(fig)
            print(f"[OK] Saved: {results_dir / f'bayes_smooth_{name}.png'}")

            bayes_report[name] = {
                'priors': bfit.priors.to_dict(),
                'checkpoint': str(bfit.checkpoint_path),
                'reused_checkpoint': bfit.reused,
                'sampler': diag,
                'summary': summary.reset_index().to_dict('records'),
            }

    # ========== Step 7: Report Generation ==========
    print("\n" + "=" * 40)
    print("Step 7: Report Generation")
    print("=" * 40)

    analysis_report = {
        'timestamp': datetime.now().isoformat(),
        'data_summary': data_summary,
        'exploratory': {
            'r_squared': {str(d): p['r_squared'] for d, p in exploratory['polynomial'].items()},
            'smoother_lam': exploratory['smoother']['lam'],
        },
        'gam': smoothing_summary(gam),
        'gam_diagnostics': {
            'k_check': report['k_check'],
            'residuals': report['residuals'],
            'smooth': report['summary']['smooth'],
        },
        'bayes': bayes_report,
    }

    with open(results_dir / 'analysis_report.json', 'w') as f:
        json.dump(analysis_report, f, indent=2, default=str)
    print(f"[OK] Saved: {results_dir / 'analysis_report.json'}")

    # Final summary
    print("\n" + "=" * 60)
    print("GAM Analysis Complete!")
    print("=" * 60)
    print(f"\nResults directory: {results_dir}")
    print(f"  - Figures: fig1.png .. fig6.png, gam_check.png")
    print(f"  - Summary: gam_summary.txt, analysis_report.json")
    if bayes_report:
        print(f"  - Checkpoints: {cfg.bayes.checkpoint_dir}")
    print(f"\nFinished: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
