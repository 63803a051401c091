"""
Smoke Test (Layer 1): Fast Environment Verification
====================================================
Run: python tests/smoke_test.py   (or via pytest)
Target: < 30 seconds

This test verifies:
1. Core dependencies can be imported
2. Project modules import
3. Config file can be loaded and turned into fit configurations
4. Synthetic data matches the loader's column layout
"""
import sys
import os

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

CONFIG_PATH = os.path.join(PROJECT_ROOT, "configs", "default_config.yaml")


def test_imports():
    """Test core dependency imports."""
    print("[1/4] Testing imports...")

    import numpy as np
    import scipy
    import pandas as pd
    import matplotlib
    import statsmodels
    import pygam
    import pymc as pm
    import arviz as az
    from omegaconf import OmegaConf

    print(f"      NumPy: {np.__version__}, SciPy: {scipy.__version__}, Pandas: {pd.__version__}")
    print(f"      PyMC: {pm.__version__}, ArviZ: {az.__version__}")
    print("      PASS: Import check complete")


def test_project_modules():
    """Test that every analysis module imports."""
    print("[2/4] Testing project modules...")

    from src import hive, exploratory, gam, bayes, utils, meta_logger

    for module in (hive, exploratory, gam, bayes):
        assert module.__all__, f"{module.__name__} exports nothing"
        for name in module.__all__:
            assert hasattr(module, name), f"{module.__name__}.{name} missing"
    print("      PASS: Project modules OK")


def test_config_loading():
    """Test configuration file loading."""
    print("[3/4] Testing config loading...")

    from src.utils import load_config, config_section
    from src.gam import GamConfig
    from src.bayes import BayesConfig, priors_from_config

    cfg = load_config(CONFIG_PATH, overrides=["gam.k=25"])
    assert cfg.gam.k == 25
    assert cfg.bayes.iterations == 1000
    assert cfg.bayes.chains == 4

    gam_config = GamConfig(**config_section(cfg, "gam"))
    assert gam_config.method == "REML" and gam_config.family == "scat" and gam_config.select

    bayes_settings = config_section(cfg, "bayes")
    for key in ("enabled", "fits", "informative_priors"):
        bayes_settings.pop(key)
    bayes_config = BayesConfig(**bayes_settings)
    assert bayes_config.warmup == 500

    names = [f["name"] for f in config_section(cfg, "bayes.fits")]
    assert len(names) == len(set(names)), "checkpoint names in config must be distinct"

    informative = priors_from_config(config_section(cfg, "bayes.informative_priors"))
    informative.validate(group_effects=True)

    print(f"      - seed: {cfg.repro.seed}")
    print(f"      - output_dir: {cfg.run.output_dir}")
    print("      PASS: Config loading OK")


def test_synthetic_layout():
    """Synthetic data carries every source column of the default config."""
    print("[4/4] Testing synthetic data layout...")

    from src.hive import make_synthetic_hive_data, COLUMN_MAP

    df = make_synthetic_hive_data(n_rows=50, seed=0)
    missing = [c for c in COLUMN_MAP if c not in df.columns]
    assert not missing, f"synthetic data lacks {missing}"
    print("      PASS: Layout OK")


def main():
    """Run all smoke tests."""
    print("=" * 60)
    print("SMOKE TEST (Layer 1): Hive Weight GAM Analysis")
    print("=" * 60)
    print(f"Project root: {PROJECT_ROOT}")
    print()

    tests = [
        ("Imports", test_imports),
        ("Project Modules", test_project_modules),
        ("Config Loading", test_config_loading),
        ("Synthetic Layout", test_synthetic_layout),
    ]

    results = []
    for name, test_func in tests:
        try:
            test_func()
            results.append((name, "PASS"))
        except Exception as e:
            print(f"      FAIL: {type(e).__name__}: {e}")
            results.append((name, "FAIL"))
        print()

    # Summary
    print("=" * 60)
    print("SUMMARY")
    print("=" * 60)

    all_passed = True
    for name, status in results:
        icon = "OK" if status == "PASS" else "XX"
        print(f"  [{icon}] {name}")
        if status == "FAIL":
            all_passed = False

    print()
    if all_passed:
        print("All tests passed!")
        return 0
    else:
        print("Some tests failed. Check output above.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
