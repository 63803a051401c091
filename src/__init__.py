# Hive Weight GAM Analysis - Core Source Code
"""
This package contains the core analysis modules:
- hive: Loading and validating hive-scale observations, synthetic data
- exploratory: Polynomial and automatic-smoother curve fits, figures 1-5
- gam: Gaussian-process basis, REML fitting with scaled-t errors, diagnostics
- bayes: Bayesian GAM by MCMC with checkpoint caching
- meta_logger: Run metadata logging
- utils: Common utilities
"""
