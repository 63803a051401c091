# Bayesian GAM module
"""
Bayesian fitting of the weight-over-time smooth by MCMC (PyMC).

Key components:
- priors: Fully specified prior sets (default and informative)
- fitting: Model construction, sampling with checkpoint caching, posterior summaries
- visualization: Trace plots and the conditional smooth
"""

from .priors import Prior, PriorSpec, default_priors, priors_from_config, prior_from_dict
from .fitting import (
    BayesConfig, BayesFit, build_model, fit_bayes_gam, run_bayes_fits,
    conditional_smooth, summarize_bayes, sampler_diagnostics, checkpoint_paths,
)
from .visualization import plot_bayes_trace, plot_bayes_smooth

__all__ = [
    'Prior',
    'PriorSpec',
    'default_priors',
    'priors_from_config',
    'prior_from_dict',
    'BayesConfig',
    'BayesFit',
    'build_model',
    'fit_bayes_gam',
    'run_bayes_fits',
    'conditional_smooth',
    'summarize_bayes',
    'sampler_diagnostics',
    'checkpoint_paths',
    'plot_bayes_trace',
    'plot_bayes_smooth',
]
