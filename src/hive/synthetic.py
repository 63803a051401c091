"""
Synthetic hive-scale data in the source CSV layout.

Used by the tests and by scripts/generate_synthetic_data.py when the field
data is not at hand.
"""

import numpy as np
import pandas as pd
from typing import Optional


def hive_signal(t_days: np.ndarray, season_days: float) -> np.ndarray:
    """Smooth colony-weight curve: spring build-up, summer flow, autumn decline."""
    u = t_days / season_days
    return 1.5 * np.sin(np.pi * u) + 0.6 * np.sin(3 * np.pi * u) - 0.8 * u


def make_synthetic_hive_data(n_rows: int = 1000,
                             n_sites: int = 12,
                             scales_per_site: int = 3,
                             start: str = '2020-04-01',
                             season_days: float = 180.0,
                             noise_df: float = 5.0,
                             noise_scale: float = 0.25,
                             constant: bool = False,
                             seed: Optional[int] = 42) -> pd.DataFrame:
    """
    Generate hive-scale readings with a smooth weight-vs-time signal.

    Args:
        n_rows: number of readings
        n_sites: number of apiary sites
        scales_per_site: scales nested in each site
        start: first calendar day of the season
        season_days: length of the season in days
        noise_df: degrees of freedom of the t-distributed noise
        noise_scale: scale of the noise
        constant: drop the time signal (flat weight + noise)
        seed: random seed

    Returns:
        DataFrame with source columns round_time, unix_time, scale_id,
        site_id, norm_weight, weight
    """
    rng = np.random.default_rng(seed)

    sites = [f'site_{i + 1:02d}' for i in range(n_sites)]
    scales = [(f'{site}_scale_{j + 1}', site) for site in sites for j in range(scales_per_site)]
    site_offset = dict(zip(sites, rng.normal(0.0, 0.3, size=n_sites)))
    scale_offset = {name: rng.normal(0.0, 0.1) for name, _ in scales}

    t0 = pd.Timestamp(start).timestamp()
    t_days = np.sort(rng.uniform(0.0, season_days, size=n_rows))
    unix_time = t0 + t_days * 86400.0

    picks = rng.integers(0, len(scales), size=n_rows)
    scale_ids = [scales[i][0] for i in picks]
    site_ids = [scales[i][1] for i in picks]

    signal = np.zeros(n_rows) if constant else hive_signal(t_days, season_days)
    offsets = np.array([site_offset[s] + scale_offset[c] for s, c in zip(site_ids, scale_ids)])
    norm_weight = signal + offsets + noise_scale * rng.standard_t(noise_df, size=n_rows)

    round_time = pd.to_datetime(unix_time, unit='s').round('h')

    return pd.DataFrame({
        'round_time': round_time.strftime('%Y-%m-%d %H:%M:%S'),
        'unix_time': unix_time,
        'scale_id': scale_ids,
        'site_id': site_ids,
        'norm_weight': norm_weight,
        'weight': 40.0 + 10.0 * norm_weight,
    })
