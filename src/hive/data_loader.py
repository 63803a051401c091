"""
Data loading for hive-scale weight observations.

Key functions:
- load_hive_data: Read the scale CSV, rename to canonical columns, coerce types
- check_scale_nesting: Scales that appear under more than one site
- summarize_hive_data: Counts and ranges for the run report
"""

import numpy as np
import pandas as pd
from pathlib import Path
from typing import Dict, List, Optional, Union


# Source column -> canonical column
COLUMN_MAP = {
    'round_time': 'timestamp',
    'unix_time': 'timestamp_num',
    'scale_id': 'scale',
    'site_id': 'site',
    'norm_weight': 'weight',
    'weight': 'weight_raw',
}

CANONICAL_COLUMNS = ['timestamp', 'timestamp_num', 'scale', 'site', 'weight', 'weight_raw']
CATEGORICAL_COLUMNS = ['scale', 'site']
NUMERIC_COLUMNS = ['timestamp_num', 'weight', 'weight_raw']


def load_hive_data(path: Union[str, Path],
                   column_map: Optional[Dict[str, str]] = None,
                   verbose: bool = True) -> pd.DataFrame:
    """
    Load hive-scale observations from a delimited file.

    Fails before returning anything if the source columns are missing or the
    table breaks the scale-within-site nesting.

    Args:
        path: CSV file path
        column_map: source column -> canonical column (default COLUMN_MAP)
        verbose: print a one-line load report

    Returns:
        DataFrame with columns CANONICAL_COLUMNS, sorted by timestamp_num,
        scale/site as categoricals
    """
    if column_map is None:
        column_map = COLUMN_MAP
    column_map = dict(column_map)

    unknown = sorted(set(column_map.values()) - set(CANONICAL_COLUMNS))
    if unknown:
        raise ValueError(f"column_map targets unknown canonical columns: {unknown}")
    unmapped = [c for c in CANONICAL_COLUMNS if c not in column_map.values()]
    if unmapped:
        raise ValueError(f"column_map does not provide canonical columns: {unmapped}")

    # Header only, so a bad layout is rejected before the full read
    header = pd.read_csv(path, nrows=0).columns
    missing = [c for c in column_map if c not in header]
    if missing:
        raise ValueError(
            f"{path}: missing required columns {missing} "
            f"(found {list(header)})"
        )

    df = pd.read_csv(path, usecols=list(column_map))
    df = df.rename(columns=column_map)[CANONICAL_COLUMNS]

    df['timestamp'] = pd.to_datetime(df['timestamp'])
    for col in NUMERIC_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors='raise').astype(float)
    for col in CATEGORICAL_COLUMNS:
        df[col] = df[col].astype(str).astype('category')

    df = df.sort_values('timestamp_num', kind='mergesort').reset_index(drop=True)

    bad_scales = check_scale_nesting(df)
    if bad_scales:
        raise ValueError(f"Scales assigned to more than one site: {bad_scales[:10]}")

    if not df['timestamp'].is_monotonic_increasing:
        raise ValueError("timestamp is not monotone in timestamp_num")

    if verbose:
        print(f"[OK] Data loaded: {len(df):,} rows, "
              f"{df['scale'].nunique()} scales, {df['site'].nunique()} sites")

    return df


def check_scale_nesting(df: pd.DataFrame) -> List[str]:
    """Return scale identifiers that map to more than one site."""
    sites_per_scale = df.groupby('scale', observed=True)['site'].nunique()
    return sorted(str(s) for s in sites_per_scale[sites_per_scale > 1].index)


def summarize_hive_data(df: pd.DataFrame) -> Dict:
    """Counts, time span and weight summary of an Observation table."""
    weight = df['weight'].to_numpy()
    return {
        'n_rows': int(len(df)),
        'n_scales': int(df['scale'].nunique()),
        'n_sites': int(df['site'].nunique()),
        'scales_per_site': {
            str(site): int(n)
            for site, n in df.groupby('site', observed=True)['scale'].nunique().items()
        },
        'time_start': str(df['timestamp'].min()),
        'time_end': str(df['timestamp'].max()),
        'weight_mean': float(np.mean(weight)),
        'weight_std': float(np.std(weight, ddof=1)) if len(weight) > 1 else float('nan'),
        'weight_min': float(np.min(weight)),
        'weight_max': float(np.max(weight)),
    }
