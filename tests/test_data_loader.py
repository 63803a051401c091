"""
Tests for hive data loading.
"""
import sys
import os

import numpy as np
import pandas as pd
import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from src.hive import (
    load_hive_data, check_scale_nesting, summarize_hive_data,
    make_synthetic_hive_data, CANONICAL_COLUMNS,
)


@pytest.fixture
def hive_csv(tmp_path):
    path = tmp_path / "hive.csv"
    make_synthetic_hive_data(n_rows=400, seed=3).to_csv(path, index=False)
    return path


def test_load_renames_and_types(hive_csv):
    df = load_hive_data(hive_csv, verbose=False)

    assert list(df.columns) == CANONICAL_COLUMNS
    assert isinstance(df['scale'].dtype, pd.CategoricalDtype)
    assert isinstance(df['site'].dtype, pd.CategoricalDtype)
    assert pd.api.types.is_datetime64_any_dtype(df['timestamp'])
    assert df['timestamp_num'].dtype == np.float64
    assert df['timestamp_num'].is_monotonic_increasing


def test_load_is_idempotent(hive_csv):
    a = load_hive_data(hive_csv, verbose=False)
    b = load_hive_data(hive_csv, verbose=False)
    assert a.equals(b)


def test_scales_nested_in_sites(hive_csv):
    df = load_hive_data(hive_csv, verbose=False)
    assert check_scale_nesting(df) == []
    assert (df.groupby('scale', observed=True)['site'].nunique() == 1).all()


def test_missing_column_fails_fast(tmp_path):
    path = tmp_path / "broken.csv"
    make_synthetic_hive_data(n_rows=50, seed=1).drop(columns=['site_id']).to_csv(path, index=False)

    with pytest.raises(ValueError, match="site_id"):
        load_hive_data(path, verbose=False)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_hive_data(tmp_path / "nope.csv", verbose=False)


def test_broken_nesting_rejected(tmp_path):
    raw = make_synthetic_hive_data(n_rows=200, seed=5)
    moved = raw.iloc[[0]].copy()
    moved['site_id'] = next(s for s in raw['site_id'].unique() if s != raw.loc[0, 'site_id'])
    raw = pd.concat([raw, moved], ignore_index=True)

    path = tmp_path / "bad_nesting.csv"
    raw.to_csv(path, index=False)
    with pytest.raises(ValueError, match="more than one site"):
        load_hive_data(path, verbose=False)


def test_non_monotone_timestamp_rejected(tmp_path):
    raw = make_synthetic_hive_data(n_rows=200, seed=6)
    # Calendar time of one reading disagrees with its unix-time position
    raw.loc[10, 'round_time'] = '2030-01-01 00:00:00'

    path = tmp_path / "bad_time.csv"
    raw.to_csv(path, index=False)
    with pytest.raises(ValueError, match="monotone"):
        load_hive_data(path, verbose=False)


def test_custom_column_map(tmp_path):
    raw = make_synthetic_hive_data(n_rows=60, seed=2).rename(columns={'norm_weight': 'w_norm'})
    path = tmp_path / "renamed.csv"
    raw.to_csv(path, index=False)

    column_map = {
        'round_time': 'timestamp',
        'unix_time': 'timestamp_num',
        'scale_id': 'scale',
        'site_id': 'site',
        'w_norm': 'weight',
        'weight': 'weight_raw',
    }
    df = load_hive_data(path, column_map=column_map, verbose=False)
    assert np.allclose(np.sort(df['weight'].to_numpy()), np.sort(raw['w_norm'].to_numpy()))


def test_incomplete_column_map_rejected(hive_csv):
    with pytest.raises(ValueError, match="weight_raw"):
        load_hive_data(hive_csv, column_map={'round_time': 'timestamp', 'unix_time': 'timestamp_num',
                                             'scale_id': 'scale', 'site_id': 'site',
                                             'norm_weight': 'weight'}, verbose=False)


def test_summary_counts(tmp_path):
    path = tmp_path / "hive.csv"
    make_synthetic_hive_data(n_rows=1000, n_sites=12, scales_per_site=3, seed=7).to_csv(path, index=False)
    summary = summarize_hive_data(load_hive_data(path, verbose=False))

    assert summary['n_rows'] == 1000
    assert summary['n_sites'] == 12
    assert summary['n_scales'] == 36
    assert all(n == 3 for n in summary['scales_per_site'].values())
