# Hive data module for colony weight analysis
"""
Loading and preparation of hive-scale weight observations.

Key components:
- data_loader: Read the scale CSV into the canonical Observation table
- synthetic: Synthetic readings in the source layout (tests, demos)
"""

from .data_loader import (
    load_hive_data, check_scale_nesting, summarize_hive_data,
    COLUMN_MAP, CANONICAL_COLUMNS,
)
from .synthetic import make_synthetic_hive_data

__all__ = [
    'load_hive_data',
    'check_scale_nesting',
    'summarize_hive_data',
    'make_synthetic_hive_data',
    'COLUMN_MAP',
    'CANONICAL_COLUMNS',
]
