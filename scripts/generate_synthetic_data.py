#!/usr/bin/env python3
"""
Write a synthetic hive-scale CSV in the layout the analysis expects.

Usage:
    python scripts/generate_synthetic_data.py --n_rows 5000 --output data/hive_weights.csv
"""

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.hive import make_synthetic_hive_data


def main():
    parser = argparse.ArgumentParser(description="Generate synthetic hive weight data")
    parser.add_argument("--n_rows", type=int, default=5000,
                        help="Number of readings (default: 5000)")
    parser.add_argument("--n_sites", type=int, default=12,
                        help="Number of apiary sites (default: 12)")
    parser.add_argument("--scales_per_site", type=int, default=3,
                        help="Scales per site (default: 3)")
    parser.add_argument("--seed", type=int, default=42,
                        help="Random seed (default: 42)")
    parser.add_argument("--output", type=str, default="data/hive_weights.csv",
                        help="Output CSV path (default: data/hive_weights.csv)")
    args = parser.parse_args()

    df = make_synthetic_hive_data(
        n_rows=args.n_rows,
        n_sites=args.n_sites,
        scales_per_site=args.scales_per_site,
        seed=args.seed,
    )

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output, index=False)
    print(f"[OK] Wrote {len(df):,} rows to {output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
