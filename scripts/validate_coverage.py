"""
Validate Conformal Coverage by Simulation

This script repeatedly draws synthetic regression and classification data,
fits every available conformal method, and compares the average empirical
coverage and region size against the target coverage.

Usage:
    python scripts/validate_coverage.py
    python scripts/validate_coverage.py --trials 200 --coverage 0.8

Generates:
    - results/tables/coverage_regression.csv
    - results/tables/coverage_classification.csv
"""

import sys
import argparse
from pathlib import Path
from datetime import datetime

import numpy as np
import pandas as pd
from sklearn.datasets import make_blobs
from sklearn.linear_model import LinearRegression, LogisticRegression

# Add package root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from conformalmodels import ConformalClassifier, ConformalRegressor
from conformalmodels.evaluation import compute_region_metrics

REGRESSION_METHODS = [
    'split', 'jackknife', 'jackknife+', 'jackknife-minmax',
    'cv', 'cv+', 'cv-minmax',
]
# Symmetric around the full-data model, no finite-sample guarantee
UNGUARANTEED_METHODS = {'jackknife', 'cv'}
CLASSIFICATION_HEURISTICS = ['simple', 'adaptive']


def simulate_regression(
    method: str,
    n_trials: int,
    n_train: int,
    n_test: int,
    coverage: float,
    n_jobs: int = None
) -> dict:
    """Average coverage and width of one regression method over many draws."""
    coverages, widths = [], []

    for trial in range(n_trials):
        rng = np.random.default_rng(trial)
        X = rng.normal(size=(n_train + n_test, 3))
        # Heavy-tailed noise makes the guarantee non-trivial
        y = X @ np.array([1.5, -2.0, 0.5]) + rng.standard_t(df=3, size=len(X))

        conf_model = ConformalRegressor(
            LinearRegression(),
            coverage=coverage,
            method=method,
            random_seed=trial,
            n_jobs=n_jobs
        )
        conf_model.fit(X[:n_train], y[:n_train])
        metrics = compute_region_metrics(
            conf_model.predict(X[n_train:]), y[n_train:]
        )
        coverages.append(metrics['coverage'])
        widths.append(metrics['mean_width'])

    return {
        'method': method,
        'coverage': np.mean(coverages),
        'coverage_std': np.std(coverages),
        'mean_width': np.mean(widths),
    }


def simulate_classification(
    heuristic: str,
    n_trials: int,
    n_train: int,
    n_test: int,
    coverage: float
) -> dict:
    """Average coverage and set size of one classification score over many draws."""
    coverages, sizes, empty = [], [], []

    for trial in range(n_trials):
        X, y = make_blobs(
            n_samples=n_train + n_test, centers=4, cluster_std=3.0,
            random_state=trial
        )
        conf_model = ConformalClassifier(
            LogisticRegression(max_iter=1000),
            coverage=coverage,
            heuristic=heuristic,
            random_seed=trial
        )
        conf_model.fit(X[:n_train], y[:n_train])
        metrics = compute_region_metrics(
            conf_model.predict(X[n_train:]), y[n_train:]
        )
        coverages.append(metrics['coverage'])
        sizes.append(metrics['avg_size'])
        empty.append(metrics['empty_fraction'])

    return {
        'heuristic': heuristic,
        'coverage': np.mean(coverages),
        'coverage_std': np.std(coverages),
        'avg_size': np.mean(sizes),
        'empty_fraction': np.mean(empty),
    }


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(
        description="Validate conformal coverage by Monte Carlo simulation"
    )
    parser.add_argument(
        '--trials',
        type=int,
        default=100,
        help='Number of simulated datasets per method (default: 100)'
    )
    parser.add_argument(
        '--coverage',
        type=float,
        default=0.9,
        help='Target coverage in (0,1) (default: 0.9)'
    )
    parser.add_argument(
        '--n-train',
        type=int,
        default=100,
        help='Training rows per dataset (default: 100)'
    )
    parser.add_argument(
        '--n-test',
        type=int,
        default=200,
        help='Test rows per dataset (default: 200)'
    )
    parser.add_argument(
        '--n-jobs',
        type=int,
        default=None,
        help='Parallel jobs for the resampled fits (default: sequential)'
    )
    parser.add_argument(
        '--output-dir',
        type=Path,
        default=Path(__file__).parent.parent / 'results' / 'tables',
        help='Directory for the CSV tables'
    )
    args = parser.parse_args()

    start_time = datetime.now()
    print(f"{'='*80}")
    print("CONFORMAL COVERAGE SIMULATION")
    print(f"{'='*80}")
    print(f"Trials: {args.trials}, target coverage: {args.coverage:.2f}")
    print(f"Rows per trial: {args.n_train} train / {args.n_test} test")
    print(f"Start time: {pd.Timestamp.now().strftime('%Y-%m-%d %H:%M:%S')}\n")

    # ===== Regression =====
    print(f"{'='*80}")
    print("[Step 1/2] Regression methods...")
    print(f"{'='*80}\n")

    regression_rows = []
    for method in REGRESSION_METHODS:
        print(f"  {method}...")
        regression_rows.append(simulate_regression(
            method, args.trials, args.n_train, args.n_test,
            args.coverage, args.n_jobs
        ))
    regression = pd.DataFrame(regression_rows)

    print()
    print(regression.round(4).to_string(index=False))

    # ===== Classification =====
    print(f"\n{'='*80}")
    print("[Step 2/2] Classification scores...")
    print(f"{'='*80}\n")

    classification_rows = []
    for heuristic in CLASSIFICATION_HEURISTICS:
        print(f"  {heuristic}...")
        classification_rows.append(simulate_classification(
            heuristic, args.trials, args.n_train, args.n_test, args.coverage
        ))
    classification = pd.DataFrame(classification_rows)

    print()
    print(classification.round(4).to_string(index=False))

    # ===== Save =====
    args.output_dir.mkdir(parents=True, exist_ok=True)
    regression.to_csv(args.output_dir / 'coverage_regression.csv', index=False)
    classification.to_csv(args.output_dir / 'coverage_classification.csv', index=False)
    print(f"\n✓ Saved tables to {args.output_dir}")

    # Monte Carlo standard error of the mean coverage
    tolerance = 3 * np.sqrt(args.coverage * (1 - args.coverage) / (args.trials * args.n_test))
    failed = [
        row['method'] for row in regression_rows
        if row['method'] not in UNGUARANTEED_METHODS
        and row['coverage'] < args.coverage - tolerance
    ] + [
        row['heuristic'] for row in classification_rows
        if row['coverage'] < args.coverage - tolerance
    ]

    elapsed = (datetime.now() - start_time).total_seconds()
    print(f"\n{'='*80}")
    print("SIMULATION COMPLETE")
    print(f"{'='*80}")
    print(f"Elapsed time: {elapsed:.1f} seconds")
    print(f"End time: {pd.Timestamp.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"{'='*80}")

    if failed:
        print(f"\n⚠ WARNING: Under-coverage for {', '.join(failed)}")
        print("These methods carry a finite-sample guarantee and should not fail.")
        return 1

    print("\n✅ All guaranteed methods reached the target coverage.")
    print("   (jackknife and cv are reported but not checked)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
