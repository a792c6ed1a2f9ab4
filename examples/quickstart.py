"""
Conformal Models Quickstart Example
===================================

This example demonstrates the complete conformalmodels workflow:
1. Wrap a regressor and calibrate prediction intervals
2. Compare resampling methods
3. Wrap a classifier and build prediction sets
4. Validate coverage on test data

NOTE: This example uses synthetic data for demonstration.
Replace with your own data in production.
"""

import numpy as np
import pandas as pd
from sklearn.datasets import make_blobs
from sklearn.ensemble import RandomForestRegressor
from sklearn.linear_model import LogisticRegression

from conformalmodels import conformal_model

# Set random seed for reproducibility
rng = np.random.default_rng(42)

print("="*70)
print("Conformal Models Quickstart Example")
print("="*70)

# ===== 1. Prepare Data =====
print("\n[Step 1] Generating synthetic regression data...")

n_samples = 300
X = pd.DataFrame({
    'size': rng.uniform(50, 250, n_samples),
    'rooms': rng.integers(1, 7, n_samples),
    'age': rng.uniform(0, 60, n_samples),
})
# Noise grows with size, so a single global width is a compromise
y = (
    2.0 * X['size']
    + 15.0 * X['rooms']
    - 0.8 * X['age']
    + rng.normal(0, 0.1 * X['size'])
)

X_train, y_train = X.iloc[:200], y.iloc[:200]
X_test, y_test = X.iloc[200:], y.iloc[200:]
print(f"  Training rows: {len(X_train)}, test rows: {len(X_test)}")


# ===== 2. Split Conformal Intervals =====
print("\n" + "="*70)
print("[Step 2] Split Conformal Regression")
print("="*70)

regressor = conformal_model(
    RandomForestRegressor(n_estimators=100, random_state=42),
    coverage=0.9,
    method='split',
    verbose=True
)
regressor.fit(X_train, y_train)

intervals = regressor.predict_frame(X_test)
print("\nFirst five intervals:\n")
print(intervals.head().round(2).to_string())


# ===== 3. Compare Methods =====
print("\n" + "="*70)
print("[Step 3] Comparing Resampling Methods")
print("="*70 + "\n")

rows = []
for method in ['split', 'jackknife+', 'cv+', 'cv-minmax']:
    conf_model = conformal_model(
        RandomForestRegressor(n_estimators=50, random_state=42),
        coverage=0.9,
        method=method,
        n_jobs=-1
    )
    conf_model.fit(X_train, y_train)
    metrics = conf_model.validate_coverage(X_test, y_test, verbose=False)
    rows.append({
        'method': method,
        'coverage': metrics['coverage'],
        'mean_width': metrics['mean_width'],
        'valid': metrics['valid_coverage'],
    })

print(pd.DataFrame(rows).round(3).to_string(index=False))


# ===== 4. Classification Sets =====
print("\n" + "="*70)
print("[Step 4] Adaptive Prediction Sets")
print("="*70)

X_cls, y_cls = make_blobs(n_samples=600, centers=4, cluster_std=2.0, random_state=42)
labels = np.array(['north', 'south', 'east', 'west'])[y_cls]

classifier = conformal_model(
    LogisticRegression(max_iter=1000),
    coverage=0.9,
    method='adaptive_inductive'
)
classifier.fit(X_cls[:450], labels[:450])

sets = classifier.predict_frame(X_cls[450:])
print("\nFirst ten prediction sets:\n")
print(sets.head(10).to_string())

# Interpret results
print("\n" + "-"*70)
print("Interpretation:")
print("-"*70)
certain = (sets['set_size'] == 1).sum()
uncertain = (sets['set_size'] > 1).sum()
empty = (sets['set_size'] == 0).sum()

print(f"\n  ✓ {certain} points: Single label (confident)")
print(f"  ? {uncertain} points: Several labels (ambiguous region)")
print(f"  ⚠ {empty} points: Empty set (unlike any calibration point)")


# ===== 5. Validate Coverage =====
print("\n" + "="*70)
print("[Step 5] Validating Coverage on Test Data")
print("="*70)

classifier.validate_coverage(X_cls[450:], labels[450:])


# ===== Summary =====
print("\n" + "="*70)
print("✅ Quickstart Complete!")
print("="*70)
print("\nNext Steps:")
print("  1. Replace synthetic data with your own features and targets")
print("  2. Pick a method: 'split' is cheapest, 'jackknife+'/'cv+' use all data")
print("  3. Run scripts/validate_coverage.py to check coverage by simulation")
print("\n" + "="*70 + "\n")
