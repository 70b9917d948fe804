"""
Regression metrics for held-out evaluation.

This module implements:
- `compute_regression_metrics`: MAE, RMSE, MSE and R² from paired
  predictions and labels.
- `evaluate`: scores a labeled DataFrame with a `ModelBundle`.

Notes
-----
- Pairs where either the prediction or the label is not finite are left
  out, matching how training skips rows with missing values.
- R² is reported as NaN (not an error) when the labels have zero variance.
"""

import math

import numpy as np
import pandas as pd

from ..config import LABEL_COL
from ..errors import TrainingError
from ..schemas import RegressionMetrics


def compute_regression_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> RegressionMetrics:
    """Compute MAE, RMSE, MSE and R² over paired arrays.

    Args
    ----
    y_true:
        Ground-truth labels, shape (N,) or (N, 1).
    y_pred:
        Model scores aligned with `y_true`.

    Returns
    -------
    RegressionMetrics
        Frozen record with ``mae``, ``rmse``, ``mse``, ``r2`` and ``n``.

    Raises
    ------
    ValueError
        If the arrays differ in length or no finite pair remains.
    """
    y_true = np.asarray(y_true, dtype=float).ravel()
    y_pred = np.asarray(y_pred, dtype=float).ravel()
    if y_true.shape != y_pred.shape:
        raise ValueError(f"Length mismatch: {y_true.size} labels vs {y_pred.size} predictions.")

    ok = np.isfinite(y_true) & np.isfinite(y_pred)
    y_true, y_pred = y_true[ok], y_pred[ok]
    if y_true.size == 0:
        raise ValueError("No finite (label, prediction) pairs to evaluate.")

    err = y_pred - y_true
    mae = float(np.mean(np.abs(err)))
    mse = float(np.mean(err ** 2))
    rmse = math.sqrt(mse)

    ss_res = float(np.sum(err ** 2))
    ss_tot = float(np.sum((y_true - y_true.mean()) ** 2))
    r2 = 1.0 - ss_res / ss_tot if ss_tot > 0 else math.nan

    return RegressionMetrics(mae=mae, rmse=rmse, mse=mse, r2=r2, n=int(y_true.size))


def evaluate(bundle, df: pd.DataFrame, label_col: str = LABEL_COL) -> RegressionMetrics:
    """Predict on a labeled frame and score against its label column.

    Raises ``TrainingError`` when no row yields a finite label and
    prediction, since the fitted model then has nothing to be judged on.
    """
    if label_col not in df.columns:
        raise ValueError(f"Label column '{label_col}' not found.")
    y_true = df[label_col].to_numpy(dtype=float, na_value=np.nan)
    y_pred = np.asarray(bundle.predict(df), dtype=float)
    scored = int(np.sum(np.isfinite(y_true) & np.isfinite(y_pred)))
    if scored == 0:
        raise TrainingError(
            f"No held-out row could be scored: all {len(df)} rows have a missing feature or label."
        )
    return compute_regression_metrics(y_true, y_pred)
