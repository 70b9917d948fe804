# src/heartreg/services/explain.py
"""
Which record fields drive the diagnosis score, and how.

`permutation_importance` shuffles one raw field at a time and reports how
much the RMSE against the known labels goes up. `partial_dependence`
sweeps a numeric field over a grid and reports the mean score at each
point, plus per-row curves (ICE) on request.

Both work on record fields rather than one-hot columns, so a categorical
field such as ``cp`` is shuffled as a whole. Only the permutation order
and the ICE row sample depend on the seed.
"""

from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from .artifacts import ModelBundle
from .metrics import compute_regression_metrics


def permutation_importance(
    bundle: ModelBundle,
    df: pd.DataFrame,
    y: np.ndarray,
    n_repeats: int = 5,
    random_seed: int = 42,
) -> Tuple[List[str], np.ndarray, float]:
    """
    Mean RMSE rise per input field after shuffling that field.

    A field the model ignores (``thal`` when it is not concatenated) scores
    exactly 0.

    Args
    ----
    bundle:
        Fitted bundle.
    df:
        Records to score; column order does not matter.
    y:
        Known diagnosis scores, one per row of `df`.
    n_repeats:
        Shuffles averaged per field; values below 1 mean one shuffle.
    random_seed:
        Seed for the shuffles.

    Returns
    -------
    tuple[list[str], np.ndarray, float]
        Field names in bundle order, their RMSE rises, and the RMSE of the
        unshuffled records.

    Raises
    ------
    ValueError
        On empty input or when `df` and `y` disagree in length.
    """
    if df is None or len(df) == 0:
        raise ValueError("Empty DataFrame.")
    if y is None or len(y) == 0:
        raise ValueError("Empty labels array.")
    if len(df) != len(y):
        raise ValueError("df and y must have the same number of rows.")
    if n_repeats <= 0:
        n_repeats = 1

    rng = np.random.default_rng(random_seed)

    X = bundle.align_columns(df).reset_index(drop=True)
    y = np.asarray(y, dtype=float).ravel()

    def rmse(frame: pd.DataFrame) -> float:
        return compute_regression_metrics(y, bundle.predict(frame)).rmse

    base_rmse = rmse(X)
    cols = list(X.columns)
    n = len(X)

    importances = []
    for col in cols:
        shuffled = X.copy()
        original = X[col].to_numpy()
        total = 0.0
        for _ in range(n_repeats):
            shuffled[col] = original[rng.permutation(n)]
            total += rmse(shuffled) - base_rmse
        importances.append(total / n_repeats)

    return cols, np.asarray(importances, dtype=float), float(base_rmse)


def partial_dependence(
    bundle: ModelBundle,
    df: pd.DataFrame,
    feature: str,
    grid: Optional[List[float]] = None,
    grid_size: int = 20,
    ice: bool = False,
    ice_count: int = 10,
    seed: int = 42,
) -> Dict[str, object]:
    """
    Average diagnosis score as one numeric field moves over a grid.

    Every other field keeps its observed value in each row. With
    ``ice=True`` the un-averaged curves of a random row sample are returned
    as well.

    Args
    ----
    bundle:
        Fitted bundle.
    df:
        Background records the score is averaged over.
    feature:
        Numeric field to move, e.g. "age" or "chol".
    grid:
        Values to try. Defaults to `grid_size` evenly spaced points from
        the 1st to the 99th percentile of the observed values.
    grid_size:
        Point count for the default grid (at least 2).
    ice:
        Whether to add per-row curves.
    ice_count:
        How many rows get a curve (at most ``len(df)``).
    seed:
        Seed for picking the ICE rows.

    Returns
    -------
    dict
        ``{"feature", "grid", "pdp"}`` and, with `ice`, an ``"ice"`` list of
        ``{"row_index", "curve"}`` entries.

    Raises
    ------
    ValueError
        On empty `df`, or when `feature` is unknown, boolean, categorical, or
        never observed.
    """
    if df is None or len(df) == 0:
        raise ValueError("Empty DataFrame.")

    X = bundle.align_columns(df).reset_index(drop=True)
    if feature not in X.columns:
        raise ValueError(f"Feature '{feature}' not found. Available: {list(X.columns)}")
    if feature in bundle.pipeline.cat_cols or feature in bundle.pipeline.bool_cols:
        raise ValueError(f"Feature '{feature}' is not numeric; PDP supports numeric fields only.")

    col = X[feature].astype(float).to_numpy()
    col = col[np.isfinite(col)]

    if grid is None or len(grid) == 0:
        if col.size == 0:
            raise ValueError(f"Feature '{feature}' has no observed values.")
        vmin, vmax = np.percentile(col, [1, 99])
        if vmin == vmax:
            # constant field
            vmin, vmax = float(vmin) - 1e-6, float(vmax) + 1e-6
        grid = list(np.linspace(float(vmin), float(vmax), int(max(grid_size, 2))))

    pdp_vals: List[float] = []
    X_tmp = X.copy()
    for g in grid:
        X_tmp[feature] = float(g)
        pdp_vals.append(float(np.nanmean(bundle.predict(X_tmp))))

    result: Dict[str, object] = {
        "feature": feature,
        "grid": [float(v) for v in grid],
        "pdp": pdp_vals,
    }

    if ice:
        rng = np.random.default_rng(seed)
        n = len(X)
        take = min(int(ice_count), n)
        idxs = rng.choice(n, size=take, replace=False)
        curves = []
        for i in idxs:
            row = X.iloc[[int(i)]].copy()
            curve = []
            for g in grid:
                row[feature] = float(g)
                curve.append(float(bundle.predict(row)[0]))
            curves.append({"row_index": int(i), "curve": curve})
        result["ice"] = curves

    return result
