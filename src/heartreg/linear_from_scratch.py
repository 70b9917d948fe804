"""
From-scratch preprocessing and linear regression for the heart-disease data.

This module avoids external ML frameworks so that every learned parameter
is a plain list or NumPy array that can be inspected and serialized. It
includes:

- Data utilities:
    * `train_test_split`: seeded per-row random holdout split.

- Preprocessing:
    * `OneHotEncoder`: frozen category -> indicator-column vocabularies.
    * `FeaturePipeline`: boolean coercion, one-hot encoding and
      concatenation into a fixed-order feature matrix.

- Model:
    * `CoordinateDescentRegressor`: L2-regularized least squares fit by
      cyclic coordinate descent on standardized columns.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from .config import (
    BOOL_COLS,
    CAT_COLS,
    CONCAT_ORDER,
    DEFAULT_L2,
    DEFAULT_MAX_ITER,
    DEFAULT_SEED,
    DEFAULT_TOL,
    OPTIONAL_CONCAT,
)
from .errors import EmptySplitError, SchemaMismatchError, TrainingError

logger = logging.getLogger(__name__)

# ---------------------------
# Data split
# ---------------------------

def train_test_split(
    df: pd.DataFrame,
    test_fraction: float = 0.2,
    seed: int = DEFAULT_SEED,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Split rows into train/test by an independent random draw per row.

    Args:
        df: Input dataset.
        test_fraction: Probability that a row lands in the test split.
        seed: Random seed for reproducibility.

    Returns:
        (train_df, test_df). Both keep the original index, are disjoint and
        together contain every input row exactly once.

    Notes:
        - The split is not stratified; ``len(test_df)`` is only approximately
          ``test_fraction * len(df)``.
        - Raises ``EmptySplitError`` when either side ends up without rows.
    """
    if not (0.0 < test_fraction < 1.0):
        raise ValueError("test_fraction must be in (0, 1).")

    rng = np.random.default_rng(seed)
    is_test = rng.random(len(df)) < test_fraction

    train_df = df.loc[~is_test].copy()
    test_df = df.loc[is_test].copy()
    if len(train_df) == 0 or len(test_df) == 0:
        raise EmptySplitError(
            f"Split of {len(df)} rows at test_fraction={test_fraction} left "
            f"{len(train_df)} train / {len(test_df)} test rows."
        )
    logger.info("Split %d rows into %d train / %d test (seed=%d)", len(df), len(train_df), len(test_df), seed)
    return train_df, test_df

# ---------------------------
# Preprocessing
# ---------------------------

class OneHotEncoder:
    """One-hot encoder with vocabularies frozen at fit time.

    Categories are indexed in order of first appearance in the fitting data.
    Missing values are never added to a vocabulary; at transform time both
    missing and unseen categories map to the all-zero vector.

    Attributes:
        vocab: Dict[column_name, List[category]]
    """
    def __init__(self) -> None:
        self.vocab: Dict[str, List[str]] = {}

    def fit(self, df: pd.DataFrame, cols: List[str]) -> "OneHotEncoder":
        """Learn the distinct categories of each column."""
        for col in cols:
            seen: List[str] = []
            known = set()
            for v in df[col].tolist():
                if _is_missing(v):
                    continue
                v = str(v)
                if v not in known:
                    known.add(v)
                    seen.append(v)
            self.vocab[col] = seen
        return self

    def transform_column(self, df: pd.DataFrame, col: str) -> np.ndarray:
        """Return the (n_rows, n_categories) indicator block for one column."""
        cats = self.vocab[col]
        index = {c: i for i, c in enumerate(cats)}
        block = np.zeros((len(df), len(cats)), dtype=float)
        for row, v in enumerate(df[col].tolist()):
            if _is_missing(v):
                continue
            j = index.get(str(v))
            if j is not None:
                block[row, j] = 1.0
        return block


def _is_missing(v: Any) -> bool:
    return v is None or (not isinstance(v, str) and pd.isna(v))


def _bool_to_float(s: pd.Series) -> np.ndarray:
    """Coerce a boolean column to 0.0/1.0; missing -> NaN."""
    return s.astype("boolean").astype("Float64").to_numpy(dtype=float, na_value=np.nan)


class FeaturePipeline:
    """Fixed sequence of column transforms producing the model's feature matrix.

    Steps (fit once on training data, then applied unchanged to any frame):
        1) boolean -> float coercion for `bool_cols`;
        2) one-hot encoding for `cat_cols` (all of them are fitted);
        3) concatenation in `concat_order`, plus the thal block when
           `include_thal` is set.

    The thal vocabulary is always learned; leaving it out of the vector by
    default keeps the feature vector of earlier trained models unchanged.
    """
    def __init__(
        self,
        include_thal: bool = False,
        bool_cols: Optional[List[str]] = None,
        cat_cols: Optional[List[str]] = None,
        concat_order: Optional[List[str]] = None,
    ) -> None:
        self.include_thal = include_thal
        self.bool_cols = list(bool_cols if bool_cols is not None else BOOL_COLS)
        self.cat_cols = list(cat_cols if cat_cols is not None else CAT_COLS)
        base = list(concat_order if concat_order is not None else CONCAT_ORDER)
        self.concat_order = base + (OPTIONAL_CONCAT if include_thal else [])
        self.encoder = OneHotEncoder()
        self.feature_names: List[str] = []
        self.fitted = False

    @property
    def input_columns(self) -> List[str]:
        """Raw fields a frame must provide to be transformed."""
        cols = list(self.concat_order)
        for c in self.bool_cols + self.cat_cols:
            if c not in cols:
                cols.append(c)
        return cols

    def _check_columns(self, df: pd.DataFrame) -> None:
        missing = [c for c in self.input_columns if c not in df.columns]
        if missing:
            raise SchemaMismatchError(
                f"Input is missing required fields: {missing}",
                expected=self.input_columns,
                actual=list(df.columns),
            )

    def fit(self, df: pd.DataFrame) -> "FeaturePipeline":
        """Learn category vocabularies and freeze the feature layout."""
        self._check_columns(df)
        self.encoder.fit(df, self.cat_cols)
        names: List[str] = []
        for col in self.concat_order:
            if col in self.cat_cols:
                names.extend(f"{col}={cat}" for cat in self.encoder.vocab[col])
            else:
                names.append(col)
        self.feature_names = names
        self.fitted = True
        return self

    def transform(self, df: pd.DataFrame) -> np.ndarray:
        """Build the (n_rows, n_features) float matrix for `df`."""
        if not self.fitted:
            raise RuntimeError("FeaturePipeline must be fitted before transform().")
        self._check_columns(df)

        blocks = []
        for col in self.concat_order:
            if col in self.cat_cols:
                blocks.append(self.encoder.transform_column(df, col))
            elif col in self.bool_cols:
                blocks.append(_bool_to_float(df[col]).reshape(-1, 1))
            else:
                blocks.append(df[col].astype(float).to_numpy().reshape(-1, 1))
        if not blocks:
            return np.zeros((len(df), 0), dtype=float)
        return np.hstack(blocks)

    def fit_transform(self, df: pd.DataFrame) -> np.ndarray:
        """Convenience: fit on `df` and return its feature matrix."""
        return self.fit(df).transform(df)

    def get_params(self) -> Dict[str, Any]:
        """Plain-data snapshot of the fitted pipeline (for serialization)."""
        return {
            "include_thal": self.include_thal,
            "bool_cols": list(self.bool_cols),
            "cat_cols": list(self.cat_cols),
            "concat_order": list(self.concat_order),
            "vocab": {k: list(v) for k, v in self.encoder.vocab.items()},
            "feature_names": list(self.feature_names),
        }

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "FeaturePipeline":
        """Rebuild a fitted pipeline from `get_params()` output."""
        pipe = cls(
            include_thal=bool(params["include_thal"]),
            bool_cols=params["bool_cols"],
            cat_cols=params["cat_cols"],
        )
        pipe.concat_order = list(params["concat_order"])
        pipe.encoder.vocab = {k: list(v) for k, v in params["vocab"].items()}
        pipe.feature_names = list(params["feature_names"])
        pipe.fitted = True
        return pipe

# ---------------------------
# Model
# ---------------------------

class CoordinateDescentRegressor:
    """Ridge regression fit by cyclic coordinate descent.

    Minimizes ``(1/2n) * ||y - Z w - b||^2 + (l2/2) * ||w||^2`` where ``Z`` is
    the standardized feature matrix. One iteration is a full sweep over all
    coordinates; the fit stops when the largest coefficient change of a
    sweep drops below ``tol`` (relative to the largest coefficient, floored
    at 1). Learned weights are mapped back to the original feature scale.

    Attributes:
        coef_: weights in original feature space, shape (n_features,)
        intercept_: bias term
        n_iter_: sweeps performed
        converged_: whether the tolerance was reached within `max_iter`
    """
    def __init__(self, l2: float = DEFAULT_L2, max_iter: int = DEFAULT_MAX_ITER, tol: float = DEFAULT_TOL) -> None:
        if l2 < 0:
            raise ValueError("l2 must be >= 0.")
        if max_iter < 1:
            raise ValueError("max_iter must be >= 1.")
        self.l2 = float(l2)
        self.max_iter = int(max_iter)
        self.tol = float(tol)
        self.coef_: Optional[np.ndarray] = None
        self.intercept_: float = 0.0
        self.n_iter_ = 0
        self.converged_ = False

    def fit(self, X: np.ndarray, y: np.ndarray) -> "CoordinateDescentRegressor":
        """Fit weights and intercept; drops rows with non-finite values."""
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float).ravel()
        if X.ndim != 2 or X.shape[0] != y.shape[0]:
            raise TrainingError(f"Shape mismatch: X {X.shape} vs y {y.shape}.")

        keep = np.isfinite(y) & np.all(np.isfinite(X), axis=1)
        dropped = int(keep.size - keep.sum())
        if dropped:
            logger.warning("Dropping %d of %d training rows with missing values", dropped, keep.size)
        X, y = X[keep], y[keep]
        n, p = X.shape
        if n == 0:
            raise TrainingError("No usable training rows (all rows have missing values).")

        # standardize; zero-variance columns stay at zero weight
        mean = X.mean(axis=0)
        std = X.std(axis=0)
        scale = np.where(std > 0, std, 1.0)
        Z = (X - mean) / scale
        col_sq = (Z ** 2).sum(axis=0) / n

        y_mean = float(y.mean())
        resid = y - y_mean
        w = np.zeros(p, dtype=float)

        self.converged_ = False
        for it in range(1, self.max_iter + 1):
            max_delta = 0.0
            for j in range(p):
                if col_sq[j] == 0.0:
                    continue
                zj = Z[:, j]
                rho = float(zj @ resid) / n + col_sq[j] * w[j]
                new_w = rho / (col_sq[j] + self.l2)
                delta = new_w - w[j]
                if delta != 0.0:
                    resid -= delta * zj
                    w[j] = new_w
                    max_delta = max(max_delta, abs(delta))
            self.n_iter_ = it
            if max_delta <= self.tol * max(1.0, float(np.max(np.abs(w))) if p else 1.0):
                self.converged_ = True
                break

        if self.converged_:
            logger.debug("Coordinate descent converged after %d sweeps", self.n_iter_)
        else:
            logger.warning(
                "Coordinate descent did not converge within %d iterations; using last iterate",
                self.max_iter,
            )

        coef = w / scale
        intercept = y_mean - float(mean @ coef)
        if not (np.all(np.isfinite(coef)) and np.isfinite(intercept)):
            raise TrainingError("Solver produced non-finite weights.")

        self.coef_ = coef
        self.intercept_ = intercept
        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        """Linear scores ``X @ coef_ + intercept_``."""
        if self.coef_ is None:
            raise RuntimeError("Model must be fitted before predict().")
        X = np.asarray(X, dtype=float)
        if X.ndim != 2 or X.shape[1] != self.coef_.shape[0]:
            raise SchemaMismatchError(
                f"Expected {self.coef_.shape[0]} features, got shape {X.shape}."
            )
        return X @ self.coef_ + self.intercept_
