"""
Model bundle: fitting, persistence and inference.

This module is responsible for:
- Fitting the feature pipeline and regressor on a training frame
  (``fit_bundle``).
- Writing the fitted bundle to a single file atomically and reading it back
  (``save_bundle`` / ``load_bundle``).
- Providing a ``ModelBundle`` wrapper that exposes a consistent interface to
  the CLI/API/service layers:
    * ``align_columns(df) -> pd.DataFrame``
    * ``predict(df) -> np.ndarray``
    * ``predict_one(record) -> float``

Design notes
------------
- The artifact is a **pickle** of a plain dict (lists, floats, strings);
  no project classes are pickled, so the file does not depend on import
  paths. The dict carries ``format`` and ``version`` keys and is rejected
  when they do not match.
- Writes go to a temporary file in the target directory that is then
  ``os.replace``d over the destination.

Artifact layout (version 1)
---------------------------
    {
      "format": "heartreg-model",
      "version": 1,
      "schema": [...field names...],
      "label_col": "num",
      "pipeline": {...FeaturePipeline.get_params()...},
      "weights": [...], "intercept": float,
      "trainer": {"l2": ..., "max_iter": ..., "tol": ..., "n_iter": ..., "converged": ...},
    }
"""

import logging
import os
import pickle
import tempfile
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import numpy as np
import pandas as pd

from ..config import DEFAULT_L2, DEFAULT_MAX_ITER, DEFAULT_TOL, LABEL_COL, SCHEMA_FIELDS
from ..dataset import records_to_frame
from ..errors import ArtifactError, SchemaMismatchError
from ..linear_from_scratch import CoordinateDescentRegressor, FeaturePipeline

logger = logging.getLogger(__name__)

ARTIFACT_FORMAT = "heartreg-model"
ARTIFACT_VERSION = 1


class ModelBundle:
    """Container for the fitted feature pipeline and regressor.

    Attributes
    ----------
    pipeline : FeaturePipeline
        Fitted transforms with frozen category vocabularies.
    model : CoordinateDescentRegressor
        Fitted linear model operating on ``pipeline`` output.
    schema : list[str]
        Record fields the model was trained against.
    label_col : str
        Name of the diagnosis label field.
    source : str
        Where the bundle came from: "memory" after fitting, "pickle" after
        loading.
    """
    def __init__(
        self,
        pipeline: FeaturePipeline,
        model: CoordinateDescentRegressor,
        schema=None,
        label_col: str = LABEL_COL,
        source: str = "memory",
    ) -> None:
        self.pipeline = pipeline
        self.model = model
        self.schema = list(schema if schema is not None else SCHEMA_FIELDS)
        self.label_col = label_col
        self.source = source

    @property
    def feature_names(self):
        return list(self.pipeline.feature_names)

    @property
    def input_columns(self):
        return self.pipeline.input_columns

    def align_columns(self, df: pd.DataFrame) -> pd.DataFrame:
        """Return the input fields of `df` in pipeline order.

        Unlike the label, every input field is required; a missing one
        raises ``SchemaMismatchError`` naming all absent fields.
        """
        missing = [c for c in self.input_columns if c not in df.columns]
        if missing:
            raise SchemaMismatchError(
                f"Input is missing required fields: {missing}",
                expected=self.input_columns,
                actual=list(df.columns),
            )
        return df[self.input_columns]

    def predict(self, df: pd.DataFrame) -> np.ndarray:
        """Score every row of `df`; returns a float array of shape (N,)."""
        X = self.pipeline.transform(self.align_columns(df))
        return self.model.predict(X)

    def predict_one(self, record: Union[Mapping[str, Any], Any]) -> float:
        """Score a single record (mapping or pydantic model); label optional."""
        if hasattr(record, "model_dump"):
            record = record.model_dump()
        df = records_to_frame([record])
        return float(self.predict(df)[0])

    def to_state(self) -> Dict[str, Any]:
        """Plain-data form written to disk."""
        return {
            "format": ARTIFACT_FORMAT,
            "version": ARTIFACT_VERSION,
            "schema": list(self.schema),
            "label_col": self.label_col,
            "pipeline": self.pipeline.get_params(),
            "weights": [float(w) for w in self.model.coef_],
            "intercept": float(self.model.intercept_),
            "trainer": {
                "l2": self.model.l2,
                "max_iter": self.model.max_iter,
                "tol": self.model.tol,
                "n_iter": int(self.model.n_iter_),
                "converged": bool(self.model.converged_),
            },
        }

    @classmethod
    def from_state(cls, state: Dict[str, Any], expected_schema=None) -> "ModelBundle":
        """Rebuild a bundle from `to_state()` output, validating it first."""
        if not isinstance(state, dict) or state.get("format") != ARTIFACT_FORMAT:
            raise ArtifactError("Not a heartreg model artifact.")
        if state.get("version") != ARTIFACT_VERSION:
            raise ArtifactError(
                f"Unsupported artifact version {state.get('version')!r} (expected {ARTIFACT_VERSION})."
            )

        expected = list(expected_schema if expected_schema is not None else SCHEMA_FIELDS)
        schema = list(state.get("schema", []))
        if schema != expected:
            raise SchemaMismatchError(
                f"Artifact schema {schema} does not match expected schema {expected}.",
                expected=expected,
                actual=schema,
            )

        try:
            pipeline = FeaturePipeline.from_params(state["pipeline"])
            trainer = state["trainer"]
            model = CoordinateDescentRegressor(
                l2=trainer["l2"], max_iter=trainer["max_iter"], tol=trainer["tol"]
            )
            model.coef_ = np.asarray(state["weights"], dtype=float)
            model.intercept_ = float(state["intercept"])
            model.n_iter_ = int(trainer["n_iter"])
            model.converged_ = bool(trainer["converged"])
        except (KeyError, TypeError, ValueError) as e:
            raise ArtifactError(f"Malformed artifact: {e}") from e

        if model.coef_.shape[0] != len(pipeline.feature_names):
            raise ArtifactError(
                f"Artifact has {model.coef_.shape[0]} weights for {len(pipeline.feature_names)} features."
            )
        return cls(pipeline, model, schema=schema, label_col=state.get("label_col", LABEL_COL), source="pickle")


def fit_bundle(
    train_df: pd.DataFrame,
    include_thal: bool = False,
    l2: float = DEFAULT_L2,
    max_iter: int = DEFAULT_MAX_ITER,
    tol: float = DEFAULT_TOL,
    label_col: str = LABEL_COL,
) -> ModelBundle:
    """Fit the feature pipeline and regressor on a labeled training frame.

    Returns
    -------
    ModelBundle
        In-memory bundle (``source == "memory"``).

    Raises
    ------
    TrainingError
        If the solver cannot produce a usable model.
    SchemaMismatchError
        If the frame lacks an input field or the label.
    """
    if label_col not in train_df.columns:
        raise SchemaMismatchError(
            f"Training data has no label column '{label_col}'.",
            expected=[label_col],
            actual=list(train_df.columns),
        )
    pipeline = FeaturePipeline(include_thal=include_thal)
    X = pipeline.fit_transform(train_df)
    y = train_df[label_col].to_numpy(dtype=float)

    model = CoordinateDescentRegressor(l2=l2, max_iter=max_iter, tol=tol)
    model.fit(X, y)
    logger.info(
        "Trained on %d rows, %d features (%d sweeps, converged=%s)",
        X.shape[0], X.shape[1], model.n_iter_, model.converged_,
    )
    return ModelBundle(pipeline, model, label_col=label_col)


def _exists(p: Path) -> bool:
    """Safely check whether a path exists, guarding against OS errors."""
    try:
        return p.exists()
    except OSError:
        return False


def save_bundle(bundle: ModelBundle, path: Union[str, Path]) -> Path:
    """Serialize `bundle` to `path`, replacing any existing file atomically."""
    path = Path(path)
    directory = path.parent
    directory.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            pickle.dump(bundle.to_state(), f, protocol=pickle.HIGHEST_PROTOCOL)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if _exists(Path(tmp_name)):
            os.unlink(tmp_name)
        raise
    logger.info("Saved model to %s", path)
    return path


def load_bundle(path: Union[str, Path], expected_schema: Optional[list] = None) -> ModelBundle:
    """Load a bundle written by `save_bundle`.

    Raises
    ------
    FileNotFoundError
        If `path` does not exist.
    ArtifactError
        If the file is not a readable artifact of the supported version.
    SchemaMismatchError
        If the stored schema differs from `expected_schema`.
    """
    path = Path(path)
    if not _exists(path):
        raise FileNotFoundError(f"Model artifact not found: {path}")

    with open(path, "rb") as f:
        try:
            state = pickle.load(f)
        except (pickle.UnpicklingError, EOFError, AttributeError, ImportError, IndexError, ValueError) as e:
            raise ArtifactError(f"Cannot read model artifact {path}: {e}") from e

    bundle = ModelBundle.from_state(state, expected_schema=expected_schema)
    logger.info("Loaded model from %s (%d features)", path, len(bundle.feature_names))
    return bundle
