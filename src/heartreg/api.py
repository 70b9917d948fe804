"""
Heart Disease Diagnosis Regression API.

This module exposes a FastAPI application that serves the from-scratch
linear model trained by ``python -m heartreg``. It loads the persisted
``ModelBundle`` (feature pipeline + weights) and provides:

Endpoints
---------
- GET  `/`                    : Liveness/health check.
- GET  `/version`             : App + artifact version info.
- GET  `/feature-map`         : Schema fields, vocabularies and feature names.
- POST `/predict`             : Predict diagnosis scores (single or batch).
- POST `/metrics`             : Regression metrics on labeled records.
- POST `/explain/permutation` : Permutation importance (global).
- POST `/explain/pdp`         : Partial dependence (and optional ICE).

Notes
-----
- The artifact path is read from ``HEARTREG_MODEL_PATH`` (default
  ``model.zip``) on first use and cached; ``get_bundle`` is a FastAPI
  dependency so tests can override it.
- No business logic lives here; the API delegates to the service layer.
"""

import math
import os
from functools import lru_cache
from typing import Annotated, Any, Dict, List, Optional, Union

import numpy as np
from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from . import __version__
from .config import DEFAULT_MODEL_PATH
from .dataset import records_to_frame
from .errors import HeartRegError
from .schemas import HeartDiseaseRecord, LabeledHeartDiseaseRecord
from .services.artifacts import ARTIFACT_VERSION, ModelBundle, load_bundle
from .services.explain import (
    partial_dependence as svc_pdp,
    permutation_importance as svc_perm,
)
from .services.metrics import compute_regression_metrics

APP_VERSION = __version__
MODEL_PATH_ENV = "HEARTREG_MODEL_PATH"

app = FastAPI(
    title="Heart Disease Diagnosis Regression API",
    version=APP_VERSION,
    description="API for scoring heart-disease diagnosis with a from-scratch linear model",
)

# -----------------------------
# Pydantic models (API schemas)
# -----------------------------

class TopItem(BaseModel):
    """A single (feature, importance) pair."""
    feature: str
    importance: float


class PermutationRequest(BaseModel):
    """Request payload for permutation feature importance.

    Attributes
    ----------
    data:
        Labeled rows used for the baseline and shuffled counterfactuals.
    n_repeats:
        Number of shuffles per field.
    top_k:
        (Optional) Include the top-K fields by importance.
    random_seed:
        Seed that makes the shuffling reproducible.
    """
    data: List[LabeledHeartDiseaseRecord]
    n_repeats: Annotated[int, Field(ge=1)] = 5
    top_k: Optional[int] = Field(default=None, ge=1)
    random_seed: int = 42


class PermutationResponse(BaseModel):
    base_rmse: float
    columns: List[str]
    importances: List[float]
    top: Optional[List[TopItem]] = None


class PDPRequest(BaseModel):
    """Request payload for Partial Dependence (and optional ICE).

    Attributes
    ----------
    data:
        Background rows used to average out other fields.
    feature:
        Numeric field to sweep.
    grid:
        (Optional) Explicit grid values.
    grid_size:
        Number of generated grid points when ``grid`` is omitted.
    ice:
        Whether to include ICE curves.
    ice_count:
        Rows sampled for ICE.
    seed:
        Random seed for ICE sampling.
    """
    data: List[HeartDiseaseRecord]
    feature: str
    grid: Optional[List[float]] = None
    grid_size: int = 20
    ice: bool = False
    ice_count: int = 10
    seed: int = 42


class PDPResponse(BaseModel):
    feature: str
    grid: List[float]
    pdp: List[float]
    ice: Optional[List[Dict[str, Any]]] = None


# -----------------
# Model bundle
# -----------------

@lru_cache(maxsize=1)
def _load_cached_bundle(path: str) -> ModelBundle:
    return load_bundle(path)


def get_bundle() -> ModelBundle:
    """Dependency returning the cached bundle; 503 if it cannot be loaded."""
    path = os.environ.get(MODEL_PATH_ENV, str(DEFAULT_MODEL_PATH))
    try:
        return _load_cached_bundle(path)
    except (OSError, HeartRegError) as e:
        raise HTTPException(status_code=503, detail=f"Failed to load model artifacts: {e}")


def _finite_or_none(v: float) -> Optional[float]:
    return None if v is None or not math.isfinite(v) else float(v)


def _split_labels(payload) -> tuple:
    records = [d.model_dump() for d in payload]
    y = np.array([r.pop("num") for r in records], dtype=float)
    return records_to_frame(records), y

# -----------
# Endpoints
# -----------

@app.get("/")
async def health_check(bundle: ModelBundle = Depends(get_bundle)):
    """Liveness check with app version and artifact source."""
    return {"version": APP_VERSION, "status": "OK", "artifact_source": bundle.source}


@app.get("/version")
async def version(bundle: ModelBundle = Depends(get_bundle)):
    """Return application version and artifact format version."""
    return {
        "app_version": APP_VERSION,
        "artifact_version": ARTIFACT_VERSION,
        "artifact_source": bundle.source,
    }


@app.get("/feature-map")
async def feature_map(bundle: ModelBundle = Depends(get_bundle)):
    """Expose the schema and the learned feature layout."""
    return {
        "schema": bundle.schema,
        "label": bundle.label_col,
        "include_thal": bundle.pipeline.include_thal,
        "vocab": bundle.pipeline.encoder.vocab,
        "feature_names": bundle.feature_names,
    }


@app.post("/predict")
async def predict(
    data: Union[HeartDiseaseRecord, List[HeartDiseaseRecord]],
    bundle: ModelBundle = Depends(get_bundle),
):
    """Predict diagnosis scores for one record or a list of records.

    Returns
    -------
    dict
        ``predictions``: list of floats (``null`` where an input field was
        missing).

    Raises
    ------
    HTTPException
        With status 400 if validation/inference fails.
    """
    try:
        rows = data if isinstance(data, list) else [data]
        df = records_to_frame([r.model_dump() for r in rows])
        preds = bundle.predict(df)
        return {"predictions": [_finite_or_none(float(p)) for p in preds]}
    except (HeartRegError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Error during prediction: {e}")


@app.post("/metrics")
async def metrics(payload: List[LabeledHeartDiseaseRecord], bundle: ModelBundle = Depends(get_bundle)):
    """Compute MAE/RMSE/MSE/R² on labeled records.

    ``r2`` is ``null`` when the labels have zero variance.
    """
    try:
        if not payload:
            raise ValueError("Empty payload.")
        df, y = _split_labels(payload)
        res = compute_regression_metrics(y, bundle.predict(df))
        return {
            "mae": res.mae,
            "rmse": res.rmse,
            "mse": res.mse,
            "r2": _finite_or_none(res.r2),
            "n": res.n,
        }
    except (HeartRegError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Error during metrics: {e}")


@app.post("/explain/permutation", response_model=PermutationResponse)
async def explain_permutation(payload: PermutationRequest, bundle: ModelBundle = Depends(get_bundle)):
    """Permutation importance over labeled data (mean RMSE increase per field)."""
    try:
        if not payload.data:
            raise ValueError("Empty 'data'.")
        df, y = _split_labels(payload.data)

        cols, imps, base_rmse = svc_perm(
            bundle,
            df,
            y,
            n_repeats=int(payload.n_repeats),
            random_seed=int(payload.random_seed),
        )

        top_out: Optional[List[TopItem]] = None
        if payload.top_k:
            k = int(min(payload.top_k, len(cols)))
            order = np.argsort(-imps)[:k]
            top_out = [TopItem(feature=cols[i], importance=float(imps[i])) for i in order]

        return PermutationResponse(
            base_rmse=float(base_rmse),
            columns=cols,
            importances=[float(v) for v in imps],
            top=top_out,
        )
    except (HeartRegError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Error in permutation importance: {e}")


@app.post("/explain/pdp", response_model=PDPResponse)
async def explain_pdp(payload: PDPRequest, bundle: ModelBundle = Depends(get_bundle)):
    """Partial dependence (and optional ICE) for one numeric field."""
    try:
        if not payload.data:
            raise ValueError("Empty 'data'.")
        df = records_to_frame([d.model_dump() for d in payload.data])

        res = svc_pdp(
            bundle,
            df,
            feature=payload.feature,
            grid=payload.grid,
            grid_size=int(payload.grid_size),
            ice=bool(payload.ice),
            ice_count=int(payload.ice_count),
            seed=int(payload.seed),
        )
        return PDPResponse(**res)
    except (HeartRegError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Error in PDP/ICE: {e}")
