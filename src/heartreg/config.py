"""
Column schema, defaults and run configuration.

The dataset follows the UCI heart-disease CSV layout
(``id,age,sex,dataset,cp,trestbps,chol,fbs,restecg,thalch,exang,oldpeak,slope,ca,thal,num``).
Columns are addressed by position; positions 0 (``id``) and 3 (``dataset``)
are not part of the schema and are skipped on load.
"""

from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, Field

# ---------------
# Column schema
# ---------------

NUMERIC = "numeric"
BOOLEAN = "boolean"
TEXT = "text"

# field -> (source column position, declared type), in schema order
COLUMN_SPEC: Dict[str, tuple] = {
    "age":      (1, NUMERIC),
    "sex":      (2, TEXT),
    "cp":       (4, TEXT),
    "trestbps": (5, NUMERIC),
    "chol":     (6, NUMERIC),
    "fbs":      (7, BOOLEAN),
    "restecg":  (8, TEXT),
    "thalch":   (9, NUMERIC),
    "exang":    (10, BOOLEAN),
    "oldpeak":  (11, NUMERIC),
    "slope":    (12, TEXT),
    "ca":       (13, NUMERIC),
    "thal":     (14, TEXT),
    "num":      (15, NUMERIC),
}

LABEL_COL = "num"
SCHEMA_FIELDS: List[str] = list(COLUMN_SPEC)
FEATURE_FIELDS: List[str] = [f for f in SCHEMA_FIELDS if f != LABEL_COL]

BOOL_COLS: List[str] = ["fbs", "exang"]
CAT_COLS: List[str] = ["sex", "cp", "restecg", "slope", "thal"]

# Concatenation order of the feature vector. "thal" is encoded but only
# appended when include_thal is set.
CONCAT_ORDER: List[str] = [
    "age", "sex", "cp", "trestbps", "chol", "fbs",
    "restecg", "thalch", "exang", "oldpeak", "slope", "ca",
]
OPTIONAL_CONCAT: List[str] = ["thal"]

# ---------------
# Run defaults
# ---------------

DEFAULT_DATA_PATH = Path("heart_disease_uci.csv")
DEFAULT_MODEL_PATH = Path("model.zip")
DEFAULT_TEST_FRACTION = 0.2
DEFAULT_SEED = 42
DEFAULT_MAX_ITER = 2000
DEFAULT_L2 = 1e-3
DEFAULT_TOL = 1e-7
R2_ACCEPTABLE = 0.7

# Sample patient scored at the end of the scenario.
SAMPLE_RECORD: Dict[str, object] = {
    "age": 45.0,
    "sex": "Female",
    "cp": "asymptomatic",
    "trestbps": 130.0,
    "chol": 250.0,
    "fbs": False,
    "restecg": "normal",
    "thalch": 150.0,
    "exang": True,
    "oldpeak": 1.5,
    "slope": "flat",
    "ca": 1.0,
    "thal": "normal",
}


class RunConfig(BaseModel):
    """Validated settings for one end-to-end run.

    Attributes
    ----------
    data_path : Path
        CSV dataset to load.
    model_path : Path
        Where the trained artifact is written and read back from.
    test_fraction : float
        Holdout share, strictly between 0 and 1.
    seed : int
        Seed of the per-row split draw.
    max_iter : int
        Coordinate-descent sweep cap.
    l2 : float
        Ridge penalty on standardized coefficients.
    include_thal : bool
        Append the thal one-hot block to the feature vector.
    """
    data_path: Path = DEFAULT_DATA_PATH
    model_path: Path = DEFAULT_MODEL_PATH
    test_fraction: float = Field(default=DEFAULT_TEST_FRACTION, gt=0.0, lt=1.0)
    seed: int = DEFAULT_SEED
    max_iter: int = Field(default=DEFAULT_MAX_ITER, ge=1)
    l2: float = Field(default=DEFAULT_L2, ge=0.0)
    tol: float = Field(default=DEFAULT_TOL, gt=0.0)
    include_thal: bool = False
    separator: str = ","
    has_header: bool = True
