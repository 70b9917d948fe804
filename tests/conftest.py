import numpy as np
import pandas as pd
import pytest

from heartreg.dataset import load_dataset
from heartreg.services.artifacts import fit_bundle

HEADER = "id,age,sex,dataset,cp,trestbps,chol,fbs,restecg,thalch,exang,oldpeak,slope,ca,thal,num"

SEXES = ["Male", "Female"]
CP_EFFECT = {"typical angina": 0.0, "atypical angina": 0.3, "non-anginal": 0.6, "asymptomatic": 1.2}
RESTECG_EFFECT = {"normal": 0.0, "st-t abnormality": 0.2, "lv hypertrophy": 0.4}
SLOPE_EFFECT = {"upsloping": 0.0, "flat": 0.5, "downsloping": 0.9}
THALS = ["normal", "fixed defect", "reversable defect"]


def synthetic_rows(n=400, seed=0, noise=0.05):
    """Rows in CSV column order whose label is linear in the features (thal excluded)."""
    rng = np.random.default_rng(seed)
    rows = []
    for i in range(n):
        age = float(rng.integers(30, 78))
        sex = SEXES[int(rng.integers(0, 2))]
        cp = list(CP_EFFECT)[int(rng.integers(0, 4))]
        trestbps = float(rng.integers(95, 180))
        chol = float(rng.integers(150, 350))
        fbs = bool(rng.random() < 0.2)
        restecg = list(RESTECG_EFFECT)[int(rng.integers(0, 3))]
        thalch = float(rng.integers(90, 200))
        exang = bool(rng.random() < 0.35)
        oldpeak = round(float(rng.uniform(0.0, 4.0)), 1)
        slope = list(SLOPE_EFFECT)[int(rng.integers(0, 3))]
        ca = float(rng.integers(0, 4))
        thal = THALS[int(rng.integers(0, 3))]
        num = (
            0.05 * (age - 50)
            + 0.8 * (sex == "Male")
            + CP_EFFECT[cp]
            + 0.01 * (trestbps - 130)
            + 0.01 * (chol - 240)
            + 0.4 * fbs
            + RESTECG_EFFECT[restecg]
            - 0.02 * (thalch - 150)
            + 0.5 * exang
            + 0.3 * oldpeak
            + SLOPE_EFFECT[slope]
            + 0.25 * ca
            + rng.normal(0.0, noise)
        )
        rows.append([
            i, age, sex, "Cleveland", cp, trestbps, chol, fbs, restecg,
            thalch, exang, oldpeak, slope, ca, thal, round(num, 6),
        ])
    return rows


def write_csv(path, rows, header=True):
    lines = [HEADER] if header else []
    for r in rows:
        lines.append(",".join(str(v) for v in r))
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def csv_path(tmp_path):
    return write_csv(tmp_path / "heart.csv", synthetic_rows())


@pytest.fixture
def dataset(csv_path) -> pd.DataFrame:
    return load_dataset(csv_path)


@pytest.fixture
def bundle(dataset):
    return fit_bundle(dataset)


@pytest.fixture
def sample_record():
    return {
        "age": 45.0, "sex": "Female", "cp": "asymptomatic", "trestbps": 130.0,
        "chol": 250.0, "fbs": False, "restecg": "normal", "thalch": 150.0,
        "exang": True, "oldpeak": 1.5, "slope": "flat", "ca": 1.0, "thal": "normal",
    }
