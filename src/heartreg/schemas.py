"""
Record and result schemas for the heart-disease regression model.

Field names follow the UCI heart-disease CSV header
(``heart_disease_uci.csv``), where categorical fields carry text labels
rather than integer codes.

Notes
-----
- Units:
    * trestbps: mm Hg (resting blood pressure)
    * chol: mg/dL (serum cholesterol)
    * thalch: bpm (maximum heart rate achieved)
    * oldpeak: ST depression (unitless, relative to rest)
- Text categories (dataset convention):
    * sex: "Male" / "Female"
    * cp: "typical angina", "atypical angina", "non-anginal", "asymptomatic"
    * restecg: "normal", "st-t abnormality", "lv hypertrophy"
    * slope: "upsloping", "flat", "downsloping"
    * thal: "normal", "fixed defect", "reversable defect"
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class HeartDiseaseRecord(BaseModel):
    """Single patient row used as model input.

    Attributes
    ----------
    age : float
        Age in years.
    sex : str
        Biological sex label.
    cp : str
        Chest pain type.
    trestbps : float
        Resting blood pressure on admission (mm Hg).
    chol : float
        Serum cholesterol (mg/dL).
    fbs : bool
        Fasting blood sugar > 120 mg/dL.
    restecg : str
        Resting electrocardiographic result.
    thalch : float
        Maximum heart rate achieved (bpm).
    exang : bool
        Exercise-induced angina.
    oldpeak : float
        ST depression induced by exercise relative to rest.
    slope : str
        Slope of the peak exercise ST segment.
    ca : float
        Number of major vessels colored by fluoroscopy (0..3).
    thal : str | None
        Thalassemia result.
    num : float | None
        Diagnosis label; optional on prediction input.
    """
    age: float
    sex: str
    cp: str
    trestbps: float
    chol: float
    fbs: bool
    restecg: str
    thalch: float
    exang: bool
    oldpeak: float
    slope: str
    ca: float
    thal: Optional[str] = None
    num: Optional[float] = None


class LabeledHeartDiseaseRecord(HeartDiseaseRecord):
    """Record with a required diagnosis label, for evaluation endpoints."""
    num: float


class RegressionMetrics(BaseModel):
    """Held-out regression scores; immutable once computed.

    ``r2`` is NaN when the labels have zero variance.
    """
    model_config = ConfigDict(frozen=True)

    mae: float
    rmse: float
    mse: float
    r2: float
    n: int
