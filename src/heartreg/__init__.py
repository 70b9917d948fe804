"""
heartreg: heart-disease diagnosis regression built from scratch on NumPy/pandas.

The package mirrors a small train-and-serve workflow:

- ``heartreg.dataset``             : positional CSV loader with strict parsing.
- ``heartreg.linear_from_scratch`` : split, one-hot encoding, feature pipeline
  and a coordinate-descent ridge regressor.
- ``heartreg.services``            : artifacts (save/load), metrics, explainability.
- ``heartreg.cli``                 : the end-to-end scenario (``python -m heartreg``).
- ``heartreg.api``                 : FastAPI service over a persisted model.
"""

__version__ = "0.1.0"
