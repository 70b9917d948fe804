import logging

import numpy as np
import pytest

from heartreg.errors import SchemaMismatchError, TrainingError
from heartreg.linear_from_scratch import CoordinateDescentRegressor


@pytest.fixture
def linear_xy():
    rng = np.random.default_rng(0)
    X = np.column_stack([rng.normal(50, 10, 300), rng.normal(0, 1, 300), rng.uniform(100, 300, 300)])
    y = 2.0 * X[:, 0] - 3.0 * X[:, 1] + 0.01 * X[:, 2] + 5.0
    return X, y


def test_recovers_linear_relation(linear_xy):
    X, y = linear_xy
    model = CoordinateDescentRegressor(l2=0.0, max_iter=2000).fit(X, y)

    assert model.converged_
    np.testing.assert_allclose(model.coef_, [2.0, -3.0, 0.01], atol=1e-4)
    assert model.intercept_ == pytest.approx(5.0, abs=1e-3)
    np.testing.assert_allclose(model.predict(X), y, atol=1e-3)


def test_l2_shrinks_weights(linear_xy):
    X, y = linear_xy
    plain = CoordinateDescentRegressor(l2=0.0).fit(X, y)
    ridge = CoordinateDescentRegressor(l2=10.0).fit(X, y)
    assert np.linalg.norm(ridge.coef_ * X.std(axis=0)) < np.linalg.norm(plain.coef_ * X.std(axis=0))


def test_non_convergence_logs_warning(linear_xy, caplog):
    X, y = linear_xy
    with caplog.at_level(logging.WARNING, logger="heartreg.linear_from_scratch"):
        model = CoordinateDescentRegressor(max_iter=1).fit(X, y)

    assert not model.converged_
    assert model.n_iter_ == 1
    assert np.all(np.isfinite(model.coef_))
    assert any("did not converge" in r.message for r in caplog.records)


def test_rows_with_missing_values_are_dropped(linear_xy, caplog):
    X, y = linear_xy
    X = X.copy()
    y = y.copy()
    X[0, 1] = np.nan
    y[1] = np.nan
    with caplog.at_level(logging.WARNING, logger="heartreg.linear_from_scratch"):
        model = CoordinateDescentRegressor(l2=0.0).fit(X, y)

    assert any("Dropping 2" in r.message for r in caplog.records)
    np.testing.assert_allclose(model.coef_, [2.0, -3.0, 0.01], atol=1e-4)


def test_constant_column_gets_zero_weight(linear_xy):
    X, y = linear_xy
    X = np.column_stack([X, np.full(len(X), 7.0)])
    model = CoordinateDescentRegressor(l2=0.0).fit(X, y)
    assert model.coef_[-1] == 0.0


def test_no_usable_rows():
    X = np.full((4, 2), np.nan)
    with pytest.raises(TrainingError):
        CoordinateDescentRegressor().fit(X, np.ones(4))


def test_shape_mismatch():
    with pytest.raises(TrainingError):
        CoordinateDescentRegressor().fit(np.ones((4, 2)), np.ones(3))


def test_predict_checks_width(linear_xy):
    X, y = linear_xy
    model = CoordinateDescentRegressor().fit(X, y)
    with pytest.raises(SchemaMismatchError):
        model.predict(X[:, :2])


def test_predict_before_fit():
    with pytest.raises(RuntimeError):
        CoordinateDescentRegressor().predict(np.ones((1, 1)))


@pytest.mark.parametrize("kwargs", [{"l2": -1.0}, {"max_iter": 0}])
def test_invalid_hyperparameters(kwargs):
    with pytest.raises(ValueError):
        CoordinateDescentRegressor(**kwargs)
