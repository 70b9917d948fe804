import pandas as pd
import pytest

from heartreg.errors import EmptySplitError, TrainingError
from heartreg.linear_from_scratch import train_test_split


def test_split_is_disjoint_and_complete(dataset):
    train, test = train_test_split(dataset, test_fraction=0.2, seed=7)

    assert set(train.index).isdisjoint(test.index)
    assert len(train) + len(test) == len(dataset)
    assert sorted(train.index.tolist() + test.index.tolist()) == list(dataset.index)


def test_split_fraction_is_approximate(dataset):
    _, test = train_test_split(dataset, test_fraction=0.2, seed=7)
    assert 0.1 * len(dataset) < len(test) < 0.3 * len(dataset)


def test_same_seed_same_split(dataset):
    _, a = train_test_split(dataset, seed=3)
    _, b = train_test_split(dataset, seed=3)
    assert a.index.equals(b.index)


def test_different_seed_different_split(dataset):
    _, a = train_test_split(dataset, seed=3)
    _, b = train_test_split(dataset, seed=4)
    assert not a.index.equals(b.index)


def test_split_does_not_mutate_input(dataset):
    before = dataset.copy()
    train, _ = train_test_split(dataset, seed=1)
    train["age"] = 0.0
    pd.testing.assert_frame_equal(dataset, before)


@pytest.mark.parametrize("fraction", [0.0, 1.0, -0.1, 1.5])
def test_invalid_fraction(dataset, fraction):
    with pytest.raises(ValueError):
        train_test_split(dataset, test_fraction=fraction)


def test_empty_side_raises(dataset):
    with pytest.raises(EmptySplitError) as exc:
        train_test_split(dataset.iloc[:1], test_fraction=0.2, seed=0)
    assert isinstance(exc.value, TrainingError)
