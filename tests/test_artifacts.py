import math
import pickle

import numpy as np
import pytest

from heartreg.errors import ArtifactError, DatasetParseError, SchemaMismatchError
from heartreg.schemas import HeartDiseaseRecord
from heartreg.services.artifacts import ModelBundle, fit_bundle, load_bundle, save_bundle


def test_round_trip_reproduces_predictions(bundle, dataset, tmp_path):
    path = save_bundle(bundle, tmp_path / "model.zip")
    loaded = load_bundle(path)

    assert loaded.source == "pickle"
    assert loaded is not bundle
    assert loaded.feature_names == bundle.feature_names
    np.testing.assert_allclose(loaded.predict(dataset), bundle.predict(dataset), rtol=0, atol=1e-12)


def test_round_trip_with_thal(dataset, tmp_path, sample_record):
    bundle = fit_bundle(dataset, include_thal=True)
    loaded = load_bundle(save_bundle(bundle, tmp_path / "m.zip"))
    assert loaded.pipeline.include_thal
    assert loaded.predict_one(sample_record) == pytest.approx(bundle.predict_one(sample_record), abs=1e-12)


def test_loaded_bundle_is_independent(bundle, tmp_path, sample_record):
    before = bundle.predict_one(sample_record)
    loaded = load_bundle(save_bundle(bundle, tmp_path / "model.zip"))
    loaded.model.coef_[:] = 0.0
    assert bundle.predict_one(sample_record) == before


def test_save_overwrites_and_leaves_no_temp_files(bundle, tmp_path):
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    target = out_dir / "model.zip"
    target.write_bytes(b"old contents")
    save_bundle(bundle, target)
    save_bundle(bundle, target)

    assert [p.name for p in out_dir.iterdir()] == ["model.zip"]
    assert isinstance(load_bundle(target), ModelBundle)


def test_save_creates_parent_directory(bundle, tmp_path):
    path = save_bundle(bundle, tmp_path / "nested" / "dir" / "model.zip")
    assert path.is_file()


def test_artifact_is_plain_versioned_dict(bundle, tmp_path):
    path = save_bundle(bundle, tmp_path / "model.zip")
    with open(path, "rb") as f:
        state = pickle.load(f)
    assert state["format"] == "heartreg-model"
    assert state["version"] == 1
    assert state["schema"][-1] == "num"
    assert len(state["weights"]) == len(state["pipeline"]["feature_names"])
    assert set(state["pipeline"]["vocab"]) == {"sex", "cp", "restecg", "slope", "thal"}


def _write_state(path, state):
    with open(path, "wb") as f:
        pickle.dump(state, f)
    return path


def test_wrong_version_rejected(bundle, tmp_path):
    state = bundle.to_state()
    state["version"] = 99
    with pytest.raises(ArtifactError):
        load_bundle(_write_state(tmp_path / "m.zip", state))


def test_schema_mismatch_rejected(bundle, tmp_path):
    state = bundle.to_state()
    state["schema"] = state["schema"][:-2]
    with pytest.raises(SchemaMismatchError):
        load_bundle(_write_state(tmp_path / "m.zip", state))


def test_weight_count_mismatch_rejected(bundle, tmp_path):
    state = bundle.to_state()
    state["weights"] = state["weights"][:-1]
    with pytest.raises(ArtifactError):
        load_bundle(_write_state(tmp_path / "m.zip", state))


def test_garbage_file_rejected(tmp_path):
    p = tmp_path / "m.zip"
    p.write_bytes(b"\x00\x01 not a pickle")
    with pytest.raises(ArtifactError):
        load_bundle(p)


def test_missing_artifact(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_bundle(tmp_path / "absent.zip")


def test_predict_one_accepts_mapping_and_model(bundle, sample_record):
    a = bundle.predict_one(sample_record)
    b = bundle.predict_one(HeartDiseaseRecord(**sample_record))
    assert math.isfinite(a)
    assert a == pytest.approx(b)


def test_predict_one_ignores_label(bundle, sample_record):
    assert bundle.predict_one(dict(sample_record, num=3.0)) == pytest.approx(bundle.predict_one(sample_record))


def test_predict_one_unseen_category_does_not_raise(bundle, sample_record):
    assert math.isfinite(bundle.predict_one(dict(sample_record, cp="never seen")))


def test_predict_one_missing_field(bundle, sample_record):
    record = dict(sample_record)
    del record["chol"]
    with pytest.raises(SchemaMismatchError) as exc:
        bundle.predict_one(record)
    assert "chol" in str(exc.value)


def test_fit_requires_label(dataset):
    with pytest.raises(SchemaMismatchError):
        fit_bundle(dataset.drop(columns=["num"]))


def test_predict_one_parses_string_booleans(bundle, sample_record):
    as_text = bundle.predict_one(dict(sample_record, exang="false", fbs="true"))
    as_bool = bundle.predict_one(dict(sample_record, exang=False, fbs=True))
    assert as_text == pytest.approx(as_bool)
    assert as_text != pytest.approx(bundle.predict_one(dict(sample_record, exang=True, fbs=True)))


def test_predict_one_bad_numeric_string(bundle, sample_record):
    with pytest.raises(DatasetParseError) as exc:
        bundle.predict_one(dict(sample_record, chol="n/a"))
    assert exc.value.column == "chol"
