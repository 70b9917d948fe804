"""
End-to-end scenario: load -> split -> train -> evaluate -> save -> load -> predict.

Run with ``python -m heartreg`` (or the ``heartreg`` console script). Every
stage consumes the output of the previous one; a failing stage aborts the
run with a distinct exit code:

    0  success
    1  invalid configuration
    2  dataset or model file could not be read/written
    3  dataset cell failed to parse
    4  training failed
    5  model artifact unreadable or schema mismatch
"""

import argparse
import logging
import math
from typing import List, Optional

from pydantic import ValidationError

from .config import (
    DEFAULT_DATA_PATH,
    DEFAULT_L2,
    DEFAULT_MAX_ITER,
    DEFAULT_MODEL_PATH,
    DEFAULT_SEED,
    DEFAULT_TEST_FRACTION,
    R2_ACCEPTABLE,
    SAMPLE_RECORD,
    RunConfig,
)
from .dataset import load_dataset
from .errors import ArtifactError, DatasetParseError, SchemaMismatchError, TrainingError
from .linear_from_scratch import train_test_split
from .logging_utils import setup_logging
from .schemas import HeartDiseaseRecord, RegressionMetrics
from .services.artifacts import fit_bundle, load_bundle, save_bundle
from .services.metrics import evaluate

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_IO = 2
EXIT_PARSE = 3
EXIT_TRAINING = 4
EXIT_ARTIFACT = 5


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="heartreg",
        description="Train, evaluate and persist a heart-disease diagnosis regressor.",
    )
    p.add_argument("--data", default=str(DEFAULT_DATA_PATH), help="CSV dataset path")
    p.add_argument("--model-out", default=str(DEFAULT_MODEL_PATH), help="model artifact path")
    p.add_argument("--test-fraction", type=float, default=DEFAULT_TEST_FRACTION)
    p.add_argument("--max-iter", type=int, default=DEFAULT_MAX_ITER)
    p.add_argument("--l2", type=float, default=DEFAULT_L2)
    p.add_argument("--seed", type=int, default=DEFAULT_SEED)
    p.add_argument("--include-thal", action="store_true", help="append the thal one-hot block to the features")
    p.add_argument("--no-wait", action="store_true", help="do not wait for Enter before exiting")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return p


def config_from_args(args: argparse.Namespace) -> RunConfig:
    return RunConfig(
        data_path=args.data,
        model_path=args.model_out,
        test_fraction=args.test_fraction,
        seed=args.seed,
        max_iter=args.max_iter,
        l2=args.l2,
        include_thal=args.include_thal,
    )


def format_sample(record: HeartDiseaseRecord) -> str:
    r = record
    return (
        f"Age={r.age:g}, Sex={r.sex}, Cp={r.cp}, Trestbps={r.trestbps:g}, Chol={r.chol:g}, "
        f"Fbs={r.fbs}, Restecg={r.restecg}, Thalch={r.thalch:g}, Exang={r.exang}, "
        f"Oldpeak={r.oldpeak:g}, Slope={r.slope}, Ca={r.ca:g}, Thal={r.thal}"
    )


def print_metrics(metrics: RegressionMetrics) -> None:
    print("Model Evaluation Metrics:")
    print(f"Mean Absolute Error (MAE): {metrics.mae}")
    print(f"Root Mean Squared Error (RMSE): {metrics.rmse}")
    print(f"R-squared (R2): {metrics.r2}")


def run(config: RunConfig, sample: Optional[HeartDiseaseRecord] = None):
    """Execute the scenario once; returns (metrics, prediction).

    Exceptions from any stage propagate unchanged.
    """
    sample = sample or HeartDiseaseRecord(**SAMPLE_RECORD)

    data = load_dataset(config.data_path, separator=config.separator, has_header=config.has_header)
    train_df, test_df = train_test_split(data, test_fraction=config.test_fraction, seed=config.seed)

    bundle = fit_bundle(
        train_df,
        include_thal=config.include_thal,
        l2=config.l2,
        max_iter=config.max_iter,
        tol=config.tol,
    )
    metrics = evaluate(bundle, test_df)
    print_metrics(metrics)

    save_bundle(bundle, config.model_path)
    loaded = load_bundle(config.model_path)

    prediction = loaded.predict_one(sample)
    print(f"\nPrediction for new data: {format_sample(sample)}")
    print(f"Predicted Diagnosis: {prediction}")

    if not math.isnan(metrics.r2) and metrics.r2 >= R2_ACCEPTABLE:
        print("The model performs well and can be used for prediction on this type of data.")
    else:
        print("The model may not be accurate enough for reliable predictions. Consider improving the model.")
    return metrics, prediction


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = config_from_args(args)
    except ValidationError as e:
        logger.error("Invalid configuration: %s", e)
        return EXIT_USAGE

    try:
        run(config)
    except DatasetParseError as e:
        logger.error("Parse error in %s: %s", config.data_path, e)
        return EXIT_PARSE
    except TrainingError as e:
        logger.error("Training failed: %s", e)
        return EXIT_TRAINING
    except (SchemaMismatchError, ArtifactError) as e:
        logger.error("Schema or model artifact error (%s): %s", config.model_path, e)
        return EXIT_ARTIFACT
    except OSError as e:
        logger.error("I/O error: %s", e)
        return EXIT_IO

    if not args.no_wait:
        print("Press Enter to exit...")
        try:
            input()
        except EOFError:  # stdin closed
            pass
    return EXIT_OK
