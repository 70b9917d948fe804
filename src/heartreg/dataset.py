"""
Positional CSV loader for the heart-disease dataset.

Every cell is read as text and converted to the field's declared type
(see ``config.COLUMN_SPEC``). Nothing is inferred: a cell that does not
parse raises ``DatasetParseError`` with the field name, the file line and
the raw value. Empty cells are treated as missing values (NaN for numerics,
``<NA>`` for booleans, ``None`` for text).
"""

import logging
import math
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np
import pandas as pd

from .config import BOOLEAN, COLUMN_SPEC, NUMERIC, TEXT
from .errors import DatasetParseError

logger = logging.getLogger(__name__)

_TRUE = {"true", "t", "yes", "1"}
_FALSE = {"false", "f", "no", "0"}


def parse_numeric(text: str) -> float:
    """Parse a numeric cell; empty -> NaN. Raises ValueError otherwise."""
    text = text.strip()
    if text == "":
        return math.nan
    return float(text)


def parse_boolean(text: str) -> Optional[bool]:
    """Parse a boolean cell; empty -> None. Raises ValueError otherwise."""
    key = text.strip().lower()
    if key == "":
        return None
    if key in _TRUE:
        return True
    if key in _FALSE:
        return False
    raise ValueError(f"not a boolean: {text!r}")


def parse_text(text: str) -> Optional[str]:
    """Keep text verbatim (whitespace-stripped); empty -> None."""
    text = text.strip()
    return text if text else None


_PARSERS = {NUMERIC: parse_numeric, BOOLEAN: parse_boolean, TEXT: parse_text}


def _column_dtype(kind: str):
    if kind == NUMERIC:
        return "float64"
    if kind == BOOLEAN:
        return "boolean"
    return object


def parse_frame(raw: pd.DataFrame, column_spec: Dict[str, tuple] = COLUMN_SPEC, first_line: int = 2) -> pd.DataFrame:
    """Convert a frame of raw text cells into a typed dataset.

    Args:
        raw: Text cells with columns addressed by integer position.
        column_spec: field -> (position, kind).
        first_line: File line number of the first data row.

    Returns:
        DataFrame with one column per schema field, in schema order.
    """
    width = raw.shape[1]
    out = {}
    for field, (pos, kind) in column_spec.items():
        if pos >= width:
            raise DatasetParseError(
                f"Column '{field}' expects position {pos} but the file has only {width} columns.",
                column=field,
            )
        parser = _PARSERS[kind]
        values = []
        for i, cell in enumerate(raw.iloc[:, pos].tolist()):
            if not isinstance(cell, str):
                cell = ""
            try:
                values.append(parser(cell))
            except ValueError:
                line = first_line + i
                raise DatasetParseError(
                    f"Cannot parse {kind} value {cell!r} in column '{field}' at line {line}.",
                    column=field, line=line, value=cell,
                ) from None
        out[field] = pd.Series(values, dtype=_column_dtype(kind))
    return pd.DataFrame(out)


def load_dataset(
    path: Union[str, Path],
    separator: str = ",",
    has_header: bool = True,
    column_spec: Dict[str, tuple] = COLUMN_SPEC,
) -> pd.DataFrame:
    """Load a delimited text file into a typed DataFrame.

    Args:
        path: CSV file.
        separator: Field delimiter.
        has_header: Whether the first line is a header (ignored for parsing).
        column_spec: field -> (position, kind) mapping.

    Returns:
        Typed DataFrame (float64 / nullable boolean / object columns).

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        DatasetParseError: If a cell cannot be parsed to its declared type.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Dataset not found: {path}")

    with open(path, "r", encoding="utf-8", newline="") as f:
        try:
            raw = pd.read_csv(
                f,
                sep=separator,
                header=None,
                skiprows=1 if has_header else 0,
                index_col=False,
                dtype=str,
                keep_default_na=False,
            )
        except pd.errors.EmptyDataError:
            raise DatasetParseError(f"Dataset is empty: {path}") from None
        except pd.errors.ParserError as e:
            raise DatasetParseError(f"Malformed delimited file {path}: {e}") from e
        except UnicodeDecodeError as e:
            raise DatasetParseError(
                f"Dataset {path} is not valid UTF-8 (byte offset {e.start})"
            ) from e
    raw.columns = range(raw.shape[1])

    df = parse_frame(raw, column_spec, first_line=2 if has_header else 1)
    logger.info("Loaded %d rows x %d fields from %s", len(df), df.shape[1], path)
    return df


def _coerce_value(value, kind: str):
    if value is None:
        return _PARSERS[kind]("")
    if isinstance(value, str):
        return _PARSERS[kind](value)
    if kind == NUMERIC:
        return float(value)
    if kind == BOOLEAN:
        if isinstance(value, (bool, np.bool_)) or value in (0, 1):
            return bool(value)
        raise ValueError(f"not a boolean: {value!r}")
    return str(value)


def records_to_frame(records, column_spec: Dict[str, tuple] = COLUMN_SPEC) -> pd.DataFrame:
    """Build a typed frame from dict-like records (e.g. API payloads).

    Strings go through the same cell parsers as the CSV loader, so
    ``"false"`` is False and ``"n/a"`` is an error rather than a number.
    Fields absent from every record are left out; the predictor decides
    whether that is acceptable.
    """
    rows = [dict(r) for r in records]
    present = [f for f in column_spec if any(f in r for r in rows)]
    out = {}
    for field in present:
        kind = column_spec[field][1]
        values = []
        for i, r in enumerate(rows):
            v = r.get(field)
            try:
                values.append(_coerce_value(v, kind))
            except (TypeError, ValueError):
                raise DatasetParseError(
                    f"Cannot parse {kind} value {v!r} in field '{field}' of record {i}.",
                    column=field, value=str(v),
                ) from None
        out[field] = pd.Series(values, dtype=_column_dtype(kind))
    return pd.DataFrame(out, index=range(len(rows)))
