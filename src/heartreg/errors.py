"""Exception types raised across the pipeline stages."""

from typing import Iterable, Optional


class HeartRegError(Exception):
    """Base class for all pipeline errors."""


class DatasetParseError(HeartRegError, ValueError):
    """A cell (or row) of the dataset could not be parsed to its declared type.

    Attributes
    ----------
    column : str
        Schema field being parsed.
    line : int | None
        1-based line number in the source file (header included).
    value : str | None
        Raw text that failed to parse.
    """
    def __init__(self, message: str, column: str = "", line: Optional[int] = None, value: Optional[str] = None) -> None:
        self.column = column
        self.line = line
        self.value = value
        super().__init__(message)


class SchemaMismatchError(HeartRegError):
    """Input or artifact fields do not match the expected schema."""
    def __init__(self, message: str, expected: Iterable[str] = (), actual: Iterable[str] = ()) -> None:
        self.expected = list(expected)
        self.actual = list(actual)
        super().__init__(message)


class ArtifactError(HeartRegError):
    """A model artifact is unreadable or not in the expected format."""


class TrainingError(HeartRegError):
    """The solver could not produce a usable model."""


class EmptySplitError(TrainingError):
    """The train/test split left one side without rows."""
