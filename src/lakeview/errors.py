"""Errors raised by Lakeview.

All errors inherit from :class:`LakeviewError`, so callers can
catch that to handle any failure of the library.

Errors coming from pyarrow while reading files or running compute
functions are translated into these errors at the place where
they happen, so that the message can tell which file or which
expression caused them.
"""


class LakeviewError(Exception):
    """Base class for all Lakeview errors."""


class DatasetReadError(LakeviewError):
    """A dataset could not be registered or read.

    Raised when files are missing, unreadable, or when their
    content doesn't conform to the registered schema.
    """


class SchemaMismatchError(DatasetReadError):
    """The files of a dataset have schemas that can't be unified."""


class ColumnNotFoundError(LakeviewError, KeyError):
    """A query references a column that doesn't exist at that point."""

    def __init__(self, column: str, available: list[str]) -> None:
        self.column = column
        self.available = list(available)
        super().__init__(
            f"Column {column!r} not found, available columns: {self.available}"
        )

    def __str__(self) -> str:
        return self.args[0]


class UnsupportedExpressionError(LakeviewError):
    """The engine is unable to execute an expression or aggregation."""
