"""Partitioning of datasets in directories.

Large datasets are frequently split in multiple files, stored
in directories named after the value of one or more columns,
which is known as *hive* partitioning::

    sales/
        year=2019/month=1/part-0.parquet
        year=2019/month=2/part-0.parquet
        year=2020/month=1/part-0.parquet

The files themselves don't need to contain the ``year`` and ``month``
columns, their value is known from the path of the file.
Given that the value is known without opening the file, a query
that only cares about ``year=2020`` can skip the files of the
other years entirely.
"""

import logging
import os
import urllib.parse
from typing import Any

import pyarrow as pa

from ..errors import DatasetReadError

logger = logging.getLogger(__name__)

NULL_PARTITION = "__HIVE_DEFAULT_PARTITION__"


class HivePartitioning:
    """Decode and encode ``key=value`` directory names.

    >>> HivePartitioning().parse("data/year=2020/city=New%20York/part-0.csv", "data")
    {'year': '2020', 'city': 'New York'}
    """

    def __init__(self, field_names: list[str] | None = None) -> None:
        """
        :param field_names: Only recognise these keys as partition columns,
                            ``None`` recognises any ``key=value`` directory.
        """
        self.field_names = field_names

    def __str__(self) -> str:
        return f"HivePartitioning(field_names={self.field_names})"

    def parse(self, path: str, base_dir: str) -> dict[str, str | None]:
        """Extract the raw partition values from the path of a file.

        Only the directories between ``base_dir`` and the file
        are considered, the file name itself is never a partition.
        """
        relative = os.path.relpath(os.path.dirname(path), base_dir)
        values: dict[str, str | None] = {}
        if relative == os.curdir:
            return values

        for segment in relative.split(os.sep):
            key, sep, raw_value = segment.partition("=")
            if not sep or not key:
                continue
            if self.field_names is not None and key not in self.field_names:
                continue
            value = urllib.parse.unquote(raw_value)
            values[key] = None if value == NULL_PARTITION else value
        return values

    def format_path(self, values: dict[str, Any]) -> str:
        """Build the relative directory for a set of partition values."""
        segments = []
        for key, value in values.items():
            if value is None:
                encoded = NULL_PARTITION
            else:
                encoded = urllib.parse.quote(str(value), safe="")
            segments.append(f"{key}={encoded}")
        return os.path.join(*segments) if segments else ""


def infer_partition_type(values: list[str | None]) -> pa.DataType:
    """Guess the type of a partition column from its values.

    Integers are preferred, then floats, otherwise the
    values are kept as strings. A type is only chosen when
    arrow can convert all the values to it.
    """
    present = [v for v in values if v is not None]
    if not present:
        return pa.string()
    strings = pa.array(present, type=pa.string())
    for candidate in (pa.int64(), pa.float64()):
        try:
            strings.cast(candidate)
        except (pa.ArrowInvalid, pa.ArrowNotImplementedError):
            continue
        return candidate
    return pa.string()


def convert_partition_values(
    key: str, raw_values: list[str | None], type: pa.DataType
) -> list[Any]:
    """Convert the raw string values of a partition column to its type."""
    try:
        return pa.array(raw_values, type=pa.string()).cast(type).to_pylist()
    except (pa.ArrowInvalid, pa.ArrowNotImplementedError) as e:
        raise DatasetReadError(
            f"Partition values of {key!r} can't be read as {type}: {e}"
        ) from e
