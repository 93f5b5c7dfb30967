"""Write tables as partitioned datasets.

Splitting a large table by the value of a column makes
queries that filter on that column cheaper, as entire
files can be skipped. :func:`write_dataset` creates the
directory layout understood by :func:`lakeview.dataset.open_dataset`::

    write_dataset(table, "sales/", partition_by=["year"])

    sales/year=2019/part-0.parquet
    sales/year=2020/part-0.parquet
"""

import logging
import os
from typing import Any

import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.csv
import pyarrow.parquet

from .partitioning import HivePartitioning

logger = logging.getLogger(__name__)

EXTENSIONS = {"parquet": ".parquet", "csv": ".csv"}


def write_dataset(
    data: Any,
    base_dir: str | os.PathLike,
    partition_by: list[str] | tuple[str, ...] = (),
    format: str = "parquet",
) -> list[str]:
    """Write data in a directory, one subdirectory per partition.

    Partition columns are encoded in the directory names
    and are not stored in the files themselves.

    :param data: A :class:`pyarrow.Table` or anything with a ``to_arrow()``
                 method, like a :class:`lakeview.dataframe.Dataframe`.
    :param base_dir: The directory where to write the dataset.
    :param partition_by: The columns to partition the data by.
    :param format: ``"parquet"`` or ``"csv"``.
    :returns: The paths of the written files.
    """
    if format not in EXTENSIONS:
        raise ValueError(f"Unsupported format {format!r}, expected one of {list(EXTENSIONS)}")
    table = data if isinstance(data, pa.Table) else data.to_arrow()
    partition_by = list(partition_by)
    missing = [k for k in partition_by if k not in table.column_names]
    if missing:
        raise ValueError(f"Partition columns {missing} are not in the data")

    base_dir = os.fspath(base_dir)
    partitioning = HivePartitioning(partition_by)
    paths = []
    if not partition_by:
        paths.append(_write_file(table, base_dir, format))
        return paths

    partitions = (
        table.select(partition_by)
        .group_by(partition_by)
        .aggregate([])
        .sort_by([(k, "ascending") for k in partition_by])
    )
    for values in partitions.to_pylist():
        mask = None
        for key, value in values.items():
            if value is None:
                condition = pc.is_null(table.column(key))
            else:
                condition = pc.equal(table.column(key), pa.scalar(value, table.schema.field(key).type))
            mask = condition if mask is None else pc.and_(mask, condition)
        partition = table.filter(mask).drop_columns(partition_by)
        directory = os.path.join(base_dir, partitioning.format_path(values))
        paths.append(_write_file(partition, directory, format))
    return paths


def _write_file(table: pa.Table, directory: str, format: str) -> str:
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, f"part-0{EXTENSIONS[format]}")
    if format == "parquet":
        pa.parquet.write_table(table, path)
    else:
        pa.csv.write_csv(table, path)
    logger.debug("Wrote %d rows to %s", table.num_rows, path)
    return path
