"""Registration of on-disk files as logical tables.

A dataset is one or more CSV or Parquet files that are queried
together as a single table. :func:`open_dataset` polls the schema
of the files without loading their data and decodes the partition
columns encoded in ``key=value`` directory names.

The resulting :class:`LogicalTable` is what
:class:`lakeview.dataframe.Dataframe` queries are run against.
"""

from .partitioning import HivePartitioning
from .registry import DatasetRegistry, Fragment, LogicalTable, open_dataset
from .schema import resolve_type
from .writer import write_dataset

__all__ = (
    "open_dataset",
    "write_dataset",
    "resolve_type",
    "DatasetRegistry",
    "Fragment",
    "LogicalTable",
    "HivePartitioning",
)
