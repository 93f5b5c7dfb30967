"""Lakeview

Query large on-disk datasets lazily.

Lakeview registers one or more CSV or Parquet files, optionally
partitioned in ``key=value`` directories, as a single logical table
without loading them in memory. Queries against the table are built
lazily and are only executed when their result is requested, at which
point only the files, row groups and columns that the query needs are read.

The library is constituted by multiple components, each isolated within its own
package:

* The Dataset registry (:mod:`lakeview.dataset`), which maps files to logical tables.
* The Dataframe API (:mod:`lakeview.dataframe`), which records queries lazily.
* The Engine (:mod:`lakeview.engine`), which plans and executes queries
  using the nodes of :mod:`lakeview.compute`.
"""

from . import compute
from .dataframe import Dataframe
from .dataset import DatasetRegistry, open_dataset, write_dataset

__all__ = ("compute", "Dataframe", "DatasetRegistry", "open_dataset", "write_dataset")
