"""Scan of the files of a logical table.

The scan is the leaf of every query plan over a dataset.
It reads the selected fragments one after the other,
restricted to the required columns, and shapes every batch
to the table schema: columns missing from a file become nulls,
declared types are applied, and the partition columns are
added with the values decoded from the path of the file.
"""

import dataclasses
import logging

import pyarrow as pa

from ..compute.base import QueryPlanNode
from ..compute.datasources import ParquetDataSource
from ..dataset.registry import Fragment, LogicalTable
from ..errors import DatasetReadError
from .pruning import StatisticsRowGroupFilter

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class ScanMetrics:
    """How much of a dataset was actually read by a scan.

    :param files_total: The files of the logical table.
    :param files_pruned: Files skipped because of their partition values.
    :param files_read: Files that were opened.
    :param row_groups_total: Row groups of the Parquet files that were opened.
    :param row_groups_pruned: Row groups skipped because of their statistics.
    :param columns: The columns of the table that were read.
    """

    files_total: int = 0
    files_pruned: int = 0
    files_read: int = 0
    row_groups_total: int = 0
    row_groups_pruned: int = 0
    columns: tuple[str, ...] = ()
    paths_read: list[str] = dataclasses.field(default_factory=list)


class DatasetScanNode(QueryPlanNode):
    """Read the fragments of a logical table.

    >>> scan = DatasetScanNode(table, table.fragments, ["city", "year"])  # doctest: +SKIP
    >>> next(scan.batches()).column_names  # doctest: +SKIP
    ['city', 'year']
    """

    def __init__(
        self,
        table: LogicalTable,
        fragments: list[Fragment],
        columns: list[str],
        row_group_filter: StatisticsRowGroupFilter | None = None,
    ) -> None:
        """
        :param table: The logical table being scanned.
        :param fragments: The fragments to read, the ones not pruned.
        :param columns: The columns of the table to emit.
        :param row_group_filter: Which Parquet row groups to read.
        """
        self.table = table
        self.fragments = fragments
        self.columns = [name for name in table.column_names if name in columns]
        self.row_group_filter = row_group_filter
        self.output_schema = pa.schema([table.schema.field(name) for name in self.columns])

        physical = table.physical_schema.names
        self.physical_columns = [name for name in self.columns if name in physical]
        # At least one column has to be read to know how many rows each file has.
        self.read_columns = self.physical_columns or physical[:1]

        self.metrics = ScanMetrics(
            files_total=len(table.fragments),
            files_pruned=len(table.fragments) - len(fragments),
            columns=tuple(self.columns),
        )

    def __str__(self) -> str:
        filters = f", row_groups={self.row_group_filter}" if self.row_group_filter else ""
        return (
            f"DatasetScanNode(format={self.table.format}, "
            f"files={len(self.fragments)}/{len(self.table.fragments)}, "
            f"columns={self.columns}{filters})"
        )

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Read each fragment and emit its batches in the table schema."""
        for fragment in self.fragments:
            source = self.table.data_source(
                fragment, self.read_columns, self.row_group_filter
            )
            self.metrics.files_read += 1
            self.metrics.paths_read.append(fragment.path)
            try:
                for batch in source.batches():
                    yield self._conform(batch, fragment)
            finally:
                # Also counted when the consumer stops early, like a limit.
                if isinstance(source, ParquetDataSource):
                    self.metrics.row_groups_total += source.row_groups_total
                    self.metrics.row_groups_pruned += (
                        source.row_groups_total - source.row_groups_read
                    )

    def _conform(self, batch: pa.RecordBatch, fragment: Fragment) -> pa.RecordBatch:
        """Shape a batch read from a fragment to the output schema."""
        arrays = []
        for field in self.output_schema:
            if field.name in self.table.partition_columns:
                value = fragment.partition_values.get(field.name)
                if value is None:
                    arrays.append(pa.nulls(batch.num_rows, type=field.type))
                else:
                    arrays.append(
                        pa.repeat(pa.scalar(value, type=field.type), batch.num_rows)
                    )
                continue

            index = batch.schema.get_field_index(field.name)
            if index < 0:
                arrays.append(pa.nulls(batch.num_rows, type=field.type))
                continue
            data = batch.column(index)
            if data.type != field.type:
                try:
                    data = data.cast(field.type)
                except (pa.ArrowInvalid, pa.ArrowNotImplementedError) as e:
                    raise DatasetReadError(
                        f"Column {field.name!r} of {fragment.path} "
                        f"can't be read as {field.type}: {e}"
                    ) from e
            arrays.append(data)
        return pa.RecordBatch.from_arrays(arrays, schema=self.output_schema)
