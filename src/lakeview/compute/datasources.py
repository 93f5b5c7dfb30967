"""Query Plan nodes that load data

The datasource nodes are expected to fetch the data from some source,
convert it into the format accepted by the engine and forward it
to the next node in the plan.

They are used to do things like loading data from CSV or Parquet files.
Both file sources can be restricted to a subset of the columns,
so that data nobody uses is never decoded, and Parquet sources
can skip row groups that are known not to contain interesting data.

Errors that happen while reading a file are reported as
:class:`lakeview.errors.DatasetReadError` naming the file.
"""

import logging
from abc import abstractmethod
from typing import Callable

import pyarrow as pa
import pyarrow.csv
import pyarrow.parquet

from ..errors import DatasetReadError
from .base import QueryPlanNode

logger = logging.getLogger(__name__)

READ_ERRORS = (OSError, pa.ArrowInvalid, pa.ArrowTypeError, pa.ArrowNotImplementedError)

RowGroupFilter = Callable[["pa.parquet.RowGroupMetaData"], bool]


class DataSourceNode(QueryPlanNode):
    """Base class for nodes that load data from a source."""

    @abstractmethod
    def poll_schema(self) -> pa.Schema:
        """Poll the schema of the data source without loading its content."""
        ...


class CSVDataSource(DataSourceNode):
    """Load data from a CSV file.

    Given a local CSV file path, load the content,
    convert it into Arrow format, and emit it
    for the next nodes of the query plan to consume.

    The types of the columns are inferred from the first
    block of the file, so a column that is empty in the
    first rows and has text further on would fail to
    read. Declaring its type in ``column_types`` solves it.
    """

    def __init__(
        self,
        filename: str,
        block_size: int | None = None,
        columns: list[str] | None = None,
        column_types: dict[str, pa.DataType] | None = None,
        delimiter: str = ",",
        null_values: tuple[str, ...] | None = None,
        use_threads: bool = True,
    ) -> None:
        """
        :param filename: The path of the local CSV file.
        :param block_size: How big to make blocks of data in bytes,
                           Influences how many batches will be produced
                           and how many rows are used to infer types.
        :param columns: Read only these columns, ``None`` reads all of them.
                        Columns missing from the file are read as null.
        :param column_types: Declared types that replace the inferred ones.
        :param delimiter: The character separating the fields.
        :param null_values: Strings that must be read as null.
        :param use_threads: Allow pyarrow to decode using multiple threads.
        """
        self.filename = filename
        self.block_size = block_size
        self.columns = columns
        self.column_types = column_types or {}
        self.delimiter = delimiter
        self.null_values = null_values
        self.use_threads = use_threads

    def __str__(self) -> str:
        return f"CSVDataSource({self.filename}, block_size={self.block_size})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Open CSV file and emit the batches."""
        logger.debug("Reading CSV file %s columns=%s", self.filename, self.columns)
        try:
            with pa.csv.open_csv(
                self.filename,
                read_options=self._read_options(),
                parse_options=pa.csv.ParseOptions(delimiter=self.delimiter),
                convert_options=self._convert_options(),
            ) as reader:
                for batch in reader:
                    if self.columns is not None and not self.columns:
                        batch = batch.select([])
                    yield batch
        except READ_ERRORS as e:
            raise DatasetReadError(
                f"Unable to read {self.filename}: {e}. "
                "If a column was inferred with the wrong type, declare its type."
            ) from e

    def poll_schema(self) -> pa.Schema:
        """Poll the schema of the CSV file.

        Only the first block of the file is read to infer the schema.
        """
        try:
            with pa.csv.open_csv(
                self.filename,
                read_options=self._read_options(),
                parse_options=pa.csv.ParseOptions(delimiter=self.delimiter),
                convert_options=self._convert_options(all_columns=True),
            ) as reader:
                return reader.schema
        except READ_ERRORS as e:
            raise DatasetReadError(f"Unable to read {self.filename}: {e}") from e

    def _read_options(self) -> pa.csv.ReadOptions:
        options = pa.csv.ReadOptions(use_threads=self.use_threads)
        if self.block_size is not None:
            options.block_size = self.block_size
        return options

    def _convert_options(self, all_columns: bool = False) -> pa.csv.ConvertOptions:
        # Empty cells are missing values for text columns too.
        options = pa.csv.ConvertOptions(
            column_types=self.column_types, strings_can_be_null=True
        )
        if self.null_values is not None:
            options.null_values = list(self.null_values)
        # pyarrow reads all columns when include_columns is empty,
        # the batches are emptied afterwards in that case.
        if not all_columns and self.columns:
            options.include_columns = list(self.columns)
            options.include_missing_columns = True
        return options


class ParquetDataSource(DataSourceNode):
    """Load data from a Parquet file.

    Given a local parquet file path, load the content,
    convert it into Arrow format, and emit it
    for the next nodes of the query plan to consume.

    Parquet files are split in row groups, and for each row group
    the file stores statistics like the min and max values of each
    column. A ``row_group_filter`` can look at those statistics
    and decide that a row group has no interesting data,
    in which case the row group will never be read.
    """

    def __init__(
        self,
        filename: str,
        batch_size: int | None = None,
        columns: list[str] | None = None,
        row_group_filter: RowGroupFilter | None = None,
        use_threads: bool = True,
    ) -> None:
        """
        :param filename: The path of the local parquet file.
        :param batch_size: How big to make batches of data,
                           Influences how many batches will be produced
        :param columns: Read only these columns, ``None`` reads all of them.
                        Columns missing from the file are ignored.
        :param row_group_filter: Returns ``False`` for row groups that can be skipped.
        :param use_threads: Allow pyarrow to decode using multiple threads.
        """
        self.filename = filename
        self.batch_size = batch_size or 65536
        self.columns = columns
        self.row_group_filter = row_group_filter
        self.use_threads = use_threads
        self.row_groups_total = 0
        self.row_groups_read = 0

    def __str__(self) -> str:
        return f"ParquetDataSource({self.filename}, batch_size={self.batch_size})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Open the Parquet file and emit the batches of the selected row groups."""
        try:
            with pa.parquet.ParquetFile(self.filename) as reader:
                metadata = reader.metadata
                row_groups = list(range(metadata.num_row_groups))
                self.row_groups_total = len(row_groups)
                if self.row_group_filter is not None:
                    row_groups = [
                        i for i in row_groups if self.row_group_filter(metadata.row_group(i))
                    ]
                self.row_groups_read = len(row_groups)
                logger.debug(
                    "Reading %d/%d row groups of %s columns=%s",
                    self.row_groups_read,
                    self.row_groups_total,
                    self.filename,
                    self.columns,
                )
                if not row_groups:
                    return

                columns = self.columns
                if columns is not None:
                    available = set(reader.schema_arrow.names)
                    columns = [c for c in columns if c in available]
                yield from reader.iter_batches(
                    batch_size=self.batch_size,
                    row_groups=row_groups,
                    columns=columns,
                    use_threads=self.use_threads,
                )
        except READ_ERRORS as e:
            raise DatasetReadError(f"Unable to read {self.filename}: {e}") from e

    def poll_schema(self) -> pa.Schema:
        """Poll the schema of the Parquet file.

        Only the footer of the file is read.
        """
        try:
            with pa.parquet.ParquetFile(self.filename) as reader:
                return reader.schema_arrow
        except READ_ERRORS as e:
            raise DatasetReadError(f"Unable to read {self.filename}: {e}") from e


class PyArrowTableDataSource(DataSourceNode):
    """Load data from an in-memory pyarrow.Table or pyarrow.RecordBatch.

    Given a :class:`pyarrow.Table` or `pyarrow.RecordBatch` object,
    allow to use its data in a query plan.
    """

    def __init__(self, table: pa.Table | pa.RecordBatch) -> None:
        """
        :param table: The table or recordbatch with the data to read.
        """
        self.table = table
        self.is_recordbatch = isinstance(table, pa.RecordBatch)

    def __str__(self) -> str:
        return f"PyArrowTableDataSource(columns={self.table.column_names}, rows={self.table.num_rows})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Emit the data contained in the Table for consumption by other node."""
        if self.is_recordbatch:
            yield self.table
        else:
            yield from self.table.to_batches()

    def poll_schema(self) -> pa.Schema:
        """Poll the schema of the Table."""
        return self.table.schema
