"""Registration of files as logical tables.

A logical table is a set of files that are queried as if they
were a single table. The files are not loaded when the table
is registered, only their schema is polled (the footer of Parquet
files and the first block of CSV files) to know which columns
the table has and to detect files that are inconsistent with the others.

>>> table = open_dataset("sales/", schema={"discount": "float"})  # doctest: +SKIP
>>> table.partition_columns  # doctest: +SKIP
['year', 'month']
"""

import dataclasses
import logging
import os
from typing import Any, Iterable

import pyarrow as pa

from ..config import DEFAULT_OPTIONS, ScanOptions
from ..compute.datasources import (
    CSVDataSource,
    DataSourceNode,
    ParquetDataSource,
    RowGroupFilter,
)
from ..errors import DatasetReadError
from .partitioning import (
    HivePartitioning,
    convert_partition_values,
    infer_partition_type,
)
from .schema import SchemaOverrides, apply_overrides, resolve_overrides, unify_schemas

logger = logging.getLogger(__name__)

FORMAT_EXTENSIONS = {
    ".csv": "csv",
    ".tsv": "csv",
    ".txt": "csv",
    ".parquet": "parquet",
    ".pq": "parquet",
}
FORMATS = ("csv", "parquet")


@dataclasses.dataclass(frozen=True)
class Fragment:
    """One of the files of a logical table.

    :param path: Where the file is stored.
    :param partition_values: The value of each partition column
                             for the rows of this file.
    """

    path: str
    partition_values: dict[str, Any] = dataclasses.field(default_factory=dict)

    def __str__(self) -> str:
        return f"Fragment({self.path}, {self.partition_values})"


class LogicalTable:
    """Multiple files seen as a single table.

    The columns of the table are the columns of the files
    followed by the partition columns. Files lacking some of
    the columns will provide null values for them.

    Instances are created by :func:`open_dataset`.
    """

    def __init__(
        self,
        fragments: list[Fragment],
        format: str,
        physical_schema: pa.Schema,
        partition_schema: pa.Schema,
        column_types: dict[str, pa.DataType] | None = None,
        options: ScanOptions = DEFAULT_OPTIONS,
    ) -> None:
        """
        :param fragments: The files of the table.
        :param format: The format of the files, ``"csv"`` or ``"parquet"``.
        :param physical_schema: The unified schema of the columns stored in the files.
        :param partition_schema: The schema of the columns decoded from the paths.
        :param column_types: Declared types of the physical columns.
        :param options: How to read the files.
        """
        self.fragments = fragments
        self.format = format
        self.physical_schema = physical_schema
        self.partition_schema = partition_schema
        self.column_types = column_types or {}
        self.options = options

    @property
    def schema(self) -> pa.Schema:
        """The schema of the whole logical table."""
        return pa.schema(list(self.physical_schema) + list(self.partition_schema))

    @property
    def partition_columns(self) -> list[str]:
        return self.partition_schema.names

    @property
    def column_names(self) -> list[str]:
        return self.schema.names

    def __str__(self) -> str:
        return (
            f"LogicalTable(format={self.format}, fragments={len(self.fragments)}, "
            f"columns={self.column_names}, partitioning={self.partition_columns})"
        )

    def describe(self) -> str:
        """Human readable summary of the table."""
        lines = [
            f"{self.format} dataset, {len(self.fragments)} files",
            "columns:",
        ]
        for field in self.physical_schema:
            lines.append(f"  {field.name}: {field.type}")
        for field in self.partition_schema:
            lines.append(f"  {field.name}: {field.type} (partition)")
        return "\n".join(lines)

    def data_source(
        self,
        fragment: Fragment,
        columns: list[str] | None = None,
        row_group_filter: RowGroupFilter | None = None,
    ) -> DataSourceNode:
        """Create the node that reads a fragment of the table.

        :param fragment: The file to read.
        :param columns: The physical columns to read, ``None`` for all.
        :param row_group_filter: Which Parquet row groups to read.
        """
        options = self.options
        if self.format == "csv":
            return CSVDataSource(
                fragment.path,
                block_size=options.csv_block_size,
                columns=columns,
                column_types=self.column_types,
                delimiter=options.delimiter,
                null_values=options.null_values,
                use_threads=options.use_threads,
            )
        return ParquetDataSource(
            fragment.path,
            batch_size=options.batch_size,
            columns=columns,
            row_group_filter=row_group_filter,
            use_threads=options.use_threads,
        )


def open_dataset(
    sources: str | os.PathLike | Iterable[str | os.PathLike],
    format: str | None = None,
    schema: SchemaOverrides | None = None,
    partitioning: str | list[str] | None = "hive",
    options: ScanOptions | None = None,
) -> LogicalTable:
    """Register one or more files as a single logical table.

    :param sources: A file, a directory or a list of them.
                    Directories are searched recursively.
    :param format: ``"csv"`` or ``"parquet"``, ``None`` detects it
                   from the extension of the files.
    :param schema: Declared types for some of the columns,
                   like ``{"year": "integer", "price": pa.float64()}``.
    :param partitioning: ``"hive"`` to read ``key=value`` directories
                         as partition columns, a list of names to only
                         accept those keys, ``None`` to ignore directories.
    :param options: How to read the files.
    """
    options = options or DEFAULT_OPTIONS
    if format is not None and format not in FORMATS:
        raise ValueError(f"Unsupported format {format!r}, expected one of {FORMATS}")

    files = discover_files(sources, format)
    format = detect_format([path for path, _ in files], format)
    if options.delimiter == "," and all(
        path.lower().endswith(".tsv") for path, _ in files
    ):
        options = options.replace(delimiter="\t")

    overrides = resolve_overrides(schema)
    partition_schema, fragments = _build_fragments(files, partitioning, overrides)
    column_types = {
        name: t for name, t in overrides.items() if name not in partition_schema.names
    }

    table = LogicalTable(
        fragments,
        format,
        pa.schema([]),
        partition_schema,
        column_types=column_types,
        options=options,
    )
    file_schemas = [
        (f.path, apply_overrides(table.data_source(f).poll_schema(), column_types))
        for f in fragments
    ]
    physical_schema = unify_schemas(file_schemas)
    for name in partition_schema.names:
        index = physical_schema.get_field_index(name)
        if index >= 0:
            logger.debug("Column %s is also a partition key, the path value is used", name)
            physical_schema = physical_schema.remove(index)
    table.physical_schema = physical_schema

    logger.info(
        "Registered %s dataset with %d files, columns=%s partitioning=%s",
        format,
        len(fragments),
        physical_schema.names,
        partition_schema.names,
    )
    return table


def discover_files(
    sources: str | os.PathLike | Iterable[str | os.PathLike], format: str | None = None
) -> list[tuple[str, str]]:
    """Find the files of a dataset.

    Returns ``(path, base_dir)`` pairs, where ``base_dir`` is the
    directory the partitioning of the file is relative to.
    Hidden files and files starting with ``_`` are ignored,
    and in directories only files with a known extension are considered.
    """
    if isinstance(sources, (str, os.PathLike)):
        sources = [sources]
    sources = [os.fspath(source) for source in sources]

    files = []
    for source in sources:
        if os.path.isdir(source):
            found = []
            for dirpath, dirnames, filenames in os.walk(source):
                dirnames[:] = [d for d in dirnames if not d.startswith((".", "_"))]
                for filename in filenames:
                    if filename.startswith((".", "_")):
                        continue
                    file_format = _format_from_extension(filename)
                    if file_format is None or (format and file_format != format):
                        logger.debug("Ignoring %s in %s", filename, dirpath)
                        continue
                    found.append((os.path.join(dirpath, filename), source))
            files.extend(sorted(found))
        elif os.path.isfile(source):
            files.append((source, os.path.dirname(source)))
        else:
            raise DatasetReadError(f"No such file or directory: {source}")

    if not files:
        raise DatasetReadError(f"No data files found in {sources}")
    return files


def detect_format(paths: list[str], format: str | None = None) -> str:
    """Detect the format of the files, they must all share the same one."""
    if format is not None:
        return format
    formats = set()
    for path in paths:
        file_format = _format_from_extension(path)
        if file_format is None:
            raise DatasetReadError(f"Unable to detect the format of {path}")
        formats.add(file_format)
    if len(formats) > 1:
        raise DatasetReadError(f"Datasets must have a single format, found {sorted(formats)}")
    return formats.pop()


def _format_from_extension(path: str) -> str | None:
    _, ext = os.path.splitext(path)
    return FORMAT_EXTENSIONS.get(ext.lower())


def _build_fragments(
    files: list[tuple[str, str]],
    partitioning: str | list[str] | None,
    overrides: dict[str, pa.DataType],
) -> tuple[pa.Schema, list[Fragment]]:
    """Decode the partition values of each file.

    Keys missing from the path of some files are null for those files.
    """
    if partitioning is None:
        return pa.schema([]), [Fragment(path) for path, _ in files]
    if partitioning == "hive":
        decoder = HivePartitioning()
    elif isinstance(partitioning, (list, tuple)):
        decoder = HivePartitioning(list(partitioning))
    else:
        raise ValueError(f"Unsupported partitioning {partitioning!r}")

    raw_values = [decoder.parse(path, base_dir) for path, base_dir in files]
    keys: list[str] = []
    for values in raw_values:
        keys.extend(k for k in values if k not in keys)

    fields = []
    typed_columns = {}
    for key in keys:
        column = [values.get(key) for values in raw_values]
        key_type = overrides.get(key) or infer_partition_type(column)
        fields.append(pa.field(key, key_type))
        typed_columns[key] = convert_partition_values(key, column, key_type)

    fragments = [
        Fragment(path, {key: typed_columns[key][i] for key in keys})
        for i, (path, _) in enumerate(files)
    ]
    return pa.schema(fields), fragments


class DatasetRegistry:
    """A catalog of named logical tables.

    >>> registry = DatasetRegistry()
    >>> registry.register("sales", "data/sales/")  # doctest: +SKIP
    >>> registry.get("sales").partition_columns  # doctest: +SKIP
    ['year']
    """

    def __init__(self) -> None:
        self._tables: dict[str, LogicalTable] = {}

    def register(
        self, name: str, sources: Any, **kwargs: Any
    ) -> LogicalTable:
        """Register files as a logical table under a name.

        Accepts the same arguments as :func:`open_dataset`.
        Registering an existing name replaces the previous table.
        """
        table = open_dataset(sources, **kwargs)
        self._tables[name] = table
        return table

    def get(self, name: str) -> LogicalTable:
        try:
            return self._tables[name]
        except KeyError:
            raise KeyError(
                f"No dataset named {name!r}, registered datasets: {self.names()}"
            ) from None

    def unregister(self, name: str) -> None:
        self.get(name)
        del self._tables[name]

    def names(self) -> list[str]:
        return sorted(self._tables)

    def __contains__(self, name: str) -> bool:
        return name in self._tables

    def __len__(self) -> int:
        return len(self._tables)
