"""Options controlling how datasets are scanned.

Options are kept in a frozen dataclass so that they can be shared
between the registry, the planner and the data sources without
anyone changing them halfway through a query::

    >>> options = ScanOptions(batch_size=1024)
    >>> options.replace(use_threads=False).use_threads
    False
"""

import dataclasses
from typing import Self


@dataclasses.dataclass(frozen=True)
class ScanOptions:
    """How to read the files of a dataset.

    :param batch_size: Maximum rows per batch emitted when reading Parquet files.
    :param csv_block_size: Bytes per block when reading CSV files.
                           The first block is also the sample
                           used to infer the column types,
                           ``None`` uses the pyarrow default.
    :param delimiter: The CSV field delimiter.
    :param null_values: Strings that should be read as null in CSV files,
                        ``None`` uses the pyarrow defaults (``""``, ``"NA"``, ...).
    :param use_threads: Allow pyarrow to use multiple threads to decode data.
    """

    batch_size: int = 65536
    csv_block_size: int | None = None
    delimiter: str = ","
    null_values: tuple[str, ...] | None = None
    use_threads: bool = True

    def replace(self, **changes) -> Self:
        """Return a copy of the options with the given fields changed."""
        return dataclasses.replace(self, **changes)


DEFAULT_OPTIONS = ScanOptions()
