"""Query plan nodes that perform sorting of data.

When computing ranks or looking for most significant
values, it's often necessary to sort the data based
on one or more columns.
"""

import pyarrow as pa

from .base import QueryPlanNode


class SortNode(QueryPlanNode):
    """Sort data in-memory based on one or more columns.

    The node expects a list of columns and a list of
    sort directions. The data will be sorted based on
    the columns in the order they are provided.
    Null values are placed at the end.

    >>> import pyarrow as pa
    >>> from lakeview.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"values": [1, 2, 3, 4, 5]})
    >>> sort = SortNode(["values"], [True], PyArrowTableDataSource(data))
    >>> next(sort.batches())
    pyarrow.RecordBatch
    values: int64
    ----
    values: [5,4,3,2,1]
    """

    def __init__(
        self, keys: list[str], descending: list[bool], child: QueryPlanNode
    ) -> None:
        """
        :param keys: The columns to sort by in the order they should be sorted.
        :param descending: If each columns should be sorted in a descending order.
        :param child: The node emitting the data to be sorted.
        """
        if len(keys) != len(descending):
            raise ValueError("Keys and descending must have the same length")

        self.sorting = list(
            zip(keys, ("descending" if desc else "ascending" for desc in descending))
        )
        self.child = child

    def __str__(self) -> str:
        return f"SortNode(sorting={self.sorting}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Sort the data of the child node.

        Batches provided by child node are accumulated
        until they are all loaded in memory, then they
        are merged and sorted as an unique table.
        """
        batches = list(self.child.batches())
        if not batches:
            return
        if len(batches) == 1:
            yield batches[0].sort_by(self.sorting)
            return

        # A table made of the batches is zero-copy,
        # each batch becomes a chunk of the table columns.
        table = pa.Table.from_batches(batches).sort_by(self.sorting)
        yield from table.combine_chunks().to_batches()
