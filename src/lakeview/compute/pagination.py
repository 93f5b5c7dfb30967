"""Support limiting or skipping data in a query plan.

Implements nodes whose purpose is to slice the data
emitted by a query plan, discarding the rows that
are not part of the selected slice, like ``head()``
or ``LIMIT ... OFFSET ...``.
"""

from .base import QueryPlanNode


class PaginateNode(QueryPlanNode):
    """Emit only one page of the received data.

    Given a starting index and a length, only emit
    length rows after the starting index is reached.

    For example if ``offset=1`` and ``length=1``
    only the second row will be emitted::

        0: skip because < offset
        1: emit
        2: skip because one row was already emitted.
    """

    def __init__(self, offset: int, length: int, child: QueryPlanNode) -> None:
        """
        :param offset: From which row to take data, first row is 0.
        :param length: How many rows to take after offset was reached.
        :param child: the node from which to consume the rows.
        """
        if offset < 0 or length < 0:
            raise ValueError("offset and length must not be negative")
        self.offset = offset
        self.length = length
        self.end = offset + length
        self.child = child

    def __str__(self) -> str:
        return f"PaginateNode({self.offset}:{self.end}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Apply the pagination to the child node and emit the rows.

        Consume rows from the child node skipping those until we
        reach offset. Once offset is reached start yielding rows
        until length is reached.

        Subsequent rows are never consumed, the child generator
        is closed as soon as the page is complete, so that
        files still open in the child get released and
        the remaining files are never opened.
        """
        if self.length == 0:
            return

        consumed_rows = 0
        batches_generator = self.child.batches()
        try:
            for batch in batches_generator:
                batch_size = batch.num_rows

                if consumed_rows + batch_size <= self.offset:
                    consumed_rows += batch_size
                    continue

                start_in_batch = max(0, self.offset - consumed_rows)
                remaining_rows = self.end - max(consumed_rows, self.offset)
                rows_in_this_batch = min(batch_size - start_in_batch, remaining_rows)
                if rows_in_this_batch > 0:
                    yield batch.slice(start_in_batch, rows_in_this_batch)
                consumed_rows += batch_size
                if consumed_rows >= self.end:
                    break
        finally:
            batches_generator.close()
