"""Query plan nodes that implement filtering of rows.

Filtering keeps only the rows that respect a predicate,
like the ``WHERE`` condition in SQL queries or
``filter()`` in dataframe libraries.
"""

import pyarrow as pa

from ..errors import UnsupportedExpressionError
from .base import QueryPlanNode
from .expressions import Expression


class FilterNode(QueryPlanNode):
    """Filter data based on a predicate expression.

    The filter expects an expression that when applied
    to the batch of data being filtered returns ``true``
    or ``false`` for each row in the data to mark which
    rows have to be preserved and which rows have to be discarded.
    Rows for which the predicate is null are discarded.

    >>> import pyarrow as pa
    >>> import pyarrow.compute as pc
    >>> from lakeview.compute import col, lit, FunctionCallExpression, PyArrowTableDataSource
    >>> data = pa.record_batch({"values": [1, 2, 3, 4, 5]})
    >>> predicate = FunctionCallExpression(pc.greater, col("values"), lit(3))
    >>> next(FilterNode(predicate, PyArrowTableDataSource(data)).batches())
    pyarrow.RecordBatch
    values: int64
    ----
    values: [4,5]
    """

    def __init__(self, expression: Expression, child: QueryPlanNode) -> None:
        """
        :param expression: The predicate expression to filter with.
        :param child: The node emitting the data to be filtered.
        """
        self.expression = expression
        self.child = child

    def __str__(self) -> str:
        return f"FilterNode(filter={self.expression}, child={self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Apply the filtering to the child node.

        For each recordbatch yielded by the child node,
        apply the expression and get back a mask
        (an array of only true/false values).

        Based on the mask filter the rows of the batch
        and return only those matching the filter.
        """
        for batch in self.child.batches():
            mask = self.expression.apply(batch)
            if isinstance(mask, pa.Scalar):
                # Constant predicates keep or drop the whole batch.
                mask = pa.repeat(mask, batch.num_rows)
            if not pa.types.is_boolean(mask.type):
                raise UnsupportedExpressionError(
                    f"Filter predicate {self.expression} returns {mask.type} values, "
                    "expected booleans"
                )
            yield batch.filter(mask)
