"""Query plan nodes that implement projection of columns.

Projection selects specific columns and computes new ones
based on expressions, like the ``SELECT`` clause in SQL
or ``select()`` and ``mutate()`` in dataframe libraries.
"""

import pyarrow as pa

from .base import QueryPlanNode
from .expressions import Expression


class ProjectNode(QueryPlanNode):
    """Project data by selecting specific columns and computing expressions.

    The projection expects a list of column names to select and a dictionary
    of column names and expressions to project new columns.
    Projecting a column with the name of an existing one replaces it.

    >>> import pyarrow as pa
    >>> import pyarrow.compute as pc
    >>> from lakeview.compute import col, FunctionCallExpression, PyArrowTableDataSource
    >>> data = pa.record_batch({"a": [1, 2, 3], "b": [4, 5, 6]})
    >>> next(ProjectNode(["a"], {"ab_sum": FunctionCallExpression(pc.add, col("a"), col("b"))},
    ...                  PyArrowTableDataSource(data)).batches())
    pyarrow.RecordBatch
    a: int64
    ab_sum: int64
    ----
    a: [1,2,3]
    ab_sum: [5,7,9]
    """

    def __init__(
        self,
        select: list[str] | None,
        project: dict[str, Expression] | None,
        child: QueryPlanNode,
    ) -> None:
        """
        :param select: The list of column names to select.
                       ``None`` means select all columns.
                       ``[]`` means select only the projected columns.
        :param project: The dict {name: Expression} to project new columns.
        :param child: The node emitting the data to be projected.
        """
        self.select = select
        self.project = project or {}
        self.child = child

        if self.select is None:
            self.restrict_columns = None
        else:
            # In case select=[] it will only provide the project columns.
            self.restrict_columns = self.select + [
                name for name in self.project if name not in self.select
            ]

    def __str__(self) -> str:
        return f"ProjectNode(select={self.select}, project={self.project}, child={self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Apply the projection to the child node.

        For each recordbatch yielded by the child node,
        sequentially apply the expressions to project new columns
        and then select the requested columns.

        Expressions are applied sequentially, so an expression
        can refer to a column projected by a previous one.
        """
        for batch in self.child.batches():
            for name, expr in self.project.items():
                data = expr.apply(batch)
                if isinstance(data, pa.Scalar):
                    data = pa.repeat(data, batch.num_rows)
                index = batch.schema.get_field_index(name)
                if index >= 0:
                    batch = batch.set_column(index, name, data)
                else:
                    batch = batch.append_column(name, data)

            if self.restrict_columns is not None:
                batch = batch.select(self.restrict_columns)

            yield batch
