"""The Lakeview execution engine building blocks.

The compute package defines the in-memory format for physical
query plans and the plan nodes supported.

The engine is tightly bound to Apache Arrow,
thus the nodes will expect to always deal with
:class:`pyarrow.RecordBatch` and emit new RecordBatches
as the result of the node execution.

This allows to easily build compute pipelines like::

    (RecordBatch)-->Node1--(RecordBatch)-->Node2--(RecordBatch)-->...

The query plan nodes themselves are in charge of their execution,
this keeps the behavior near to the node and thus makes easy to
know how a Node is actually executed.

Nodes are usually created by :class:`lakeview.engine.QueryPlanner`
out of the operations recorded by a :class:`lakeview.dataframe.Dataframe`,
but they can also be combined by hand:

>>> import pyarrow as pa
>>> import pyarrow.compute as pc
>>> from lakeview.compute import col, lit, PyArrowTableDataSource
>>> from lakeview.compute import FilterNode, FunctionCallExpression
>>> data = pa.table({
...    "animals": pa.array(["Flamingo", "Horse", "Brittle stars", "Centipede"]),
...    "n_legs": pa.array([2, 4, 5, 100])
... })
>>> query = FilterNode(
...     FunctionCallExpression(pc.greater_equal, col("n_legs"), lit(5)),
...     child=PyArrowTableDataSource(data)
... )
>>> for batch in query.batches():
...     print(batch.to_pydict())
{'animals': ['Brittle stars', 'Centipede'], 'n_legs': [5, 100]}
"""

from .aggregate import (
    AggregateNode,
    Aggregation,
    CountAggregation,
    CountRowsAggregation,
    MaxAggregation,
    MeanAggregation,
    MinAggregation,
    SumAggregation,
)
from .base import ColumnRef, Expression, Literal, QueryPlanNode, col, lit
from .datasources import CSVDataSource, ParquetDataSource, PyArrowTableDataSource
from .expressions import FunctionCallExpression, NullIfExpression
from .filtering import FilterNode
from .pagination import PaginateNode
from .selection import ProjectNode
from .sorting import SortNode

__all__ = (
    "QueryPlanNode",
    "Expression",
    "CSVDataSource",
    "ParquetDataSource",
    "PyArrowTableDataSource",
    "FilterNode",
    "FunctionCallExpression",
    "NullIfExpression",
    "col",
    "lit",
    "ColumnRef",
    "Literal",
    "PaginateNode",
    "SortNode",
    "ProjectNode",
    "AggregateNode",
    "Aggregation",
    "CountAggregation",
    "CountRowsAggregation",
    "MaxAggregation",
    "MeanAggregation",
    "MinAggregation",
    "SumAggregation",
)
