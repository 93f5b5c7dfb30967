"""Base classes and interfaces for the execution engine.

This module defines the base components that are
necessary to represent a physical query plan and execute it.
"""

import abc
from typing import Any, Iterator

import pyarrow as pa


class QueryPlanNode(abc.ABC):
    """A node of a physical query plan.

    The physical plan is represented as a tree of nodes.
    Each node is a step in the execution and all previous
    steps are children of the last one.

    For example a simple plan might involve
    scanning a dataset and filtering it::

        DatasetScanNode -> FilterNode(filter)

    That would be a plan where the last step
    is filtering, and the scan node is a child
    of the filter node.

    Each Node accepts :class:`pyarrow.RecordBatch`
    data as its input and emits new
    :class:`pyarrow.RecordBatch` objects as its output.

    Nothing is read or computed until :meth:`batches`
    is iterated, so building a tree of nodes is free.

    For example a node that forwards the data as is
    after printing it can be implemented as::

        class DebugDataNode(QueryPlanNode):
            def __init__(self, child):
                self.child = child

            def batches(self):
                for b in self.child.batches():
                    print(b)
                    yield b

            def __str__(self):
                return f"DebugDataNode({self.child})"
    """

    RecordBatchesGenerator = Iterator[pa.RecordBatch]

    @abc.abstractmethod
    def batches(self) -> RecordBatchesGenerator:
        """Emits the batches for the next node.

        Usually this happens by consuming data from the
        child nodes, transforming it somehow, and yielding
        it back to the next consumer.
        """
        ...

    @abc.abstractmethod
    def __str__(self) -> str:
        """Human readable representation of the node."""
        ...


class Expression(abc.ABC):
    """Expression to apply to a RecordBatch.

    Expressions are operations applied to the data of a
    :class:`pyarrow.RecordBatch` to compute new data,
    for example ``A + B`` or ``year == 2020``.

    As the engine is column major, applying an expression
    results in a new column, thus a :class:`pyarrow.Array`,
    or in a :class:`pyarrow.Scalar` for constant expressions.
    """

    @abc.abstractmethod
    def apply(self, batch: pa.RecordBatch) -> pa.Array | pa.Scalar:
        """Apply the expression to a RecordBatch."""
        ...

    @abc.abstractmethod
    def __str__(self) -> str:
        """Human readable representation of the expression."""
        ...

    def __repr__(self) -> str:
        return str(self)


class ColumnRef(Expression):
    """References a column in a record batch.

    When applied to a record batch returns the data for
    the referenced column.
    """

    def __init__(self, name: str) -> None:
        """
        :param name: The name of the column being referenced.
        """
        self.name = name

    def apply(self, batch: pa.RecordBatch) -> pa.Array:
        """Get the data for the column."""
        return batch.column(self.name)

    def __str__(self) -> str:
        return f"ColumnRef({self.name})"


class Literal(Expression):
    """A constant value.

    The value is converted to a :class:`pyarrow.Scalar`
    once, so that compute functions receive it already
    in arrow format.
    """

    def __init__(self, value: Any, type: pa.DataType | None = None) -> None:
        """
        :param value: The python value of the literal.
        :param type: Force a specific arrow type for the value.
        """
        self.value = value
        self.scalar = pa.scalar(value, type=type)

    def apply(self, batch: pa.RecordBatch) -> pa.Scalar:
        """The literal is the same for every batch."""
        return self.scalar

    def __str__(self) -> str:
        return f"Literal({self.scalar!r})"


col = ColumnRef
lit = Literal
