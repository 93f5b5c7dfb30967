"""The Dataframe object itself."""

import os
from typing import Any, Self

import pyarrow as pa

from ..compute.aggregate import Aggregation
from ..compute.base import ColumnRef, Expression
from ..compute.expressions import NullIfExpression
from ..config import ScanOptions
from ..dataset import LogicalTable, open_dataset
from ..engine import QueryPlanner, materialize
from ..plan import Aggregate, Filter, GroupBy, Limit, Mutate, QueryPlan, Select, Sort


class Dataframe:
    """Data structure that handles data in rows and columns.

    The Dataframe object allows to represent on-disk or in-memory
    data and perform transformations over it.

    The dataframe object is lazy, which means that any transformation
    or analysis is only recorded in its query plan, and will be applied
    only when the ``.collect()`` or ``.to_arrow()`` methods are invoked.
    No data is read until that moment.

    Dataframes are immutable, each transformation returns a new
    dataframe and the original one can still be used.
    """

    def __init__(
        self,
        source: LogicalTable | pa.Table | pa.RecordBatch,
        plan: QueryPlan | None = None,
    ) -> None:
        """
        :param source: A logical table registered with
                       :func:`lakeview.dataset.open_dataset` or in-memory data.
        :param plan: The operations to apply to the source.
        """
        if not isinstance(source, (LogicalTable, pa.Table, pa.RecordBatch)):
            raise ValueError(
                "Invalid input, expected a LogicalTable or a PyArrow Table"
            )

        self._source = source
        self._plan = plan or QueryPlan()

    @property
    def source(self) -> LogicalTable | pa.Table | pa.RecordBatch:
        """The data the query plan reads."""
        return self._source

    @property
    def plan(self) -> QueryPlan:
        """The operations recorded so far."""
        return self._plan

    def __str__(self) -> str:
        return f"Dataframe({self.source}, plan={self.plan})"

    __repr__ = __str__

    @classmethod
    def open_dataset(
        cls,
        sources: Any,
        format: str | None = None,
        schema: dict[str, pa.DataType | str] | None = None,
        partitioning: str | list[str] | None = "hive",
        options: ScanOptions | None = None,
    ) -> Self:
        """Open one or more files as a Dataframe.

        See :func:`lakeview.dataset.open_dataset` for the arguments.
        """
        return cls(
            open_dataset(
                sources,
                format=format,
                schema=schema,
                partitioning=partitioning,
                options=options,
            )
        )

    @classmethod
    def open_csv(cls, filename: str | os.PathLike, **kwargs: Any) -> Self:
        """Open a CSV file and create a Dataframe out of its data.

        :param filename: The path to a local CSV file.
        """
        return cls.open_dataset(filename, format="csv", **kwargs)

    @classmethod
    def open_parquet(cls, filename: str | os.PathLike, **kwargs: Any) -> Self:
        """Open a Parquet file and create a Dataframe out of its data.

        :param filename: The path to a local Parquet file.
        """
        return cls.open_dataset(filename, format="parquet", **kwargs)

    def _with(self, operation) -> Self:
        return self.__class__(self.source, self.plan.append(operation))

    def filter(self, expression: Expression) -> Self:
        """Apply a filter to the data and return a new Dataframe.

        The returned dataframe will only contain the data that
        matches the filter predicate.

        :param expression: The expression representing the predicate.
                           for example `A > B`.
        """
        if not isinstance(expression, Expression):
            raise TypeError(f"Filter requires an Expression, got {expression!r}")
        return self._with(Filter(expression))

    def select(self, *columns: str) -> Self:
        """Keep only the given columns, in the given order."""
        return self._with(Select(tuple(columns)))

    def mutate(self, **expressions: Expression) -> Self:
        """Add new columns, or replace existing ones, computed by expressions.

        Expressions are computed in order, so each one
        can use the columns created by the previous ones::

            df.mutate(
                total=FunctionCallExpression(pc.multiply, col("price"), col("quantity")),
                total_eur=FunctionCallExpression(pc.multiply, col("total"), lit(0.9)),
            )
        """
        for name, expression in expressions.items():
            if not isinstance(expression, Expression):
                raise TypeError(f"Column {name!r} requires an Expression, got {expression!r}")
        return self._with(Mutate(dict(expressions)))

    def null_if(self, column: str, *values: Any) -> Self:
        """Replace values that mean "missing" with null.

        Implausible values, like diamonds with a ``0`` width,
        usually mean that the value was not recorded.
        Recoding them to null avoids using them in computations::

            df.null_if("y", 0)
        """
        if not values:
            raise ValueError("null_if requires at least one value to replace")
        return self._with(Mutate({column: NullIfExpression(ColumnRef(column), list(values))}))

    def group_by(self, *keys: str) -> Self:
        """Group the rows by the given keys.

        The grouping is used by the next :meth:`aggregate`.
        """
        if not keys:
            raise ValueError("group_by requires at least one key")
        return self._with(GroupBy(tuple(keys)))

    def aggregate(
        self,
        aggregations: dict[str, Aggregation] | None = None,
        **named_aggregations: Aggregation,
    ) -> Self:
        """Compute aggregations for each group.

        When the dataframe was not grouped, aggregations
        are computed over all the rows::

            df.group_by("city").aggregate(total_employees=SumAggregation("n_employees"))
        """
        aggregations = {**(aggregations or {}), **named_aggregations}
        if not aggregations:
            raise ValueError("aggregate requires at least one aggregation")
        for name, aggregation in aggregations.items():
            if not isinstance(aggregation, Aggregation):
                raise TypeError(
                    f"Column {name!r} requires an Aggregation, got {aggregation!r}"
                )
        return self._with(Aggregate(self.plan.grouping, aggregations))

    def sort(
        self, keys: str | list[str], descending: bool | list[bool] = False
    ) -> Self:
        """Sort the rows by one or more columns.

        :param keys: The columns to sort by in the order they should be sorted.
        :param descending: If the columns should be sorted in descending order,
                           either one flag for all keys or one for each key.
        """
        if isinstance(keys, str):
            keys = [keys]
        if isinstance(descending, bool):
            descending = [descending] * len(keys)
        return self._with(Sort(tuple(keys), tuple(descending)))

    def limit(self, length: int, offset: int = 0) -> Self:
        """Keep only ``length`` rows, skipping the first ``offset`` ones."""
        return self._with(Limit(length, offset))

    head = limit

    def explain(self) -> str:
        """Describe how the query will be executed, without reading any data.

        The description shows which files and columns will be read.
        """
        return str(QueryPlanner(self.source, self.plan).plan())

    def collect(self) -> Self:
        """Collect all data of the dataframe in memory.

        Returns a new Dataframe that has all data from the
        previous dataframe eagerly loaded in memory.
        """
        return self.__class__(self.to_arrow())

    def to_arrow(self) -> pa.Table:
        """Collect all the data and return a pyarrow.Table"""
        return materialize(self.source, self.plan)
