"""Query plan nodes that compute aggregations.

Frequently when analysing data is necessary
to compute statistics like the min, max, average, etc...
of the data stored in datasets.

The aggregate node is in charge of computing
those aggregations and projecting them as new
columns in a query pipeline.

Typically the aggregate node will group the data
by a set of columns and then compute the aggregations.

For example, given the following data::

    city, shop, n_employees
    New York, Shop A, 10
    New York, Shop B, 15
    Los Angeles, Shop C, 8
    Los Angeles, Shop D, 12
    New York, Shop E, 20

We could group by city and compute the sum of the employees
to get::

    city, total_employees
    New York, 45
    Los Angeles, 20

When no grouping key is provided, the aggregations
are computed over the whole data and a single row is emitted.
"""

import abc
from typing import Any

import pyarrow as pa
import pyarrow.compute as pc

from ..errors import UnsupportedExpressionError
from .base import QueryPlanNode

__all__ = (
    "AggregateNode",
    "Aggregation",
    "SumAggregation",
    "MinAggregation",
    "MaxAggregation",
    "MeanAggregation",
    "CountAggregation",
    "CountRowsAggregation",
)


class AggregateNode(QueryPlanNode):
    """Group data and compute aggregations.

    >>> import pyarrow as pa
    >>> from lakeview.compute import SumAggregation, PyArrowTableDataSource
    >>> data = pa.record_batch({
    ...    'city': pa.array(['New York', 'New York', 'Los Angeles', 'Los Angeles', 'New York']),
    ...    'shop': pa.array(['Shop A', 'Shop B', 'Shop C', 'Shop D', 'Shop E']),
    ...    'n_employees': pa.array([10, 15, 8, 12, 20])
    ... })
    >>> aggregate = AggregateNode(["city"], {"total_employees": SumAggregation("n_employees")}, PyArrowTableDataSource(data))
    >>> next(aggregate.batches())
    pyarrow.RecordBatch
    city: string
    total_employees: int64
    ----
    city: ["New York","Los Angeles"]
    total_employees: [45,20]
    """

    def __init__(
        self,
        keys: list[str],
        aggregations: dict[str, "Aggregation"],
        child: QueryPlanNode,
    ) -> None:
        """
        :param keys: The columns to group by, ``[]`` aggregates all rows together.
        :param aggregations: The aggregations to compute in the form of {"new_col_name": Aggregation}.
        :param child: The child node that will provide the data to aggregate.
        """
        for name, aggregation in aggregations.items():
            if not isinstance(aggregation, Aggregation):
                raise UnsupportedExpressionError(
                    f"Unsupported aggregation {aggregation!r} for column {name!r}"
                )
        self.keys = list(keys)
        self.aggregations = aggregations
        self.child = child

    def __str__(self) -> str:
        return f"AggregateNode(keys={self.keys}, aggregations={self.aggregations}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Aggregate the data emitted by the child node.

        Each batch is aggregated independently to compute partial
        results, so that only one batch at the time has to be kept
        in memory, then partial results are reduced to the final ones.
        """
        if not self.keys:
            yield from self.global_aggregation()
        elif len(self.keys) == 1:
            yield from self.single_key_aggregation()
        else:
            yield from self.multi_key_aggregation()

    def global_aggregation(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Compute the aggregations over all the rows."""
        chunks_data: dict[tuple, dict[str, list[Any]]] = {}
        last_batch = None
        for batch in self.child.batches():
            last_batch = batch
            self._compute_chunks(chunks_data, (), batch)

        if last_batch is not None:
            yield self.reduce_aggregations(chunks_data, last_batch.schema)

    def single_key_aggregation(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Compute the aggregation for a single key.

        This is an optimized path where we can rely on dictionary encoding
        to find the unique values of the key column and then filter the rows.
        """
        #   chunks_data = {(key_value,): {aggr_name: [aggr_value1, aggr_value2, ...]}}
        chunks_data: dict[tuple, dict[str, list[Any]]] = {}
        last_batch = None
        for batch in self.child.batches():
            last_batch = batch
            # Dictionary encode the key, so we get the unique values
            # and we know at which rows each value is.
            # Nulls are encoded too, as they form a group of their own.
            key_column = pc.dictionary_encode(
                batch.column(self.keys[0]), null_encoding="encode"
            )
            key_indices = key_column.indices

            for idx, keyval in enumerate(key_column.dictionary.to_pylist()):
                mask = pc.equal(key_indices, idx)
                self._compute_chunks(chunks_data, (keyval,), batch.filter(mask))

        if last_batch is not None:
            yield self.reduce_aggregations(chunks_data, last_batch.schema)

    def multi_key_aggregation(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Compute the aggregation for multiple keys.

        Dictionary encoding is not supported for StructArray,
        so in this case we sort the data by the aggregation keys,
        which places all the rows of a group one after the other,
        and then split the sorted batch where the key changes::

            Los Angeles, Shop A, 8
            New York, Shop A, 10
            New York, Shop B, 20
        """
        sorting_key = [(k, "ascending") for k in self.keys]
        chunks_data: dict[tuple, dict[str, list[Any]]] = {}
        last_batch = None
        for batch in self.child.batches():
            last_batch = batch
            sorted_batch = batch.sort_by(sorting_key)
            row_keys = list(
                zip(*(sorted_batch.column(k).to_pylist() for k in self.keys))
            )

            chunk_start = 0
            for row_index in range(1, len(row_keys) + 1):
                if row_index < len(row_keys) and row_keys[row_index] == row_keys[chunk_start]:
                    continue
                chunk = sorted_batch.slice(chunk_start, row_index - chunk_start)
                self._compute_chunks(chunks_data, row_keys[chunk_start], chunk)
                chunk_start = row_index

        if last_batch is not None:
            yield self.reduce_aggregations(chunks_data, last_batch.schema)

    def _compute_chunks(
        self,
        chunks_data: dict[tuple, dict[str, list[Any]]],
        keyvalue: tuple,
        batch: pa.RecordBatch,
    ) -> None:
        """Compute the partial aggregations of a group in a batch."""
        group_chunks = chunks_data.setdefault(keyvalue, {})
        for name, aggregation in self.aggregations.items():
            try:
                partial = aggregation.compute_chunk(batch)
            except (pa.ArrowNotImplementedError, pa.ArrowTypeError) as e:
                raise UnsupportedExpressionError(
                    f"Unable to compute {aggregation} for {name!r}: {e}"
                ) from e
            group_chunks.setdefault(name, []).append(partial)

    def reduce_aggregations(
        self, chunks_data: dict[tuple, dict[str, list[Any]]], schema: pa.Schema
    ) -> pa.RecordBatch:
        """Reduce the partial aggregation results to the final aggregation results.

        For example if we had 3 chunks and the chunks_data is::

            {("New York",): {"total_employees": [10, 20, 30]}}

        The result will be::

            {("New York",): {"total_employees": 60}}

        When there were no rows at all, an empty batch with the
        right types is returned, as the types of the aggregation
        results are computed from an empty input.
        """
        key_fields = [schema.field(k) for k in self.keys]
        result_keys: list[list[Any]] = [[] for _ in self.keys]
        result_values: dict[str, list[pa.Scalar]] = {
            name: [] for name in self.aggregations
        }
        for keyvalue, aggregated_values in chunks_data.items():
            for i, value in enumerate(keyvalue):
                result_keys[i].append(value)
            for aggrname, aggregation in self.aggregations.items():
                result_values[aggrname].append(
                    aggregation.reduce(aggregated_values[aggrname])
                )

        if chunks_data:
            aggregation_types = {
                name: values[0].type for name, values in result_values.items()
            }
        else:
            empty = pa.RecordBatch.from_pylist([], schema=schema)
            aggregation_types = {
                name: aggregation.reduce([aggregation.compute_chunk(empty)]).type
                for name, aggregation in self.aggregations.items()
            }

        arrays = [
            pa.array(values, type=field.type)
            for values, field in zip(result_keys, key_fields)
        ]
        arrays.extend(
            scalars_to_array(values, type=aggregation_types[name])
            for name, values in result_values.items()
        )
        result_schema = pa.schema(
            key_fields
            + [pa.field(name, aggregation_types[name]) for name in self.aggregations]
        )
        return pa.RecordBatch.from_arrays(arrays, schema=result_schema)


def scalars_to_array(
    scalars: list[pa.Scalar], type: pa.DataType | None = None
) -> pa.Array:
    """Combine partial results into an array.

    Partial results keep their arrow type, so that the final
    result has the same type even when all partials are null.
    """
    if type is None:
        type = scalars[0].type
    return pa.array([s.as_py() for s in scalars], type=type)


class Aggregation(abc.ABC):
    """Base class for aggregations.

    Every aggregation is expected to implement
    a method to compute any needed intermediate results
    on a single chunk of data and then provide a reduce method
    to combine the intermediate results into a final result.
    """

    def __init__(self, column: str) -> None:
        self.column = column

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.column})"

    __repr__ = __str__

    def columns(self) -> set[str]:
        """The columns the aggregation needs to read."""
        return {self.column}

    @abc.abstractmethod
    def compute_chunk(self, batch: pa.RecordBatch) -> Any: ...

    @abc.abstractmethod
    def reduce(self, chunks: list[Any]) -> pa.Scalar: ...


class SimpleAggregation(Aggregation):
    """Provide a base implementation for simple aggregations like min,max,sum.

    Simple aggregations are those where the function applied to compute
    intermediate results for a single chunk of data is the same as the function
    applied to combine the intermediate results into the final.

    For example ``sum([1, 2, 3])`` is the same as ``sum([sum([1, 2]), 3])``.
    """

    @abc.abstractmethod
    def _aggregate(self, data: Any) -> pa.Scalar: ...

    def compute_chunk(self, batch: pa.RecordBatch) -> pa.Scalar:
        return self._aggregate(batch.column(self.column))

    def reduce(self, chunks: list[pa.Scalar]) -> pa.Scalar:
        return self._aggregate(scalars_to_array(chunks))


class SumAggregation(SimpleAggregation):
    """Compute the sum of an aggregated column."""

    def _aggregate(self, data: Any) -> pa.Scalar:
        return pc.sum(data)


class MinAggregation(SimpleAggregation):
    """Compute the min of an aggregated column."""

    def _aggregate(self, data: Any) -> pa.Scalar:
        return pc.min(data)


class MaxAggregation(SimpleAggregation):
    """Compute the max of an aggregated column."""

    def _aggregate(self, data: Any) -> pa.Scalar:
        return pc.max(data)


class CountAggregation(Aggregation):
    """Count the non null values of an aggregated column.

    This is based on computing the counts for each intermediate batch
    and then sum them to compute the final result.
    """

    def compute_chunk(self, batch: pa.RecordBatch) -> pa.Scalar:
        return pc.count(batch.column(self.column))

    def reduce(self, chunks: list[pa.Scalar]) -> pa.Scalar:
        return pc.sum(scalars_to_array(chunks))


class CountRowsAggregation(Aggregation):
    """Count the rows of each group, null values included."""

    def __init__(self) -> None:
        self.column = None

    def __str__(self) -> str:
        return f"{self.__class__.__name__}()"

    __repr__ = __str__

    def columns(self) -> set[str]:
        return set()

    def compute_chunk(self, batch: pa.RecordBatch) -> int:
        return batch.num_rows

    def reduce(self, chunks: list[int]) -> pa.Scalar:
        return pa.scalar(sum(chunks), type=pa.int64())


class MeanAggregation(Aggregation):
    """Compute the mean of an aggregated column.

    This is based by computing count and sum of the column
    for each intermediate batch and then dividing
    the sum of all intermediate results by the count
    of all intermediate results.
    The mean is always a floating point number.
    """

    def compute_chunk(self, batch: pa.RecordBatch) -> tuple[pa.Scalar, pa.Scalar]:
        column = batch.column(self.column)
        return (pc.count(column), pc.sum(column))

    def reduce(self, chunks: list[tuple[pa.Scalar, pa.Scalar]]) -> pa.Scalar:
        count = pc.sum(scalars_to_array([chunk[0] for chunk in chunks]))
        total = pc.sum(scalars_to_array([chunk[1] for chunk in chunks]))
        return pc.divide(pc.cast(total, pa.float64()), count)
