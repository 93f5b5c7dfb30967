"""Skip data that can't satisfy the filters of a query.

Two kinds of pruning are supported:

* **Partition pruning**: conditions that only involve partition
  columns can be evaluated once per file, using the values
  decoded from the path of the file. When the condition is false
  the whole file is skipped without being opened.

* **Row group pruning**: Parquet files store the min and max
  value of each column for every row group. A condition like
  ``price > 100`` can't be true in a row group whose max price is 50,
  so that row group is not read.

Pruning only ever discards data that the filters would discard anyway,
the filters are still applied to the rows that are read.
"""

import dataclasses
import logging
from typing import Any

import pyarrow as pa
import pyarrow.compute as pc

from ..compute.base import ColumnRef, Expression, Literal
from ..compute.expressions import FunctionCallExpression
from ..dataset.registry import Fragment
from ..errors import UnsupportedExpressionError

logger = logging.getLogger(__name__)

COMPARISONS = {
    pc.equal: "==",
    pc.not_equal: "!=",
    pc.greater: ">",
    pc.greater_equal: ">=",
    pc.less: "<",
    pc.less_equal: "<=",
}
FLIPPED = {"==": "==", "!=": "!=", ">": "<", ">=": "<=", "<": ">", "<=": ">="}


def fragment_matches(
    fragment: Fragment, partition_schema: pa.Schema, conditions: list[Expression]
) -> bool:
    """Check if the rows of a fragment could satisfy all the conditions.

    The conditions are applied to a single row made of the
    partition values of the fragment. A null or false result means
    that no row of the fragment can pass the filter.
    """
    if not conditions:
        return True
    row = pa.RecordBatch.from_pylist([fragment.partition_values], schema=partition_schema)
    for condition in conditions:
        try:
            result = condition.apply(row)
        except (pa.ArrowException, UnsupportedExpressionError) as e:
            # Can't tell in advance, the filter will decide on the rows.
            logger.debug("Unable to evaluate %s on %s: %s", condition, fragment, e)
            continue
        if not pa.types.is_boolean(result.type):
            # Not a condition, the filter will report it.
            continue
        value = result.as_py() if isinstance(result, pa.Scalar) else result[0].as_py()
        if value is not True:
            logger.debug("Pruned %s, %s is %s", fragment.path, condition, value)
            return False
    return True


@dataclasses.dataclass(frozen=True)
class ColumnPredicate:
    """A comparison between a column and a constant: ``column <op> value``."""

    column: str
    op: str
    value: Any

    def __str__(self) -> str:
        return f"{self.column} {self.op} {self.value!r}"

    @classmethod
    def from_expression(cls, expression: Expression) -> "ColumnPredicate | None":
        """Recognise ``col(...) <op> lit(...)`` expressions.

        Returns ``None`` for any other kind of expression.
        """
        if not isinstance(expression, FunctionCallExpression) or len(expression.args) != 2:
            return None
        op = COMPARISONS.get(expression.func)
        if op is None:
            return None
        left, right = expression.args
        if isinstance(left, ColumnRef) and isinstance(right, Literal):
            return cls(left.name, op, right.value)
        if isinstance(left, Literal) and isinstance(right, ColumnRef):
            return cls(right.name, FLIPPED[op], left.value)
        return None

    def can_match(self, minimum: Any, maximum: Any) -> bool:
        """Check if any value between minimum and maximum could satisfy the predicate."""
        if self.value is None:
            # Comparisons with null are never true.
            return False
        try:
            if self.op == "==":
                return minimum <= self.value <= maximum
            elif self.op == "!=":
                # Statistics leave out NaN, which differs from every value.
                if isinstance(self.value, float) or isinstance(minimum, float):
                    return True
                return not (minimum == maximum == self.value)
            elif self.op == ">":
                return maximum > self.value
            elif self.op == ">=":
                return maximum >= self.value
            elif self.op == "<":
                return minimum < self.value
            elif self.op == "<=":
                return minimum <= self.value
        except TypeError:
            # Statistics of a type not comparable with the value.
            return True
        return True


class StatisticsRowGroupFilter:
    """Decide which Parquet row groups to read based on their statistics."""

    def __init__(self, predicates: list[ColumnPredicate]) -> None:
        self.predicates = predicates

    def __str__(self) -> str:
        return " AND ".join(map(str, self.predicates))

    def __call__(self, row_group: "pa.parquet.RowGroupMetaData") -> bool:
        for predicate in self.predicates:
            statistics = _column_statistics(row_group, predicate.column)
            if statistics is None:
                continue
            if statistics.has_null_count and statistics.null_count == row_group.num_rows:
                # Only nulls, no comparison can be true.
                return False
            if not statistics.has_min_max:
                continue
            if not predicate.can_match(statistics.min, statistics.max):
                return False
        return True


def _column_statistics(row_group: "pa.parquet.RowGroupMetaData", column: str):
    for index in range(row_group.num_columns):
        chunk = row_group.column(index)
        if chunk.path_in_schema == column:
            return chunk.statistics
    return None
