"""The logical query plan recorded by dataframes.

A query plan is the ordered list of operations requested on
a dataframe. Plans are immutable, adding an operation returns
a new plan and leaves the previous one untouched, so that
multiple queries can be derived from the same starting point::

    base = QueryPlan().append(Filter(predicate))
    by_city = base.append(GroupBy(("city",)))
    by_shop = base.append(GroupBy(("shop",)))

The plan describes *what* has to be computed, it's up to
:class:`lakeview.engine.QueryPlanner` to decide *how*,
which files and columns to read and which nodes to execute.
"""

import dataclasses
from typing import Iterator, Self

from .compute.aggregate import Aggregation
from .compute.base import Expression


class Operation:
    """Base class for the operations of a query plan."""


@dataclasses.dataclass(frozen=True)
class Filter(Operation):
    """Keep only the rows for which the predicate is true."""

    predicate: Expression

    def __str__(self) -> str:
        return f"Filter({self.predicate})"


@dataclasses.dataclass(frozen=True)
class Select(Operation):
    """Keep only the listed columns, in the listed order."""

    columns: tuple[str, ...]

    def __str__(self) -> str:
        return f"Select({', '.join(self.columns)})"


@dataclasses.dataclass(frozen=True)
class Mutate(Operation):
    """Add or replace columns computed by expressions.

    Expressions are applied in order, so each one
    can refer to the columns computed by the previous ones.
    """

    expressions: dict[str, Expression]

    def __str__(self) -> str:
        exprs = ", ".join(f"{name}={expr}" for name, expr in self.expressions.items())
        return f"Mutate({exprs})"


@dataclasses.dataclass(frozen=True)
class GroupBy(Operation):
    """Set the grouping keys used by the next aggregation."""

    keys: tuple[str, ...]

    def __str__(self) -> str:
        return f"GroupBy({', '.join(self.keys)})"


@dataclasses.dataclass(frozen=True)
class Aggregate(Operation):
    """Compute aggregations for each group, or for all rows when ``keys`` is empty."""

    keys: tuple[str, ...]
    aggregations: dict[str, Aggregation]

    def __str__(self) -> str:
        aggrs = ", ".join(f"{name}={aggr}" for name, aggr in self.aggregations.items())
        return f"Aggregate(keys=[{', '.join(self.keys)}], {aggrs})"


@dataclasses.dataclass(frozen=True)
class Sort(Operation):
    """Order the rows by one or more keys."""

    keys: tuple[str, ...]
    descending: tuple[bool, ...]

    def __post_init__(self) -> None:
        if len(self.keys) != len(self.descending):
            raise ValueError("Keys and descending must have the same length")

    def __str__(self) -> str:
        keys = ", ".join(
            f"{key} {'DESC' if desc else 'ASC'}"
            for key, desc in zip(self.keys, self.descending)
        )
        return f"Sort({keys})"


@dataclasses.dataclass(frozen=True)
class Limit(Operation):
    """Keep only ``length`` rows, after skipping ``offset`` rows."""

    length: int
    offset: int = 0

    def __post_init__(self) -> None:
        if self.length < 0 or self.offset < 0:
            raise ValueError("Limit length and offset must not be negative")

    def __str__(self) -> str:
        return f"Limit({self.length}, offset={self.offset})"


@dataclasses.dataclass(frozen=True)
class QueryPlan:
    """An immutable sequence of operations."""

    operations: tuple[Operation, ...] = ()

    def append(self, operation: Operation) -> Self:
        """Return a new plan with the operation added at the end."""
        if not isinstance(operation, Operation):
            raise TypeError(f"Expected a plan operation, got {operation!r}")
        return self.__class__(self.operations + (operation,))

    @property
    def grouping(self) -> tuple[str, ...]:
        """The grouping keys that the next aggregation would use.

        Grouping applies until the next aggregation consumes it.
        """
        for operation in reversed(self.operations):
            if isinstance(operation, Aggregate):
                return ()
            if isinstance(operation, GroupBy):
                return operation.keys
        return ()

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.operations)

    def __len__(self) -> int:
        return len(self.operations)

    def __str__(self) -> str:
        return " -> ".join(str(op) for op in self.operations) or "<empty plan>"
