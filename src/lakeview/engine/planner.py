"""Manages creation of a physical plan from a logical query plan.

The :class:`QueryPlanner` class is responsible for turning the operations
recorded by a dataframe into a tree of compute nodes that can be executed.

While doing so it decides how little data can be read to answer the query:

1. The plan is validated, every column referenced by an operation
   must exist at that point of the plan, and every expression must
   be one the engine knows how to execute. This happens before
   any data is read.
2. The columns required from the source are computed walking the plan
   backward, starting from the columns the result needs.
3. The filters that come before any limit or aggregation are split
   in their AND-ed conditions. Conditions on partition columns are
   used to skip entire files, simple comparisons on other columns are
   used to skip Parquet row groups.

Example::

    >>> planner = QueryPlanner(table, plan)  # doctest: +SKIP
    >>> str(planner.plan())  # doctest: +SKIP
    "FilterNode(filter=pyarrow.compute.equal(ColumnRef(year),Literal(<pyarrow.Int64Scalar: 2020>)), child=DatasetScanNode(format=parquet, files=1/3, columns=['city', 'year']))"
"""

import logging

import pyarrow as pa

from ..compute import (
    AggregateNode,
    FilterNode,
    PaginateNode,
    ProjectNode,
    PyArrowTableDataSource,
    SortNode,
)
from ..compute.aggregate import Aggregation
from ..compute.base import QueryPlanNode
from ..compute.expressions import referenced_columns, split_conjunction
from ..dataset.registry import LogicalTable
from ..errors import ColumnNotFoundError, UnsupportedExpressionError
from ..plan import (
    Aggregate,
    Filter,
    GroupBy,
    Limit,
    Mutate,
    Operation,
    QueryPlan,
    Select,
    Sort,
)
from .pruning import ColumnPredicate, StatisticsRowGroupFilter, fragment_matches
from .scan import DatasetScanNode

logger = logging.getLogger(__name__)

Source = LogicalTable | pa.Table | pa.RecordBatch


class QueryPlanner:
    """Create a physical plan for the operations of a query plan."""

    def __init__(self, source: Source, plan: QueryPlan) -> None:
        """
        :param source: The logical table or the in-memory data to query.
        :param plan: The operations to execute on the source.
        """
        self.source = source
        self.query_plan = plan
        self.scan: DatasetScanNode | None = None
        self.output_columns: list[str] = []

    @property
    def source_schema(self) -> pa.Schema:
        return self.source.schema

    def plan(self) -> QueryPlanNode:
        """Generate the tree of compute nodes for the query plan.

        The operations are planned in the order they were requested,
        each one consuming the output of the previous one::

            - PaginateNode
                - SortNode
                    - AggregateNode
                        - FilterNode
                            - DatasetScanNode

        No data is read while planning.
        """
        self.output_columns = self.validate()
        required = self.required_columns()

        node = self._plan_source(required)
        for operation in self.query_plan:
            node = self._plan_operation(operation, node)
        return node

    def validate(self) -> list[str]:
        """Check that the plan can be executed on the source.

        Returns the columns that the result of the plan will have.
        """
        available = list(self.source_schema.names)

        def check(columns, operation):
            for name in sorted(columns):
                if name not in available:
                    logger.debug("Column %s missing in %s", name, operation)
                    raise ColumnNotFoundError(name, available)

        for operation in self.query_plan:
            if isinstance(operation, Filter):
                check(referenced_columns(operation.predicate), operation)
            elif isinstance(operation, Select):
                check(operation.columns, operation)
                available = list(operation.columns)
            elif isinstance(operation, Mutate):
                for name, expression in operation.expressions.items():
                    check(referenced_columns(expression), operation)
                    if name not in available:
                        available.append(name)
            elif isinstance(operation, GroupBy):
                check(operation.keys, operation)
            elif isinstance(operation, Aggregate):
                check(operation.keys, operation)
                for name, aggregation in operation.aggregations.items():
                    if not isinstance(aggregation, Aggregation):
                        raise UnsupportedExpressionError(
                            f"Unsupported aggregation {aggregation!r} for column {name!r}"
                        )
                    check(aggregation.columns(), operation)
                available = list(operation.keys) + list(operation.aggregations)
            elif isinstance(operation, Sort):
                check(operation.keys, operation)
            elif isinstance(operation, Limit):
                pass
            else:
                raise UnsupportedExpressionError(f"Unsupported operation {operation!r}")
        return available

    def required_columns(self) -> list[str]:
        """Compute the columns that have to be read from the source.

        The plan is walked backward: at the end all the output
        columns are needed, then each operation adds the columns
        it reads and removes the ones it creates.
        Operations like Select and Aggregate discard all columns
        they don't use, so anything after them doesn't matter.
        """
        needed: set[str] | None = None  # None means all columns
        for operation in reversed(self.query_plan.operations):
            if isinstance(operation, Select):
                needed = set(operation.columns)
            elif isinstance(operation, Aggregate):
                needed = set(operation.keys)
                for aggregation in operation.aggregations.values():
                    needed |= aggregation.columns()
            elif needed is None:
                continue
            elif isinstance(operation, Filter):
                needed |= referenced_columns(operation.predicate)
            elif isinstance(operation, Mutate):
                for name, expression in reversed(list(operation.expressions.items())):
                    needed.discard(name)
                    needed |= referenced_columns(expression)
            elif isinstance(operation, (GroupBy, Sort)):
                needed |= set(operation.keys)

        schema_columns = self.source_schema.names
        if needed is None:
            return list(schema_columns)
        required = [name for name in schema_columns if name in needed]
        if not required and schema_columns:
            # Counting rows still requires to know how many rows there are.
            partitions = getattr(self.source, "partition_columns", [])
            required = [partitions[0] if partitions else schema_columns[0]]
        return required

    def pushdown_conditions(self) -> tuple[list, list[ColumnPredicate]]:
        """Find the filter conditions that can be used to skip data.

        Only filters that come before any Limit or Aggregate can be
        used, as those change which rows exist. Conditions on columns
        that were replaced by a Mutate are ignored, as they no longer
        refer to the data of the source.

        Returns the conditions on partition columns and the
        comparisons usable with Parquet statistics.
        """
        partition_columns = set(getattr(self.source, "partition_columns", []))
        overridden = set(getattr(self.source, "column_types", {}))
        redefined: set[str] = set()
        partition_conditions = []
        predicates = []
        for operation in self.query_plan:
            if isinstance(operation, (Limit, Aggregate)):
                break
            elif isinstance(operation, Mutate):
                redefined |= set(operation.expressions)
            elif isinstance(operation, Filter):
                for condition in split_conjunction(operation.predicate):
                    columns = referenced_columns(condition)
                    if not columns or columns & redefined:
                        continue
                    if columns <= partition_columns:
                        partition_conditions.append(condition)
                        continue
                    predicate = ColumnPredicate.from_expression(condition)
                    if (
                        predicate is not None
                        and predicate.column not in partition_columns
                        and predicate.column not in overridden
                    ):
                        predicates.append(predicate)
        return partition_conditions, predicates

    def _plan_source(self, required: list[str]) -> QueryPlanNode:
        """Create the node reading the data of the source."""
        if not isinstance(self.source, LogicalTable):
            return PyArrowTableDataSource(self.source.select(required))

        table = self.source
        partition_conditions, predicates = self.pushdown_conditions()
        fragments = [
            fragment
            for fragment in table.fragments
            if fragment_matches(fragment, table.partition_schema, partition_conditions)
        ]
        row_group_filter = None
        if predicates and table.format == "parquet":
            row_group_filter = StatisticsRowGroupFilter(predicates)

        logger.debug(
            "Scanning %d/%d files, columns=%s",
            len(fragments),
            len(table.fragments),
            required,
        )
        self.scan = DatasetScanNode(table, fragments, required, row_group_filter)
        return self.scan

    def _plan_operation(self, operation: Operation, child: QueryPlanNode) -> QueryPlanNode:
        """Create the node executing an operation on the output of child."""
        if isinstance(operation, Filter):
            return FilterNode(operation.predicate, child)
        elif isinstance(operation, Select):
            return ProjectNode(list(operation.columns), None, child)
        elif isinstance(operation, Mutate):
            return ProjectNode(None, dict(operation.expressions), child)
        elif isinstance(operation, GroupBy):
            # Grouping is applied by the aggregation that follows.
            return child
        elif isinstance(operation, Aggregate):
            return AggregateNode(list(operation.keys), dict(operation.aggregations), child)
        elif isinstance(operation, Sort):
            return SortNode(list(operation.keys), list(operation.descending), child)
        elif isinstance(operation, Limit):
            return PaginateNode(operation.offset, operation.length, child)
        raise UnsupportedExpressionError(f"Unsupported operation {operation!r}")
