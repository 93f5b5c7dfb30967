"""Materialization of query plans.

Materializing a plan means planning it, executing the resulting
nodes and collecting all the batches they emit in a
:class:`pyarrow.Table`. The table is fully in memory and doesn't
depend on the source files anymore.
"""

import logging

import pyarrow as pa

from ..plan import Limit, QueryPlan
from .planner import QueryPlanner, Source

logger = logging.getLogger(__name__)


def materialize(source: Source, plan: QueryPlan) -> pa.Table:
    """Execute a query plan and return its result.

    :param source: The logical table or in-memory data to query.
    :param plan: The operations to execute.
    """
    planner = QueryPlanner(source, plan)
    node = planner.plan()
    logger.debug("Executing %s", node)

    batches = list(node.batches())
    if planner.scan is not None:
        logger.debug("Scan completed: %s", planner.scan.metrics)

    if batches:
        return pa.Table.from_batches(batches)
    return empty_result(planner)


def empty_result(planner: QueryPlanner) -> pa.Table:
    """The result of the plan when the source provided no rows.

    The plan is executed on an empty batch with the source columns,
    which gives the result the right schema. Aggregations over all rows
    still emit their single row, like a count of 0.
    """
    schema = pa.schema(
        [planner.source_schema.field(name) for name in planner.required_columns()]
    )
    empty = pa.RecordBatch.from_pylist([], schema=schema)

    batches = list(QueryPlanner(empty, planner.query_plan).plan().batches())
    if not batches:
        # Pagination emits nothing, but it never changes the columns.
        without_limits = QueryPlan(
            tuple(op for op in planner.query_plan if not isinstance(op, Limit))
        )
        batches = list(QueryPlanner(empty, without_limits).plan().batches())
        return pa.Table.from_batches([], schema=batches[0].schema)
    return pa.Table.from_batches(batches)
