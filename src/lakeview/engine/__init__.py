"""Planning and execution of queries.

The engine receives a source, a :class:`lakeview.dataset.LogicalTable`
or in-memory arrow data, and a :class:`lakeview.plan.QueryPlan`.

:class:`QueryPlanner` turns the plan into a tree of
:mod:`lakeview.compute` nodes, reading from the source only the
files, row groups and columns the query needs.
:func:`materialize` executes that tree and collects the result
in a :class:`pyarrow.Table`.
"""

from .executor import materialize
from .planner import QueryPlanner
from .pruning import ColumnPredicate, StatisticsRowGroupFilter
from .scan import DatasetScanNode, ScanMetrics

__all__ = (
    "materialize",
    "QueryPlanner",
    "DatasetScanNode",
    "ScanMetrics",
    "ColumnPredicate",
    "StatisticsRowGroupFilter",
)
