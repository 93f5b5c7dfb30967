import pyarrow as pa
import pyarrow.compute as pc
import pytest

from lakeview.compute import (
    FunctionCallExpression,
    PyArrowTableDataSource,
    col,
    lit,
)
from lakeview.compute.selection import ProjectNode


@pytest.fixture
def mock_data():
    """Create a mock PyArrow Table for testing."""
    data = {"a": [1, 2, 3], "b": [4, 5, 6], "c": [7, 8, 9]}
    table = pa.table(data)
    return table


def test_init_and_str(mock_data):
    expressions = {"sum_ab": FunctionCallExpression(pc.add, col("a"), col("b"))}
    project_node = ProjectNode(
        ["a", "b"], expressions, PyArrowTableDataSource(mock_data)
    )
    assert (
        str(project_node)
        == "ProjectNode(select=['a', 'b'], project={'sum_ab': pyarrow.compute.add(ColumnRef(a),ColumnRef(b))}, child=PyArrowTableDataSource(columns=['a', 'b', 'c'], rows=3))"
    )


def test_select_columns(mock_data):
    project_node = ProjectNode(["a", "b"], {}, PyArrowTableDataSource(mock_data))
    batches = list(project_node.batches())
    assert len(batches) == 1
    batch = batches[0]
    assert batch.column_names == ["a", "b"]
    assert batch.column(0).to_pylist() == [1, 2, 3]
    assert batch.column(1).to_pylist() == [4, 5, 6]


def test_select_reorders_columns(mock_data):
    batch = next(ProjectNode(["c", "a"], {}, PyArrowTableDataSource(mock_data)).batches())
    assert batch.column_names == ["c", "a"]


def test_project_columns(mock_data):
    """Test projecting new columns using expressions."""
    expressions = {"sum_ab": FunctionCallExpression(pc.add, col("a"), col("b"))}
    project_node = ProjectNode(["a"], expressions, PyArrowTableDataSource(mock_data))
    batch = next(project_node.batches())
    assert batch.column_names == ["a", "sum_ab"]
    assert batch.column(0).to_pylist() == [1, 2, 3]
    assert batch.column(1).to_pylist() == [5, 7, 9]


def test_multiple_project_columns(mock_data):
    """Expressions can refer to columns projected before them."""
    expressions = {
        "sum_ab": FunctionCallExpression(pc.add, col("a"), col("b")),
        "double_sum_ab": FunctionCallExpression(pc.multiply, col("sum_ab"), lit(2)),
    }
    project_node = ProjectNode(["a"], expressions, PyArrowTableDataSource(mock_data))
    batch = next(project_node.batches())
    assert batch.column_names == ["a", "sum_ab", "double_sum_ab"]
    assert batch.column(1).to_pylist() == [5, 7, 9]
    assert batch.column(2).to_pylist() == [10, 14, 18]


def test_project_column_not_selected(mock_data):
    expressions = {"sum_bc": FunctionCallExpression(pc.add, col("b"), col("c"))}
    project_node = ProjectNode(["a"], expressions, PyArrowTableDataSource(mock_data))
    batch = next(project_node.batches())
    assert batch.column_names == ["a", "sum_bc"]
    assert batch.column(1).to_pylist() == [11, 13, 15]


def test_project_replaces_existing_column(mock_data):
    expressions = {"b": FunctionCallExpression(pc.multiply, col("b"), lit(10))}
    project_node = ProjectNode(None, expressions, PyArrowTableDataSource(mock_data))
    batch = next(project_node.batches())
    assert batch.column_names == ["a", "b", "c"]
    assert batch.column("b").to_pylist() == [40, 50, 60]


def test_project_literal(mock_data):
    project_node = ProjectNode(None, {"one": lit(1)}, PyArrowTableDataSource(mock_data))
    batch = next(project_node.batches())
    assert batch.column("one").to_pylist() == [1, 1, 1]


def test_project_with_no_columns(mock_data):
    project_node = ProjectNode([], {}, PyArrowTableDataSource(mock_data))
    batch = next(project_node.batches())
    assert batch.num_columns == 0


def test_project_with_all_columns(mock_data):
    expressions = {"sum_ab": FunctionCallExpression(pc.add, col("a"), col("b"))}
    project_node = ProjectNode(
        ["a", "b", "c"], expressions, PyArrowTableDataSource(mock_data)
    )
    batch = next(project_node.batches())
    assert batch.column_names == ["a", "b", "c", "sum_ab"]
    assert batch.column(3).to_pylist() == [5, 7, 9]
