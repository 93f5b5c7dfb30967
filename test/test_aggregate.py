import pyarrow as pa
import pytest

from lakeview.compute import PyArrowTableDataSource
from lakeview.compute.aggregate import (
    AggregateNode,
    CountAggregation,
    CountRowsAggregation,
    MaxAggregation,
    MeanAggregation,
    MinAggregation,
    SumAggregation,
)
from lakeview.compute.base import QueryPlanNode
from lakeview.errors import UnsupportedExpressionError

TEST_DATA = pa.record_batch(
    {
        "city": pa.array(
            ["New York", "New York", "Los Angeles", "Los Angeles", "New York"]
        ),
        "shop": pa.array(["Shop A", "Shop B", "Shop A", "Shop A2", "Shop B"]),
        "n_employees": pa.array([10, 15, 8, 12, 20]),
    }
)


class BatchesNode(QueryPlanNode):
    def __init__(self, batches):
        self._batches = batches

    def batches(self):
        yield from self._batches

    def __str__(self):
        return "BatchesNode"


def _aggregate(keys, aggregations, data=TEST_DATA):
    return next(AggregateNode(keys, aggregations, PyArrowTableDataSource(data)).batches())


@pytest.mark.parametrize(
    "aggregation, by_city, by_city_and_shop",
    [
        (SumAggregation("n_employees"), [45, 20], [8, 12, 10, 35]),
        (MinAggregation("n_employees"), [10, 8], [8, 12, 10, 15]),
        (MaxAggregation("n_employees"), [20, 12], [8, 12, 10, 20]),
        (CountAggregation("n_employees"), [3, 2], [1, 1, 1, 2]),
        (CountRowsAggregation(), [3, 2], [1, 1, 1, 2]),
        (MeanAggregation("n_employees"), [15.0, 10.0], [8.0, 12.0, 10.0, 17.5]),
    ],
)
def test_aggregations(aggregation, by_city, by_city_and_shop):
    result = _aggregate(["city"], {"value": aggregation})
    assert result.column_names == ["city", "value"]
    assert result.column(0).to_pylist() == ["New York", "Los Angeles"]
    assert result.column(1).to_pylist() == by_city

    result = _aggregate(["city", "shop"], {"value": aggregation})
    assert result.column_names == ["city", "shop", "value"]
    assert result.column(0).to_pylist() == [
        "Los Angeles",
        "Los Angeles",
        "New York",
        "New York",
    ]
    assert result.column(1).to_pylist() == ["Shop A", "Shop A2", "Shop A", "Shop B"]
    assert result.column(2).to_pylist() == by_city_and_shop


@pytest.mark.parametrize("keys", [["city"], ["city", "shop"]])
def test_aggregate_node_str(keys):
    aggregate = AggregateNode(
        keys,
        {"total_employees": SumAggregation("n_employees")},
        PyArrowTableDataSource(TEST_DATA),
    )
    assert str(aggregate) == (
        "AggregateNode(keys=%r, aggregations={'total_employees': SumAggregation(n_employees)}, "
        "PyArrowTableDataSource(columns=['city', 'shop', 'n_employees'], rows=5))"
        % (keys,)
    )


def test_global_aggregation():
    result = _aggregate(
        [],
        {
            "total": SumAggregation("n_employees"),
            "rows": CountRowsAggregation(),
            "avg": MeanAggregation("n_employees"),
        },
    )
    assert result.to_pydict() == {"total": [65], "rows": [5], "avg": [13.0]}


def test_aggregation_across_batches():
    child = BatchesNode([TEST_DATA.slice(0, 2), TEST_DATA.slice(2, 3)])
    aggregate = AggregateNode(
        ["city"],
        {"total": SumAggregation("n_employees"), "avg": MeanAggregation("n_employees")},
        child,
    )
    result = next(aggregate.batches())
    assert result.to_pydict() == {
        "city": ["New York", "Los Angeles"],
        "total": [45, 20],
        "avg": [15.0, 10.0],
    }


@pytest.mark.parametrize("keys", [["city"], ["city", "shop"]])
def test_null_keys_form_a_group(keys):
    data = pa.record_batch(
        {
            "city": ["Rome", None, "Rome", None],
            "shop": ["A", "A", "A", "A"],
            "n_employees": [1, 2, 3, 4],
        }
    )
    result = _aggregate(keys, {"total": SumAggregation("n_employees")}, data)
    totals = dict(zip(result.column("city").to_pylist(), result.column("total").to_pylist()))
    assert totals == {"Rome": 4, None: 6}


def test_count_ignores_nulls():
    data = pa.record_batch({"k": ["a", "a", "b"], "v": [1, None, None]})
    result = _aggregate(
        ["k"], {"count": CountAggregation("v"), "rows": CountRowsAggregation()}, data
    )
    assert result.to_pydict() == {"k": ["a", "b"], "count": [1, 0], "rows": [2, 1]}


def test_aggregation_of_empty_batch_keeps_types():
    empty = TEST_DATA.slice(0, 0)
    result = _aggregate(
        ["city"],
        {"total": SumAggregation("n_employees"), "avg": MeanAggregation("n_employees")},
        empty,
    )
    assert result.num_rows == 0
    assert result.schema.field("city").type == pa.string()
    assert result.schema.field("total").type == pa.int64()
    assert result.schema.field("avg").type == pa.float64()


def test_aggregation_without_batches_emits_nothing():
    aggregate = AggregateNode([], {"rows": CountRowsAggregation()}, BatchesNode([]))
    assert list(aggregate.batches()) == []


def test_invalid_aggregation():
    with pytest.raises(UnsupportedExpressionError, match="total"):
        AggregateNode(["city"], {"total": "sum"}, PyArrowTableDataSource(TEST_DATA))


def test_aggregation_of_unsupported_type():
    aggregate = AggregateNode(
        ["city"], {"total": SumAggregation("shop")}, PyArrowTableDataSource(TEST_DATA)
    )
    with pytest.raises(UnsupportedExpressionError, match="SumAggregation"):
        next(aggregate.batches())


@pytest.mark.parametrize("keys", [["city"], ["city", "shop"]])
def test_count_aggregation_50_rows(keys):
    aggregate = AggregateNode(
        keys,
        {"count_employees": CountAggregation("n_employees")},
        PyArrowTableDataSource(_generate_50rows_test_data()),
    )
    result = next(aggregate.batches())

    if keys == ["city"]:
        assert result.column_names == ["city", "count_employees"]
        assert result.column(0).to_pylist() == [
            "City0",
            "City1",
            "City2",
            "City3",
            "City4",
        ]
        assert result.column(1).to_pylist() == [20, 20, 20, 20, 20]
    else:
        assert result.column_names == ["city", "shop", "count_employees"]
        expected_cities = ["City" + str(i) for i in range(5) for _ in range(10)]
        expected_shops = ["Shop" + str(i) for _ in range(5) for i in range(10)]
        assert result.column(0).to_pylist() == expected_cities
        assert result.column(1).to_pylist() == expected_shops
        assert result.column(2).to_pylist() == [2] * 50


def _generate_50rows_test_data():
    cities = ["City" + str(i) for i in range(5)]
    shops = ["Shop" + str(i) for i in range(10)]
    data = {"city": [], "shop": [], "n_employees": []}
    for city in cities:
        for shop in shops:
            for _ in range(2):
                data["city"].append(city)
                data["shop"].append(shop)
                data["n_employees"].append(10)
    return pa.record_batch(data)
