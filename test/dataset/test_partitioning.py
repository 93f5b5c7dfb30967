import os

import pyarrow as pa
import pytest

from lakeview.dataset.partitioning import (
    NULL_PARTITION,
    HivePartitioning,
    convert_partition_values,
    infer_partition_type,
)
from lakeview.errors import DatasetReadError


@pytest.mark.parametrize(
    "path, expected",
    [
        ("data/part-0.csv", {}),
        ("data/year=2020/part-0.csv", {"year": "2020"}),
        ("data/year=2020/month=01/part-0.csv", {"year": "2020", "month": "01"}),
        ("data/city=New%20York/part-0.csv", {"city": "New York"}),
        (f"data/city={NULL_PARTITION}/part-0.csv", {"city": None}),
        ("data/extra/year=2020/part-0.csv", {"year": "2020"}),
        ("data/year=2020/month=01.csv", {"year": "2020"}),
    ],
)
def test_parse(path, expected):
    path = path.replace("/", os.sep)
    assert HivePartitioning().parse(path, "data") == expected


def test_parse_only_known_fields():
    partitioning = HivePartitioning(["year"])
    path = os.path.join("data", "year=2020", "month=1", "part-0.csv")
    assert partitioning.parse(path, "data") == {"year": "2020"}


def test_parse_ignores_base_dir():
    path = os.path.join("root", "year=2019", "data", "part-0.csv")
    assert HivePartitioning().parse(path, os.path.join("root", "year=2019")) == {}


def test_format_path():
    partitioning = HivePartitioning()
    assert partitioning.format_path({}) == ""
    assert partitioning.format_path({"year": 2020, "city": "New York"}) == os.path.join(
        "year=2020", "city=New%20York"
    )
    assert partitioning.format_path({"city": None}) == f"city={NULL_PARTITION}"
    assert partitioning.format_path({"path": "a/b"}) == "path=a%2Fb"


def test_format_path_is_parsed_back():
    partitioning = HivePartitioning()
    values = {"city": "São Paulo", "kind": "a=b", "missing": None}
    path = os.path.join("base", partitioning.format_path(values), "part-0.csv")
    assert partitioning.parse(path, "base") == values


@pytest.mark.parametrize(
    "values, expected",
    [
        (["2019", "2020"], pa.int64()),
        (["2019", None], pa.int64()),
        (["1.5", "2"], pa.float64()),
        (["north", "2020"], pa.string()),
        ([None, None], pa.string()),
        ([], pa.string()),
        (["1_000"], pa.string()),
        (["\u0663"], pa.string()),
        (["12345678901234567890"], pa.float64()),
    ],
)
def test_infer_partition_type(values, expected):
    assert infer_partition_type(values) == expected


def test_convert_partition_values():
    assert convert_partition_values("year", ["2019", None], pa.int64()) == [2019, None]
    assert convert_partition_values("day", ["2020-01-02"], pa.date32())[0].isoformat() == (
        "2020-01-02"
    )


def test_convert_partition_values_invalid():
    with pytest.raises(DatasetReadError, match="'year'"):
        convert_partition_values("year", ["abc"], pa.int64())


@pytest.mark.parametrize(
    "values",
    [["1_000", "2"], [" 7", "8"], ["12345678901234567890"], ["٣"], ["1e3", "x"]],
)
def test_inferred_type_converts_all_values(values):
    type = infer_partition_type(values)
    assert len(convert_partition_values("key", values, type)) == len(values)
