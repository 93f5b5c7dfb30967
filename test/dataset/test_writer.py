import os

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from lakeview.dataset import open_dataset, write_dataset
from lakeview.dataset.partitioning import NULL_PARTITION

DATA = pa.table(
    {
        "year": [2020, 2019, 2020, None],
        "city": ["Rome", "Rome", "New York", "Milan"],
        "value": [1, 2, 3, 4],
    }
)


def test_write_partitioned(tmp_path):
    paths = write_dataset(DATA, tmp_path, partition_by=["year"])
    assert [os.path.relpath(p, tmp_path) for p in paths] == [
        os.path.join("year=2019", "part-0.parquet"),
        os.path.join("year=2020", "part-0.parquet"),
        os.path.join(f"year={NULL_PARTITION}", "part-0.parquet"),
    ]
    assert pq.read_table(paths[1]).to_pydict() == {
        "city": ["Rome", "New York"],
        "value": [1, 3],
    }


def test_write_multiple_keys_and_escaping(tmp_path):
    paths = write_dataset(DATA, tmp_path, partition_by=["year", "city"], format="csv")
    assert os.path.join(tmp_path, "year=2020", "city=New%20York", "part-0.csv") in paths
    assert len(paths) == 4


def test_write_unpartitioned(tmp_path):
    paths = write_dataset(DATA, tmp_path / "out")
    assert paths == [os.path.join(tmp_path / "out", "part-0.parquet")]
    assert pq.read_table(paths[0]).equals(DATA)


def test_written_dataset_is_readable(tmp_path):
    write_dataset(DATA, tmp_path, partition_by=["city"])
    table = open_dataset(tmp_path)
    assert table.partition_columns == ["city"]
    assert sorted(f.partition_values["city"] for f in table.fragments) == [
        "Milan",
        "New York",
        "Rome",
    ]


def test_write_from_object_with_to_arrow(tmp_path):
    class Result:
        def to_arrow(self):
            return DATA

    paths = write_dataset(Result(), tmp_path)
    assert pq.read_table(paths[0]).num_rows == 4


def test_write_invalid_arguments(tmp_path):
    with pytest.raises(ValueError, match="Unsupported format"):
        write_dataset(DATA, tmp_path, format="json")
    with pytest.raises(ValueError, match="missing"):
        write_dataset(DATA, tmp_path, partition_by=["missing"])
