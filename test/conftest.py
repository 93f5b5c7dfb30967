import pyarrow as pa
import pyarrow.csv as csv
import pyarrow.parquet as pq
import pytest

SALES = {
    (2019, "north"): {"product": ["a", "b", "c"], "price": [1.5, 2.5, 4.5], "qty": [1, 2, 3]},
    (2019, "south"): {"product": ["a", "c"], "price": [1.5, 2.75], "qty": [4, 5]},
    (2020, "north"): {"product": ["b", "b", "c"], "price": [2.25, 2.25, 5.5], "qty": [6, 7, 8]},
    (2020, "south"): {"product": ["a"], "price": [1.25], "qty": [9]},
}


@pytest.fixture
def sales_rows():
    """All the rows of the sales dataset, partition columns included."""
    rows = []
    for (year, region), columns in SALES.items():
        for product, price, qty in zip(columns["product"], columns["price"], columns["qty"]):
            rows.append(
                {"product": product, "price": price, "qty": qty, "year": year, "region": region}
            )
    return rows


@pytest.fixture
def sales_parquet(tmp_path):
    """Sales partitioned by year and region, one parquet file per partition."""
    base_dir = tmp_path / "sales"
    for (year, region), columns in SALES.items():
        directory = base_dir / f"year={year}" / f"region={region}"
        directory.mkdir(parents=True)
        pq.write_table(pa.table(columns), directory / "part-0.parquet", row_group_size=2)
    return base_dir


@pytest.fixture
def sales_csv(tmp_path):
    """Sales partitioned by year and region, one CSV file per partition."""
    base_dir = tmp_path / "sales_csv"
    for (year, region), columns in SALES.items():
        directory = base_dir / f"year={year}" / f"region={region}"
        directory.mkdir(parents=True)
        csv.write_csv(pa.table(columns), str(directory / "part-0.csv"))
    return base_dir
