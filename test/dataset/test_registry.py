import pyarrow as pa
import pyarrow.csv as csv
import pyarrow.parquet as pq
import pytest

from lakeview.config import ScanOptions
from lakeview.dataset import DatasetRegistry, open_dataset
from lakeview.dataset.registry import detect_format, discover_files
from lakeview.errors import DatasetReadError, SchemaMismatchError


def test_open_partitioned_dataset(sales_parquet):
    table = open_dataset(sales_parquet)
    assert table.format == "parquet"
    assert len(table.fragments) == 4
    assert table.partition_columns == ["year", "region"]
    assert table.schema == pa.schema(
        [
            ("product", pa.string()),
            ("price", pa.float64()),
            ("qty", pa.int64()),
            ("year", pa.int64()),
            ("region", pa.string()),
        ]
    )
    assert table.fragments[0].partition_values == {"year": 2019, "region": "north"}


def test_open_csv_dataset(sales_csv):
    table = open_dataset(str(sales_csv))
    assert table.format == "csv"
    assert table.column_names == ["product", "price", "qty", "year", "region"]


def test_open_without_partitioning(sales_parquet):
    table = open_dataset(sales_parquet, partitioning=None)
    assert table.partition_columns == []
    assert table.column_names == ["product", "price", "qty"]


def test_open_with_partition_names(sales_parquet):
    table = open_dataset(sales_parquet, partitioning=["region"])
    assert table.partition_columns == ["region"]


def test_open_with_partition_type_override(sales_parquet):
    table = open_dataset(sales_parquet, schema={"year": "string"})
    assert table.schema.field("year").type == pa.string()
    assert table.fragments[0].partition_values["year"] == "2019"


def test_open_single_file(tmp_path):
    path = tmp_path / "data.parquet"
    pq.write_table(pa.table({"a": [1, 2]}), path)
    table = open_dataset(path)
    assert table.column_names == ["a"]
    assert table.partition_columns == []


def test_open_list_of_files(tmp_path):
    paths = []
    for i in range(2):
        path = tmp_path / f"data{i}.csv"
        csv.write_csv(pa.table({"a": [i]}), str(path))
        paths.append(str(path))
    table = open_dataset(paths)
    assert [f.path for f in table.fragments] == paths


def test_open_missing_columns_are_merged(tmp_path):
    pq.write_table(pa.table({"a": [1]}), tmp_path / "one.parquet")
    pq.write_table(pa.table({"a": [2], "b": ["x"]}), tmp_path / "two.parquet")
    table = open_dataset(tmp_path)
    assert table.column_names == ["a", "b"]


def test_open_inconsistent_files(tmp_path):
    pq.write_table(pa.table({"a": [1]}), tmp_path / "one.parquet")
    pq.write_table(pa.table({"a": ["x"]}), tmp_path / "two.parquet")
    with pytest.raises(SchemaMismatchError, match="two.parquet"):
        open_dataset(tmp_path)


def test_open_inconsistent_files_with_declared_type(tmp_path):
    (tmp_path / "one.csv").write_text("a\n1\n")
    (tmp_path / "two.csv").write_text("a\nx\n")
    table = open_dataset(tmp_path, schema={"a": "string"})
    assert table.schema.field("a").type == pa.string()
    assert table.column_types == {"a": pa.string()}


def test_open_tsv_files(tmp_path):
    (tmp_path / "data.tsv").write_text("a\tb\n1\t2\n")
    table = open_dataset(tmp_path)
    assert table.options.delimiter == "\t"
    assert table.column_names == ["a", "b"]


def test_physical_column_shadowed_by_partition(tmp_path):
    directory = tmp_path / "year=2020"
    directory.mkdir()
    pq.write_table(pa.table({"year": [1999], "v": [1]}), directory / "part-0.parquet")
    table = open_dataset(tmp_path)
    assert table.physical_schema.names == ["v"]
    assert table.column_names == ["v", "year"]


def test_fragment_missing_partition_key(tmp_path):
    (tmp_path / "year=2020").mkdir()
    pq.write_table(pa.table({"v": [1]}), tmp_path / "year=2020" / "part-0.parquet")
    pq.write_table(pa.table({"v": [2]}), tmp_path / "part-0.parquet")
    table = open_dataset(tmp_path)
    values = sorted(f.partition_values["year"] is None for f in table.fragments)
    assert values == [False, True]


def test_open_options(sales_csv):
    options = ScanOptions(csv_block_size=1 << 16, null_values=("",))
    table = open_dataset(sales_csv, options=options)
    source = table.data_source(table.fragments[0], columns=["qty"])
    assert source.block_size == 1 << 16
    assert source.columns == ["qty"]
    assert source.null_values == ("",)


def test_unsupported_format(sales_parquet):
    with pytest.raises(ValueError, match="Unsupported format"):
        open_dataset(sales_parquet, format="json")


def test_unsupported_partitioning(sales_parquet):
    with pytest.raises(ValueError, match="Unsupported partitioning"):
        open_dataset(sales_parquet, partitioning="directory")


def test_missing_path(tmp_path):
    with pytest.raises(DatasetReadError, match="No such file"):
        open_dataset(tmp_path / "missing")


def test_empty_directory(tmp_path):
    with pytest.raises(DatasetReadError, match="No data files"):
        open_dataset(tmp_path)


def test_discover_files_skips_hidden_and_unknown(tmp_path):
    (tmp_path / "_SUCCESS").write_text("")
    (tmp_path / ".hidden.csv").write_text("a\n1\n")
    (tmp_path / "README.md").write_text("")
    (tmp_path / "_tmp").mkdir()
    (tmp_path / "_tmp" / "data.csv").write_text("a\n1\n")
    (tmp_path / "b.csv").write_text("a\n1\n")
    (tmp_path / "a.csv").write_text("a\n1\n")
    files = discover_files(tmp_path)
    assert [path for path, _ in files] == [str(tmp_path / "a.csv"), str(tmp_path / "b.csv")]
    assert all(base_dir == str(tmp_path) for _, base_dir in files)


def test_discover_files_by_format(tmp_path):
    (tmp_path / "a.csv").write_text("a\n1\n")
    pq.write_table(pa.table({"a": [1]}), tmp_path / "b.parquet")
    files = discover_files(tmp_path, "parquet")
    assert [path for path, _ in files] == [str(tmp_path / "b.parquet")]


def test_detect_format():
    assert detect_format(["a.csv", "b.TSV"]) == "csv"
    assert detect_format(["a.pq", "b.parquet"]) == "parquet"
    assert detect_format(["a.data"], "csv") == "csv"
    with pytest.raises(DatasetReadError, match="single format"):
        detect_format(["a.csv", "b.parquet"])
    with pytest.raises(DatasetReadError, match="a.data"):
        detect_format(["a.data"])


def test_describe(sales_parquet):
    description = open_dataset(sales_parquet).describe()
    assert description.splitlines() == [
        "parquet dataset, 4 files",
        "columns:",
        "  product: string",
        "  price: double",
        "  qty: int64",
        "  year: int64 (partition)",
        "  region: string (partition)",
    ]


def test_registry(sales_parquet, sales_csv):
    registry = DatasetRegistry()
    registry.register("sales", sales_parquet)
    registry.register("sales_csv", sales_csv, partitioning=None)

    assert registry.names() == ["sales", "sales_csv"]
    assert "sales" in registry
    assert len(registry) == 2
    assert registry.get("sales_csv").partition_columns == []

    registry.unregister("sales")
    assert "sales" not in registry
    with pytest.raises(KeyError, match="sales_csv"):
        registry.get("sales")


@pytest.mark.parametrize(
    "directory, expected_type",
    [
        ("account=12345678901234567890", pa.float64()),
        ("code=1_000", pa.string()),
    ],
)
def test_partition_values_arrow_cannot_parse_as_numbers(tmp_path, directory, expected_type):
    (tmp_path / directory).mkdir()
    pq.write_table(pa.table({"v": [1]}), tmp_path / directory / "part-0.parquet")
    table = open_dataset(tmp_path)
    assert table.partition_schema.field(0).type == expected_type
