"""Command line interface for querying datasets.

This module provides a command line interface to open a dataset,
apply filters, groupings, aggregations and sorting to it and print
the result in a tabular format using the :mod:`lakeview.utils.tabulate` module.

Options map directly to the methods of :class:`lakeview.dataframe.Dataframe`,
and are applied in the order: null-if, where, group-by/agg, select, sort, limit.
"""

import argparse
import logging
import re
import sys
from typing import Any

import pyarrow as pa
import pyarrow.compute as pc

from lakeview.compute import (
    CountAggregation,
    CountRowsAggregation,
    FunctionCallExpression,
    MaxAggregation,
    MeanAggregation,
    MinAggregation,
    SumAggregation,
    col,
    lit,
)
from lakeview.config import ScanOptions
from lakeview.dataframe import Dataframe
from lakeview.dataset.schema import resolve_type
from lakeview.errors import LakeviewError
from lakeview.utils import tabulate

COMPARISONS = {
    "=": pc.equal,
    "==": pc.equal,
    "!=": pc.not_equal,
    ">": pc.greater,
    ">=": pc.greater_equal,
    "<": pc.less,
    "<=": pc.less_equal,
}
AGGREGATIONS = {
    "sum": SumAggregation,
    "min": MinAggregation,
    "max": MaxAggregation,
    "mean": MeanAggregation,
    "count": CountAggregation,
}
CONDITION_RE = re.compile(r"^\s*([\w.]+)\s*(==|!=|>=|<=|=|>|<)\s*(.*?)\s*$")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lakeview-query", description="Query CSV and Parquet datasets."
    )
    parser.add_argument("path", nargs="+", help="Files or directories of the dataset.")
    parser.add_argument("--format", choices=("csv", "parquet"), help="Format of the files.")
    parser.add_argument(
        "--schema",
        action="append",
        default=[],
        metavar="COLUMN=TYPE",
        help="Declare the type of a column. Can be provided multiple times.",
    )
    parser.add_argument(
        "--partitioning",
        choices=("hive", "none"),
        default="hive",
        help="How partition columns are encoded in directory names.",
    )
    parser.add_argument(
        "--null-if",
        action="append",
        default=[],
        metavar="COLUMN=V1,V2",
        help="Read the listed values of a column as null.",
    )
    parser.add_argument(
        "--where",
        action="append",
        default=[],
        metavar="CONDITION",
        help='Filter rows, like "year >= 2020". Can be provided multiple times.',
    )
    parser.add_argument("--group-by", metavar="A,B", help="Columns to group by.")
    parser.add_argument(
        "--agg",
        action="append",
        default=[],
        metavar="NAME=FUNC:COLUMN",
        help=f"Aggregation to compute, FUNC is one of {sorted(AGGREGATIONS)} or count_rows.",
    )
    parser.add_argument("--select", metavar="A,B", help="Columns to keep.")
    parser.add_argument(
        "--sort",
        action="append",
        default=[],
        metavar="COLUMN",
        help="Sort by column, prefix with - for descending order, like --sort=-price.",
    )
    parser.add_argument("--limit", type=non_negative_int, help="Maximum number of rows.")
    parser.add_argument("--max-rows", type=non_negative_int, default=20, help="Rows to print.")
    parser.add_argument(
        "--csv-block-size", type=int, help="Bytes per CSV block, used to infer types."
    )
    parser.add_argument(
        "--explain", action="store_true", help="Print the execution plan instead of running it."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log what is read.")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse the command line arguments and execute the query."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    schema = {}
    for item in args.schema:
        column, declared = _split_pair(parser, "--schema", item)
        try:
            schema[column] = resolve_type(declared)
        except ValueError as e:
            parser.error(str(e))
    options = ScanOptions()
    if args.csv_block_size:
        options = options.replace(csv_block_size=args.csv_block_size)

    try:
        df = Dataframe.open_dataset(
            args.path,
            format=args.format,
            schema=schema,
            partitioning=None if args.partitioning == "none" else "hive",
            options=options,
        )
        df = apply_arguments(parser, args, df)
        if args.explain:
            print(df.explain())
        else:
            print(tabulate.tabulate(df.to_arrow(), max_rows=args.max_rows))
    except LakeviewError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


def apply_arguments(
    parser: argparse.ArgumentParser, args: argparse.Namespace, df: Dataframe
) -> Dataframe:
    """Record the operations requested on the command line in the dataframe."""
    schema = df.source.schema

    for item in args.null_if:
        column, values = _split_pair(parser, "--null-if", item)
        df = df.null_if(
            column, *(parse_value(v, schema, column).value for v in values.split(","))
        )

    for condition in args.where:
        match = CONDITION_RE.match(condition)
        if match is None:
            parser.error(f"Invalid --where condition: {condition!r}")
        column, op, raw_value = match.groups()
        df = df.filter(
            FunctionCallExpression(
                COMPARISONS[op], col(column), parse_value(raw_value, schema, column)
            )
        )

    if args.group_by:
        df = df.group_by(*_split_list(args.group_by))
    if args.agg:
        aggregations = {}
        for item in args.agg:
            name, definition = _split_pair(parser, "--agg", item)
            func, _, column = definition.partition(":")
            if func == "count_rows":
                aggregations[name] = CountRowsAggregation()
            elif func in AGGREGATIONS and column:
                aggregations[name] = AGGREGATIONS[func](column)
            else:
                parser.error(f"Invalid --agg {item!r}, expected NAME=FUNC:COLUMN")
        df = df.aggregate(aggregations)

    if args.select:
        df = df.select(*_split_list(args.select))
    if args.sort:
        keys = [key.lstrip("-") for key in args.sort]
        descending = [key.startswith("-") for key in args.sort]
        df = df.sort(keys, descending)
    if args.limit is not None:
        df = df.limit(args.limit)
    return df


def parse_value(raw: str, schema: pa.Schema, column: str) -> Any:
    """Convert a value typed on the command line into a literal.

    When the column exists in the dataset the value is converted
    to the type of the column, otherwise numbers are recognised
    and anything else is kept as a string.
    Quotes can be used to force a string.
    """
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "'\"":
        return lit(raw[1:-1])
    if raw.lower() == "null":
        return lit(None)

    index = schema.get_field_index(column)
    if index >= 0:
        field_type = schema.field(index).type
        try:
            return lit(pa.scalar(raw).cast(field_type).as_py(), type=field_type)
        except (pa.ArrowInvalid, pa.ArrowNotImplementedError):
            pass

    for convert in (int, float):
        try:
            return lit(convert(raw))
        except ValueError:
            continue
    return lit(raw)


def non_negative_int(value: str) -> int:
    """Parse an argument that must be an integer greater or equal to 0."""
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return number


def _split_pair(parser: argparse.ArgumentParser, option: str, item: str) -> tuple[str, str]:
    key, sep, value = item.partition("=")
    if not sep or not key:
        parser.error(f"Invalid {option} {item!r}, expected KEY=VALUE")
    return key.strip(), value.strip()


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


if __name__ == "__main__":
    sys.exit(main())
