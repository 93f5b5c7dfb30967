"""Format tabular data into a text table for print.

The `tabulate` function takes a `pyarrow.Table` or `pyarrow.RecordBatch`
and formats it into a text table. It will truncate long strings,
format floats to 2 decimal places, and limit the number of rows to display.
It is used to display the results of queries run from the command line.

Example:

    >>> import pyarrow as pa
    >>> data = {
    ...     "carrier": ["AA", "UA", "DL"],
    ...     "flights": [8, 8, None],
    ...     "avg_delay": [6.5, 3.72, 7.46],
    ... }
    >>> print(tabulate(pa.table(data)))
    carrier | flights | avg_delay
    ------- | ------- | ---------
    AA      | 8       | 6.50
    UA      | 8       | 3.72
    DL      | null    | 7.46
"""

from typing import Any

import pyarrow as pa


def tabulate(data: pa.Table | pa.RecordBatch, max_rows: int = 20) -> str:
    """Format a Table or RecordBatch into a text table."""
    cols = data.column_names
    rows = [
        [format_value(row[c]) for c in cols]
        for row in data.slice(0, max_rows).to_pylist()
    ]

    colsizes = compute_max_colsize(cols, rows)
    header = [maketablerow(cols, colsizes=colsizes)]
    separator = [maketablerow(["-"] * len(cols), colsizes=colsizes, fillvalue="-")]
    textrows = [maketablerow(row, colsizes=colsizes) for row in rows]

    table = "\n".join(header + separator + textrows)
    if data.num_rows > max_rows:
        table += f"\n... and {data.num_rows - max_rows} more rows"
    return table


def compute_max_colsize(cols: list[str], rows: list[list[str]]) -> list[int]:
    """Compute the maximum size of each column in a table."""
    return [
        max([len(row[colidx]) for row in rows] + [len(cols[colidx])])
        for colidx, _ in enumerate(cols)
    ]


def maketablerow(cols: list[str], colsizes: list[int], fillvalue: str = " ") -> str:
    """Make a table row with the given column sizes."""
    return " | ".join(
        [col.ljust(colsizes[idx], fillvalue) for idx, col in enumerate(cols)]
    ).rstrip()


def format_value(v: Any) -> str:
    """Format a value to be printed in the table.

    This function will format floats to 2 decimal places,
    print missing values as null and truncate long strings.
    """
    if v is None:
        return "null"
    elif isinstance(v, float):
        return f"{v:.2f}"
    elif isinstance(v, bool):
        return "true" if v else "false"

    v = str(v)
    if len(v) > 30:
        v = v[:27] + "..."
    return v
