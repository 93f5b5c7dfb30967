"""Dataframe library built on top of lakeview.

A dataframe library is a tool designed to handle and manipulate structured data,
typically in the form of tables (i.e., rows and columns).
It allows users to load data from various sources (like CSV or Parquet files),
explore it, apply transformations, and analyze it.

Lakeview dataframes are lazy: opening a dataset only polls its schema,
and operations like ``filter``, ``group_by``, ``aggregate`` and ``sort``
are only recorded. When the result is requested, the whole recorded
plan is known, so the engine can read only the files and columns
that the query actually needs::

    >>> import pyarrow.compute as pc
    >>> from lakeview.compute import col, lit, FunctionCallExpression, MeanAggregation
    >>> df = Dataframe.open_dataset("flights/")  # doctest: +SKIP
    >>> (df.filter(FunctionCallExpression(pc.equal, col("year"), lit(2020)))
    ...    .group_by("carrier")
    ...    .aggregate(avg_delay=MeanAggregation("dep_delay"))
    ...    .to_arrow())  # doctest: +SKIP
"""

from .dataframe import Dataframe

__all__ = ("Dataframe",)
