"""Resolution of declared column types and unification of file schemas.

Column types can be declared with their arrow type or with one of
the simple names used when describing tabular data::

    >>> resolve_type("integer")
    DataType(int64)
    >>> resolve_type(pa.float32())
    DataType(float)

Declared types always take precedence over the inferred ones.
This is how sparse columns, mostly empty in the first rows of a file,
can be read correctly.
"""

import logging

import pyarrow as pa

from ..errors import SchemaMismatchError

logger = logging.getLogger(__name__)

TYPE_NAMES = {
    "string": pa.string(),
    "integer": pa.int64(),
    "float": pa.float64(),
    "boolean": pa.bool_(),
    "date": pa.date32(),
    "timestamp": pa.timestamp("us"),
}

SchemaOverrides = dict[str, pa.DataType | str]


def resolve_type(declared: pa.DataType | str) -> pa.DataType:
    """Convert a declared type to the arrow type it refers to."""
    if isinstance(declared, pa.DataType):
        return declared
    try:
        return TYPE_NAMES[declared.lower()]
    except (KeyError, AttributeError):
        raise ValueError(
            f"Unknown column type {declared!r}, expected one of {list(TYPE_NAMES)}"
            " or a pyarrow.DataType"
        ) from None


def resolve_overrides(overrides: SchemaOverrides | None) -> dict[str, pa.DataType]:
    """Resolve all the declared types of a schema override."""
    return {name: resolve_type(t) for name, t in (overrides or {}).items()}


def apply_overrides(schema: pa.Schema, overrides: dict[str, pa.DataType]) -> pa.Schema:
    """Replace the types of the overridden columns in a schema."""
    for name, declared in overrides.items():
        index = schema.get_field_index(name)
        if index >= 0:
            schema = schema.set(index, schema.field(index).with_type(declared))
    return schema


def unify_schemas(schemas: list[tuple[str, pa.Schema]]) -> pa.Schema:
    """Merge the schemas of all files of a dataset in a single one.

    Columns missing from some files are allowed, and will
    be read as null for those files, but a column can't
    have different types in different files unless the type
    was declared. Columns that are null in some files take
    the type they have in the other files.

    :param schemas: ``(path, schema)`` pairs, the path is used
                    to report which file is inconsistent.
    """
    unified = None
    for path, schema in schemas:
        if unified is None:
            unified = schema
            continue
        try:
            unified = pa.unify_schemas([unified, schema])
        except (pa.ArrowInvalid, pa.ArrowTypeError) as e:
            raise SchemaMismatchError(
                f"Schema of {path} is inconsistent with the other files: {e}"
            ) from e
    if unified is None:
        return pa.schema([])
    return unified.remove_metadata()
