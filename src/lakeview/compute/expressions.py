"""Expressions executed by the engine nodes.

Filters need a ``predicate``, an expression that returns
``true`` or ``false`` for each row that has to be filtered.

Projections need an expression that computes the values
of the new column, for example ``A + B``.

Apart from applying expressions, the planner needs to
know which columns an expression reads, so that it
can avoid loading columns nobody uses, and how a predicate
splits in independent conditions, so that the conditions
on partition columns can be checked before opening files.
"""

from typing import Any, Callable, Iterator

import pyarrow as pa
import pyarrow.compute as pc

from .. import utils
from ..errors import UnsupportedExpressionError
from .base import ColumnRef, Expression, Literal

CONJUNCTION_FUNCTIONS = (pc.and_, pc.and_kleene)


def apply_expression_if_needed(
    batch: pa.RecordBatch, o: Expression | pa.Array | Any
) -> pa.Array | Any:
    """Invoke apply on expressions when needed.

    If the provided object is an Expression,
    it will be applied to the target batch.

    Otherwise it will treat it as if it's
    already the result of an expression
    or a literal value.
    """
    if isinstance(o, Expression):
        o = o.apply(batch)
    return o


class FunctionCallExpression(Expression):
    """Call a compute function on its arguments.

    Given a compute function, and a set of arguments
    (other expressions, literals or data), execute
    the function on the provided arguments and return
    the resulting data.

    For example to sum two columns this would be used as::

        FunctionCallExpression(pyarrow.compute.add, ColumnRef("A"), ColumnRef("B"))
    """

    def __init__(self, func: Callable, *args: Expression | Any) -> None:
        """
        :param func: The function accepting the arguments.
        :param *args: The arguments for the function.
        """
        if not callable(func):
            raise UnsupportedExpressionError(
                f"Function call expressions require a callable, got {func!r}"
            )
        self.func = func
        self.args = args

    def __str__(self) -> str:
        func_qualname = utils.inspect.get_qualname(self.func)
        return f"{func_qualname}({','.join(map(str, self.args))})"

    def apply(self, batch: pa.RecordBatch) -> pa.Array:
        """Invoke the function resolving all arguments on the recordbatch.

        When the function arguments are expressions themselves,
        this will apply the expressions on the provided recordbatch
        and the resulting data will be used as the arguments for the
        function.
        """
        args = tuple(apply_expression_if_needed(batch, arg) for arg in self.args)
        try:
            return self.func(*args)
        except (pa.ArrowNotImplementedError, pa.ArrowTypeError) as e:
            raise UnsupportedExpressionError(f"Unable to evaluate {self}: {e}") from e


class NullIfExpression(Expression):
    """Replace sentinel values with null.

    Datasets frequently use implausible values, like a
    ``0`` length or ``-1`` age, to mean that the value
    is missing. Those values should be recoded to null
    instead of being used in computations.

    >>> import pyarrow as pa
    >>> batch = pa.record_batch({"carat": [0.5, 0.0, 1.2]})
    >>> NullIfExpression(ColumnRef("carat"), [0]).apply(batch).to_pylist()
    [0.5, None, 1.2]
    """

    def __init__(self, expression: Expression, values: list[Any]) -> None:
        """
        :param expression: The expression providing the data to recode.
        :param values: The values that should become null.
        """
        self.expression = expression
        self.values = list(values)

    def __str__(self) -> str:
        return f"NullIf({self.expression}, {self.values})"

    def apply(self, batch: pa.RecordBatch) -> pa.Array:
        data = self.expression.apply(batch)
        try:
            value_set = pa.array(self.values).cast(data.type)
        except (pa.ArrowInvalid, pa.ArrowNotImplementedError, pa.ArrowTypeError) as e:
            raise UnsupportedExpressionError(
                f"Unable to compare {self.values} with values of type {data.type}"
            ) from e
        mask = pc.is_in(data, value_set=value_set)
        return pc.if_else(mask, pa.scalar(None, type=data.type), data)


def referenced_columns(expression: Expression | Any) -> set[str]:
    """Names of the columns that an expression reads.

    Values that are not expressions (plain python values
    or arrow data passed as function arguments) read no column.

    Raises :class:`UnsupportedExpressionError` for expressions
    the engine doesn't know how to inspect, as it would
    be impossible to know which columns they need.
    """
    if isinstance(expression, ColumnRef):
        return {expression.name}
    elif isinstance(expression, Literal):
        return set()
    elif isinstance(expression, FunctionCallExpression):
        columns = set()
        for arg in expression.args:
            columns |= referenced_columns(arg)
        return columns
    elif isinstance(expression, NullIfExpression):
        return referenced_columns(expression.expression)
    elif isinstance(expression, Expression):
        raise UnsupportedExpressionError(
            f"Unsupported expression {expression} of type {type(expression).__name__}"
        )
    return set()


def split_conjunction(expression: Expression) -> Iterator[Expression]:
    """Split an expression in the conditions that are AND-ed together.

    ``(A AND B) AND C`` is split into ``A``, ``B``, ``C``.
    Each of the resulting conditions must be true for a row
    to pass the original expression, so each of them can be
    checked independently to discard data.
    """
    if (
        isinstance(expression, FunctionCallExpression)
        and expression.func in CONJUNCTION_FUNCTIONS
    ):
        for arg in expression.args:
            if isinstance(arg, Expression):
                yield from split_conjunction(arg)
    else:
        yield expression
