"""Provide insights about Python objects."""

import functools
import inspect
from typing import Any


def get_qualname(obj: Any) -> str:
    """Get the qualified name of the given object.

    Used to give a readable name to the compute
    functions in the textual representation of plans,
    like ``pyarrow.compute.greater``.

    >>> import pyarrow.compute as pc
    >>> get_qualname(pc.greater)
    'pyarrow.compute.greater'
    """
    if isinstance(obj, functools.partial):
        return f"partial({get_qualname(obj.func)})"

    module = inspect.getmodule(obj)
    module_name = module.__name__ if module is not None else "<unknown>"
    if inspect.ismethod(obj) or inspect.isfunction(obj):
        if getattr(obj, "__self__", None) is not None:
            class_name = obj.__self__.__class__.__name__
            return f"{module_name}.{class_name}.{obj.__name__}"
        return f"{module_name}.{obj.__qualname__}"
    elif inspect.isbuiltin(obj):
        return f"{module_name}.{obj.__name__}"
    elif inspect.isclass(obj):
        return f"{module_name}.{obj.__name__}"
    return f"{module_name}.{obj.__class__.__name__}"
