"""Small parameter validation helpers shared by the pipeline and the CLI."""

from __future__ import annotations

from numbers import Integral, Number
from typing import Iterable


def check_parameter(
    param: Number,
    low: Number | None = None,
    high: Number | None = None,
    *,
    param_name: str = "parameter",
) -> None:
    """Validate a numeric parameter is within the inclusive range ``[low, high]``.

    Bounds set to `None` are not checked.
    """

    if not isinstance(param, Number) or isinstance(param, bool):
        raise TypeError(f"{param_name} must be a number, got {type(param).__name__}")

    if low is not None and high is not None and low > high:
        raise ValueError(f"Invalid bounds for {param_name}: low={low} > high={high}")
    if low is not None and param < low:
        raise ValueError(f"{param_name} must be >= {low}, got {param}")
    if high is not None and param > high:
        raise ValueError(f"{param_name} must be <= {high}, got {param}")


def check_percentile(value: Number, *, param_name: str = "percentile") -> int:
    """Return ``value`` as an int in ``[0, 100]``.

    Integer-valued floats (``95.0``) are accepted; ``99.9`` raises TypeError
    instead of being truncated to a different rank.
    """

    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, Integral) or isinstance(value, bool):
        raise TypeError(f"{param_name} must be an integer, got {value!r}")
    check_parameter(value, low=0, high=100, param_name=param_name)
    return int(value)


def check_choice(value: str, choices: Iterable[str], *, param_name: str = "parameter") -> str:
    """Return `value` lower-cased if it is one of `choices`, else raise ValueError."""

    options = tuple(str(c) for c in choices)
    v = str(value).lower().strip()
    if v not in options:
        raise ValueError(f"{param_name} must be one of {', '.join(options)}, got {value!r}")
    return v
