"""
Validation decorators for gssel.

Provides reusable validation logic for parameter checking on public entry points.
"""

from __future__ import annotations

import numbers
from collections.abc import Callable
from functools import wraps
from typing import Any

F = Callable[..., Any]


def _lookup(args: tuple, kwargs: dict, param_name: str, param_index: int) -> tuple[bool, Any]:
    if len(args) > param_index:
        return True, args[param_index]
    if param_name in kwargs:
        return True, kwargs[param_name]
    return False, None


def _require_number(value: Any, param_name: str) -> None:
    # bool is an int subclass but never a meaningful count or threshold
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise TypeError(
            f"{param_name} must be a number, got {type(value).__name__}. "
            f"Provide a numeric value (int or float)."
        )


def validate_range(
    min_val: float,
    max_val: float,
    param_name: str = "value",
    param_index: int = 1,
) -> Callable[[F], F]:
    """
    Decorator for validating numeric parameter ranges.

    Args:
        min_val: Minimum allowed value (inclusive)
        max_val: Maximum allowed value (inclusive)
        param_name: Name of parameter for error messages
        param_index: Position of parameter in function signature (default: 1 = first arg after self)

    Returns:
        Decorated function with range validation

    Example:
        >>> @validate_range(1, 65536, "bucket_count")
        ... def __init__(self, bucket_count: int = 256) -> None:
        ...     self.bucket_count = bucket_count
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            found, value = _lookup(args, kwargs, param_name, param_index)
            if not found:
                # No value provided, let function handle it
                return func(*args, **kwargs)

            _require_number(value, param_name)

            if not min_val <= value <= max_val:
                suggestion = ""
                if "bucket" in param_name:
                    suggestion = " Use 256 (default) to match the histogram display width."
                elif "epsilon" in param_name:
                    suggestion = " Use a small positive value such as 1e-6."

                raise ValueError(
                    f"{param_name}={value} is outside valid range [{min_val}, {max_val}].{suggestion}"
                )

            return func(*args, **kwargs)

        return wrapper  # type: ignore

    return decorator


def validate_positive(param_name: str = "value", param_index: int = 1) -> Callable[[F], F]:
    """
    Decorator for validating positive numeric parameters.

    Args:
        param_name: Name of parameter for error messages
        param_index: Position of parameter in function signature

    Returns:
        Decorated function with positive validation
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            found, value = _lookup(args, kwargs, param_name, param_index)
            if not found:
                return func(*args, **kwargs)

            _require_number(value, param_name)

            if value <= 0:
                suggestion = ""
                if "epsilon" in param_name:
                    suggestion = " Log-scale bucketing needs a positive floor."
                raise ValueError(f"{param_name}={value} must be positive (> 0).{suggestion}")

            return func(*args, **kwargs)

        return wrapper  # type: ignore

    return decorator


def validate_choices(
    valid_choices: set[str],
    param_name: str = "value",
    param_index: int = 1,
) -> Callable[[F], F]:
    """
    Decorator for validating parameter choices.

    Enum members whose value is in valid_choices pass as well.

    Example:
        >>> @validate_choices({"set", "or", "and"}, "operator")
        ... def apply_mask(self, mask, operator="set"):
        ...     ...
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            found, value = _lookup(args, kwargs, param_name, param_index)
            if not found:
                return func(*args, **kwargs)

            if getattr(value, "value", value) not in valid_choices:
                choices_str = ", ".join(sorted(valid_choices))
                raise ValueError(
                    f"{param_name}='{value}' is not valid. Valid options are: {choices_str}"
                )

            return func(*args, **kwargs)

        return wrapper  # type: ignore

    return decorator
