"""
Utility functions for exception logging, particularly for TaskGroup exception groups.
"""

import logging
from typing import List, Optional


def _safe_str(obj) -> str:
    """
    Safely convert an object to string, handling cases where __str__ or __repr__ might fail.
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def leaf_exceptions(exception: BaseException) -> List[BaseException]:
    """
    Flatten nested exception groups into their leaf exceptions, in raise order.

    Args:
        exception: An exception or exception group

    Returns:
        The non-group exceptions contained in it (the exception itself if it is not a group)
    """
    if isinstance(exception, BaseExceptionGroup):
        leaves = []
        for sub_exc in exception.exceptions:
            leaves.extend(leaf_exceptions(sub_exc))
        return leaves
    return [exception]


def format_exception_message(exception: Optional[BaseException]) -> str:
    """
    Format an exception message, including sub-exceptions for TaskGroup errors.
    """
    if exception is None:
        return "None"
    if not isinstance(exception, BaseExceptionGroup):
        return _safe_str(exception)
    sub_exception_strs = [
        f"{type(sub_exc).__name__}: {_safe_str(sub_exc)}"
        for sub_exc in leaf_exceptions(exception)
    ]
    return f"{_safe_str(exception)} (Sub-exceptions: {'; '.join(sub_exception_strs)})"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: BaseException,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception with detailed information, including sub-exceptions for TaskGroup errors.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Listener]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    if isinstance(exception, BaseExceptionGroup):
        sub_exceptions = leaf_exceptions(exception)
        logger.log(
            level,
            f"{prefix} Exception with {len(sub_exceptions)} sub-exceptions: {_safe_str(exception)}",
        )
        for i, sub_exc in enumerate(sub_exceptions):
            logger.log(
                level,
                f"{prefix} Sub-exception {i+1}: {type(sub_exc).__name__}: {_safe_str(sub_exc)}",
                exc_info=sub_exc,
            )
    else:
        logger.log(level, f"{prefix} Exception: {_safe_str(exception)}", exc_info=exception)
