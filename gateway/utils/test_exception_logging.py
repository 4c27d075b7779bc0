import logging
from unittest.mock import Mock

from gateway.utils.exception_logging import (
    format_exception_message,
    leaf_exceptions,
    log_exception_with_details,
)


class BrokenStrException(Exception):
    """An exception that breaks when __str__ is called."""

    def __str__(self):
        raise RuntimeError("Cannot convert to string!")

    def __repr__(self):
        return "BrokenStrException(cannot convert to string)"


class TestLogExceptionWithDetails:
    """Test cases for log_exception_with_details function."""

    def setup_method(self):
        self.logger = Mock(spec=logging.Logger)

    def test_normal_exception_logging(self):
        exception = ValueError("Normal test error")

        log_exception_with_details(self.logger, "[TEST]", exception)

        self.logger.log.assert_called_once_with(
            logging.ERROR,
            "[TEST] Exception: Normal test error",
            exc_info=exception,
        )

    def test_exception_with_custom_level(self):
        exception = ValueError("Warning level error")

        log_exception_with_details(self.logger, "[TEST]", exception, logging.WARNING)

        self.logger.log.assert_called_once_with(
            logging.WARNING,
            "[TEST] Exception: Warning level error",
            exc_info=exception,
        )

    def test_exception_group_logging(self):
        sub_exceptions = [ValueError("Sub error 1"), RuntimeError("Sub error 2")]
        exception_group = ExceptionGroup("Multiple errors occurred", sub_exceptions)

        log_exception_with_details(self.logger, "[TEST]", exception_group)

        assert self.logger.log.call_count == 3
        first, second, third = self.logger.log.call_args_list
        assert first.args == (
            logging.ERROR,
            "[TEST] Exception with 2 sub-exceptions: Multiple errors occurred (2 sub-exceptions)",
        )
        assert second.args == (
            logging.ERROR,
            "[TEST] Sub-exception 1: ValueError: Sub error 1",
        )
        assert second.kwargs["exc_info"] is sub_exceptions[0]
        assert third.args == (
            logging.ERROR,
            "[TEST] Sub-exception 2: RuntimeError: Sub error 2",
        )

    def test_broken_str_exception(self):
        exception = BrokenStrException()

        log_exception_with_details(self.logger, "[TEST]", exception)

        self.logger.log.assert_called_once_with(
            logging.ERROR,
            "[TEST] Exception: BrokenStrException(cannot convert to string)",
            exc_info=exception,
        )


class TestLeafExceptions:
    def test_plain_exception(self):
        error = ValueError("x")
        assert leaf_exceptions(error) == [error]

    def test_nested_groups_flattened_in_order(self):
        a, b, c = ValueError("a"), KeyError("b"), OSError("c")
        group = ExceptionGroup("outer", [a, ExceptionGroup("inner", [b, c])])

        assert leaf_exceptions(group) == [a, b, c]


class TestFormatExceptionMessage:
    def test_normal_exception_formatting(self):
        assert format_exception_message(ValueError("boom")) == "boom"

    def test_none_exception_formatting(self):
        assert format_exception_message(None) == "None"

    def test_exception_group_formatting(self):
        group = ExceptionGroup("listeners", [OSError("in use"), RuntimeError("down")])

        assert format_exception_message(group) == (
            "listeners (2 sub-exceptions) "
            "(Sub-exceptions: OSError: in use; RuntimeError: down)"
        )
