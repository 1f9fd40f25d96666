"""Unit tests for GitResult, ConfigResult and MultiConfigResult."""

import unittest

from scalar_git.git.result import (
    ConfigResult,
    GitFailure,
    GitResult,
    MultiConfigResult,
)


def _config(output: str, errors: str = "", exit_code: int = 0) -> ConfigResult:
    return ConfigResult(GitResult(output, errors, exit_code), "core.setting")


class TestGitResult(unittest.TestCase):
    def test_exit_code_flags(self: "TestGitResult") -> None:
        self.assertTrue(GitResult("", "", 0).exit_code_is_success)
        self.assertTrue(GitResult("", "", 128).exit_code_is_failure)

    def test_internal_failure_uses_generic_exit_code(self: "TestGitResult") -> None:
        result = GitResult.internal_failure(GitFailure.TIMEOUT, "Operation timed out: ")
        self.assertEqual(result.exit_code, GitResult.GENERIC_FAILURE_CODE)
        self.assertEqual(result.failure, GitFailure.TIMEOUT)
        self.assertEqual(result.output, "")

    def test_stderr_with_only_warnings_has_no_errors(self: "TestGitResult") -> None:
        result = GitResult("", "warning: one\r\n  Warning: two\n\n", 1)
        self.assertFalse(result.stderr_contains_errors())

    def test_stderr_with_other_lines_has_errors(self: "TestGitResult") -> None:
        result = GitResult("", "warning: one\nfatal: bad\n", 1)
        self.assertTrue(result.stderr_contains_errors())

    def test_blank_stderr_has_no_errors(self: "TestGitResult") -> None:
        self.assertFalse(GitResult("", "  \n", 1).stderr_contains_errors())


class TestConfigResultString(unittest.TestCase):
    def test_success_strips_trailing_newline(self: "TestConfigResultString") -> None:
        parsed = _config("value with spaces \n").try_parse_as_string()
        self.assertEqual(parsed, (True, "value with spaces ", ""))

    def test_missing_setting_returns_default(self: "TestConfigResultString") -> None:
        parsed = _config("", exit_code=1).try_parse_as_string(default="fallback")
        self.assertTrue(parsed.success)
        self.assertEqual(parsed.value, "fallback")

    def test_warnings_only_failure_is_success(self: "TestConfigResultString") -> None:
        parsed = _config("", errors="warning: foo", exit_code=1).try_parse_as_string()
        self.assertTrue(parsed.success)
        self.assertIsNone(parsed.value)

    def test_real_errors_fail(self: "TestConfigResultString") -> None:
        parsed = _config("", errors="error: bad config\n", exit_code=3).try_parse_as_string("d")
        self.assertFalse(parsed.success)
        self.assertEqual(parsed.value, "d")
        self.assertEqual(
            parsed.error,
            "Error while reading 'core.setting' from config: error: bad config\n",
        )


class TestConfigResultInt(unittest.TestCase):
    def test_parses_value(self: "TestConfigResultInt") -> None:
        self.assertEqual(_config("42\n").try_parse_as_int(5, 0), (True, 42, ""))

    def test_empty_output_returns_default(self: "TestConfigResultInt") -> None:
        parsed = _config("").try_parse_as_int(7, 0)
        self.assertTrue(parsed.success)
        self.assertEqual(parsed.value, 7)

    def test_below_minimum_fails(self: "TestConfigResultInt") -> None:
        parsed = _config("-3\n").try_parse_as_int(5, 0)
        self.assertFalse(parsed.success)
        self.assertEqual(parsed.value, -3)
        self.assertIn("-3", parsed.error)
        self.assertIn("greater than or equal to 0", parsed.error)

    def test_non_numeric_fails_with_default(self: "TestConfigResultInt") -> None:
        parsed = _config("lots\n").try_parse_as_int(5, 0)
        self.assertFalse(parsed.success)
        self.assertEqual(parsed.value, 5)
        self.assertIn("could not parse value `lots` as an int", parsed.error)

    def test_non_ascii_digits_fail(self: "TestConfigResultInt") -> None:
        parsed = _config("٤٢\n").try_parse_as_int(5, 0)
        self.assertFalse(parsed.success)
        self.assertEqual(parsed.value, 5)

    def test_signed_and_padded_values(self: "TestConfigResultInt") -> None:
        self.assertEqual(_config(" +12 \n").try_parse_as_int(0, 0).value, 12)

    def test_missing_setting_returns_default(self: "TestConfigResultInt") -> None:
        parsed = _config("", exit_code=1).try_parse_as_int(9, 0)
        self.assertTrue(parsed.success)
        self.assertEqual(parsed.value, 9)

    def test_git_error_propagates(self: "TestConfigResultInt") -> None:
        parsed = _config("", errors="fatal: oops\n", exit_code=128).try_parse_as_int(9, 0)
        self.assertFalse(parsed.success)
        self.assertEqual(parsed.value, 9)
        self.assertIn("fatal: oops", parsed.error)


class TestMultiConfigResult(unittest.TestCase):
    def test_values_are_distinct_non_empty_lines(self: "TestMultiConfigResult") -> None:
        result = MultiConfigResult(GitResult("a\nb\n\na\n", "", 0))
        self.assertEqual(result.values, {"a", "b"})


if __name__ == "__main__":
    unittest.main()
