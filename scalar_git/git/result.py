"""Results of git invocations and their interpretation as config values."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, NamedTuple

from scalar_git.git.line_scanner import LineScanner


_INT_PATTERN = re.compile(r"^\s*[+-]?[0-9]+\s*$")


class GitFailure(Enum):
    """Failures produced by this layer rather than by git itself."""

    LAUNCH = "launch"
    TIMEOUT = "timeout"
    STOPPING = "stopping"
    STDIN_ENCODING = "stdin_encoding"
    OUTPUT_HANDLER = "output_handler"


@dataclass(frozen=True)
class GitResult:
    """Captured output and exit code of one git invocation.

    ``output`` is empty when stdout was handed to a line callback or discarded.
    """

    SUCCESS_CODE = 0
    GENERIC_FAILURE_CODE = 1

    output: str
    errors: str
    exit_code: int
    failure: GitFailure | None = None

    @classmethod
    def internal_failure(cls, failure: GitFailure, errors: str, output: str = "") -> "GitResult":
        return cls(output, errors, cls.GENERIC_FAILURE_CODE, failure)

    @property
    def exit_code_is_success(self) -> bool:
        return self.exit_code == GitResult.SUCCESS_CODE

    @property
    def exit_code_is_failure(self) -> bool:
        return not self.exit_code_is_success

    def stderr_contains_errors(self) -> bool:
        """True if stderr has any line that is not a ``warning:`` line."""
        if not self.errors or not self.errors.strip():
            return False
        return not all(
            line.lstrip().lower().startswith("warning:")
            for line in LineScanner(self.errors.replace("\r", "\n")).non_empty()
        )


class ConfigValue(NamedTuple):
    success: bool
    value: Any
    error: str = ""


class ConfigResult:
    """A git config query result, interpreted lazily as a string or an int."""

    def __init__(self, result: GitResult, config_name: str) -> None:
        self.result = result
        self.config_name = config_name

    def try_parse_as_string(self, default: str | None = None) -> ConfigValue:
        if self.result.exit_code_is_failure and self.result.stderr_contains_errors():
            return ConfigValue(
                False,
                default,
                f"Error while reading '{self.config_name}' from config: {self.result.errors}",
            )

        if self.result.exit_code_is_success:
            return ConfigValue(True, self.result.output.rstrip("\n"))

        # git exits with 1 and no stderr when the setting does not exist
        return ConfigValue(True, default)

    def try_parse_as_int(self, default: int, min_value: int) -> ConfigValue:
        parsed = self.try_parse_as_string()
        if not parsed.success:
            return ConfigValue(False, default, parsed.error)

        text = parsed.value
        if text is None or not text.strip():
            return ConfigValue(True, default)

        if not _INT_PATTERN.match(text):
            return ConfigValue(
                False,
                default,
                f"Misconfigured config setting {self.config_name}, could not parse value `{text}` as an int",
            )

        value = int(text)
        if value < min_value:
            return ConfigValue(
                False,
                value,
                f"Invalid value {value} for setting {self.config_name}, value must be greater than or equal to {min_value}",
            )

        return ConfigValue(True, value)


class MultiConfigResult:
    """A ``config --get-all`` result: one value per stdout line."""

    def __init__(self, result: GitResult) -> None:
        self.result = result
        self.values: set[str] = set(LineScanner(result.output).non_empty())
