"""scalar-git: a guarded wrapper around the git command-line tool.

Console encoding is probed once by the entry point (see
``scalar_git.util.console_utf8``) and handed to each ``GitProcess`` through its
settings; importing this package has no side effects.
"""

from scalar_git.config import Enlistment, GitProcessSettings
from scalar_git.git.credentials import (
    CredentialFill,
    CredentialUpdate,
    GitCredentialBridge,
)
from scalar_git.git.process import GitProcess, KillOutcome
from scalar_git.git.result import (
    ConfigResult,
    ConfigValue,
    GitFailure,
    GitResult,
    MultiConfigResult,
)


__all__ = [
    "ConfigResult",
    "ConfigValue",
    "CredentialFill",
    "CredentialUpdate",
    "Enlistment",
    "GitCredentialBridge",
    "GitFailure",
    "GitProcess",
    "GitProcessSettings",
    "GitResult",
    "KillOutcome",
    "MultiConfigResult",
]
