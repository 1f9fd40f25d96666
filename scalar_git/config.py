#!/usr/bin/env python3
"""Settings for ``GitProcess`` instances.

Environment variables:
    SCALAR_GIT_PATH: Path to the git executable (default: ``git`` on PATH)
    SCALAR_GIT_LOWER_PRIORITY: ``1`` runs git below normal priority
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field
from typing import Mapping

from typeguard import typechecked

from scalar_git.git.constants import DOT_GIT_ROOT


GIT_PATH_ENV = "SCALAR_GIT_PATH"
LOWER_PRIORITY_ENV = "SCALAR_GIT_LOWER_PRIORITY"


def default_system_directory() -> str:
    """Directory git runs in when it must not touch a working tree."""
    if os.name == "nt":
        return os.path.join(os.environ.get("SystemRoot", r"C:\Windows"), "System32")
    return os.path.abspath(os.sep)


def resolve_git_bin_path(env: Mapping[str, str] | None = None) -> str | None:
    env = os.environ if env is None else env
    configured = env.get(GIT_PATH_ENV)
    if configured:
        return configured
    return shutil.which("git")


@typechecked
@dataclass(frozen=True)
class GitProcessSettings:
    """Type-safe configuration for one ``GitProcess``.

    ``stdin_encoding_ok`` is the console capability probed once at startup by
    ``scalar_git.util.console_utf8.configure_utf8_console``; when False, git
    commands that need stdin are refused.
    """

    git_bin_path: str
    working_directory_root: str | None = None
    stdin_encoding_ok: bool = True
    lower_priority: bool = False
    system_directory: str = field(default_factory=default_system_directory)

    def __post_init__(self) -> None:
        if not self.git_bin_path or not self.git_bin_path.strip():
            raise ValueError("git_bin_path must be a non-empty path")

    @property
    def dot_git_root(self) -> str | None:
        if self.working_directory_root is None:
            return None
        return os.path.join(self.working_directory_root, DOT_GIT_ROOT)

    @classmethod
    def from_environment(
        cls,
        working_directory_root: str | None = None,
        stdin_encoding_ok: bool = True,
        env: Mapping[str, str] | None = None,
    ) -> "GitProcessSettings":
        """Build settings from ``SCALAR_GIT_*`` variables.

        Raises:
            ValueError: If no git executable can be found.
        """
        env = os.environ if env is None else env
        git_bin_path = resolve_git_bin_path(env)
        if not git_bin_path:
            raise ValueError(
                f"git executable not found; install git or set {GIT_PATH_ENV}"
            )
        return cls(
            git_bin_path=git_bin_path,
            working_directory_root=working_directory_root,
            stdin_encoding_ok=stdin_encoding_ok,
            lower_priority=env.get(LOWER_PRIORITY_ENV, "") == "1",
        )


@dataclass(frozen=True)
class Enlistment:
    """A managed checkout: its working directory and the git that serves it."""

    working_directory_root: str
    git_bin_path: str

    @property
    def dot_git_root(self) -> str:
        return os.path.join(self.working_directory_root, DOT_GIT_ROOT)

    def settings(self, stdin_encoding_ok: bool = True) -> GitProcessSettings:
        return GitProcessSettings(
            git_bin_path=self.git_bin_path,
            working_directory_root=self.working_directory_root,
            stdin_encoding_ok=stdin_encoding_ok,
        )
