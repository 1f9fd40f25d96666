"""Composition of the git command line, working directory and environment.

Nothing here spawns a process: ``build_launch_descriptor`` turns an
``InvocationRequest`` into the exact argv/cwd/env that ``GitProcess`` hands to
``subprocess.Popen``.
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from typing import Callable, Mapping, TextIO, Union
from urllib.parse import urlsplit, urlunsplit

from typeguard import typechecked

from scalar_git.git.constants import GitConfig, GitEnv


@dataclass(frozen=True)
class NoCapture:
    """Drain stdout and discard it."""


@dataclass(frozen=True)
class BufferAll:
    """Collect stdout into ``GitResult.output``."""


@dataclass(frozen=True)
class LineCallback:
    """Hand every stdout line (without its newline) to ``handler``."""

    handler: Callable[[str], None]


StdoutCapture = Union[NoCapture, BufferAll, LineCallback]

StdinWriter = Callable[[TextIO], None]


@typechecked
@dataclass(frozen=True)
class InvocationRequest:
    """Everything needed to run one git command."""

    args: tuple[str, ...]
    working_directory: str
    dot_git_directory: str | None = None
    git_objects_directory: str | None = None
    fetch_missing_objects: bool = False
    write_stdin: StdinWriter | None = None
    stdout: StdoutCapture = field(default_factory=BufferAll)
    timeout: float | None = None
    user_interactive: bool = True


@dataclass(frozen=True)
class LaunchDescriptor:
    argv: tuple[str, ...]
    cwd: str
    env: dict[str, str]

    def redacted_command(self) -> str:
        """The command line for logs, with URL passwords masked."""
        return shlex.join(_remove_password_if_present(arg) for arg in self.argv)


def convert_path_to_git_format(path: str) -> str:
    return path.replace("\\", "/")


def sanitize_environment(
    base_env: Mapping[str, str],
    user_interactive: bool,
    git_objects_directory: str | None,
) -> dict[str, str]:
    """Return the environment git runs with.

    GIT_TRACE* variables are dropped unless they point at an absolute path:
    ``GIT_TRACE=1``/``2`` would interleave trace output with the stdout and
    stderr being parsed, while a rooted path sends it to a file instead.
    """
    env: dict[str, str] = {}
    for key, value in base_env.items():
        if key.upper().startswith(GitEnv.TRACE_PREFIX) and not os.path.isabs(value):
            continue
        env[key] = value

    env[GitEnv.TERMINAL_PROMPT] = "0"
    env[GitEnv.GCM_VALIDATE] = "0"

    if not user_interactive:
        env[GitEnv.GCM_INTERACTIVE] = "Never"

    if git_objects_directory is not None:
        env[GitEnv.OBJECT_DIRECTORY] = convert_path_to_git_format(git_objects_directory)

    return env


def build_launch_descriptor(
    git_bin_path: str,
    request: InvocationRequest,
    base_env: Mapping[str, str] | None = None,
) -> LaunchDescriptor:
    args: list[str] = list(request.args)

    if not request.fetch_missing_objects:
        args = ["-c", f"{GitConfig.USE_GVFS_HELPER}=false", *args]

    if request.dot_git_directory:
        args = [f"--git-dir={request.dot_git_directory}", *args]

    env = sanitize_environment(
        os.environ if base_env is None else base_env,
        user_interactive=request.user_interactive,
        git_objects_directory=request.git_objects_directory,
    )
    return LaunchDescriptor(
        argv=(git_bin_path, *args),
        cwd=request.working_directory,
        env=env,
    )


def _remove_password_if_present(arg: str) -> str:
    if "://" not in arg:
        return arg
    try:
        parts = urlsplit(arg)
    except ValueError:
        return arg
    if parts.password is None:
        return arg
    netloc = parts.netloc.replace(f":{parts.password}@", ":*****@", 1)
    return urlunsplit(parts._replace(netloc=netloc))
