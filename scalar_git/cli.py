#!/usr/bin/env python3
"""Command-line front end for scalar-git.

Usage:
    python -m scalar_git version
    python -m scalar_git --repo PATH config-get core.autocrlf
    python -m scalar_git --repo PATH config-get gc.auto --int --default 6700 --min 0
    python -m scalar_git --repo PATH config-list --local
    python -m scalar_git --repo PATH credential-fill https://example.com/repo
    python -m scalar_git --repo PATH remotes
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass

from typeguard import typechecked

from scalar_git.config import GitProcessSettings
from scalar_git.git.credentials import GitCredentialBridge
from scalar_git.git.process import GitProcess
from scalar_git.util.console_utf8 import configure_utf8_console
from scalar_git.util.tracing import Tracer


logger = logging.getLogger("scalar_git")


@typechecked
@dataclass
class CliArgs:
    """Type-safe command-line arguments"""

    command: str
    repo: str | None = None
    verbose: bool = False
    name: str | None = None
    as_int: bool = False
    default: int = 0
    min_value: int = 0
    local: bool = False
    url: str | None = None


def parse_args(argv: list[str] | None = None) -> CliArgs:
    parser = argparse.ArgumentParser(
        prog="scalar_git", description="Run guarded git operations"
    )
    parser.add_argument("--repo", help="Working directory root of the enlistment")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("version", help="Print the installed git version")

    config_get = sub.add_parser("config-get", help="Read one config setting")
    config_get.add_argument("name")
    config_get.add_argument("--int", dest="as_int", action="store_true")
    config_get.add_argument("--default", type=int, default=0)
    config_get.add_argument("--min", dest="min_value", type=int, default=0)

    config_list = sub.add_parser("config-list", help="List config settings")
    config_list.add_argument("--local", action="store_true")

    fill = sub.add_parser("credential-fill", help="Ask git for a credential")
    fill.add_argument("url")

    sub.add_parser("remotes", help="List remotes of the enlistment")

    ns = parser.parse_args(argv)
    return CliArgs(
        command=ns.command,
        repo=ns.repo,
        verbose=ns.verbose,
        name=getattr(ns, "name", None),
        as_int=getattr(ns, "as_int", False),
        default=getattr(ns, "default", 0),
        min_value=getattr(ns, "min_value", 0),
        local=getattr(ns, "local", False),
        url=getattr(ns, "url", None),
    )


def run(args: CliArgs, git: GitProcess) -> int:
    if args.command == "version":
        version, error = GitProcess.try_get_version(git.settings.git_bin_path)
        if version is None:
            print(error, file=sys.stderr)
            return 1
        print(version)
        return 0

    if args.command == "config-get":
        assert args.name is not None
        config = git.get_from_config(args.name)
        parsed = (
            config.try_parse_as_int(args.default, args.min_value)
            if args.as_int
            else config.try_parse_as_string()
        )
        if not parsed.success:
            print(parsed.error, file=sys.stderr)
            return 1
        if parsed.value is not None:
            print(parsed.value)
        return 0

    if args.command == "config-list":
        result, settings = git.try_get_all_config(local_only=args.local)
        if settings is None:
            print(result.errors, file=sys.stderr, end="")
            return 1
        for name, setting in settings.items():
            print(f"{name}={setting.last_value}")
        return 0

    if args.command == "credential-fill":
        assert args.url is not None
        fill = GitCredentialBridge(git).try_get_credential(Tracer(logger), args.url)
        if not fill.success:
            print(fill.error or "credential fill failed", file=sys.stderr)
            return 1
        print(f"username={fill.username}")
        return 0

    if args.command == "remotes":
        remotes, error = git.try_get_remotes()
        if remotes is None:
            print(error, file=sys.stderr, end="")
            return 1
        for remote in remotes:
            print(remote)
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Probed once; every GitProcess receives it through its settings.
    stdin_encoding_ok = configure_utf8_console()

    try:
        settings = GitProcessSettings.from_environment(
            working_directory_root=args.repo, stdin_encoding_ok=stdin_encoding_ok
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        return run(args, GitProcess(settings))
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
