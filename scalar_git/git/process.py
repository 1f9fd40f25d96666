"""Runs git as a subprocess with guarded lifecycle and captured output.

A ``GitProcess`` runs at most one git process at a time. Two locks apply:

* ``_execution_lock`` is held for a whole invocation, so calls on one
  instance serialize.
* ``_process_lock`` guards only the current process handle. It is held while
  checking the stopping flag and spawning, while clearing the handle, and while
  a kill is in progress, so another thread can always ask "is something
  running? kill it" without waiting for the invocation to finish.

Both output streams are drained on their own threads from the moment the
process starts; the invoking thread only blocks in ``Popen.wait``.
"""

from __future__ import annotations

import datetime
import errno
import logging
import os
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, ClassVar, TextIO

from scalar_git.config import Enlistment, GitProcessSettings
from scalar_git.git.config_helper import GitConfigSetting, parse_key_values
from scalar_git.git.constants import (
    OBJECTS_PACK_DIR,
    REFS_HEADS,
    REFS_HIDDEN,
    GitConfig,
)
from scalar_git.git.launch import (
    BufferAll,
    InvocationRequest,
    LaunchDescriptor,
    LineCallback,
    StdinWriter,
    StdoutCapture,
    build_launch_descriptor,
)
from scalar_git.git.result import (
    ConfigResult,
    GitFailure,
    GitResult,
    MultiConfigResult,
)
from scalar_git.git.stream_reader import StreamDrainer
from scalar_git.git.version import GitVersion
from scalar_git.util.file_system import PhysicalFileSystem
from scalar_git.util.process_killer import (
    NO_PROCESS_EXIT_CODE,
    get_process_name,
    kill_process_tree,
    set_below_normal_priority,
)


logger = logging.getLogger(__name__)

# How long to wait for drain threads after the process exits. A grandchild that
# inherited the pipes can keep them open after git itself is gone.
_DRAIN_JOIN_TIMEOUT = 5.0
_DRAIN_JOIN_AFTER_KILL = 1.0
_REAP_AFTER_KILL_TIMEOUT = 5.0


@dataclass(frozen=True)
class KillOutcome:
    """Result of ``GitProcess.try_kill_running_process``.

    ``exit_code`` is -1 and ``process_name`` None when nothing was running.
    After killing a live process ``exit_code`` is also -1: its status is
    collected by the invoking thread and reported in that call's ``GitResult``.
    """

    success: bool
    process_name: str | None
    exit_code: int
    error: str | None = None


def _is_late_stdin_failure(error: OSError) -> bool:
    """True if writing/closing stdin failed because git already exited."""
    if isinstance(error, BrokenPipeError):
        return True
    # Windows reports a pipe whose reader is gone as EINVAL
    return error.errno in (errno.EPIPE, errno.EINVAL)


class GitProcess:
    """Invokes git for one enlistment (or outside any enlistment)."""

    _expire_time_date_string: ClassVar[str | None] = None

    def __init__(
        self,
        settings: GitProcessSettings,
        file_system: PhysicalFileSystem | None = None,
    ) -> None:
        self._settings = settings
        self._file_system = file_system or PhysicalFileSystem()
        self.lower_priority = settings.lower_priority

        self._execution_lock = threading.Lock()
        self._process_lock = threading.Lock()
        self._executing_process: subprocess.Popen[str] | None = None
        self._stopping = threading.Event()

    @classmethod
    def for_enlistment(
        cls, enlistment: Enlistment, stdin_encoding_ok: bool = True
    ) -> "GitProcess":
        return cls(enlistment.settings(stdin_encoding_ok=stdin_encoding_ok))

    @property
    def settings(self) -> GitProcessSettings:
        return self._settings

    @classmethod
    def expire_time_date_string(cls) -> str:
        """Yesterday's date, computed once per process lifetime."""
        if cls._expire_time_date_string is None:
            yesterday = datetime.date.today() - datetime.timedelta(days=1)
            cls._expire_time_date_string = yesterday.isoformat()
        return cls._expire_time_date_string

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    @property
    def is_stopping(self) -> bool:
        return self._stopping.is_set()

    def mark_stopping(self) -> None:
        """Make every future invocation on this instance fail without spawning."""
        self._stopping.set()

    def try_kill_running_process(self) -> KillOutcome:
        """Kill the git process currently running on this instance, if any.

        Only use this for git commands that can safely be killed. Also marks
        the instance as stopping, so an invocation that is about to spawn
        gives up instead.
        """
        self.mark_stopping()

        with self._process_lock:
            process = self._executing_process
            if process is None:
                return KillOutcome(True, None, NO_PROCESS_EXIT_CODE)

            fallback_name = Path(str(process.args[0])).name if process.args else None
            process_name = get_process_name(process.pid, fallback=fallback_name)

            if process.poll() is not None:
                # Exited on its own while we were asked to kill it.
                return KillOutcome(True, process_name, process.returncode)

            outcome = kill_process_tree(process.pid, reap_root=False)
            if not outcome.success:
                logger.warning(f"Failed to kill {process_name} ({process.pid}): {outcome.error}")
            return KillOutcome(
                outcome.success, process_name, outcome.exit_code, outcome.error
            )

    # ------------------------------------------------------------------
    # Invocation core
    # ------------------------------------------------------------------

    def invoke_git_impl(self, request: InvocationRequest) -> GitResult:
        if request.write_stdin is not None and not self._settings.stdin_encoding_ok:
            return GitResult.internal_failure(
                GitFailure.STDIN_ENCODING,
                "Attempting to use stdin, but the process does not have the right input encodings set.",
            )

        descriptor = build_launch_descriptor(self._settings.git_bin_path, request)
        output: list[str] = []
        errors: list[str] = []
        stdout_handler = _stdout_handler(request.stdout, output)

        with self._execution_lock:
            try:
                with self._process_lock:
                    if self._stopping.is_set():
                        return GitResult.internal_failure(
                            GitFailure.STOPPING, "GitProcess is stopping"
                        )

                    logger.debug(f"Running: {descriptor.redacted_command()} (cwd={descriptor.cwd})")
                    process = subprocess.Popen(
                        descriptor.argv,
                        cwd=descriptor.cwd,
                        env=descriptor.env,
                        stdin=subprocess.PIPE
                        if request.write_stdin is not None
                        else subprocess.DEVNULL,
                        stdout=subprocess.PIPE,
                        stderr=subprocess.PIPE,
                        text=True,
                        encoding="utf-8",
                        errors="replace",
                    )
                    self._executing_process = process

                    assert process.stdout is not None
                    assert process.stderr is not None
                    stdout_drainer = StreamDrainer(process.stdout, "stdout", stdout_handler)
                    stderr_drainer = StreamDrainer(
                        process.stderr, "stderr", lambda line: errors.append(line + "\n")
                    )
                    stdout_drainer.start()
                    stderr_drainer.start()
            except OSError as e:
                logger.debug(f"Failed to launch {descriptor.argv[0]}: {e}")
                return GitResult.internal_failure(GitFailure.LAUNCH, str(e))

            try:
                return self._run_to_completion(
                    process,
                    request,
                    descriptor,
                    stdout_drainer,
                    stderr_drainer,
                    output,
                    errors,
                )
            finally:
                with self._process_lock:
                    self._executing_process = None

    def _run_to_completion(
        self,
        process: subprocess.Popen[str],
        request: InvocationRequest,
        descriptor: LaunchDescriptor,
        stdout_drainer: StreamDrainer,
        stderr_drainer: StreamDrainer,
        output: list[str],
        errors: list[str],
    ) -> GitResult:
        if self.lower_priority:
            set_below_normal_priority(process.pid)

        if request.write_stdin is not None:
            self._write_stdin(process, request.write_stdin)

        try:
            process.wait(timeout=request.timeout)
        except subprocess.TimeoutExpired:
            logger.warning(
                f"git timed out after {request.timeout} seconds, killing: {descriptor.redacted_command()}"
            )
            self._force_kill(process)
            stdout_drainer.join(_DRAIN_JOIN_AFTER_KILL)
            stderr_drainer.join(_DRAIN_JOIN_AFTER_KILL)
            return GitResult.internal_failure(
                GitFailure.TIMEOUT,
                "Operation timed out: " + "".join(errors),
                output="".join(output),
            )

        for drainer in (stdout_drainer, stderr_drainer):
            if not drainer.join(_DRAIN_JOIN_TIMEOUT):
                logger.warning(
                    f"Output of {descriptor.redacted_command()} still open after exit; returning partial output"
                )

        logger.debug(f"git exited with {process.returncode}: {descriptor.redacted_command()}")

        if stdout_drainer.handler_error is not None:
            return GitResult.internal_failure(
                GitFailure.OUTPUT_HANDLER,
                "".join(errors)
                + f"Failed to process git output: {stdout_drainer.handler_error!r}\n",
                output="".join(output),
            )

        return GitResult("".join(output), "".join(errors), process.returncode)

    def _write_stdin(self, process: subprocess.Popen[str], write_stdin: StdinWriter) -> None:
        # A timeout cannot interrupt a blocking write here; writers are expected
        # to send small protocol payloads.
        assert process.stdin is not None
        try:
            write_stdin(process.stdin)
            process.stdin.close()
        except OSError as e:
            if not _is_late_stdin_failure(e):
                self._force_kill(process)
                raise
            logger.debug(f"git exited before stdin was fully written: {e}")
            try:
                process.stdin.close()
            except OSError:
                pass  # Unflushed input has nowhere to go
        except BaseException:
            self._force_kill(process)
            raise

    def _force_kill(self, process: subprocess.Popen[str]) -> None:
        if process.stdin is not None and not process.stdin.closed:
            try:
                process.stdin.close()
            except OSError:
                pass  # Unflushed input has nowhere to go
        if process.poll() is not None:
            return
        outcome = kill_process_tree(process.pid, reap_root=False)
        if not outcome.success:
            logger.warning(f"Falling back to Popen.kill for {process.pid}: {outcome.error}")
            try:
                process.kill()
            except OSError:
                pass  # Process might already be dead
        try:
            process.wait(timeout=_REAP_AFTER_KILL_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.warning(f"Process {process.pid} did not exit after being killed")

    # ------------------------------------------------------------------
    # Invocation scopes
    # ------------------------------------------------------------------

    def invoke_git_outside_enlistment(
        self,
        args: tuple[str, ...],
        write_stdin: StdinWriter | None = None,
        stdout: StdoutCapture | None = None,
        timeout: float | None = None,
    ) -> GitResult:
        """Run git outside any repository, e.g. ``git init`` or ``git --version``."""
        return self.invoke_git_impl(
            InvocationRequest(
                args=args,
                working_directory=self._settings.system_directory,
                fetch_missing_objects=False,
                write_stdin=write_stdin,
                stdout=stdout or BufferAll(),
                timeout=timeout,
            )
        )

    def invoke_git_in_working_directory_root(
        self,
        args: tuple[str, ...],
        fetch_missing_objects: bool,
        write_stdin: StdinWriter | None = None,
        stdout: StdoutCapture | None = None,
        user_interactive: bool = True,
    ) -> GitResult:
        """Run git from the enlistment's repository root."""
        working_directory_root = self._settings.working_directory_root
        if working_directory_root is None:
            return _no_enlistment_failure()
        return self.invoke_git_impl(
            InvocationRequest(
                args=args,
                working_directory=working_directory_root,
                fetch_missing_objects=fetch_missing_objects,
                write_stdin=write_stdin,
                stdout=stdout or BufferAll(),
                user_interactive=user_interactive,
            )
        )

    def invoke_git_against_dot_git_folder(
        self,
        args: tuple[str, ...],
        write_stdin: StdinWriter | None = None,
        stdout: StdoutCapture | None = None,
        git_objects_directory: str | None = None,
    ) -> GitResult:
        """Run git against the enlistment's ``.git`` folder.

        Only for commands that ignore the working tree: git runs from the
        system directory so it never touches the checkout. Without an
        enlistment no ``--git-dir`` is passed.
        """
        return self.invoke_git_impl(
            InvocationRequest(
                args=args,
                working_directory=self._settings.system_directory,
                dot_git_directory=self._settings.dot_git_root,
                fetch_missing_objects=False,
                write_stdin=write_stdin,
                stdout=stdout or BufferAll(),
                git_objects_directory=git_objects_directory,
            )
        )

    # ------------------------------------------------------------------
    # Repository and version
    # ------------------------------------------------------------------

    @classmethod
    def init(cls, enlistment: Enlistment) -> GitResult:
        return cls.for_enlistment(enlistment).invoke_git_outside_enlistment(
            ("init", enlistment.working_directory_root)
        )

    @classmethod
    def try_get_version(
        cls, git_bin_path: str
    ) -> tuple[GitVersion | None, str | None]:
        """Return ``(version, None)`` or ``(None, error)``."""
        result = cls(GitProcessSettings(git_bin_path)).invoke_git_outside_enlistment(
            ("--version",)
        )
        version = (
            GitVersion.parse_version_command_result(result.output)
            if result.exit_code_is_success
            else None
        )
        if version is None:
            return None, "Unable to determine installed git version. " + result.output
        return version, None

    def sparse_checkout_init(self) -> GitResult:
        return self.invoke_git_in_working_directory_root(
            ("sparse-checkout", "init", "--cone"), fetch_missing_objects=True
        )

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    @classmethod
    def get_from_global_config(cls, git_bin_path: str, setting_name: str) -> ConfigResult:
        return ConfigResult(
            cls(GitProcessSettings(git_bin_path)).invoke_git_outside_enlistment(
                ("config", "--global", setting_name)
            ),
            setting_name,
        )

    @classmethod
    def get_from_system_config(cls, git_bin_path: str, setting_name: str) -> ConfigResult:
        return ConfigResult(
            cls(GitProcessSettings(git_bin_path)).invoke_git_outside_enlistment(
                ("config", "--system", setting_name)
            ),
            setting_name,
        )

    def get_from_config(
        self, setting_name: str, force_outside_enlistment: bool = False
    ) -> ConfigResult:
        """Read a setting, from inside the enlistment when it exists.

        Called at clone time too, when the working directory may not exist yet;
        then the query runs outside the enlistment.
        """
        args = ("config", setting_name)
        if (
            not force_outside_enlistment
            and self._file_system.directory_exists(self._settings.working_directory_root)
        ):
            return ConfigResult(self.invoke_git_against_dot_git_folder(args), setting_name)
        return ConfigResult(self.invoke_git_outside_enlistment(args), setting_name)

    def get_from_local_config(self, setting_name: str) -> ConfigResult:
        return ConfigResult(
            self.invoke_git_against_dot_git_folder(("config", "--local", setting_name)),
            setting_name,
        )

    def get_origin_url(self) -> ConfigResult:
        return self.get_from_local_config(GitConfig.REMOTE_ORIGIN_URL)

    def get_multi_config(self, setting_name: str) -> MultiConfigResult:
        return MultiConfigResult(
            self.invoke_git_against_dot_git_folder(
                ("config", "--local", "--get-all", setting_name)
            )
        )

    def set_in_local_config(
        self,
        setting_name: str,
        value: str,
        replace_all: bool = False,
        add: bool = False,
    ) -> GitResult:
        args = ["config", "--local"]
        if replace_all:
            args.append("--replace-all")
        if add:
            args.append("--add")
        args.extend([setting_name, value])
        return self.invoke_git_against_dot_git_folder(tuple(args))

    def delete_from_local_config(self, setting_name: str) -> GitResult:
        return self.invoke_git_against_dot_git_folder(
            ("config", "--local", "--unset-all", setting_name)
        )

    def try_get_config_url_match(
        self, section: str, repository_url: str
    ) -> dict[str, GitConfigSetting] | None:
        result = self.invoke_git_against_dot_git_folder(
            ("config", "--get-urlmatch", section, repository_url)
        )
        if result.exit_code_is_failure:
            return None
        return parse_key_values(result.output, " ")

    def try_get_all_config(
        self, local_only: bool
    ) -> tuple[GitResult, dict[str, GitConfigSetting] | None]:
        args = ("config", "--list", "--local") if local_only else ("config", "--list")
        result = self.invoke_git_against_dot_git_folder(args)
        parsed = ConfigResult(result, "--list").try_parse_as_string(default="")
        settings = parse_key_values(parsed.value) if parsed.success else None
        return result, settings

    # ------------------------------------------------------------------
    # Branches, checkout and remotes
    # ------------------------------------------------------------------

    def create_branch_with_upstream(self, branch_to_create: str, upstream_branch: str) -> GitResult:
        return self.invoke_git_in_working_directory_root(
            ("branch", branch_to_create, "--track", upstream_branch),
            fetch_missing_objects=True,
        )

    def force_checkout(self, target: str) -> GitResult:
        return self.invoke_git_in_working_directory_root(
            ("checkout", "-f", target), fetch_missing_objects=True
        )

    def foreground_fetch(self, remote: str) -> GitResult:
        return self.invoke_git_in_working_directory_root(
            ("-c", "credential.interactive=never", "fetch", remote, "--quiet"),
            fetch_missing_objects=True,
            user_interactive=False,
        )

    def background_fetch(self, remote: str) -> GitResult:
        """Fetch into the hidden ref namespace.

        ``--refmap=`` overrides the configured refspec, so the user's remote
        refs only move on a foreground fetch while the hidden refs still answer
        reachability questions such as commit-graph updates.
        """
        refspec = f"+{REFS_HEADS}/*:{REFS_HIDDEN}/{remote}/*"
        return self.invoke_git_in_working_directory_root(
            (
                "-c",
                "credential.interactive=never",
                "fetch",
                remote,
                "--quiet",
                "--prune",
                "--no-tags",
                "--refmap=",
                refspec,
            ),
            fetch_missing_objects=True,
            user_interactive=False,
        )

    def try_get_remotes(self) -> tuple[list[str] | None, str | None]:
        """Return ``(remotes, None)`` or ``(None, error)``."""
        result = self.invoke_git_in_working_directory_root(
            ("remote",), fetch_missing_objects=False
        )
        if result.exit_code_is_failure:
            return None, result.errors
        return [line for line in result.output.split("\n") if line], None

    def remote_add(self, remote_name: str, url: str) -> GitResult:
        return self.invoke_git_against_dot_git_folder(("remote", "add", remote_name, url))

    # ------------------------------------------------------------------
    # Object download helper
    # ------------------------------------------------------------------

    def gvfs_helper_download_commit(self, commit_id: str) -> GitResult:
        return self.invoke_git_in_working_directory_root(
            ("gvfs-helper", "-f", "post"),
            fetch_missing_objects=False,
            write_stdin=lambda writer: writer.write(f"{commit_id}\n"),
        )

    def gvfs_helper_prefetch(self) -> GitResult:
        args: tuple[str, ...] = ("gvfs-helper", "prefetch")
        if os.name == "nt":
            args = ("-c", "http.sslBackend=schannel", *args)
        return self.invoke_git_in_working_directory_root(args, fetch_missing_objects=False)

    # ------------------------------------------------------------------
    # Packs and indexes
    # ------------------------------------------------------------------

    def pack_objects(
        self,
        filename_prefix: str,
        git_objects_directory: str,
        pack_file_stream: Callable[[TextIO], None],
    ) -> GitResult:
        pack_file_path = os.path.join(git_objects_directory, OBJECTS_PACK_DIR, filename_prefix)
        # Without paths git cannot find good deltas; window/depth 0 skips the search.
        return self.invoke_git_against_dot_git_folder(
            ("pack-objects", pack_file_path, "--non-empty", "--window=0", "--depth=0", "-q"),
            write_stdin=pack_file_stream,
            git_objects_directory=git_objects_directory,
        )

    def index_pack(self, packfile_path: str, idx_output_path: str) -> GitResult:
        return self.invoke_git_against_dot_git_folder(
            ("index-pack", "-o", idx_output_path, packfile_path)
        )

    def prune_packed(self, git_objects_directory: str) -> GitResult:
        return self.invoke_git_against_dot_git_folder(
            ("prune-packed", "-q"), git_objects_directory=git_objects_directory
        )

    def write_commit_graph(self, object_dir: str) -> GitResult:
        """Write a split commit-graph reachable from refs.

        Graph files modified since yesterday are never expired, so files that
        are still part of the commit-graph chain survive.
        """
        return self.invoke_git_in_working_directory_root(
            (
                "commit-graph",
                "write",
                "--reachable",
                "--split",
                "--size-multiple=4",
                f"--expire-time={self.expire_time_date_string()}",
                "--object-dir",
                object_dir,
            ),
            fetch_missing_objects=True,
        )

    def verify_commit_graph(self, object_dir: str) -> GitResult:
        return self.invoke_git_in_working_directory_root(
            ("commit-graph", "verify", "--shallow", "--object-dir", object_dir),
            fetch_missing_objects=True,
        )

    def write_multi_pack_index(self, object_dir: str) -> GitResult:
        """Write a multi-pack-index; a no-op when there are no new packfiles."""
        # Forced on so the file is written even when reads have it disabled.
        return self.invoke_git_against_dot_git_folder(
            (
                "-c",
                f"{GitConfig.MULTI_PACK_INDEX}=true",
                "multi-pack-index",
                "write",
                f"--object-dir={object_dir}",
            )
        )

    def verify_multi_pack_index(self, object_dir: str) -> GitResult:
        return self.invoke_git_against_dot_git_folder(
            (
                "-c",
                f"{GitConfig.MULTI_PACK_INDEX}=true",
                "multi-pack-index",
                "verify",
                f"--object-dir={object_dir}",
            )
        )

    def multi_pack_index_expire(self, git_objects_directory: str) -> GitResult:
        return self.invoke_git_against_dot_git_folder(
            ("multi-pack-index", "expire", f"--object-dir={git_objects_directory}")
        )

    def multi_pack_index_repack(self, git_objects_directory: str, batch_size: str) -> GitResult:
        return self.invoke_git_against_dot_git_folder(
            (
                "-c",
                "pack.threads=1",
                "-c",
                "repack.packKeptObjects=true",
                "multi-pack-index",
                "repack",
                f"--object-dir={git_objects_directory}",
                f"--batch-size={batch_size}",
            )
        )


def _stdout_handler(
    capture: StdoutCapture, output: list[str]
) -> Callable[[str], None] | None:
    if isinstance(capture, LineCallback):
        return capture.handler
    if isinstance(capture, BufferAll):
        return lambda line: output.append(line + "\n")
    return None


def _no_enlistment_failure() -> GitResult:
    return GitResult.internal_failure(
        GitFailure.LAUNCH, "GitProcess has no working directory root"
    )
