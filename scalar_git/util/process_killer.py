#!/usr/bin/env python3
"""Process-tree termination and priority helpers built on psutil.

These are the platform services the git invoker relies on: killing a process
together with every child it spawned (git routinely forks helpers such as
``git-remote-https`` or credential managers), looking up a process name for
diagnostics, and lowering a process's scheduling priority.
"""

import logging
import os
from dataclasses import dataclass

import psutil


logger = logging.getLogger(__name__)

# Exit code reported when there was nothing to kill.
NO_PROCESS_EXIT_CODE = -1


@dataclass(frozen=True)
class KillTreeOutcome:
    """Result of a process-tree kill."""

    success: bool
    exit_code: int
    error: str | None = None


def get_process_name(pid: int, fallback: str | None = None) -> str | None:
    """Return the executable name of ``pid``, or ``fallback`` if it is gone."""
    try:
        return psutil.Process(pid).name()
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return fallback


def kill_process_tree(
    pid: int, grace_period: float = 3.0, reap_root: bool = True
) -> KillTreeOutcome:
    """Kill a process and all its children.

    Children are terminated first, then the parent; anything still alive after
    ``grace_period`` seconds is force killed. A process that disappears on its
    own at any point counts as killed.

    Args:
        pid: Root process ID to kill
        grace_period: Seconds to wait for graceful termination
        reap_root: Wait for the root to exit. Pass False when the root is a
            ``subprocess.Popen`` child that its owner will ``wait()`` on; psutil
            would otherwise collect its exit status first and the owner would
            see exit code 0. Without reaping, the root is force killed at once and
            the outcome carries ``NO_PROCESS_EXIT_CODE``; the real status
            belongs to the owner.

    Returns:
        KillTreeOutcome with the root's exit code when it could be collected
    """
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        logger.debug(f"Process {pid} already terminated")
        return KillTreeOutcome(success=True, exit_code=0)

    try:
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    for child in reversed(children):
        try:
            child.terminate()
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied as e:
            logger.warning(f"Failed to terminate child process {child.pid}: {e}")

    _gone, alive = psutil.wait_procs(children, timeout=grace_period)
    for child in alive:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied as e:
            logger.warning(f"Failed to kill child process {child.pid}: {e}")

    if not reap_root:
        try:
            parent.kill()
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied as e:
            return KillTreeOutcome(
                success=False,
                exit_code=NO_PROCESS_EXIT_CODE,
                error=f"Access denied killing process {pid}: {e}",
            )
        logger.debug(f"Killed process tree rooted at {pid} ({len(children)} children)")
        return KillTreeOutcome(success=True, exit_code=NO_PROCESS_EXIT_CODE)

    try:
        parent.terminate()
        exit_code = parent.wait(grace_period)
    except psutil.NoSuchProcess:
        return KillTreeOutcome(success=True, exit_code=0)
    except psutil.TimeoutExpired:
        try:
            parent.kill()
            exit_code = parent.wait(grace_period)
        except psutil.NoSuchProcess:
            return KillTreeOutcome(success=True, exit_code=0)
        except (psutil.TimeoutExpired, psutil.AccessDenied) as e:
            return KillTreeOutcome(
                success=False,
                exit_code=NO_PROCESS_EXIT_CODE,
                error=f"Failed to kill process {pid}: {e}",
            )
    except psutil.AccessDenied as e:
        return KillTreeOutcome(
            success=False,
            exit_code=NO_PROCESS_EXIT_CODE,
            error=f"Access denied terminating process {pid}: {e}",
        )

    logger.debug(f"Killed process tree rooted at {pid} ({len(children)} children)")
    # wait() returns None for processes that are not our children, and a
    # negative signal number for signalled children on POSIX.
    return KillTreeOutcome(
        success=True, exit_code=exit_code if exit_code is not None else 0
    )


def set_below_normal_priority(pid: int) -> bool:
    """Lower the scheduling priority of ``pid``.

    Returns False if the process already exited or the change was refused.
    """
    try:
        proc = psutil.Process(pid)
        if os.name == "nt":
            proc.nice(psutil.BELOW_NORMAL_PRIORITY_CLASS)
        else:
            proc.nice(10)
        return True
    except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
        logger.debug(f"Could not lower priority of process {pid}: {e}")
        return False
