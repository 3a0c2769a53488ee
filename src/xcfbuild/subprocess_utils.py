"""Subprocess utilities for spawning and reaping external tools.

This module wraps asyncio process creation so every invocation gets the same
defaults, and provides process-tree termination for invocations that are
abandoned before they finish (cancelled tasks, expired deadlines).

xcodebuild spawns its own helpers (clang, swift-frontend, ibtool), so killing
only the direct child would leave orphans writing into the build folder.
"""

import asyncio
import logging
import subprocess
import sys
from typing import Any

import psutil

logger = logging.getLogger(__name__)

# Seconds to wait for a terminated tree before force killing it
TERMINATE_GRACE_PERIOD = 3.0


def get_subprocess_creation_flags() -> int:
    """Get platform-specific subprocess creation flags.

    Returns:
        - Windows: subprocess.CREATE_NO_WINDOW (prevents console window)
        - Other platforms: 0 (no special flags)
    """
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


async def safe_create_subprocess_exec(*cmd: str, **kwargs: Any) -> asyncio.subprocess.Process:
    """Start a subprocess with platform-specific defaults.

    Automatically applies:
    - CREATE_NO_WINDOW on Windows (prevents console window)
    - stdin=DEVNULL, so tools never block waiting on terminal input

    Args:
        *cmd: Program and arguments
        **kwargs: Additional arguments passed to asyncio.create_subprocess_exec

    Returns:
        The started asyncio Process
    """
    default_flags = get_subprocess_creation_flags()

    if "creationflags" in kwargs:
        kwargs["creationflags"] = kwargs["creationflags"] | default_flags
    elif default_flags:
        kwargs["creationflags"] = default_flags

    if "stdin" not in kwargs:
        kwargs["stdin"] = asyncio.subprocess.DEVNULL

    return await asyncio.create_subprocess_exec(*cmd, **kwargs)


def kill_process_tree(pid: int, grace_period: float = TERMINATE_GRACE_PERIOD) -> int:
    """Terminate a process and all of its descendants.

    Children are terminated before their parents. Processes still alive after
    the grace period are force killed.

    Args:
        pid: PID of the root process
        grace_period: Seconds to wait for graceful termination

    Returns:
        Number of processes that were signalled
    """
    try:
        root = psutil.Process(pid)
    except psutil.NoSuchProcess:
        logger.debug(f"Process {pid} already exited")
        return 0

    try:
        children = root.children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    processes = list(reversed(children)) + [root]
    signalled: list[psutil.Process] = []
    for proc in processes:
        try:
            proc.terminate()
            signalled.append(proc)
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied:
            logger.warning(f"Access denied terminating process {proc.pid}")

    _gone, alive = psutil.wait_procs(signalled, timeout=grace_period)
    for proc in alive:
        try:
            proc.kill()
            logger.warning(f"Force killed process {proc.pid}")
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied:
            logger.warning(f"Access denied killing process {proc.pid}")

    logger.debug(f"Terminated process tree rooted at {pid} ({len(signalled)} processes)")
    return len(signalled)
