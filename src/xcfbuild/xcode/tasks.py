"""Launching external tools with a streamed output channel.

Each invocation has two independent channels:
- a broadcast OutputStream carrying raw standard output as it arrives, which
  any number of observers can attach to (late observers miss earlier data)
- the awaited result of launch_task(), which is the complete standard output
  on success or a TaskError on failure

Cancelling the awaiting coroutine kills the whole process tree.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..config import get_xcrun_path
from ..errors import TaskError
from ..subprocess_utils import kill_process_tree, safe_create_subprocess_exec
from .models import BuildArguments

logger = logging.getLogger(__name__)

# Bytes read from a pipe per chunk
_READ_CHUNK_SIZE = 64 * 1024

OutputObserver = Callable[[bytes], None]


@dataclass(frozen=True)
class TaskDescription:
    """Describes an external process to launch.

    Attributes:
        launch_path: Executable to run
        arguments: Arguments passed to the executable
        working_directory: Directory to run in, or None for the current one
        environment: Replacement environment, or None to inherit
    """

    launch_path: str
    arguments: tuple[str, ...] = ()
    working_directory: Optional[Path] = None
    environment: Optional[dict[str, str]] = field(default=None, hash=False)

    @property
    def command(self) -> list[str]:
        return [self.launch_path, *self.arguments]

    def __str__(self) -> str:
        return " ".join(self.command)


def xcrun_task(*arguments: str, working_directory: Optional[Path] = None) -> TaskDescription:
    """Create a task description running a developer tool through xcrun."""
    return TaskDescription(get_xcrun_path(), tuple(arguments), working_directory=working_directory)


def xcodebuild_task(action: str, build_arguments: BuildArguments, working_directory: Optional[Path] = None) -> TaskDescription:
    """Create a task description for running xcodebuild with the given action.

    Args:
        action: xcodebuild action, e.g. "-list", "-showBuildSettings" or "build"
        build_arguments: Project, scheme, configuration and SDK selection
        working_directory: Directory to run xcodebuild in

    Returns:
        TaskDescription invoking xcodebuild through xcrun
    """
    return xcrun_task(*build_arguments.arguments, action, working_directory=working_directory)


class OutputSubscription:
    """Async iterator over the chunks an OutputStream publishes after subscribing."""

    def __init__(self, stream: "OutputStream") -> None:
        self._stream = stream
        self._queue: asyncio.Queue[Optional[bytes]] = asyncio.Queue()

    def _put(self, chunk: Optional[bytes]) -> None:
        self._queue.put_nowait(chunk)

    def __aiter__(self) -> "OutputSubscription":
        return self

    async def __anext__(self) -> bytes:
        chunk = await self._queue.get()
        if chunk is None:
            raise StopAsyncIteration
        return chunk

    def unsubscribe(self) -> None:
        """Stop receiving chunks and end iteration."""
        self._stream._remove_subscription(self)
        self._put(None)


class OutputStream:
    """Broadcast channel of raw process output.

    Publishing never blocks and nothing is buffered for observers that attach
    later. Closing the stream ends all subscriptions; publishing after close
    is ignored.
    """

    def __init__(self) -> None:
        self._observers: list[OutputObserver] = []
        self._subscriptions: list[OutputSubscription] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def observe(self, observer: OutputObserver) -> Callable[[], None]:
        """Call ``observer`` with every chunk published from now on.

        Returns:
            A function that detaches the observer
        """
        self._observers.append(observer)

        def detach() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return detach

    def subscribe(self) -> OutputSubscription:
        """Return an async iterator over chunks published from now on."""
        subscription = OutputSubscription(self)
        if self._closed:
            subscription._put(None)
        else:
            self._subscriptions.append(subscription)
        return subscription

    def publish(self, chunk: bytes) -> None:
        if self._closed or not chunk:
            return
        for observer in list(self._observers):
            observer(chunk)
        for subscription in list(self._subscriptions):
            subscription._put(chunk)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._observers.clear()
        for subscription in self._subscriptions:
            subscription._put(None)
        self._subscriptions.clear()

    def _remove_subscription(self, subscription: OutputSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)


async def _read_stream(reader: asyncio.StreamReader, sink: Optional[OutputStream]) -> bytes:
    chunks: list[bytes] = []
    while True:
        chunk = await reader.read(_READ_CHUNK_SIZE)
        if not chunk:
            break
        chunks.append(chunk)
        if sink is not None:
            sink.publish(chunk)
    return b"".join(chunks)


async def launch_task(task: TaskDescription, standard_output: Optional[OutputStream] = None) -> bytes:
    """Launch a process and wait for it to exit.

    Args:
        task: Process to launch
        standard_output: Stream that receives stdout chunks as they arrive

    Returns:
        Everything the process wrote to stdout

    Raises:
        TaskError: If the process exits with a non-zero status
        asyncio.CancelledError: If cancelled; the process tree is killed and reaped first
    """
    logger.debug(f"Launching: {task}")
    process = await safe_create_subprocess_exec(
        *task.command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=task.working_directory,
        env=task.environment,
    )

    try:
        assert process.stdout is not None and process.stderr is not None
        stdout, stderr = await asyncio.gather(
            _read_stream(process.stdout, standard_output),
            _read_stream(process.stderr, None),
        )
        exit_code = await process.wait()
    except asyncio.CancelledError:
        if process.returncode is None:
            logger.debug(f"Cancelled, killing process tree {process.pid}: {task}")
            try:
                # wait_procs blocks for up to the grace period
                await asyncio.to_thread(kill_process_tree, process.pid)
            finally:
                # unread output keeps the pipes open and wait() pending
                await asyncio.gather(
                    process.wait(),
                    _read_stream(process.stdout, None),
                    _read_stream(process.stderr, None),
                )
        raise

    logger.debug(f"Exited with {exit_code}: {task}")
    if exit_code != 0:
        raise TaskError(task, exit_code, stderr.decode("utf-8", errors="replace"))
    return stdout


async def launch_task_text(task: TaskDescription, standard_output: Optional[OutputStream] = None) -> str:
    """Launch a process and return its standard output decoded as UTF-8."""
    data = await launch_task(task, standard_output)
    return data.decode("utf-8", errors="replace")
