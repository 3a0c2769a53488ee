"""
Timestamped console output for xcfbuild.

All user-facing progress lines are prefixed with the elapsed time since the
timer was initialised, in MM:SS.cc format (minutes:seconds.centiseconds), so
a build log shows where time went across xcodebuild invocations.

Example output:
    00:00.04 Building ReactiveCocoa.xcworkspace in Carthage/Checkouts/ReactiveCocoa
    00:00.41 [1/2] Listing schemes...
    00:09.85 [2/2] Building scheme "ReactiveCocoa-iOS"...
    00:41.10       Product: Carthage/Build/iOS/ReactiveCocoa.framework

Usage:
    from xcfbuild.output import log, log_phase, log_detail

    log("Building directory...")
    log_phase(1, 2, "Listing schemes...")
    log_detail("Scheme: ReactiveCocoa-Mac")
"""

import sys
import time
from pathlib import Path
from types import TracebackType
from typing import Optional, TextIO

_start_time: Optional[float] = None
_output_stream: TextIO = sys.stdout
_verbose: bool = True


def init_timer(output_stream: Optional[TextIO] = None) -> None:
    """
    Initialize the program timer.

    If not called explicitly, it is called automatically on first log.

    Args:
        output_stream: Optional output stream (defaults to sys.stdout)
    """
    global _start_time, _output_stream
    _start_time = time.time()
    if output_stream is not None:
        _output_stream = output_stream


def set_verbose(verbose: bool) -> None:
    """
    Set verbose mode for logging.

    Args:
        verbose: If True, verbose-only messages are printed too.
    """
    global _verbose
    _verbose = verbose


def get_elapsed() -> float:
    """Get elapsed time in seconds since timer initialization."""
    if _start_time is None:
        init_timer()
    return time.time() - _start_time  # type: ignore[operator]


def format_timestamp() -> str:
    """Format the current elapsed time as MM:SS.cc."""
    elapsed = get_elapsed()
    minutes = int(elapsed // 60)
    seconds = elapsed % 60
    return f"{minutes:02d}:{seconds:05.2f}"


def _print(message: str, end: str = "\n") -> None:
    timestamp = format_timestamp()
    line = f"{timestamp} {message}{end}"
    _output_stream.write(line)
    _output_stream.flush()


def log(message: str, verbose_only: bool = False) -> None:
    """
    Log a message with timestamp.

    Args:
        message: Message to log
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(message)


def log_phase(phase: int, total: int, message: str, verbose_only: bool = False) -> None:
    """
    Log a build phase message, formatted as ``[N/M] message``.

    Args:
        phase: Current phase number
        total: Total number of phases
        message: Phase description
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"[{phase}/{total}] {message}")


def log_detail(message: str, indent: int = 6, verbose_only: bool = False) -> None:
    """
    Log an indented detail message.

    Args:
        message: Detail message
        indent: Number of spaces to indent (default 6)
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"{' ' * indent}{message}")


def log_product(path: Path, working_directory: Optional[Path] = None, verbose_only: bool = False) -> None:
    """
    Log the location of a finished build product.

    Args:
        path: Path to the product bundle
        working_directory: If given, the path is shown relative to it when possible
        verbose_only: If True, only print if verbose mode is enabled
    """
    shown = path
    if working_directory is not None:
        try:
            shown = path.relative_to(working_directory)
        except ValueError:
            pass
    log_detail(f"Product: {shown}", verbose_only=verbose_only)


def log_error(message: str) -> None:
    """Log an error message."""
    _print(f"ERROR: {message}")


def log_warning(message: str) -> None:
    """Log a warning message."""
    _print(f"WARNING: {message}")


class TimedLogger:
    """
    Context manager that logs an operation and its duration.

    Usage:
        with TimedLogger("Merging iOS products", phase=(2, 2)) as timed:
            timed.detail("lipo -create ...")
        # Logs "Done (1.23s)" on success
    """

    def __init__(self, operation: str, phase: Optional[tuple[int, int]] = None, verbose_only: bool = False):
        self.operation = operation
        self.phase = phase
        self.verbose_only = verbose_only
        self.start_time = 0.0

    def __enter__(self) -> "TimedLogger":
        self.start_time = time.time()
        if self.phase:
            log_phase(self.phase[0], self.phase[1], f"{self.operation}...", self.verbose_only)
        else:
            log(f"{self.operation}...", self.verbose_only)
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        del exc_val, exc_tb
        elapsed = time.time() - self.start_time
        if exc_type is None:
            log_detail(f"Done ({elapsed:.2f}s)", verbose_only=self.verbose_only)
        return None

    def detail(self, message: str) -> None:
        """Log a detail message within this operation."""
        log_detail(message, verbose_only=self.verbose_only)
