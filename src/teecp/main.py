#!/usr/bin/env python3
"""
teecp - Copy from one location to multiple while monitoring progress.

A "tee with progress" for pipelines: reads a byte stream from a file or
standard input and broadcasts it to one or more files or standard output,
drawing a status line on standard error.

Architecture:
- Sources and sinks hide whether they are backed by files or standard streams
- One reusable transfer buffer, strictly sequential read-then-write
- Periodic sync and progress reporting on a fixed iteration cadence
- Fail fast: any I/O error aborts the run, nothing is retried
"""

import argparse
import contextlib
import logging
import os
import sys
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, TextIO

# Constants
DEFAULT_BLOCK_SIZE = 8192
DEFAULT_SYNC_INTERVAL = 500  # iterations between sync + progress update
DESTINATION_SEPARATOR = ";"
PROGRESS_WIDTH = 80
BAR_WIDTH = 30

STDIN_NAME = "<stdin>"
STDOUT_NAME = "<stdout>"
CONSOLE_HANDLER = "teecp-console"

logger = logging.getLogger(__name__)


# ============================================================================
# Errors
# ============================================================================


class TransferError(OSError):
    """
    Fatal I/O failure on a source or destination.

    Parameters
    ----------
    path : str
        The offending resource (file path, or ``<stdin>``/``<stdout>``)
    message : str
        What went wrong
    """

    def __init__(self, path: str, message: str):
        super().__init__(message)
        self.path = path
        self.message = message

    def __str__(self) -> str:
        return self.message


class ConfigurationError(TransferError):
    """A source or destination could not be opened before any data flowed."""


def _describe(error: OSError) -> str:
    return error.strerror or str(error) or type(error).__name__


# ============================================================================
# Data Models
# ============================================================================


@dataclass
class TransferResult:
    """
    Outcome of a completed run.

    Attributes
    ----------
    bytes_copied : int
        Total bytes read from the source and written to every destination
    iterations : int
        Number of chunks processed
    syncs : int
        Number of ``force_sync`` calls issued on the sink
    duration : float, default=0.0
        Wall-clock duration of the copy loop in seconds
    """

    bytes_copied: int
    iterations: int
    syncs: int
    duration: float = 0.0

    @property
    def speed_mb_sec(self) -> float:
        """
        Calculate transfer speed in MB/s.

        Returns
        -------
        float
            Transfer speed in megabytes per second
        """
        if self.duration > 0:
            return (self.bytes_copied / (1024 * 1024)) / self.duration
        return 0.0


def format_size(num_bytes: float) -> str:
    """
    Render a byte count in binary units.

    Parameters
    ----------
    num_bytes : float
        Number of bytes

    Returns
    -------
    str
        ``"512 B"``, ``"1.5 KB"``, ``"12.3 MB"`` and so on
    """
    if num_bytes < 1024:
        return f"{int(num_bytes)} B"
    value = float(num_bytes)
    for unit in ("KB", "MB", "GB", "TB"):
        value /= 1024
        if value < 1024 or unit == "TB":
            break
    return f"{value:.1f} {unit}"


# ============================================================================
# Sources
# ============================================================================


class Source(ABC):
    """Origin of the byte stream."""

    name = ""

    @abstractmethod
    def read(self, buffer: bytearray) -> int:
        """
        Fill ``buffer`` with the next chunk.

        Parameters
        ----------
        buffer : bytearray
            Transfer buffer; at most ``len(buffer)`` bytes are read into it

        Returns
        -------
        int
            Number of bytes read, 0 at end of stream

        Raises
        ------
        TransferError
            If the underlying read fails
        """

    @abstractmethod
    def size(self) -> int | None:
        """Total length in bytes, or None when it cannot be determined."""

    def close(self) -> None:
        pass

    def __enter__(self) -> "Source":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class FileSource(Source):
    """
    Source backed by a named file.

    Parameters
    ----------
    path : Path | str
        File to read

    Raises
    ------
    ConfigurationError
        If the file cannot be opened for reading
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.name = str(path)
        try:
            self._handle: BinaryIO = open(self.path, "rb")
        except OSError as e:
            raise ConfigurationError(
                self.name, f"Couldn't open input file {self.name}: {_describe(e)}"
            ) from e

    def read(self, buffer: bytearray) -> int:
        try:
            return self._handle.readinto(buffer) or 0
        except OSError as e:
            raise TransferError(
                self.name, f"Read failure on {self.name}: {_describe(e)}"
            ) from e

    def size(self) -> int | None:
        """
        Probe the length by seeking to the end and back to the start.

        Returns
        -------
        int | None
            File length, or None if it is empty or not seekable (pipes,
            character devices). An empty file cannot show progress, so it is
            reported the same way as an unknown size.
        """
        try:
            total = self._handle.seek(0, os.SEEK_END)
            self._handle.seek(0)
        except OSError:
            return None
        return total or None

    def close(self) -> None:
        self._handle.close()


class StdinSource(Source):
    """
    Source backed by the process's standard input.

    Parameters
    ----------
    stream : BinaryIO | None, default=None
        Binary stream to read; ``sys.stdin.buffer`` when omitted
    """

    name = STDIN_NAME

    def __init__(self, stream: BinaryIO | None = None):
        self._stream = stream if stream is not None else sys.stdin.buffer

    def read(self, buffer: bytearray) -> int:
        try:
            return self._stream.readinto(buffer) or 0
        except OSError as e:
            raise TransferError(
                self.name, f"Read failure on {self.name}: {_describe(e)}"
            ) from e

    def size(self) -> int | None:
        return None


def open_source(path: str) -> Source:
    """Open ``path`` as a file source, or standard input when it is empty."""
    if not path:
        return StdinSource()
    return FileSource(path)


# ============================================================================
# Sinks
# ============================================================================


class Sink(ABC):
    """Destination(s) of the byte stream, treated as one logical unit."""

    @abstractmethod
    def write(self, data: memoryview | bytes) -> None:
        """
        Write ``data`` to every destination.

        Raises
        ------
        TransferError
            On the first destination whose write fails
        """

    @abstractmethod
    def force_sync(self) -> None:
        """
        Request durable commit on every destination.

        Raises
        ------
        TransferError
            On the first destination whose sync fails
        """

    def close(self) -> None:
        pass

    def __enter__(self) -> "Sink":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class FileArraySink(Sink):
    """
    Sink broadcasting to a fixed list of files.

    All files are created (truncating existing ones) up front, in the order
    given. If one cannot be created, the files already opened are closed and
    the error propagates; nothing has been written at that point.

    Parameters
    ----------
    paths : list[Path]
        Destination files, at least one

    Raises
    ------
    ConfigurationError
        If any destination cannot be created
    """

    def __init__(self, paths: list[Path]):
        if not paths:
            raise ValueError("FileArraySink needs at least one destination")
        self.paths = [Path(p) for p in paths]
        self._handles: list[tuple[str, BinaryIO]] = []

        for path in self.paths:
            try:
                handle = open(path, "wb")
            except OSError as e:
                self.close()
                raise ConfigurationError(
                    str(path), f"Couldn't open output file {path}: {_describe(e)}"
                ) from e
            self._handles.append((str(path), handle))

    def write(self, data: memoryview | bytes) -> None:
        for name, handle in self._handles:
            try:
                handle.write(data)
            except OSError as e:
                raise TransferError(
                    name, f"Write failure on {name}: {_describe(e)}"
                ) from e

    def force_sync(self) -> None:
        for name, handle in self._handles:
            try:
                handle.flush()
                os.fsync(handle.fileno())
            except OSError as e:
                raise TransferError(
                    name, f"Sync failure on {name}: {_describe(e)}"
                ) from e

    def close(self) -> None:
        for _, handle in self._handles:
            with contextlib.suppress(OSError):
                handle.close()
        self._handles = []


class StdoutSink(Sink):
    """
    Sink backed by the process's standard output.

    Parameters
    ----------
    stream : BinaryIO | None, default=None
        Binary stream to write; ``sys.stdout.buffer`` when omitted
    """

    def __init__(self, stream: BinaryIO | None = None):
        self._stream = stream if stream is not None else sys.stdout.buffer

    def write(self, data: memoryview | bytes) -> None:
        try:
            self._stream.write(data)
        except OSError as e:
            raise TransferError(
                STDOUT_NAME, f"Failed writing to {STDOUT_NAME}: {_describe(e)}"
            ) from e

    def force_sync(self) -> None:
        # No durability to ask for, but buffered bytes must reach the stream.
        try:
            self._stream.flush()
        except OSError as e:
            raise TransferError(
                STDOUT_NAME, f"Failed writing to {STDOUT_NAME}: {_describe(e)}"
            ) from e


def parse_destinations(spec: str, separator: str = DESTINATION_SEPARATOR) -> list[Path]:
    """
    Split a destination specification into paths.

    Parameters
    ----------
    spec : str
        ``""`` for standard output, otherwise ``"a.out;b.out;..."``
    separator : str, default=";"
        Delimiter between paths

    Returns
    -------
    list[Path]
        Destination paths in the order given; empty for standard output

    Raises
    ------
    ValueError
        If the specification contains an empty path
    """
    if not spec:
        return []
    parts = spec.split(separator)
    if any(not part for part in parts):
        raise ValueError(f"Empty destination path in output specification: {spec!r}")
    return [Path(part) for part in parts]


def open_sink(destinations: list[Path]) -> Sink:
    """Open the destinations as a file-array sink, or standard output when empty."""
    if not destinations:
        return StdoutSink()
    return FileArraySink(destinations)


# ============================================================================
# Progress Monitors
# ============================================================================


class ProgressMonitor(ABC):
    """Turns a cumulative byte count into a status line."""

    def __init__(self, stream: TextIO | None = None):
        self._stream = stream
        self._drawn = False

    @property
    def stream(self) -> TextIO:
        # Resolved late so a redirected sys.stderr is honoured.
        return self._stream if self._stream is not None else sys.stderr

    @abstractmethod
    def render(self, cumulative_bytes: int) -> str:
        """Build the status line for ``cumulative_bytes``."""

    def update(self, cumulative_bytes: int) -> None:
        """
        Redraw the status line.

        Parameters
        ----------
        cumulative_bytes : int
            Bytes transferred so far
        """
        self.stream.write(("\r" + self.render(cumulative_bytes)).ljust(PROGRESS_WIDTH))
        self.stream.flush()
        self._drawn = True

    def finish(self) -> None:
        """Terminate the status line if one was drawn."""
        if self._drawn:
            self.stream.write("\n")
            self.stream.flush()
            self._drawn = False


class DeterminateProgress(ProgressMonitor):
    """
    Bounded progress bar for a source of known size.

    Parameters
    ----------
    total_bytes : int
        Total size of the source
    stream : TextIO | None, default=None
        Where to draw; standard error when omitted
    """

    def __init__(self, total_bytes: int, stream: TextIO | None = None):
        super().__init__(stream)
        self.total_bytes = total_bytes

    def render(self, cumulative_bytes: int) -> str:
        fraction = min(cumulative_bytes / self.total_bytes, 1.0) if self.total_bytes else 0.0
        filled = int(fraction * BAR_WIDTH)
        if filled < BAR_WIDTH:
            bar = "=" * filled + ">" + " " * (BAR_WIDTH - filled - 1)
        else:
            bar = "=" * BAR_WIDTH
        return (
            f"[{bar}] {fraction * 100:5.1f}% "
            f"({format_size(cumulative_bytes)}/{format_size(self.total_bytes)})"
        )


class IndeterminateProgress(ProgressMonitor):
    """
    Amount-and-rate display for a source of unknown size.

    Parameters
    ----------
    stream : TextIO | None, default=None
        Where to draw; standard error when omitted
    clock : Callable[[], float], default=time.monotonic
        Time source, read once at construction and on every update
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(stream)
        self._clock = clock
        self.start_time = clock()

    def render(self, cumulative_bytes: int) -> str:
        elapsed = round(self._clock() - self.start_time, 3)
        if elapsed <= 0:
            rate = "rate unavailable"
        else:
            rate = f"{format_size(cumulative_bytes / elapsed)}/s"
        return f"Copied {format_size(cumulative_bytes)} ({rate})"


class SilentProgress(ProgressMonitor):
    """Quiet mode: draws nothing."""

    def render(self, cumulative_bytes: int) -> str:
        return ""

    def update(self, cumulative_bytes: int) -> None:
        pass


def select_monitor(
    size: int | None, quiet: bool, stream: TextIO | None = None
) -> ProgressMonitor:
    """
    Pick the progress monitor for a run.

    Parameters
    ----------
    size : int | None
        Result of ``Source.size()``
    quiet : bool
        Suppress all progress output
    stream : TextIO | None, default=None
        Where to draw; standard error when omitted

    Returns
    -------
    ProgressMonitor
        Silent when quiet, determinate when the size is known, otherwise
        indeterminate
    """
    if quiet:
        return SilentProgress(stream)
    if size:
        return DeterminateProgress(size, stream)
    return IndeterminateProgress(stream)


# ============================================================================
# Copy Engine
# ============================================================================


def allocate_buffer(block_size: int) -> bytearray:
    """
    Allocate the transfer buffer.

    Parameters
    ----------
    block_size : int
        Buffer size in bytes

    Returns
    -------
    bytearray
        Zero-filled buffer of ``block_size`` bytes

    Raises
    ------
    ValueError
        If the block size is not positive or cannot be allocated
    """
    if block_size <= 0:
        raise ValueError(f"Block size must be positive, got {block_size}")
    try:
        return bytearray(block_size)
    except (MemoryError, OverflowError):
        raise ValueError(
            f"Block size {block_size} is too large to allocate"
        ) from None


class CopyEngine:
    """
    Streams a source into a sink through one reusable buffer.

    Each iteration writes the chunk already in the buffer and then reads the
    next one, so a write always consumes the buffer before it is refilled.
    Every ``sync_interval`` iterations the sink is synced and the monitor
    updated; one more sync and update follow the last chunk.

    Parameters
    ----------
    source : Source
        Where bytes come from
    sink : Sink
        Where bytes go
    monitor : ProgressMonitor
        Progress display
    block_size : int, default=DEFAULT_BLOCK_SIZE
        Transfer buffer size in bytes
    sync_interval : int, default=DEFAULT_SYNC_INTERVAL
        Iterations between periodic sync + progress update
    buffer : bytearray | None, default=None
        Preallocated transfer buffer of ``block_size`` bytes; allocated on
        construction when omitted
    """

    def __init__(
        self,
        source: Source,
        sink: Sink,
        monitor: ProgressMonitor,
        block_size: int = DEFAULT_BLOCK_SIZE,
        sync_interval: int = DEFAULT_SYNC_INTERVAL,
        buffer: bytearray | None = None,
    ):
        if block_size <= 0:
            raise ValueError(f"Block size must be positive, got {block_size}")
        if sync_interval <= 0:
            raise ValueError(f"Sync interval must be positive, got {sync_interval}")
        self.source = source
        self.sink = sink
        self.monitor = monitor
        self.block_size = block_size
        self.sync_interval = sync_interval
        if buffer is None:
            buffer = allocate_buffer(block_size)
        elif len(buffer) != block_size:
            raise ValueError(
                f"Buffer holds {len(buffer)} bytes, block size is {block_size}"
            )
        self.buffer = buffer

    def run(self) -> TransferResult:
        """
        Copy until the source reports end of stream.

        Returns
        -------
        TransferResult
            Totals for the completed run

        Raises
        ------
        TransferError
            On the first failing read, write or sync
        """
        start_time = time.time()
        buffer = self.buffer
        view = memoryview(buffer)
        iteration = 0
        syncs = 0

        try:
            length = self.source.read(buffer)
            total = length

            while length > 0:
                if iteration % self.sync_interval == 0:
                    self.sink.force_sync()
                    syncs += 1
                    logger.debug(f"sync at iteration {iteration} ({total} bytes read)")
                    self.monitor.update(total)

                self.sink.write(view[:length])

                length = self.source.read(buffer)
                total += length
                iteration += 1

            self.sink.force_sync()
            syncs += 1
            self.monitor.update(total)
        finally:
            self.monitor.finish()

        return TransferResult(
            bytes_copied=total,
            iterations=iteration,
            syncs=syncs,
            duration=time.time() - start_time,
        )


# ============================================================================
# Configuration
# ============================================================================


@dataclass
class CopyConfig:
    """
    Configuration for a run.

    Attributes
    ----------
    quiet : bool, default=False
        Suppress progress and informational output
    input : str, default=""
        Source file, empty for standard input
    output : str, default=""
        ``;``-separated destination files, empty for standard output
    block_size : int, default=8192
        Transfer buffer size in bytes
    sync_interval : int, default=500
        Iterations between periodic sync + progress update
    verbose : bool, default=False
        Enable debug logging
    """

    quiet: bool = False
    input: str = ""
    output: str = ""
    block_size: int = DEFAULT_BLOCK_SIZE
    sync_interval: int = DEFAULT_SYNC_INTERVAL
    verbose: bool = False

    def __post_init__(self):
        """Validate configuration."""
        if self.block_size <= 0:
            raise ValueError(f"Block size must be positive, got {self.block_size}")
        if self.sync_interval <= 0:
            raise ValueError(
                f"Sync interval must be positive, got {self.sync_interval}"
            )

    @property
    def destinations(self) -> list[Path]:
        return parse_destinations(self.output)

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "CopyConfig":
        """Create config from command-line arguments."""
        return cls(
            quiet=args.quiet,
            input=args.input,
            output=args.output,
            block_size=args.block_size,
            verbose=args.verbose,
        )


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Configure logging for the application.

    Parameters
    ----------
    verbose : bool
        Enable debug logging
    quiet : bool
        Only report errors
    """
    if verbose:
        log_level = logging.DEBUG
    elif quiet:
        log_level = logging.ERROR
    else:
        log_level = logging.INFO

    package_logger = logging.getLogger("teecp")
    for handler in list(package_logger.handlers):
        if handler.get_name() == CONSOLE_HANDLER:
            package_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(CONSOLE_HANDLER)
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(log_level)


def transfer(config: CopyConfig) -> TransferResult:
    """
    Resolve the configuration and run the copy.

    The transfer buffer is allocated and the source opened before any
    destination, so a bad block size or a missing input never creates or
    truncates an output file.

    Parameters
    ----------
    config : CopyConfig
        Run configuration

    Returns
    -------
    TransferResult
        Totals for the completed run
    """
    destinations = config.destinations
    buffer = allocate_buffer(config.block_size)

    with open_source(config.input) as source:
        size = source.size()
        logger.debug(f"opened input {source.name} (size: {size if size else 'unknown'})")

        with open_sink(destinations) as sink:
            targets = ", ".join(str(d) for d in destinations) or STDOUT_NAME
            logger.debug(f"opened output {targets}")
            monitor = select_monitor(size, config.quiet)
            logger.debug(f"progress monitor: {type(monitor).__name__}")

            engine = CopyEngine(
                source=source,
                sink=sink,
                monitor=monitor,
                block_size=config.block_size,
                sync_interval=config.sync_interval,
                buffer=buffer,
            )
            return engine.run()


# ============================================================================
# Main Entry Point
# ============================================================================


def discard_stdout() -> None:
    """
    Point the stdout descriptor at the null device.

    Bytes stuck in ``sys.stdout.buffer`` after a failed write would otherwise
    be flushed again at interpreter exit and fail a second time.
    """
    try:
        fd = sys.stdout.fileno()
    except (OSError, ValueError):
        return
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, fd)
    os.close(devnull)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns
    -------
    argparse.Namespace
        Parsed command line arguments
    """
    parser = argparse.ArgumentParser(
        prog="teecp",
        description="Copy from one location to multiple while monitoring progress.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  teecp -i disk.img -o "copy1.img;copy2.img"     # One file to two, with a progress bar
  tar c dir | teecp -o "a.tar;b.tar"              # Fan out a pipeline, showing throughput
  teecp -q -i disk.img -b 1048576 > /dev/null     # Quiet, 1 MB blocks, to stdout
        """,
    )

    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Do not output progress"
    )
    parser.add_argument(
        "-i",
        "--if",
        dest="input",
        type=str,
        default="",
        help="Input file (omit for stdin)",
    )
    parser.add_argument(
        "-o",
        "--of",
        dest="output",
        type=str,
        default="",
        help="Output file(s), separated by ';' (omit for stdout)",
    )
    parser.add_argument(
        "-b",
        "--block",
        dest="block_size",
        type=int,
        default=DEFAULT_BLOCK_SIZE,
        help=f"Block size in bytes (default: {DEFAULT_BLOCK_SIZE})",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    CLI entry point.

    Returns
    -------
    int
        Exit code: 0 for success, 1 for failure, 130 for keyboard interrupt
    """
    args = parse_arguments(argv)
    setup_logging(verbose=args.verbose, quiet=args.quiet)

    try:
        config = CopyConfig.from_args(args)
        result = transfer(config)
    except KeyboardInterrupt:
        logger.error("Operation interrupted by user")
        return 130
    except ValueError as e:
        logger.error(f"Invalid parameter: {e}")
        return 1
    except OSError as e:
        logger.error(f"{e}", exc_info=args.verbose)
        if isinstance(e, TransferError) and e.path == STDOUT_NAME:
            discard_stdout()
        return 1

    logger.info(
        f"copied {result.bytes_copied} bytes in {result.duration:.5f} sec "
        f"({result.speed_mb_sec:.1f} MB/sec)"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
