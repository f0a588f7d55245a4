"""
teecp: Copy from one location to multiple while monitoring progress.

This package implements a "tee with progress" for pipelines: one source (a
file or standard input) is streamed to one or more destinations (files or
standard output) while throughput is reported on standard error.
"""

from .main import (
    ConfigurationError,
    CopyConfig,
    CopyEngine,
    DeterminateProgress,
    FileArraySink,
    FileSource,
    IndeterminateProgress,
    ProgressMonitor,
    SilentProgress,
    Sink,
    Source,
    StdinSource,
    StdoutSink,
    TransferError,
    TransferResult,
    main,
    select_monitor,
    transfer,
)

__version__ = "1.0.0"
__author__ = "teecp project"
__description__ = "Copy from one location to multiple while monitoring progress"

__all__ = [
    "ConfigurationError",
    "CopyConfig",
    "CopyEngine",
    "DeterminateProgress",
    "FileArraySink",
    "FileSource",
    "IndeterminateProgress",
    "ProgressMonitor",
    "SilentProgress",
    "Sink",
    "Source",
    "StdinSource",
    "StdoutSink",
    "TransferError",
    "TransferResult",
    "main",
    "select_monitor",
    "transfer",
]
