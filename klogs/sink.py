"""
sink.py

Persists container log streams to disk.

Each (pod, container) pair gets one file, <pod>__<container>.log, under the
log directory. Files are opened in append mode so an earlier run's content is
kept, and stay open until the process exits. The dashboard reads their
current size from the open handles.
"""

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, List, Optional, Tuple

from .exceptions import LogSinkError
from .notices import Notices

log = logging.getLogger("klogs.sink")

FILE_NAME_SEPARATOR = "__"
LOG_SUFFIX = ".log"

KB = 1024
MB = 1024 * 1024


def log_file_name(pod: str, container: str) -> str:
    return f"{pod}{FILE_NAME_SEPARATOR}{container}{LOG_SUFFIX}"


def split_log_file_name(name: str) -> Tuple[str, str]:
    """Recover (pod, container) from a name built by log_file_name."""
    pod, sep, container = name.partition(FILE_NAME_SEPARATOR)
    if not sep:
        raise ValueError(f"not a klogs log file name: {name!r}")
    if container.endswith(LOG_SUFFIX):
        container = container[:-len(LOG_SUFFIX)]
    return pod, container


def format_size(size: int) -> str:
    """Human-readable size, rounded down: 1536 -> "1 KB"."""
    if size < KB:
        return f"{size} B"
    if size < MB:
        return f"{size // KB} KB"
    return f"{size // MB} MB"


@dataclass
class LogFileSize:
    pod: str
    container: str
    size: int
    path: Path


class LogSink:
    """Creates log files and keeps an index of them for size reporting."""

    def __init__(self, root: Path, notices: Optional[Notices] = None):
        self.root = Path(root)
        self.notices = notices or Notices()
        self._lock = threading.Lock()
        self._files: Dict[str, BinaryIO] = {}

    def open(self, pod: str, container: str) -> BinaryIO:
        """Create (or reopen for appending) the log file of a container."""
        name = log_file_name(pod, container)
        path = self.root / name
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            if path.exists():
                message = f"File {path} exists. Appending."
                log.warning(f"[sink] {message}")
                self.notices.add(message)
            handle = open(path, "ab")
        except OSError as e:
            raise LogSinkError(f"Cannot open log file {path}: {e}") from e

        with self._lock:
            self._files[name] = handle
        return handle

    def copy(self, stream: Iterable[bytes], handle: BinaryIO, flush_each_chunk: bool = False) -> int:
        """
        Write every chunk of a stream to a log file until the stream ends.

        Errors raised while reading the stream propagate unchanged; errors
        while writing are raised as LogSinkError. Returns the bytes written.
        """
        written = 0
        for chunk in stream:
            if not chunk:
                continue
            try:
                handle.write(chunk)
                if flush_each_chunk:
                    handle.flush()
            except (OSError, ValueError) as e:
                raise LogSinkError(f"Cannot write log file {handle.name}: {e}") from e
            written += len(chunk)
        try:
            handle.flush()
        except (OSError, ValueError) as e:
            raise LogSinkError(f"Cannot flush log file {handle.name}: {e}") from e
        return written

    def sizes(self) -> List[LogFileSize]:
        """Current size of every log file, grouped by pod then container."""
        with self._lock:
            files = list(self._files.items())

        rows: List[LogFileSize] = []
        for name, handle in files:
            path = self.root / name
            try:
                size = _file_size(handle, path)
            except (OSError, ValueError):
                continue
            pod, container = split_log_file_name(name)
            rows.append(LogFileSize(pod=pod, container=container, size=size, path=path))
        rows.sort(key=lambda r: (r.pod, r.container))
        return rows

    def close(self) -> None:
        """Flush and close every file. Only used when the process is exiting."""
        with self._lock:
            files = list(self._files.values())
        for handle in files:
            try:
                handle.close()
            except (OSError, ValueError) as e:
                log.warning(f"[sink] Failed to close {handle.name}: {e}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)


def _file_size(handle: BinaryIO, path: Path) -> int:
    # Closed handles (after shutdown) fall back to the path.
    if handle.closed:
        return path.stat().st_size
    return os.fstat(handle.fileno()).st_size
