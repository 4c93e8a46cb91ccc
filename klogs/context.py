"""
context.py

State shared by the discovery loop, the streaming workers and the dashboard.

One AppContext is built per run and handed to every component, so each can
be driven on its own in tests with a fake cluster client.
"""

import queue
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .kube import LogOptions
from .notices import Banner, Notices
from .registry import MonitoringRegistry
from .settings import KlogsSettings
from .sink import LogSink


class WaitGroup:
    """Counter of in-flight tasks that can be waited on until it drops to zero."""

    def __init__(self):
        self._cond = threading.Condition()
        self._count = 0

    def add(self, n: int = 1) -> None:
        with self._cond:
            self._count += n
            if self._count < 0:
                raise ValueError("negative WaitGroup counter")
            if self._count == 0:
                self._cond.notify_all()

    def done(self) -> None:
        self.add(-1)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the counter is zero. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._count == 0, timeout=timeout)

    @property
    def count(self) -> int:
        with self._cond:
            return self._count


@dataclass
class AppContext:
    settings: KlogsSettings
    client: Any
    namespace: str
    registry: MonitoringRegistry
    sink: LogSink
    banner: Banner
    notices: Notices
    work_queue: queue.Queue
    tasks: WaitGroup = field(default_factory=WaitGroup)
    stopping: threading.Event = field(default_factory=threading.Event)
    fatal_error: Optional[BaseException] = None
    _abort_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def create(cls, settings: KlogsSettings, client: Any, namespace: str, log_path: Path) -> "AppContext":
        notices = Notices()
        return cls(
            settings=settings,
            client=client,
            namespace=namespace,
            registry=MonitoringRegistry(),
            sink=LogSink(log_path, notices),
            banner=Banner(),
            notices=notices,
            work_queue=queue.Queue(maxsize=settings.queue_size),
        )

    def log_options(self, container: str) -> LogOptions:
        return LogOptions(
            container=container,
            since_seconds=self.settings.since_seconds,
            tail_lines=self.settings.tail_lines,
            follow=self.settings.follow,
        )

    def abort(self, exc: BaseException) -> None:
        """Record a fatal error (the first one wins) and stop the run."""
        with self._abort_lock:
            if self.fatal_error is None:
                self.fatal_error = exc
        self.stopping.set()
