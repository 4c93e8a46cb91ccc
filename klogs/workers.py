"""
workers.py

Turns admitted pods into log streams.

A single consumer thread drains the work queue. For every pod it starts one
streaming thread per container (init containers first, when enabled) and
moves straight on to the next pod; streams run concurrently with each other
and with further discovery. The context's WaitGroup counts the streaming
threads so a one-shot run can wait for all of them before exiting.

Per container:
- no log stream (API error): skipped, nothing is created or recorded
- stream opened: log file created, container added under its pod, stream copied
- stream ended while following: pod marked TERMINATED, notice recorded
- file I/O error: the whole run is aborted
"""

import logging
import threading
import time
from typing import Any, List, Optional

from .context import AppContext
from .exceptions import LogSinkError
from .kube import PodInfo

log = logging.getLogger("klogs.workers")

_SHUTDOWN = None


class StreamingWorkerPool:
    def __init__(self, ctx: AppContext):
        self.ctx = ctx
        self._consumer: Optional[threading.Thread] = None

    def start(self) -> threading.Thread:
        self._consumer = threading.Thread(target=self.consume, name="workers", daemon=True)
        self._consumer.start()
        return self._consumer

    def stop(self) -> None:
        """Ask the consumer to exit once the items queued so far are dispatched."""
        self.ctx.work_queue.put(_SHUTDOWN)

    def join(self, timeout: Optional[float] = None) -> bool:
        if self._consumer is None:
            return True
        self._consumer.join(timeout)
        return not self._consumer.is_alive()

    def consume(self) -> None:
        while True:
            item = self.ctx.work_queue.get()
            try:
                if item is _SHUTDOWN:
                    return
                self.dispatch(item.pod)
            finally:
                self.ctx.work_queue.task_done()

    def containers_of(self, pod: PodInfo) -> List[str]:
        if self.ctx.settings.init_containers:
            return list(pod.init_containers) + list(pod.containers)
        return list(pod.containers)

    def dispatch(self, pod: PodInfo) -> int:
        """Start one streaming thread per container. Returns the number started."""
        if pod.name not in self.ctx.registry:
            log.debug(f"[workers] Pod {pod.name} is no longer monitored; skipping")
            return 0

        started = 0
        for container in self.containers_of(pod):
            self.ctx.tasks.add()
            thread = threading.Thread(
                target=self.stream_container,
                args=(pod, container),
                name=f"stream-{pod.name}-{container}",
                daemon=True,
            )
            thread.start()
            started += 1
        return started

    def stream_container(self, pod: PodInfo, container: str) -> None:
        try:
            self._stream(pod, container)
        finally:
            self.ctx.tasks.done()

    def _stream(self, pod: PodInfo, container: str) -> None:
        ctx = self.ctx
        try:
            stream = ctx.client.stream_logs(ctx.namespace, pod.name, ctx.log_options(container))
        except Exception as e:
            log.debug(f"[stream] {pod.name}/{container}: no log stream, skipping: {e}")
            return

        try:
            handle = ctx.sink.open(pod.name, container)
            ctx.registry.add_container(pod.name, container)
            written = ctx.sink.copy(stream, handle, flush_each_chunk=ctx.settings.follow)
            log.debug(f"[stream] {pod.name}/{container}: stream ended after {written} bytes")
        except LogSinkError as e:
            if not ctx.stopping.is_set():
                log.error(f"[stream] {pod.name}/{container}: {e}")
                ctx.abort(e)
            return
        except Exception as e:
            log.debug(f"[stream] {pod.name}/{container}: stream interrupted: {e}")
        finally:
            _close_quietly(stream)

        if ctx.settings.follow and not ctx.stopping.is_set():
            ctx.registry.terminate(pod.name)
            ctx.notices.add(
                f"[{time.strftime('%H:%M:%S')}] Streaming logs ended prematurely for "
                f"Pod: {pod.name}, Container: {container}"
            )


def _close_quietly(stream: Any) -> None:
    close = getattr(stream, "close", None)
    if close is None:
        return
    try:
        close()
    except OSError as e:
        log.debug(f"[stream] Failed to close log stream: {e}")
