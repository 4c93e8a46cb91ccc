"""
discovery.py

Finds the pods to collect logs from and admits them for streaming.

The discovery mode is chosen once at startup:
- ALL:         every pod in the namespace
- BY_LABELS:   pods matching any of the --label selectors
- INTERACTIVE: pods picked by the user from the ready pods (seeded once)

A running pod is admitted at most once per process: it is registered in the
monitoring registry at stage NEW and a WorkItem is put on the bounded work
queue. A full queue blocks discovery until the workers catch up.
"""

import enum
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from .context import AppContext
from .kube import PodInfo
from .prompts import select_pods
from .settings import KlogsSettings

log = logging.getLogger("klogs.discovery")

ENQUEUE_POLL_SECONDS = 0.5

PodSelector = Callable[[List[PodInfo]], List[PodInfo]]


class DiscoveryMode(enum.Enum):
    ALL = "all"
    BY_LABELS = "labels"
    INTERACTIVE = "interactive"


def resolve_mode(settings: KlogsSettings) -> DiscoveryMode:
    if settings.all_pods:
        return DiscoveryMode.ALL
    if settings.labels:
        return DiscoveryMode.BY_LABELS
    return DiscoveryMode.INTERACTIVE


@dataclass(frozen=True)
class WorkItem:
    """A pod admitted for streaming."""
    pod: PodInfo


class DiscoveryLoop:
    def __init__(self, ctx: AppContext, mode: DiscoveryMode, select: Optional[PodSelector] = None):
        self.ctx = ctx
        self.mode = mode
        self.select = select or select_pods
        self._thread: Optional[threading.Thread] = None

    @property
    def polls(self) -> bool:
        """Whether this mode keeps discovering after the first pass."""
        return self.mode in (DiscoveryMode.ALL, DiscoveryMode.BY_LABELS)

    def list_candidates(self) -> List[PodInfo]:
        """Current candidate pods for the configured mode."""
        namespace = self.ctx.namespace
        client = self.ctx.client

        if self.mode == DiscoveryMode.ALL:
            log.info(f"[discovery] Getting all pods in namespace {namespace}")
            return client.list_pods(namespace, "")

        if self.mode == DiscoveryMode.BY_LABELS:
            pods: List[PodInfo] = []
            for selector in self.ctx.settings.labels:
                log.info(f"[discovery] Getting pods in namespace {namespace} with label {selector}")
                pods.extend(client.list_pods(namespace, selector))
            return pods

        ready = [p for p in client.list_pods(namespace, "") if p.ready]
        if not ready:
            log.warning(f"[discovery] No ready pods found in namespace {namespace}")
            return []
        selected = self.select(ready)
        if not selected:
            log.warning("[discovery] No pods selected")
        return selected

    def admit(self, pods: List[PodInfo]) -> int:
        """Admit every running pod not monitored yet. Returns how many were admitted."""
        admitted = 0
        for pod in pods:
            if not pod.running:
                continue
            if not self.ctx.registry.admit(pod.name):
                continue
            self.ctx.banner.show(f"Found Pod: {pod.name}")
            log.info(f"[discovery] Admitted pod {pod.name}")
            if not self._enqueue(WorkItem(pod=pod)):
                break
            admitted += 1
        return admitted

    def _enqueue(self, item: WorkItem) -> bool:
        while not self.ctx.stopping.is_set():
            try:
                self.ctx.work_queue.put(item, timeout=ENQUEUE_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    def run_once(self) -> int:
        """List candidates and admit them. Listing errors propagate."""
        pods = self.list_candidates()
        if not pods:
            log.warning(f"[discovery] No pods found in namespace {self.ctx.namespace}")
        return self.admit(pods)

    def run_forever(self) -> None:
        """Poll for new pods until the run stops; failed listings are retried next tick."""
        interval = self.ctx.settings.check_new_pods_interval
        while not self.ctx.stopping.wait(interval):
            try:
                self.run_once()
            except Exception as e:
                log.warning(f"[discovery] Listing pods failed, retrying in {interval}s: {e}")

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self.run_forever, name="discovery", daemon=True)
        self._thread.start()
        return self._thread
