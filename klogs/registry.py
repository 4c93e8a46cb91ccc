"""
registry.py

Shared record of every pod being monitored and how fresh its monitoring is.

Stages:
- NEW:        admitted by discovery, streaming not confirmed yet
- FRESH:      seen by one dashboard tick since admission
- STALE:      monitored for a while (a freshness indicator, not an error)
- TERMINATED: a stream of the pod ended while following; evicted on the next tick

A pod name is admitted at most once per process; an evicted pod stays out.

Discovery, streaming tasks and the status refresher all touch the registry
from their own threads, so every operation holds the registry lock.
"""

import enum
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Set


class Stage(enum.Enum):
    NEW = "new"
    FRESH = "fresh"
    STALE = "stale"
    TERMINATED = "terminated"


# Stage reached after one refresh tick; TERMINATED has no successor (evicted).
NEXT_STAGE = {
    Stage.NEW: Stage.FRESH,
    Stage.FRESH: Stage.STALE,
    Stage.STALE: Stage.STALE,
}


@dataclass
class MonitoredPod:
    name: str
    stage: Stage = Stage.NEW
    containers: List[str] = field(default_factory=list)


class MonitoringRegistry:
    """Pods currently monitored, keyed by pod name."""

    def __init__(self):
        self._lock = threading.Lock()
        self._pods: Dict[str, MonitoredPod] = {}
        # Names ever admitted; eviction does not forget them.
        self._admitted: Set[str] = set()

    def admit(self, name: str) -> bool:
        """Register a pod at stage NEW. Returns False if it was ever admitted before."""
        with self._lock:
            if name in self._admitted:
                return False
            self._admitted.add(name)
            self._pods[name] = MonitoredPod(name=name)
            return True

    def add_container(self, name: str, container: str) -> bool:
        with self._lock:
            pod = self._pods.get(name)
            if pod is None:
                return False
            pod.containers.append(container)
            return True

    def terminate(self, name: str) -> bool:
        """Mark a pod TERMINATED and drop its containers."""
        with self._lock:
            pod = self._pods.get(name)
            if pod is None:
                return False
            pod.stage = Stage.TERMINATED
            pod.containers = []
            return True

    def tick(self) -> List[MonitoredPod]:
        """
        Advance every pod one refresh tick.

        Returns the pods as they were before the tick, sorted by name, so a
        TERMINATED pod is shown once before it disappears.
        """
        with self._lock:
            seen = self._snapshot()
            for name, pod in list(self._pods.items()):
                if pod.stage == Stage.TERMINATED:
                    del self._pods[name]
                else:
                    pod.stage = NEXT_STAGE[pod.stage]
            return seen

    def snapshot(self) -> List[MonitoredPod]:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> List[MonitoredPod]:
        return [
            replace(self._pods[name], containers=list(self._pods[name].containers))
            for name in sorted(self._pods)
        ]

    def get(self, name: str) -> Optional[MonitoredPod]:
        with self._lock:
            pod = self._pods.get(name)
            if pod is None:
                return None
            return replace(pod, containers=list(pod.containers))

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._pods

    def __len__(self) -> int:
        with self._lock:
            return len(self._pods)
