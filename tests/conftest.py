"""Shared pytest fixtures: a fake cluster client standing in for KubeClient."""
import os
import threading
import time
from typing import Dict, List, Optional, Sequence

import pytest

from klogs.context import AppContext
from klogs.exceptions import ListingError, StreamError
from klogs.kube import LogOptions, PodInfo
from klogs.settings import KlogsSettings

# Keep the developer's environment out of KlogsSettings()
for _name in list(os.environ):
    if _name.startswith("KLOGS_"):
        del os.environ[_name]


class FakeStream:
    """Log stream yielding fixed chunks, optionally slowly."""

    def __init__(self, chunks: Sequence[bytes], delay: float = 0.0, error: Optional[Exception] = None):
        self.chunks = list(chunks)
        self.delay = delay
        self.error = error
        self.closed = False

    def __iter__(self):
        for chunk in self.chunks:
            if self.delay:
                time.sleep(self.delay)
            yield chunk
        if self.error is not None:
            raise self.error

    def close(self):
        self.closed = True


class FakeKubeClient:
    """
    In-memory cluster.

    logs maps (pod, container) to a list of chunks, a FakeStream, or an
    exception raised when the stream is requested. Unknown containers get an
    empty stream. The next fail_listing listings raise listing_error, or a
    ListingError when it is unset.
    """

    def __init__(self, pods: Optional[List[PodInfo]] = None, by_label: Optional[Dict[str, List[PodInfo]]] = None,
                 logs: Optional[Dict] = None):
        self.pods = list(pods or [])
        self.by_label = by_label or {}
        self.logs = logs or {}
        self.fail_listing = 0
        self.listing_error: Optional[Exception] = None
        self.list_calls: List[tuple] = []
        self.stream_calls: List[tuple] = []
        self.streams: List[FakeStream] = []
        self.namespaces = ["default", "test-ns"]
        self._lock = threading.Lock()

    def list_pods(self, namespace: str, label_selector: str = "") -> List[PodInfo]:
        with self._lock:
            self.list_calls.append((namespace, label_selector))
            if self.fail_listing:
                self.fail_listing -= 1
                raise self.listing_error or ListingError(f"Error getting pods in namespace {namespace}: Internal Server Error")
        if label_selector:
            return list(self.by_label.get(label_selector, []))
        return list(self.pods)

    def stream_logs(self, namespace: str, pod: str, options: LogOptions) -> FakeStream:
        with self._lock:
            self.stream_calls.append((namespace, pod, options))
        value = self.logs.get((pod, options.container), [])
        if isinstance(value, Exception):
            raise value
        stream = value if isinstance(value, FakeStream) else FakeStream(value)
        with self._lock:
            self.streams.append(stream)
        return stream

    def current_context(self) -> str:
        return "test-context"

    def current_namespace(self) -> str:
        return "default"

    def namespace_exists(self, name: str) -> bool:
        return name in self.namespaces

    def list_namespaces(self) -> List[str]:
        return list(self.namespaces)


def make_pod(name: str, containers=("app",), init_containers=(), phase: str = "Running", ready: bool = True) -> PodInfo:
    return PodInfo(
        name=name,
        namespace="test-ns",
        phase=phase,
        ready=ready,
        containers=list(containers),
        init_containers=list(init_containers),
    )


@pytest.fixture
def pod():
    """Factory for PodInfo objects (running and ready unless told otherwise)."""
    return make_pod


@pytest.fixture
def fake_client():
    return FakeKubeClient


@pytest.fixture
def fake_stream():
    return FakeStream


@pytest.fixture
def stream_error():
    return StreamError("Error getting logs: Bad Request")


@pytest.fixture
def make_ctx(tmp_path):
    """Build an AppContext around a fake client, logging into tmp_path/logs."""
    def _make(client, **settings) -> AppContext:
        return AppContext.create(KlogsSettings(**settings), client, "test-ns", tmp_path / "logs")
    return _make
