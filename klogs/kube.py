"""
kube.py

Thin wrapper around the Kubernetes API used by klogs.

Everything the monitoring engine needs from the cluster goes through
KubeClient: listing pods (optionally by label selector), opening a container
log stream, and resolving the namespace to work in. Tests substitute any
object offering the same list_pods / stream_logs methods.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

import kubernetes
from kubernetes.client import ApiClient, CoreV1Api, V1Pod
from kubernetes.client.exceptions import ApiException
from kubernetes.config import ConfigException

from .exceptions import ConfigurationError, ListingError, StreamError


POD_PHASE_RUNNING = "Running"
DEFAULT_NAMESPACE = "default"
STREAM_CHUNK_SIZE = 32 * 1024
# Every followed container holds its own connection open.
CONNECTION_POOL_MAXSIZE = 100


# =========================
# Data
# =========================

@dataclass
class PodInfo:
    """The parts of a pod the monitoring engine looks at."""
    name: str
    namespace: str = DEFAULT_NAMESPACE
    phase: str = "Unknown"
    ready: bool = False
    containers: List[str] = field(default_factory=list)
    init_containers: List[str] = field(default_factory=list)

    @property
    def running(self) -> bool:
        return self.phase == POD_PHASE_RUNNING


@dataclass(frozen=True)
class LogOptions:
    """Options for a single container log request."""
    container: str
    since_seconds: Optional[int] = None
    tail_lines: Optional[int] = None
    follow: bool = False

    def to_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"container": self.container, "follow": self.follow}
        if self.since_seconds is not None:
            kwargs["since_seconds"] = self.since_seconds
        if self.tail_lines is not None:
            kwargs["tail_lines"] = self.tail_lines
        return kwargs


class LogStream:
    """Raw log chunks of an open, non-preloaded log response."""

    def __init__(self, response: Any, chunk_size: int = STREAM_CHUNK_SIZE):
        self._response = response
        self._chunk_size = chunk_size

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._response.stream(self._chunk_size))

    def close(self) -> None:
        self._response.close()
        self._response.release_conn()


def is_pod_ready(pod: V1Pod) -> bool:
    """Check if a pod is Ready."""
    conditions: List = (pod.status.conditions if pod.status else None) or []
    return any(c.type == "Ready" and c.status == "True" for c in conditions)


def pod_from_api(pod: V1Pod) -> PodInfo:
    """Convert a V1Pod into a PodInfo."""
    spec = pod.spec
    return PodInfo(
        name=pod.metadata.name if pod.metadata else "",
        namespace=(pod.metadata.namespace if pod.metadata else None) or DEFAULT_NAMESPACE,
        phase=(pod.status.phase if pod.status else None) or "Unknown",
        ready=is_pod_ready(pod),
        containers=[c.name for c in ((spec.containers if spec else None) or [])],
        init_containers=[c.name for c in ((spec.init_containers if spec else None) or [])],
    )


def default_kubeconfig_path() -> str:
    return os.path.join(os.path.expanduser("~"), ".kube", "config")


# =========================
# Client
# =========================

class KubeClient:
    """Access to the cluster for one kubeconfig."""

    def __init__(self, core: CoreV1Api, kubeconfig: Optional[str] = None):
        self.core = core
        self.kubeconfig = kubeconfig

    @classmethod
    def from_kubeconfig(cls, kubeconfig: Optional[str] = None) -> "KubeClient":
        """
        Load a kubeconfig (explicit path, else ~/.kube/config) and build a client.

        Without an explicit path the in-cluster configuration is tried when no
        kubeconfig file can be loaded.
        """
        path = kubeconfig or default_kubeconfig_path()
        try:
            kubernetes.config.load_kube_config(config_file=path)
        except (ConfigException, OSError, ValueError) as e:
            if kubeconfig:
                raise ConfigurationError(
                    f"kubeconfig error while reading {path}: {e}. "
                    f'Please provide a valid kubeconfig file with "--kubeconfig <file_path>"'
                ) from e
            try:
                kubernetes.config.load_incluster_config()
            except ConfigException:
                raise ConfigurationError(
                    f"kubeconfig error while reading {path}. "
                    f'Please provide a valid kubeconfig file with "--kubeconfig <file_path>"'
                ) from e
            path = None

        configuration = kubernetes.client.Configuration.get_default_copy()
        configuration.connection_pool_maxsize = CONNECTION_POOL_MAXSIZE
        return cls(CoreV1Api(ApiClient(configuration)), path)

    def _active_context(self) -> Optional[Dict[str, Any]]:
        if not self.kubeconfig:
            return None
        try:
            _, active = kubernetes.config.list_kube_config_contexts(config_file=self.kubeconfig)
        except (ConfigException, OSError):
            return None
        return active

    def current_context(self) -> str:
        active = self._active_context()
        if not active:
            return "in-cluster"
        return active.get("name") or "unknown"

    def current_namespace(self) -> str:
        """Namespace of the current kubeconfig context, or "default"."""
        active = self._active_context()
        if not active:
            return DEFAULT_NAMESPACE
        return (active.get("context") or {}).get("namespace") or DEFAULT_NAMESPACE

    def namespace_exists(self, name: str) -> bool:
        try:
            self.core.read_namespace(name=name)
        except ApiException as e:
            if e.status == 404:
                return False
            raise ListingError(f"Error reading namespace {name}: {e.reason}") from e
        return True

    def list_namespaces(self) -> List[str]:
        try:
            namespaces = self.core.list_namespace().items
        except ApiException as e:
            raise ListingError(f"Error listing namespaces: {e.reason}") from e
        return [n.metadata.name for n in namespaces if n.metadata]

    def list_pods(self, namespace: str, label_selector: str = "") -> List[PodInfo]:
        """List pods in a namespace, optionally filtered by a label selector."""
        try:
            pods = self.core.list_namespaced_pod(
                namespace=namespace,
                label_selector=label_selector,
            ).items
        except ApiException as e:
            raise ListingError(f"Error getting pods in namespace {namespace}: {e.reason}") from e
        return [pod_from_api(p) for p in pods]

    def stream_logs(self, namespace: str, pod: str, options: LogOptions) -> LogStream:
        """Open the log stream of one container."""
        try:
            response = self.core.read_namespaced_pod_log(
                name=pod,
                namespace=namespace,
                _preload_content=False,
                **options.to_kwargs(),
            )
        except ApiException as e:
            raise StreamError(
                f"Error getting logs for pod {pod}, container {options.container}: {e.reason}"
            ) from e
        return LogStream(response)

