"""Integration test fixtures using pytest-kubernetes for cluster management."""
import os
import time
import pytest
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from pytest_kubernetes.providers import AClusterManager


NAMESPACE = "klogs-test"
LOG_IMAGE = "busybox:1.36"
CHATTY_PODS = ("chatty-0", "chatty-1")


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """
    Expose test outcome on the test item so fixtures can react in teardown.

    Pattern:
      if request.node.rep_call.failed: ...
    """
    outcome = yield
    rep = outcome.get_result()
    setattr(item, f"rep_{rep.when}", rep)


def _debug_dump_pods(k8s: AClusterManager, namespace: str = NAMESPACE) -> None:
    """Best-effort debug dump of the test pods (events + describe). Never raises."""

    def safe_kubectl(args: list[str]) -> str:
        try:
            return k8s.kubectl(args, as_dict=False)
        except Exception as e:  # noqa: BLE001 - best-effort debug helper
            return f"[debug-dump] failed: kubectl {' '.join(args)}: {e}"

    print("\n==================== DEBUG DUMP (klogs) ====================")
    print(safe_kubectl(["get", "pods", "-n", namespace, "-o", "wide"]))
    print(safe_kubectl(["describe", "pods", "-n", namespace]))
    print("\n--- events (newest last) ---")
    print(safe_kubectl(["get", "events", "-n", namespace, "--sort-by=.lastTimestamp"]))


def _chatty_pod(name: str, with_init: bool = False) -> client.V1Pod:
    """A pod printing a numbered line every second."""
    init_containers = None
    if with_init:
        init_containers = [client.V1Container(
            name="setup",
            image=LOG_IMAGE,
            command=["sh", "-c", "echo setup done"],
        )]
    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name, labels={"app": "chatty"}),
        spec=client.V1PodSpec(
            termination_grace_period_seconds=1,
            init_containers=init_containers,
            containers=[client.V1Container(
                name="app",
                image=LOG_IMAGE,
                command=["sh", "-c", 'i=0; while true; do echo "line $i"; i=$((i+1)); sleep 1; done'],
            )],
        ),
    )


@pytest.fixture
def cluster(k8s: AClusterManager, request):
    """
    A Kubernetes cluster managed by pytest-kubernetes with a test namespace.

    pytest-kubernetes creates the cluster using the first available provider
    (k3d, kind, minikube). Override it with e.g. pytest --k8s-provider=kind.
    """
    always = os.environ.get("K8S_TEST_DEBUG") == "1"

    try:
        # Ensure cluster is created and ready (pytest-kubernetes doesn't auto-create)
        if not k8s.ready(timeout=5):
            print(f"[cluster] Creating cluster '{k8s.cluster_name}'...")
            k8s.create()
            print(f"[cluster] Cluster '{k8s.cluster_name}' is ready")
        else:
            print(f"[cluster] Cluster '{k8s.cluster_name}' already exists and is ready")

        config.load_kube_config(config_file=str(k8s.kubeconfig))
        core_v1 = client.CoreV1Api()

        try:
            core_v1.create_namespace(client.V1Namespace(metadata=client.V1ObjectMeta(name=NAMESPACE)))
        except ApiException as e:
            if e.status != 409:  # Already exists
                raise

        k8s.core_v1 = core_v1
        yield k8s

    except Exception:
        if always:
            _debug_dump_pods(k8s)
        raise

    finally:
        rep_call = getattr(request.node, "rep_call", None)
        failed = bool(rep_call and rep_call.failed)
        if always or failed:
            _debug_dump_pods(k8s)


@pytest.fixture
def chatty_pods(cluster: AClusterManager):
    """Start the chatty pods (the first one with an init container), delete them after the test."""
    core_v1 = cluster.core_v1
    for i, name in enumerate(CHATTY_PODS):
        try:
            core_v1.create_namespaced_pod(namespace=NAMESPACE, body=_chatty_pod(name, with_init=(i == 0)))
        except ApiException as e:
            if e.status != 409:
                raise

    deadline = time.time() + 180
    while time.time() < deadline:
        pods = core_v1.list_namespaced_pod(NAMESPACE, label_selector="app=chatty").items
        if len(pods) == len(CHATTY_PODS) and all(p.status and p.status.phase == "Running" for p in pods):
            break
        time.sleep(2)
    else:
        raise RuntimeError("Chatty pods did not start within timeout")

    # A few lines of output before the logs are collected
    time.sleep(3)
    yield list(CHATTY_PODS)

    for name in CHATTY_PODS:
        try:
            core_v1.delete_namespaced_pod(name, NAMESPACE, grace_period_seconds=0)
        except ApiException:
            pass

    # The next test recreates the same names
    deadline = time.time() + 60
    while time.time() < deadline:
        if not core_v1.list_namespaced_pod(NAMESPACE, label_selector="app=chatty").items:
            break
        time.sleep(1)
