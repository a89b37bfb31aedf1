"""Pytest configuration and fixtures."""

import uuid

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException


class FakeCoreV1Api:
    """In-memory stand-in for kubernetes.client.CoreV1Api.

    Holds nodes and pods, applies ``spec.nodeName`` field selectors and
    raises ApiException like the real server. ``failures`` maps a method
    name to a list of exceptions raised on successive calls.
    """

    def __init__(self, nodes=(), schedule_created=False):
        self.nodes = list(nodes)
        self.pods = {}
        self.failures = {}
        self.calls = []
        self.schedule_created = schedule_created

    # ── Test helpers ─────────────────────────────────────────

    def add_pod(self, name, node, namespace="default", containers=None):
        containers = containers or [
            client.V1Container(name="web", image="nginx:1.25", command=["nginx"], args=["-g", "daemon off;"])
        ]
        pod = client.V1Pod(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace, uid=str(uuid.uuid4())),
            spec=client.V1PodSpec(node_name=node, containers=containers),
            status=client.V1PodStatus(phase="Running"),
        )
        self.pods[(namespace, name)] = pod
        return pod

    def fail(self, method, *exceptions):
        self.failures.setdefault(method, []).extend(exceptions)

    def pod_names(self, namespace="default"):
        return sorted(name for ns, name in self.pods if ns == namespace)

    def _record(self, method, **kwargs):
        self.calls.append((method, kwargs))
        pending = self.failures.get(method)
        if pending:
            raise pending.pop(0)

    # ── CoreV1Api surface ────────────────────────────────────

    def list_node(self, **kwargs):
        self._record("list_node")
        return client.V1NodeList(items=[
            client.V1Node(metadata=client.V1ObjectMeta(name=name, uid=f"uid-{name}"))
            for name in self.nodes
        ])

    def list_namespaced_pod(self, namespace, field_selector=None, **kwargs):
        self._record("list_namespaced_pod", namespace=namespace, field_selector=field_selector)
        node = None
        if field_selector and field_selector.startswith("spec.nodeName="):
            node = field_selector.split("=", 1)[1]
        items = [
            pod for (ns, _), pod in self.pods.items()
            if ns == namespace and (node is None or pod.spec.node_name == node)
        ]
        return client.V1PodList(items=items)

    def read_namespaced_pod(self, name, namespace, **kwargs):
        self._record("read_namespaced_pod", name=name, namespace=namespace)
        try:
            return self.pods[(namespace, name)]
        except KeyError:
            raise ApiException(status=404, reason="Not Found")

    def delete_namespaced_pod(self, name, namespace, **kwargs):
        self._record("delete_namespaced_pod", name=name, namespace=namespace)
        if (namespace, name) not in self.pods:
            raise ApiException(status=404, reason="Not Found")
        del self.pods[(namespace, name)]
        return client.V1Status(status="Success")

    def create_namespaced_pod(self, namespace, body, **kwargs):
        self._record("create_namespaced_pod", namespace=namespace, body=body)
        name = body.metadata.name
        if (namespace, name) in self.pods:
            raise ApiException(status=409, reason="Conflict")
        pod = body
        pod.metadata.uid = str(uuid.uuid4())
        pod.status = client.V1PodStatus(phase="Pending")
        if self.schedule_created:
            terms = pod.spec.affinity.node_affinity.required_during_scheduling_ignored_during_execution
            pod.spec.node_name = terms.node_selector_terms[0].match_expressions[0].values[0]
            pod.status.phase = "Running"
        self.pods[(namespace, name)] = pod
        return pod


def required_affinity(pod):
    """Return the single required node-affinity expression of a pod."""
    selector = pod.spec.affinity.node_affinity.required_during_scheduling_ignored_during_execution
    assert len(selector.node_selector_terms) == 1
    expressions = selector.node_selector_terms[0].match_expressions
    assert len(expressions) == 1
    expr = expressions[0]
    return {"key": expr.key, "operator": expr.operator, "values": list(expr.values)}


def server_error():
    return ApiException(status=500, reason="Internal Server Error")


@pytest.fixture
def fake_api():
    """A three-node cluster with one pod on dell7580."""
    api = FakeCoreV1Api(nodes=["dell7580", "node-b", "node-c"])
    api.add_pod("nginx-1", "dell7580")
    return api


@pytest.fixture
def busy_api():
    """Pods spread over two nodes."""
    api = FakeCoreV1Api(nodes=["node-a", "node-b"])
    api.add_pod("web-1", "node-a")
    api.add_pod("web-2", "node-a")
    api.add_pod("db-1", "node-b")
    return api


@pytest.fixture
def sample_config_yaml():
    """A complete configuration file body."""
    return """
template:
  containerName: app
  image: registry.local:5000/team/app:2.3.1
  hostnameLabel: kubernetes.io/hostname
naming:
  marker: moved-
  fallbackPodName: placeholder
policy:
  onDeleteFailure: abort
  createRetries: 2
  retryDelay: 0
  waitForDeletion: true
  deletionTimeout: 30
  verifyTimeout: 10
"""
