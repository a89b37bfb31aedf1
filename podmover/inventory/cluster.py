"""Cluster inventory - nodes and the pods scheduled on them.

Uses the Kubernetes API to:
- Resolve cluster credentials once at startup
- List every node in the cluster
- List the pods of one namespace scheduled on a given node
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from podmover.results import OperationResult, describe_error


DEFAULT_NAMESPACE = "default"


class ClusterConnectionError(Exception):
    """Raised when no usable cluster credentials can be loaded."""


def connect(
    kubeconfig: Optional[str] = None, context: Optional[str] = None
) -> client.CoreV1Api:
    """Load cluster credentials and return a CoreV1Api.

    In-cluster service account credentials are tried first unless an
    explicit kubeconfig or context is given; the kubeconfig file
    (``KUBECONFIG`` or ``~/.kube/config``) is used otherwise.

    Raises:
        ClusterConnectionError: If neither source yields a configuration.
    """
    if not kubeconfig and not context:
        try:
            config.load_incluster_config()
            return client.CoreV1Api()
        except config.ConfigException:
            pass

    try:
        config.load_kube_config(config_file=kubeconfig, context=context)
    except (config.ConfigException, OSError) as e:
        raise ClusterConnectionError(
            f"Could not load Kubernetes configuration: {e}"
        ) from e

    return client.CoreV1Api()


@dataclass
class NodeRecord:
    """Snapshot of a cluster node at inventory time."""

    name: str
    uid: str


@dataclass
class PodRecord:
    """Snapshot of a pod scheduled on a node."""

    name: str
    uid: str
    node_name: Optional[str] = None


@dataclass
class PodQuery:
    """Result of listing the pods on one node.

    ``failure`` is set when the query itself failed and ``pods`` was masked
    to an empty list, so an empty result can be told apart from a failed one.
    """

    node_name: str
    pods: List[PodRecord]
    failure: Optional[OperationResult] = None

    @property
    def ambiguous_empty(self) -> bool:
        return not self.pods and self.failure is not None


class ClusterInventory:
    """Read-only queries against the cluster's nodes and pods."""

    def __init__(
        self,
        namespace: str = DEFAULT_NAMESPACE,
        core_api: Optional[client.CoreV1Api] = None,
    ):
        """Initialise with the target namespace.

        Args:
            namespace: Namespace whose pods are listed.
            core_api: Preconfigured API client. When omitted, credentials
                are loaded with :func:`connect`.
        """
        self.namespace = namespace
        self.core_api = core_api if core_api is not None else connect()

    def list_nodes(self) -> List[NodeRecord]:
        """List all cluster nodes in API order.

        Returns:
            List of NodeRecord, or an empty list if the query failed.
        """
        try:
            nodes_resp = self.core_api.list_node()
        except (ApiException, HTTPError) as e:
            print(f"  WARNING: Failed to list nodes: {describe_error(e)}")
            return []

        return [
            NodeRecord(name=node.metadata.name, uid=node.metadata.uid)
            for node in nodes_resp.items
        ]

    def list_pods_on_node(self, node_name: str) -> List[PodRecord]:
        """List pods in the namespace scheduled on ``node_name``.

        A failed query is reported and masked to an empty list; use
        :meth:`query_pods_on_node` to see the failure.
        """
        return self.query_pods_on_node(node_name).pods

    def query_pods_on_node(
        self,
        node_name: str,
        on_pod: Optional[Callable[[PodRecord], Any]] = None,
    ) -> PodQuery:
        """List pods on ``node_name`` and keep any query failure.

        ``on_pod`` is called with each pod right after its line is printed.
        """
        try:
            pods_resp = self.core_api.list_namespaced_pod(
                self.namespace,
                field_selector=f"spec.nodeName={node_name}",
            )
        except (ApiException, HTTPError) as e:
            print(f"  ERROR: Failed to list pods on node '{node_name}': {describe_error(e)}")
            return PodQuery(
                node_name=node_name,
                pods=[],
                failure=OperationResult.from_exception("list_pods", node_name, e),
            )

        pods: List[PodRecord] = []
        for pod in pods_resp.items:
            scheduled = pod.spec.node_name if pod.spec else None
            # The field selector is applied server-side; drop anything that
            # slipped through on another node.
            if scheduled and scheduled != node_name:
                continue
            record = PodRecord(
                name=pod.metadata.name,
                uid=pod.metadata.uid,
                node_name=scheduled,
            )
            print(f"Pod: {record.uid} - {record.name}")
            if on_pod is not None:
                on_pod(record)
            pods.append(record)

        return PodQuery(node_name=node_name, pods=pods)
