"""Pod recreator - deletes a pod and creates its node-pinned replacement.

Uses the Kubernetes API to:
- Delete the pod on the source node
- Create the replacement pod with a required node-affinity term
- Optionally poll until the old pod is gone or the new one is running

No call raises on API errors: each returns an OperationResult and the
failure is printed.
"""

import time
from typing import Dict, Optional

from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from podmover.inventory.cluster import DEFAULT_NAMESPACE, connect
from podmover.relocation.planner import PodTemplate
from podmover.results import ErrorKind, OperationResult, classify_exception, describe_error


MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "podmover"
SOURCE_NODE_ANNOTATION = "podmover.io/source-node"
SOURCE_POD_ANNOTATION = "podmover.io/source-pod"


def build_pod_manifest(
    name: str,
    target_node: str,
    template: Optional[PodTemplate] = None,
    source_node: Optional[str] = None,
    source_pod: Optional[str] = None,
) -> client.V1Pod:
    """Build a single-container pod pinned to ``target_node``.

    The pin is a requiredDuringSchedulingIgnoredDuringExecution node
    affinity term with one ``In`` expression on the hostname label.
    """
    template = template or PodTemplate()

    annotations: Dict[str, str] = {}
    if source_node:
        annotations[SOURCE_NODE_ANNOTATION] = source_node
    if source_pod:
        annotations[SOURCE_POD_ANNOTATION] = source_pod

    affinity = client.V1Affinity(
        node_affinity=client.V1NodeAffinity(
            required_during_scheduling_ignored_during_execution=client.V1NodeSelector(
                node_selector_terms=[
                    client.V1NodeSelectorTerm(
                        match_expressions=[
                            client.V1NodeSelectorRequirement(
                                key=template.hostname_label,
                                operator="In",
                                values=[target_node],
                            )
                        ]
                    )
                ]
            )
        )
    )

    return client.V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=client.V1ObjectMeta(
            name=name,
            labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE},
            annotations=annotations or None,
        ),
        spec=client.V1PodSpec(
            containers=[
                client.V1Container(name=template.container_name, image=template.image)
            ],
            affinity=affinity,
        ),
    )


class PodRecreator:
    """Deletes and creates pods in one namespace."""

    def __init__(
        self,
        namespace: str = DEFAULT_NAMESPACE,
        core_api: Optional[client.CoreV1Api] = None,
        poll_interval: float = 2.0,
    ):
        """Initialise with the target namespace.

        Args:
            namespace: Namespace holding the pods.
            core_api: Preconfigured API client. When omitted, credentials
                are loaded with :func:`connect`.
            poll_interval: Seconds between polls in the wait helpers.
        """
        self.namespace = namespace
        self.core_api = core_api if core_api is not None else connect()
        self.poll_interval = poll_interval

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def delete_pod(self, name: str) -> OperationResult:
        """Delete pod ``name``. Failures are reported, never raised."""
        try:
            self.core_api.delete_namespaced_pod(name, self.namespace)
        except (ApiException, HTTPError) as e:
            print(f"  ERROR: Failed to delete pod '{name}': {describe_error(e)}")
            return OperationResult.from_exception("delete", name, e)

        print(f"  Pod '{name}' deleted")
        return OperationResult.success("delete", name)

    def create_pod(
        self,
        name: str,
        target_node: str,
        template: Optional[PodTemplate] = None,
        source_node: Optional[str] = None,
        source_pod: Optional[str] = None,
        retries: int = 0,
        retry_delay: float = 2.0,
    ) -> OperationResult:
        """Create pod ``name`` pinned to ``target_node``.

        Args:
            name: Name of the new pod.
            target_node: Node the pod must be scheduled on.
            template: Container name, image and hostname label.
            source_node: Recorded as an annotation on the new pod.
            source_pod: Recorded as an annotation on the new pod.
            retries: Extra attempts after a retryable failure.
            retry_delay: Seconds to wait between attempts.

        Returns:
            OperationResult of the last attempt.
        """
        body = build_pod_manifest(name, target_node, template, source_node, source_pod)

        attempt = 0
        while True:
            attempt += 1
            try:
                self.core_api.create_namespaced_pod(self.namespace, body)
            except (ApiException, HTTPError) as e:
                print(f"  ERROR: Failed to create pod '{name}': {describe_error(e)}")
                kind = classify_exception(e)
                # A timed-out earlier attempt may have been applied
                if kind == ErrorKind.CONFLICT and attempt > 1 and self._exists(name):
                    print(f"  Pod '{name}' already created by an earlier attempt")
                    return OperationResult.success("create", name, attempts=attempt)
                if kind.retryable and attempt <= retries:
                    print(f"  Retrying in {retry_delay}s ({attempt}/{retries})...")
                    time.sleep(retry_delay)
                    continue
                return OperationResult.from_exception("create", name, e, attempts=attempt)

            print(f"  Pod '{name}' created on node '{target_node}'")
            return OperationResult.success("create", name, attempts=attempt)

    def wait_for_deletion(self, name: str, timeout: float) -> OperationResult:
        """Poll until pod ``name`` no longer exists."""
        print(f"  Waiting for pod '{name}' to terminate (timeout: {timeout}s)...")
        start = time.time()
        while time.time() - start < timeout:
            try:
                self.core_api.read_namespaced_pod(name, self.namespace)
            except ApiException as e:
                if e.status == 404:
                    return OperationResult.success("wait_deleted", name)
                print(f"    WARNING: {describe_error(e)}")
            except HTTPError as e:
                print(f"    WARNING: {describe_error(e)}")
            time.sleep(self.poll_interval)

        print(f"    WARNING: Pod '{name}' still present after {timeout}s")
        return OperationResult(
            operation="wait_deleted",
            target=name,
            ok=False,
            error_kind=ErrorKind.TIMEOUT,
            reason=f"Pod still present after {timeout}s",
        )

    def wait_for_scheduled(
        self, name: str, target_node: str, timeout: float
    ) -> OperationResult:
        """Poll until pod ``name`` is bound to ``target_node`` and Running."""
        print(f"  Waiting for pod '{name}' on '{target_node}' (timeout: {timeout}s)...")
        start = time.time()
        last_phase = None
        while time.time() - start < timeout:
            try:
                pod = self.core_api.read_namespaced_pod(name, self.namespace)
            except (ApiException, HTTPError) as e:
                print(f"    WARNING: {describe_error(e)}")
            else:
                node = pod.spec.node_name if pod.spec else None
                phase = pod.status.phase if pod.status else None
                if phase != last_phase:
                    elapsed = int(time.time() - start)
                    print(f"    [{elapsed}s] {name}: {phase or 'unknown'} (node: {node or 'unscheduled'})")
                    last_phase = phase
                if node and node != target_node:
                    return OperationResult(
                        operation="verify",
                        target=name,
                        ok=False,
                        error_kind=ErrorKind.INVALID,
                        reason=f"Scheduled on '{node}' instead of '{target_node}'",
                    )
                if node == target_node and phase == "Running":
                    return OperationResult.success("verify", name)
                if phase == "Failed":
                    return OperationResult(
                        operation="verify",
                        target=name,
                        ok=False,
                        error_kind=ErrorKind.API_ERROR,
                        reason="Pod phase is Failed",
                    )
            time.sleep(self.poll_interval)

        print(f"    WARNING: Pod '{name}' not running after {timeout}s")
        return OperationResult(
            operation="verify",
            target=name,
            ok=False,
            error_kind=ErrorKind.TIMEOUT,
            reason=f"Not running on '{target_node}' after {timeout}s",
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _exists(self, name: str) -> bool:
        try:
            self.core_api.read_namespaced_pod(name, self.namespace)
        except (ApiException, HTTPError):
            return False
        return True
