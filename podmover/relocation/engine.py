"""Relocation engine - inventory, plan, delete, create.

A relocation moves through three states::

    planned -> deleted -> created

``deleted`` is entered once the delete phase has run, whether or not the
delete succeeded. ``created`` is entered only when the replacement pod was
accepted by the API. There is no rollback: a run that stops in ``deleted``
after a successful delete has left the workload absent from the cluster.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from kubernetes import client

from podmover.inventory.cluster import (
    DEFAULT_NAMESPACE,
    ClusterInventory,
    NodeRecord,
    PodRecord,
    connect,
)
from podmover.inventory.introspector import ContainerInfo, ContainerIntrospector
from podmover.relocation.planner import (
    DEFAULT_MARKER,
    FALLBACK_POD_NAME,
    PodTemplate,
    RelocationPlan,
    RelocationRequest,
    plan_relocation,
)
from podmover.relocation.recreator import PodRecreator
from podmover.results import ErrorKind, OperationResult


class RelocationState(str, Enum):
    """Progress of a relocation."""

    PLANNED = "planned"
    DELETED = "deleted"
    CREATED = "created"


class DeleteFailurePolicy(str, Enum):
    """What to do when the delete phase fails."""

    CONTINUE = "continue"
    ABORT = "abort"


@dataclass
class RelocationPolicy:
    """Caller-selected handling of the delete/create failure window.

    The defaults run delete and create unconditionally with no retries and
    no waiting.
    """

    on_delete_failure: DeleteFailurePolicy = DeleteFailurePolicy.CONTINUE
    create_retries: int = 0
    retry_delay: float = 2.0
    wait_for_deletion: bool = False
    deletion_timeout: float = 60.0
    verify_timeout: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RelocationPolicy":
        """Build from the ``policy`` section of the configuration."""
        return cls(
            on_delete_failure=DeleteFailurePolicy(data.get("onDeleteFailure", "continue")),
            create_retries=data.get("createRetries", 0),
            retry_delay=data.get("retryDelay", 2.0),
            wait_for_deletion=data.get("waitForDeletion", False),
            deletion_timeout=data.get("deletionTimeout", 60.0),
            verify_timeout=data.get("verifyTimeout", 0.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "onDeleteFailure": self.on_delete_failure.value,
            "createRetries": self.create_retries,
            "retryDelay": self.retry_delay,
            "waitForDeletion": self.wait_for_deletion,
            "deletionTimeout": self.deletion_timeout,
            "verifyTimeout": self.verify_timeout,
        }


@dataclass
class RelocationReport:
    """Everything observed and done during one relocation run."""

    request: RelocationRequest
    plan: RelocationPlan
    state: RelocationState = RelocationState.PLANNED
    nodes: List[NodeRecord] = field(default_factory=list)
    pods: List[PodRecord] = field(default_factory=list)
    containers: Dict[str, List[ContainerInfo]] = field(default_factory=dict)
    inventory_failure: Optional[OperationResult] = None
    delete_result: Optional[OperationResult] = None
    deletion_wait_result: Optional[OperationResult] = None
    create_result: Optional[OperationResult] = None
    verify_result: Optional[OperationResult] = None
    aborted: bool = False
    dry_run: bool = False

    @property
    def succeeded(self) -> bool:
        """True when the replacement was created (and verified, if asked)."""
        if self.state != RelocationState.CREATED:
            return False
        return self.verify_result is None or self.verify_result.ok

    @property
    def workload_absent(self) -> bool:
        """True when the old pod was deleted but no replacement was created."""
        deleted = self.delete_result is not None and self.delete_result.ok
        created = self.create_result is not None and self.create_result.ok
        return deleted and not created

    def errors(self) -> List[OperationResult]:
        """All failed operations of the run, in order."""
        results = [
            self.inventory_failure,
            self.delete_result,
            self.deletion_wait_result,
            self.create_result,
            self.verify_result,
        ]
        return [r for r in results if r is not None and not r.ok]

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to a dictionary."""

        def _result(r: Optional[OperationResult]) -> Optional[Dict[str, Any]]:
            return r.to_dict() if r is not None else None

        return {
            "request": self.request.to_dict(),
            "plan": self.plan.to_dict(),
            "state": self.state.value,
            "succeeded": self.succeeded,
            "workloadAbsent": self.workload_absent,
            "aborted": self.aborted,
            "dryRun": self.dry_run,
            "nodes": [{"name": n.name, "uid": n.uid} for n in self.nodes],
            "pods": [
                {"name": p.name, "uid": p.uid, "nodeName": p.node_name}
                for p in self.pods
            ],
            "containers": {
                pod: [c.to_dict() for c in infos]
                for pod, infos in self.containers.items()
            },
            "inventoryFailure": _result(self.inventory_failure),
            "delete": _result(self.delete_result),
            "deletionWait": _result(self.deletion_wait_result),
            "create": _result(self.create_result),
            "verify": _result(self.verify_result),
        }


class RelocationEngine:
    """Runs one relocation: inventory, plan, delete, create."""

    def __init__(
        self,
        namespace: str = DEFAULT_NAMESPACE,
        core_api: Optional[client.CoreV1Api] = None,
        template: Optional[PodTemplate] = None,
        policy: Optional[RelocationPolicy] = None,
        marker: str = DEFAULT_MARKER,
        fallback_name: str = FALLBACK_POD_NAME,
        introspect: bool = True,
        poll_interval: float = 2.0,
    ):
        """Initialise the engine.

        Args:
            namespace: Namespace of the pods to move.
            core_api: Preconfigured API client shared by all components.
                When omitted, credentials are loaded with :func:`connect`.
            template: Template for replacement pods.
            policy: Failure handling between delete and create.
            marker: Name prefix marking relocated pods.
            fallback_name: Pod name used when the source node has no pods.
            introspect: Print the containers of every pod on the source node.
            poll_interval: Seconds between polls when waiting.
        """
        self.namespace = namespace
        self.core_api = core_api if core_api is not None else connect()
        self.template = template or PodTemplate()
        self.policy = policy or RelocationPolicy()
        self.marker = marker
        self.fallback_name = fallback_name
        self.introspect = introspect

        self.inventory = ClusterInventory(namespace, self.core_api)
        self.introspector = ContainerIntrospector(namespace, self.core_api)
        self.recreator = PodRecreator(namespace, self.core_api, poll_interval=poll_interval)

    def run(self, request: RelocationRequest, dry_run: bool = False) -> RelocationReport:
        """Relocate one pod from the request's source node to its target.

        API failures never raise; they are recorded on the report.

        Args:
            request: Source and target node.
            dry_run: Stop after planning.

        Returns:
            The RelocationReport of the run.
        """
        print(
            f"Relocating from '{request.source_node}' to '{request.target_node}' "
            f"(namespace: {self.namespace})"
        )
        if request.source_node == request.target_node:
            print("  WARNING: Source and target node are the same")

        nodes = self.inventory.list_nodes()
        print(f"\nCluster nodes ({len(nodes)}):")
        for node in nodes:
            print(f"  {node.name} ({node.uid})")
        if nodes and request.target_node not in {n.name for n in nodes}:
            print(f"  WARNING: Target node '{request.target_node}' not found in cluster")

        print(f"\nPods on '{request.source_node}':")
        containers: Dict[str, List[ContainerInfo]] = {}

        def describe(pod: PodRecord) -> None:
            containers[pod.name] = self.introspector.describe_containers(pod.name)

        query = self.inventory.query_pods_on_node(
            request.source_node, on_pod=describe if self.introspect else None
        )
        if query.ambiguous_empty:
            print("  WARNING: Pod query failed; an empty node cannot be confirmed")

        plan = plan_relocation(
            request,
            query.pods,
            template=self.template,
            marker=self.marker,
            fallback_name=self.fallback_name,
        )
        report = RelocationReport(
            request=request,
            plan=plan,
            nodes=nodes,
            pods=query.pods,
            containers=containers,
            inventory_failure=query.failure,
            dry_run=dry_run,
        )
        print(f"\nPlan: '{plan.pod_to_delete}' -> '{plan.new_pod_name}' on '{plan.target_node}'")

        if dry_run:
            return report

        self._delete_phase(report)
        if report.aborted:
            return report

        self._create_phase(report)
        return report

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _delete_phase(self, report: RelocationReport) -> None:
        plan = report.plan
        report.delete_result = self.recreator.delete_pod(plan.pod_to_delete)
        report.state = RelocationState.DELETED

        result = report.delete_result
        if not result.ok:
            if (
                self.policy.on_delete_failure == DeleteFailurePolicy.ABORT
                and result.error_kind != ErrorKind.NOT_FOUND
            ):
                print("  Delete failed; aborting before create")
                report.aborted = True
            return

        if self.policy.wait_for_deletion:
            report.deletion_wait_result = self.recreator.wait_for_deletion(
                plan.pod_to_delete, self.policy.deletion_timeout
            )

    def _create_phase(self, report: RelocationReport) -> None:
        plan = report.plan
        source_pod = None if plan.fallback else plan.pod_to_delete
        report.create_result = self.recreator.create_pod(
            plan.new_pod_name,
            plan.target_node,
            template=plan.template,
            source_node=plan.source_node,
            source_pod=source_pod,
            retries=self.policy.create_retries,
            retry_delay=self.policy.retry_delay,
        )

        if not report.create_result.ok:
            if report.workload_absent:
                print(
                    f"  WARNING: '{plan.pod_to_delete}' was deleted but "
                    f"'{plan.new_pod_name}' was not created"
                )
            return

        report.state = RelocationState.CREATED

        if self.policy.verify_timeout > 0:
            report.verify_result = self.recreator.wait_for_scheduled(
                plan.new_pod_name, plan.target_node, self.policy.verify_timeout
            )
