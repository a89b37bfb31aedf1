"""Relocation planning: candidate selection and replacement pod naming.

A relocated pod is renamed ``<marker><target-node>-<original-name>``. The
marker of a previous relocation is stripped before the new one is applied,
so names never accumulate markers and only the latest hop is visible.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from podmover.inventory.cluster import PodRecord


DEFAULT_MARKER = "movido-"
FALLBACK_POD_NAME = "pod-teste"
DEFAULT_CONTAINER_NAME = "my-container"
DEFAULT_IMAGE = "nginx:1.14.2"
HOSTNAME_LABEL = "kubernetes.io/hostname"

# Pod names are DNS subdomains
MAX_POD_NAME_LENGTH = 253


@dataclass
class PodTemplate:
    """Desired state of the replacement pod."""

    container_name: str = DEFAULT_CONTAINER_NAME
    image: str = DEFAULT_IMAGE
    hostname_label: str = HOSTNAME_LABEL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "containerName": self.container_name,
            "image": self.image,
            "hostnameLabel": self.hostname_label,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PodTemplate":
        return cls(
            container_name=data.get("containerName", DEFAULT_CONTAINER_NAME),
            image=data.get("image", DEFAULT_IMAGE),
            hostname_label=data.get("hostnameLabel", HOSTNAME_LABEL),
        )


@dataclass
class RelocationRequest:
    """Move a pod from ``source_node`` to ``target_node``."""

    source_node: str
    target_node: str

    def to_dict(self) -> Dict[str, Any]:
        return {"sourceNode": self.source_node, "targetNode": self.target_node}


@dataclass
class RelocationPlan:
    """Which pod to delete and what to create in its place."""

    pod_to_delete: str
    new_pod_name: str
    target_node: str
    source_node: Optional[str] = None
    fallback: bool = False
    template: PodTemplate = field(default_factory=PodTemplate)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to a dictionary."""
        return {
            "podToDelete": self.pod_to_delete,
            "newPodName": self.new_pod_name,
            "targetNode": self.target_node,
            "sourceNode": self.source_node,
            "fallback": self.fallback,
            "template": self.template.to_dict(),
        }


def derive_name(
    old_name: str,
    target_node: str,
    source_node: Optional[str] = None,
    marker: str = DEFAULT_MARKER,
) -> str:
    """Compute the replacement pod's name.

    Strips one leading ``marker`` from ``old_name``. If a marker was
    stripped and the remainder starts with ``<source_node>-`` (the node
    named by the previous relocation), that segment is dropped too. The
    result is prefixed with ``<marker><target_node>-``.

    Examples:
        >>> derive_name("nginx-1", "node-b")
        'movido-node-b-nginx-1'
        >>> derive_name("movido-node-b-nginx-1", "node-c", source_node="node-b")
        'movido-node-c-nginx-1'
    """
    base = old_name
    if marker and base.startswith(marker):
        base = base[len(marker):]
        hop = f"{source_node}-" if source_node else None
        if hop and base.startswith(hop) and len(base) > len(hop):
            base = base[len(hop):]
    return f"{marker}{target_node}-{base}"


def select_candidate(pods: List[PodRecord]) -> Optional[PodRecord]:
    """Pick the pod to move: the first one listed, or None."""
    return pods[0] if pods else None


def plan_relocation(
    request: RelocationRequest,
    pods: List[PodRecord],
    template: Optional[PodTemplate] = None,
    marker: str = DEFAULT_MARKER,
    fallback_name: str = FALLBACK_POD_NAME,
) -> RelocationPlan:
    """Build the plan for one relocation.

    Args:
        request: Source and target node.
        pods: Pods currently scheduled on the source node.
        template: Template for the replacement pod.
        marker: Name prefix marking relocated pods.
        fallback_name: Name used for both deletion and creation when the
            source node has no pods.

    Returns:
        The RelocationPlan. ``fallback`` is True when no candidate existed.
    """
    template = template or PodTemplate()
    candidate = select_candidate(pods)

    if candidate is None:
        print(f"  No pods found on '{request.source_node}', using fallback pod '{fallback_name}'")
        return RelocationPlan(
            pod_to_delete=fallback_name,
            new_pod_name=fallback_name,
            target_node=request.target_node,
            source_node=request.source_node,
            fallback=True,
            template=PodTemplate(),
        )

    new_name = derive_name(
        candidate.name,
        request.target_node,
        source_node=request.source_node,
        marker=marker,
    )
    if len(new_name) > MAX_POD_NAME_LENGTH:
        print(
            f"  WARNING: Derived name '{new_name}' exceeds "
            f"{MAX_POD_NAME_LENGTH} characters"
        )

    return RelocationPlan(
        pod_to_delete=candidate.name,
        new_pod_name=new_name,
        target_node=request.target_node,
        source_node=request.source_node,
        template=template,
    )
