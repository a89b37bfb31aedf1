"""Pod relocation for podmover.

Deletes a pod on its current node and recreates it pinned to a target node
with a required node-affinity term.
"""

from podmover.relocation.planner import (
    PodTemplate,
    RelocationPlan,
    RelocationRequest,
    derive_name,
    plan_relocation,
)
from podmover.relocation.recreator import PodRecreator, build_pod_manifest
from podmover.relocation.engine import (
    RelocationEngine,
    RelocationPolicy,
    RelocationReport,
    RelocationState,
)

__all__ = [
    "PodTemplate",
    "RelocationPlan",
    "RelocationRequest",
    "derive_name",
    "plan_relocation",
    "PodRecreator",
    "build_pod_manifest",
    "RelocationEngine",
    "RelocationPolicy",
    "RelocationReport",
    "RelocationState",
]
