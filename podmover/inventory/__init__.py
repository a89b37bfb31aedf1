"""Cluster inventory for podmover.

Queries nodes, the pods scheduled on a node and the containers of a pod.
"""

from podmover.inventory.cluster import (
    DEFAULT_NAMESPACE,
    ClusterConnectionError,
    ClusterInventory,
    NodeRecord,
    PodQuery,
    PodRecord,
    connect,
)
from podmover.inventory.introspector import ContainerInfo, ContainerIntrospector

__all__ = [
    "DEFAULT_NAMESPACE",
    "ClusterConnectionError",
    "ClusterInventory",
    "NodeRecord",
    "PodQuery",
    "PodRecord",
    "connect",
    "ContainerInfo",
    "ContainerIntrospector",
]
