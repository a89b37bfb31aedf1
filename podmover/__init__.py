"""podmover - relocate a pod from one Kubernetes node to another.

Deletes the pod where it runs and recreates it pinned to the target node
with a required node-affinity term.
"""

__version__ = "0.1.0"
