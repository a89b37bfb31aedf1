"""Read-only listing of a pod's containers for operator visibility."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from podmover.inventory.cluster import DEFAULT_NAMESPACE, connect
from podmover.results import describe_error


@dataclass
class ContainerInfo:
    """Name, image, command and args of one container spec."""

    name: str
    image: Optional[str] = None
    command: Optional[List[str]] = None
    args: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "image": self.image,
            "command": self.command,
            "args": self.args,
        }


class ContainerIntrospector:
    """Fetches live pods and enumerates their containers.

    Purely diagnostic: failures are printed and yield an empty list.
    """

    def __init__(
        self,
        namespace: str = DEFAULT_NAMESPACE,
        core_api: Optional[client.CoreV1Api] = None,
    ):
        self.namespace = namespace
        self.core_api = core_api if core_api is not None else connect()

    def describe_containers(self, pod_name: str) -> List[ContainerInfo]:
        """Describe the containers of ``pod_name``.

        Returns:
            One ContainerInfo per container spec, or an empty list if the
            pod or its spec could not be read.
        """
        try:
            pod = self.core_api.read_namespaced_pod(pod_name, self.namespace)
        except (ApiException, HTTPError) as e:
            print(f"  WARNING: Failed to read pod '{pod_name}': {describe_error(e)}")
            return []

        if pod.spec is None:
            print(f"  WARNING: Pod '{pod_name}' has no spec")
            return []

        containers = []
        for container in pod.spec.containers or []:
            info = ContainerInfo(
                name=container.name,
                image=container.image,
                command=container.command,
                args=container.args,
            )
            print(f"\t* Container Name: {info.name}")
            if info.image:
                print(f"\t* Image: {info.image}")
            if info.command:
                print(f"\t* Command: {info.command}")
            if info.args:
                print(f"\t* Args: {info.args}")
            containers.append(info)

        return containers
