"""Container and network lifecycle against the Docker daemon."""
from dataclasses import dataclass
from typing import Optional

import docker
from docker.errors import APIError, NotFound
from docker.models.containers import Container

from .errors import DaemonError
from .logger import get_logger
from .models import AllocatedPort
from .settings import AppSettings

logger = get_logger(__name__)

PROXY_OWNER_VALUE = "traefik"


@dataclass
class ManagedContainer:
    id: str
    app_name: str
    running: bool


class ContainerManager:
    def __init__(self, client: docker.DockerClient, settings: AppSettings):
        self.client = client
        self.settings = settings

    def container_name(self, app_name: str) -> str:
        return f"{self.settings.CONTAINER_PREFIX}{app_name}"

    # Network

    def ensure_network(self) -> str:
        """Return the shared network id, creating a bridge network only if none exists."""
        name = self.settings.NETWORK_NAME
        try:
            for network in self.client.networks.list(names=[name]):
                if network.name == name:
                    return network.id

            logger.debug(f"Creating network {name}")
            network = self.client.networks.create(name, driver="bridge")
            return network.id
        except APIError as e:
            raise DaemonError(f"ensuring network {name}", e) from e

    # Containers

    def create_container(
        self,
        app_name: str,
        image: str,
        routing_labels: dict[str, str],
        env: list[str],
        allocated_ports: list[AllocatedPort],
    ) -> str:
        """Create (not start) the app container on the shared network."""
        labels = {self.settings.OWNER_LABEL: app_name}
        if routing_labels:
            labels["traefik.enable"] = "true"
            labels.update(routing_labels)

        ports = {
            f"{allocation.container_port}/{allocation.protocol.value}": allocation.host_port
            for allocation in allocated_ports
        }

        try:
            container = self.client.containers.create(
                image,
                name=self.container_name(app_name),
                labels=labels,
                environment=env or None,
                ports=ports or None,
                network=self.settings.NETWORK_NAME,
                detach=True,
            )
        except APIError as e:
            raise DaemonError(f"creating container for {app_name}", e) from e
        return container.id

    def start(self, container_id: str):
        try:
            self.client.api.start(container_id)
        except APIError as e:
            raise DaemonError(f"starting container {container_id[:12]}", e) from e

    def stop(self, container_id: str):
        """Graceful stop; the daemon kills after STOP_TIMEOUT seconds."""
        try:
            self.client.api.stop(container_id, timeout=self.settings.STOP_TIMEOUT)
        except NotFound:
            logger.debug(f"Container {container_id[:12]} already gone")
        except APIError as e:
            raise DaemonError(f"stopping container {container_id[:12]}", e) from e

    def remove(self, container_id: str):
        """Force-remove, running or not. Missing containers are fine."""
        try:
            self.client.api.remove_container(container_id, force=True)
        except NotFound:
            logger.debug(f"Container {container_id[:12]} already removed")
        except APIError as e:
            raise DaemonError(f"removing container {container_id[:12]}", e) from e

    def running_state(self, container_id: str) -> Optional[bool]:
        """Whether the container is running, or None if the daemon no longer knows it."""
        try:
            info = self.client.api.inspect_container(container_id)
        except NotFound:
            return None
        except APIError as e:
            if e.status_code == 404:
                return None
            raise DaemonError(f"inspecting container {container_id[:12]}", e) from e
        return bool(info.get("State", {}).get("Running"))

    def is_running(self, container_id: str) -> bool:
        return bool(self.running_state(container_id))

    def find_by_name(self, app_name: str) -> Optional[Container]:
        try:
            return self.client.containers.get(self.container_name(app_name))
        except NotFound:
            return None
        except APIError as e:
            raise DaemonError(f"looking up container for {app_name}", e) from e

    def list_managed(self) -> list[ManagedContainer]:
        """Every app container carrying the ownership label, proxy excluded."""
        owner = self.settings.OWNER_LABEL
        try:
            containers = self.client.containers.list(all=True, filters={"label": owner})
        except APIError as e:
            raise DaemonError("listing managed containers", e) from e

        managed = []
        for container in containers:
            app_name = container.labels.get(owner, "unknown")
            if app_name == PROXY_OWNER_VALUE:
                continue
            managed.append(ManagedContainer(container.id, app_name, container.status == "running"))
        return managed

    def count_running(self) -> int:
        return sum(1 for c in self.list_managed() if c.running)
