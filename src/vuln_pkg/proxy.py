"""Shared Traefik reverse proxy bootstrap and teardown."""
from typing import Optional

import docker
from docker.errors import APIError

from .containers import PROXY_OWNER_VALUE, ContainerManager
from .errors import DaemonError
from .images import ImageManager
from .labels import SECURE_ENTRYPOINT, WEB_ENTRYPOINT
from .logger import get_logger
from .progress import Progress, ProgressStream
from .settings import AppSettings

logger = get_logger(__name__)

DOCKER_SOCKET = "/var/run/docker.sock"


class ProxyManager:
    def __init__(
        self,
        client: docker.DockerClient,
        containers: ContainerManager,
        images: ImageManager,
        settings: AppSettings,
    ):
        self.client = client
        self.containers = containers
        self.images = images
        self.settings = settings

    def find_running(self) -> Optional[str]:
        """
        Id of the running proxy container, if any.

        A proxy container that exists but is not running is removed so the
        next bootstrap starts from fresh configuration.
        """
        name = self.settings.PROXY_CONTAINER
        try:
            candidates = self.client.containers.list(all=True, filters={"name": name})
        except APIError as e:
            raise DaemonError("looking up the proxy container", e) from e

        for container in candidates:
            if container.name != name:
                continue
            if container.status == "running":
                return container.id
            logger.debug(f"Removing stale proxy container {container.short_id} ({container.status})")
            self.containers.remove(container.id)
            return None
        return None

    def command(self, https: bool) -> list[str]:
        cmd = [
            "--api.dashboard=true",
            "--api.insecure=true",
            "--providers.docker=true",
            "--providers.docker.exposedbydefault=false",
            f"--providers.docker.network={self.settings.NETWORK_NAME}",
            f"--entrypoints.{WEB_ENTRYPOINT}.address=:80",
        ]
        if https:
            cmd.append(f"--entrypoints.{SECURE_ENTRYPOINT}.address=:443")
        return cmd

    def labels(self, domain: str) -> dict[str, str]:
        return {
            self.settings.OWNER_LABEL: PROXY_OWNER_VALUE,
            "traefik.enable": "true",
            "traefik.http.routers.traefik-dashboard.rule": f"Host(`traefik.{domain}`)",
            "traefik.http.routers.traefik-dashboard.service": "api@internal",
        }

    def ensure(self, domain: str, https: bool = False) -> ProgressStream[str]:
        """Return the running proxy's id, creating and starting one when needed."""
        existing = self.find_running()
        if existing:
            return existing

        image = self.settings.PROXY_IMAGE
        if not self.images.exists(image):
            yield from self.images.pull(image)

        ports = {"80/tcp": 80}
        if https:
            ports["443/tcp"] = 443

        yield Progress("proxy", "Starting Traefik reverse proxy")
        try:
            container = self.client.containers.create(
                image,
                command=self.command(https),
                name=self.settings.PROXY_CONTAINER,
                labels=self.labels(domain),
                ports=ports,
                volumes={DOCKER_SOCKET: {"bind": DOCKER_SOCKET, "mode": "ro"}},
                network=self.settings.NETWORK_NAME,
                detach=True,
            )
        except APIError as e:
            raise DaemonError("creating the proxy container", e) from e

        self.containers.start(container.id)
        return container.id

    def teardown(self):
        container_id = self.find_running()
        if container_id:
            self.containers.stop(container_id)
            self.containers.remove(container_id)
