"""Command orchestration: ties manifests, images, containers, proxy and state together."""
from typing import Callable, Optional

import docker
import requests
from docker.errors import DockerException

from .containers import ContainerManager
from .errors import (
    AppAlreadyRunningError,
    AppNotFoundError,
    AppNotInstalledError,
    AppNotRebuildableError,
    AppNotRunningError,
    DaemonError,
)
from .git_repo import GitRepoCache
from .images import ImageManager
from .labels import build_routing_labels
from .logger import get_logger
from .manifest import ManifestLoader, parse_manifest, read_manifest_source
from .models import AllocatedPort, AppState, BaseApp, Manifest, PrebuiltApp
from .output import Output
from .ports import allocate_ports
from .progress import drain
from .proxy import ProxyManager
from .reconciler import StateReconciler, reconcile
from .settings import AppSettings
from .state import StateManager, utc_now

logger = get_logger(__name__)


def connect_docker(settings: AppSettings) -> docker.DockerClient:
    """Open a client and make sure the daemon answers."""
    client = (
        docker.DockerClient(base_url=settings.DOCKER_BASE_URL) if settings.DOCKER_BASE_URL else docker.from_env()
    )
    client.ping()
    return client


class Engine:
    def __init__(
        self,
        settings: AppSettings,
        output: Output,
        state: StateManager,
        manifests: ManifestLoader,
        client_factory: Optional[Callable[[], docker.DockerClient]] = None,
    ):
        self.settings = settings
        self.output = output
        self.state = state
        self.manifests = manifests
        self._client_factory = client_factory or (lambda: connect_docker(settings))
        self._client: Optional[docker.DockerClient] = None
        self._containers: Optional[ContainerManager] = None
        self._images: Optional[ImageManager] = None
        self._proxy: Optional[ProxyManager] = None

    # Docker wiring

    def _connect(self):
        if self._client is not None:
            return
        self._client = self._client_factory()
        self._containers = ContainerManager(self._client, self.settings)
        self._images = ImageManager(
            self._client, GitRepoCache(self.state.repos_dir), namespace=self.settings.IMAGE_NAMESPACE
        )
        self._proxy = ProxyManager(self._client, self._containers, self._images, self.settings)

    def _require_docker(self):
        try:
            self._connect()
        except (DockerException, requests.ConnectionError) as e:
            raise DaemonError("connecting to the Docker daemon", e) from e

    @property
    def containers(self) -> ContainerManager:
        self._require_docker()
        return self._containers

    @property
    def images(self) -> ImageManager:
        self._require_docker()
        return self._images

    @property
    def proxy(self) -> ProxyManager:
        self._require_docker()
        return self._proxy

    # Reconciliation

    def sync_state(self):
        """Correct persisted running flags before any command runs."""
        state = self.state.load_state()

        def build_reconciler() -> StateReconciler:
            self._connect()
            return StateReconciler(self._containers, self._proxy.find_running)

        if reconcile(state, build_reconciler):
            self.state.save_state(state)

    # Helpers

    def _find_app(self, name: str, manifest_url: str) -> BaseApp:
        manifest = self.manifests.load(manifest_url)
        app = manifest.find_app(name)
        if app is None:
            raise AppNotFoundError(name)
        return app

    def _acquire(self, app: BaseApp) -> Optional[str]:
        return drain(self.images.acquire(app), self.output.progress)

    def _record_build(self, app: BaseApp, git_commit: Optional[str]):
        state = self.state.load_state()
        app_state = state.apps.setdefault(app.name, AppState())
        app_state.installed = True
        app_state.image_source = app.package_type
        app_state.image_tag = app.effective_image(self.settings.IMAGE_NAMESPACE)
        app_state.git_commit = git_commit
        app_state.built_at = utc_now()
        self.state.save_state(state)

    # Commands

    def list_apps(self, manifest_url: str):
        manifest = self.manifests.load(manifest_url)
        self.output.list_apps(manifest.apps, self.state.load_state().apps, self.settings.IMAGE_NAMESPACE)

    def search(self, query: str, manifest_url: str):
        manifest = self.manifests.load(manifest_url)
        needle = query.lower()
        matches = [
            app
            for app in manifest.apps
            if needle in app.name.lower()
            or needle in app.description.lower()
            or any(needle in tag.lower() for tag in app.tags)
        ]
        self.output.search_results(query, matches, self.state.load_state().apps, self.settings.IMAGE_NAMESPACE)

    def install(self, name: str, manifest_url: str):
        app = self._find_app(name, manifest_url)
        self._install(app)

    def _install(self, app: BaseApp):
        image = app.effective_image(self.settings.IMAGE_NAMESPACE)
        self.output.info(f"Installing {app.name} ({app.type})")
        git_commit = self._acquire(app)
        self._record_build(app, git_commit)
        self.output.app_installed(app, image)

    def rebuild(self, name: str, manifest_url: str):
        app = self._find_app(name, manifest_url)
        if isinstance(app, PrebuiltApp):
            raise AppNotRebuildableError(name)

        self.output.info(f"Rebuilding {name}")
        git_commit = self._acquire(app)
        self._record_build(app, git_commit)
        self.output.app_rebuilt(name, app.effective_image(self.settings.IMAGE_NAMESPACE), git_commit)

    def run(self, name: str, manifest_url: str, domain: str, https: bool):
        app = self._find_app(name, manifest_url)
        state = self.state.load_state()

        current = state.apps.get(name)
        if current and current.running and current.container_id:
            if self.containers.is_running(current.container_id):
                raise AppAlreadyRunningError(name)

        image = app.effective_image(self.settings.IMAGE_NAMESPACE)
        if not self.images.exists(image):
            self._install(app)
            state = self.state.load_state()

        self.output.info(f"Ensuring {self.settings.NETWORK_NAME} network exists")
        state.network_id = self.containers.ensure_network()

        proxy_id = drain(self.proxy.ensure(domain, https), self.output.progress)
        if proxy_id != state.proxy_container_id:
            self.output.success(f"Traefik running (dashboard: http://traefik.{domain})")
        state.proxy_container_id = proxy_id

        app_state = state.apps.setdefault(name, AppState())
        stale = self.containers.find_by_name(name)
        if stale is not None:
            logger.debug(f"Removing leftover container {stale.short_id} for {name}")
            self.containers.remove(stale.id)
        app_state.clear_container()

        direct_ports = app.direct_ports()
        host_ports = allocate_ports(
            state.used_host_ports(exclude=name),
            len(direct_ports),
            self.settings.PORT_RANGE_START,
            self.settings.PORT_RANGE_END,
        )
        allocations = [
            AllocatedPort(container_port=p.port, host_port=host, protocol=p.protocol, label=p.label)
            for p, host in zip(direct_ports, host_ports)
        ]
        routing = build_routing_labels(name, app.ports, domain, https)

        self.output.info(f"Creating container for {name}")
        container_id = self.containers.create_container(name, image, routing.labels, app.env, allocations)
        self.output.info("Starting container")
        self.containers.start(container_id)

        app_state.installed = True
        app_state.running = True
        app_state.container_id = container_id
        app_state.hostnames = routing.hostnames
        app_state.allocated_ports = allocations
        self.state.save_state(state)

        self.output.app_running(app, app_state, https, self.settings.RESOLVE_ADDRESS)

    def stop(self, name: str):
        state = self.state.load_state()
        app_state = state.apps.get(name)
        if app_state is None:
            raise AppNotInstalledError(name)
        if not app_state.running or not app_state.container_id:
            raise AppNotRunningError(name)

        self.output.info(f"Stopping container {app_state.container_id[:12]}")
        if self.containers.is_running(app_state.container_id):
            self.containers.stop(app_state.container_id)

        app_state.running = False
        self.state.save_state(state)
        self.output.app_stopped(name)

    def remove(self, name: str, purge: bool = False):
        state = self.state.load_state()
        app_state = state.apps.get(name)
        if app_state is None:
            raise AppNotInstalledError(name)

        if app_state.container_id:
            container_id = app_state.container_id
            self.output.info(f"Stopping container {container_id[:12]}")
            if self.containers.is_running(container_id):
                self.containers.stop(container_id)
            self.output.info("Removing container")
            self.containers.remove(container_id)

        if purge:
            self.output.warning("Image removal not implemented yet with --purge")

        del state.apps[name]

        if self.containers.count_running() == 0:
            self.output.info("No more apps running, stopping Traefik")
            self.proxy.teardown()
            state.proxy_container_id = None

        self.state.save_state(state)
        self.output.app_removed(name)

    def status(self):
        state = self.state.load_state()
        containers = None
        if any(app_state.container_id for app_state in state.apps.values()):
            try:
                containers = self.containers
            except DaemonError as e:
                logger.debug(f"Status without liveness checks: {e}")
                self.output.warning("Docker daemon unreachable, containers shown as stopped")

        rows = []
        for name, app_state in sorted(state.apps.items()):
            running = (
                containers is not None
                and bool(app_state.container_id)
                and containers.is_running(app_state.container_id)
            )
            rows.append(
                {
                    "name": name,
                    "running": running,
                    "container_id": app_state.container_id,
                    "hostnames": app_state.hostnames,
                    "ports": [p.model_dump(mode="json") for p in app_state.allocated_ports],
                    "image": app_state.image_tag,
                    "source": app_state.image_source.value,
                    "git_commit": app_state.git_commit,
                    "built_at": app_state.built_at,
                }
            )
        self.output.status(rows, self.settings.RESOLVE_ADDRESS)

    # Manifest management

    def manifest_show(self, manifest_url: str):
        self.output.info(f"Fetching manifest from {manifest_url}")
        text = read_manifest_source(manifest_url)
        manifest: Manifest = parse_manifest(text)
        accepted = self.state.is_manifest_accepted(manifest_url)

        if self.output.json_mode:
            self.output.json(
                {"url": manifest_url, "accepted": accepted, "manifest": manifest.model_dump(mode="json")}
            )
            return

        self.output.manifest_info(manifest_url, manifest)
        self.output.show_manifest_yaml(text)
        if accepted:
            self.output.success("This manifest has been previously accepted")
        else:
            self.output.warning("This manifest has NOT been accepted yet")

    def manifest_forget(self, url: str):
        if self.state.forget_manifest(url):
            self.output.manifest_forgotten(url)
        else:
            self.output.manifest_not_accepted(url)

    def manifest_accepted(self):
        self.output.list_accepted_manifests(self.state.load_accepted_manifests())
