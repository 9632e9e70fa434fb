"""Correct persisted run flags against what the daemon actually reports."""
from typing import Callable, Optional

import requests
from docker.errors import DockerException

from .containers import ContainerManager
from .logger import get_logger
from .models import AppState, State

logger = get_logger(__name__)


class StateReconciler:
    def __init__(self, containers: ContainerManager, proxy_running: Callable[[], Optional[str]]):
        self.containers = containers
        self.proxy_running = proxy_running

    def measure_actual_state(self, app_state: AppState) -> Optional[bool]:
        """True if running, False if stopped, None if the container is gone."""
        if not app_state.container_id:
            return None
        return self.containers.running_state(app_state.container_id)

    def calculate_deviation(self, name: str, app_state: AppState, actual: Optional[bool]) -> Optional[str]:
        if not app_state.running or actual:
            return None
        if not app_state.container_id:
            return f"{name}: flagged running without a container id"
        if actual is None:
            return f"{name}: container {app_state.container_id[:12]} is gone"
        return f"{name}: container {app_state.container_id[:12]} is not running"

    def converge(self, state: State) -> bool:
        """
        Clear stale running flags and a dead proxy id. Returns True if anything changed.

        A container the daemon no longer knows also drops its id, hostnames and ports.
        """
        changed = False

        for name, app_state in state.apps.items():
            if not app_state.running:
                continue
            actual = self.measure_actual_state(app_state)
            deviation = self.calculate_deviation(name, app_state, actual)
            if deviation:
                logger.debug(f"Drift: {deviation}")
                if actual is None:
                    app_state.clear_container()
                else:
                    app_state.running = False
                changed = True

        if state.proxy_container_id and not self.proxy_running():
            logger.debug("Drift: proxy container is gone")
            state.proxy_container_id = None
            changed = True

        return changed


def reconcile(state: State, connect: Callable[[], StateReconciler]) -> bool:
    """
    Run reconciliation unless the daemon is unreachable.

    Connection failures skip the pass so offline commands still work.
    """
    try:
        reconciler = connect()
        return reconciler.converge(state)
    except (DockerException, requests.ConnectionError) as e:
        logger.debug(f"Docker daemon unavailable, skipping state sync: {e}")
        return False
