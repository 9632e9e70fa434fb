"""Shared fixtures for vuln-pkg tests."""
from unittest.mock import MagicMock

import pytest
from docker.errors import NotFound

from vuln_pkg.output import Output
from vuln_pkg.settings import AppSettings
from vuln_pkg.state import StateManager


class FakeNetwork:
    def __init__(self, name, id):
        self.name = name
        self.id = id


class FakeNetworks:
    """Minimal stand-in for client.networks that remembers what it created."""

    def __init__(self):
        self.networks = []
        self.create_calls = 0

    def list(self, names=None):
        return [n for n in self.networks if not names or n.name in names]

    def create(self, name, driver=None):
        self.create_calls += 1
        network = FakeNetwork(name, f"net-{self.create_calls}")
        self.networks.append(network)
        return network


@pytest.fixture
def settings(tmp_path):
    return AppSettings(HOME_DIR=tmp_path / "home")


@pytest.fixture
def state_manager(settings):
    manager = StateManager(settings.HOME_DIR)
    manager.init()
    return manager


@pytest.fixture
def output():
    return Output(json_mode=True)


@pytest.fixture
def docker_client():
    """MagicMock Docker client where unknown containers are 404s."""
    client = MagicMock()
    client.networks = FakeNetworks()
    client.api.inspect_container.side_effect = NotFound("No such container")
    client.containers.get.side_effect = NotFound("No such container")
    client.containers.list.return_value = []
    return client


def make_container(id, name, status="running", labels=None):
    container = MagicMock()
    container.id = id
    container.short_id = id[:10]
    container.name = name
    container.status = status
    container.labels = labels or {}
    return container
