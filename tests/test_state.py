"""Tests for the persisted layout and atomic state writes."""
import pytest

from vuln_pkg.errors import StateError
from vuln_pkg.models import AllocatedPort, AppState, ManifestMeta, PackageType, Protocol, State
from vuln_pkg.state import StateManager, url_to_filename


def test_init_creates_layout(settings):
    manager = StateManager(settings.HOME_DIR)
    manager.init()

    assert manager.manifests_dir.is_dir()
    assert manager.images_dir.is_dir()
    assert manager.repos_dir.is_dir()
    assert manager.load_state() == State()


def test_state_round_trip(state_manager):
    state = State(network_id="net", proxy_container_id="proxy")
    state.apps["mongobleed"] = AppState(
        installed=True,
        running=True,
        container_id="abc123",
        allocated_ports=[AllocatedPort(container_port=27017, host_port=40000, protocol=Protocol.TCP, label="MongoDB")],
        image_source=PackageType.GIT,
        git_commit="deadbeef",
    )

    state_manager.save_state(state)

    assert state_manager.load_state() == state


def test_save_leaves_no_temp_file(state_manager):
    state_manager.save_state(State(network_id="x"))

    leftovers = [p.name for p in state_manager.base_dir.iterdir() if p.name.endswith(".tmp")]
    assert leftovers == []


def test_corrupt_state_is_reported(state_manager):
    state_manager.state_file.write_text("{not json")

    with pytest.raises(StateError):
        state_manager.load_state()


def test_accept_and_forget_manifest(state_manager):
    url = "https://vulns.io/apps.yml"

    assert not state_manager.is_manifest_accepted(url)
    state_manager.accept_manifest(url, ManifestMeta(author="lab"))

    assert state_manager.is_manifest_accepted(url)
    assert state_manager.load_accepted_manifests().manifests[url].author == "lab"
    assert state_manager.forget_manifest(url)
    assert not state_manager.forget_manifest(url)


def test_cache_manifest_uses_sanitized_name(state_manager):
    path = state_manager.cache_manifest("https://vulns.io/apps.yml", "apps: []")

    assert path.name == "https___vulns_io_apps_yml.yml"
    assert path.read_text() == "apps: []"


def test_url_to_filename():
    assert url_to_filename("https://vulns.io/apps.yml") == "https___vulns_io_apps_yml.yml"
