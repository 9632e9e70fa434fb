"""On-disk layout and JSON state persistence.

The state file is read whole, mutated in memory and written whole. There is
no cross-process lock: two invocations against the same base directory at
once can lose updates.
"""
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

from .errors import StateError
from .logger import get_logger
from .models import AcceptedManifest, AcceptedManifests, ManifestMeta, State

logger = get_logger(__name__)

MANIFESTS_DIR = "manifests"
IMAGES_DIR = "images"
REPOS_DIR = "repos"
STATE_FILE = "state.json"
ACCEPTED_MANIFESTS_FILE = "accepted-manifests.json"


def url_to_filename(url: str) -> str:
    for char in "/:.":
        url = url.replace(char, "_")
    return url + ".yml"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StateManager:
    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    @property
    def manifests_dir(self) -> Path:
        return self.base_dir / MANIFESTS_DIR

    @property
    def images_dir(self) -> Path:
        return self.base_dir / IMAGES_DIR

    @property
    def repos_dir(self) -> Path:
        return self.base_dir / REPOS_DIR

    @property
    def state_file(self) -> Path:
        return self.base_dir / STATE_FILE

    @property
    def accepted_manifests_file(self) -> Path:
        return self.base_dir / ACCEPTED_MANIFESTS_FILE

    def init(self):
        """Create the directory layout and an empty state document if missing."""
        try:
            for directory in (self.manifests_dir, self.images_dir, self.repos_dir):
                directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StateError(f"Could not create {self.base_dir}: {e}") from e

        if not self.state_file.exists():
            self.save_state(State())

    def load_state(self) -> State:
        return self._load(self.state_file, State)

    def save_state(self, state: State):
        self._write_atomic(self.state_file, state.model_dump_json(indent=2))

    def load_accepted_manifests(self) -> AcceptedManifests:
        return self._load(self.accepted_manifests_file, AcceptedManifests)

    def is_manifest_accepted(self, url: str) -> bool:
        return url in self.load_accepted_manifests().manifests

    def accept_manifest(self, url: str, meta: ManifestMeta):
        accepted = self.load_accepted_manifests()
        accepted.manifests[url] = AcceptedManifest(accepted_at=utc_now(), **meta.model_dump())
        self._write_atomic(self.accepted_manifests_file, accepted.model_dump_json(indent=2))

    def forget_manifest(self, url: str) -> bool:
        accepted = self.load_accepted_manifests()
        if accepted.manifests.pop(url, None) is None:
            return False
        self._write_atomic(self.accepted_manifests_file, accepted.model_dump_json(indent=2))
        return True

    def cache_manifest(self, url: str, content: str) -> Path:
        path = self.manifests_dir / url_to_filename(url)
        self._write_atomic(path, content)
        return path

    def _load(self, path: Path, model: type[BaseModel]):
        if not path.exists():
            return model()
        try:
            return model.model_validate_json(path.read_text())
        except (OSError, ValidationError) as e:
            raise StateError(f"Failed to parse {path.name}: {e}") from e

    def _write_atomic(self, path: Path, content: str):
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(content)
            os.replace(tmp, path)
        except OSError as e:
            raise StateError(f"Failed to write {path}: {e}") from e
        logger.debug(f"Saved {path}")
