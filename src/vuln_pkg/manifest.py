"""Manifest loading, validation and the accept-before-use workflow."""
from pathlib import Path
from typing import Callable

import yaml
from pydantic import ValidationError

from .errors import ManifestFetchError, ManifestParseError, ManifestRejectedError, ManifestValidationError
from .models import Manifest
from .output import Output
from .remote import fetch_text
from .state import StateManager


def parse_manifest(text: str) -> Manifest:
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ManifestParseError(str(e)) from e

    if not isinstance(raw, dict):
        raise ManifestParseError("expected a mapping with an 'apps' list")

    try:
        return Manifest.model_validate(raw)
    except ValidationError as e:
        raise ManifestValidationError(_describe(e)) from e


def _describe(error: ValidationError) -> str:
    messages = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"])
        message = detail["msg"].removeprefix("Value error, ")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages)


def read_manifest_source(url: str) -> str:
    """Read a manifest from http(s), file:// or a local path."""
    if url.startswith("file://"):
        return _read_file(url, Path(url.removeprefix("file://")))
    if url.startswith(("/", ".")):
        return _read_file(url, Path(url))
    return fetch_text(url, ManifestFetchError)


def _read_file(url: str, path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestFetchError(url, e) from e


def load_manifest(url: str) -> Manifest:
    return parse_manifest(read_manifest_source(url))


class ManifestLoader:
    """Fetch a manifest and require the user to trust it once per URL."""

    def __init__(
        self,
        state: StateManager,
        output: Output,
        auto_accept: bool = False,
        confirm: Callable[[str], bool] = lambda prompt: False,
    ):
        self.state = state
        self.output = output
        self.auto_accept = auto_accept
        self.confirm = confirm

    def load(self, url: str) -> Manifest:
        self.output.info(f"Fetching manifest from {url}")
        text = read_manifest_source(url)
        manifest = parse_manifest(text)

        if not self.state.is_manifest_accepted(url):
            self.output.manifest_info(url, manifest)
            if self.auto_accept:
                self.output.info("Auto-accepting manifest (--yes)")
            elif not self.confirm("Accept this manifest?"):
                raise ManifestRejectedError()
            self.state.accept_manifest(url, manifest.meta)
            self.output.success("Manifest accepted and remembered for future use")

        self.state.cache_manifest(url, text)
        self.output.success(f"Loaded {len(manifest.apps)} applications")
        return manifest
