"""Tests for remote and local text sources."""
from unittest.mock import MagicMock, patch

import pytest
import requests

from vuln_pkg.errors import DockerfileFetchError, ManifestFetchError
from vuln_pkg.manifest import read_manifest_source
from vuln_pkg.remote import fetch_bytes, fetch_text


def response(content: bytes):
    resp = MagicMock()
    resp.content = content
    return resp


def test_fetch_text_decodes_utf8():
    with patch("vuln_pkg.remote.requests.get", return_value=response("FROM alpine # ü\n".encode())):
        assert fetch_text("https://example.test/Dockerfile") == "FROM alpine # ü\n"


def test_fetch_text_rejects_invalid_utf8():
    with patch("vuln_pkg.remote.requests.get", return_value=response(b"\xff\xfeFROM alpine")):
        with pytest.raises(DockerfileFetchError) as exc:
            fetch_text("https://example.test/Dockerfile", DockerfileFetchError)

    assert exc.value.url == "https://example.test/Dockerfile"
    assert "UTF-8" in str(exc.value)


def test_http_errors_use_the_given_error_type():
    resp = response(b"")
    resp.raise_for_status.side_effect = requests.HTTPError("404 Client Error")

    with patch("vuln_pkg.remote.requests.get", return_value=resp):
        with pytest.raises(ManifestFetchError):
            fetch_bytes("https://example.test/manifest.yml", ManifestFetchError)


def test_local_manifest_with_invalid_utf8(tmp_path):
    path = tmp_path / "manifest.yml"
    path.write_bytes(b"apps:\n  - name: \xff\n")

    with pytest.raises(ManifestFetchError):
        read_manifest_source(str(path))


def test_missing_local_manifest(tmp_path):
    with pytest.raises(ManifestFetchError):
        read_manifest_source(f"file://{tmp_path / 'missing.yml'}")
