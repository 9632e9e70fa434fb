"""Tests for app listings in both output modes."""
import io
import json

from rich.console import Console

from vuln_pkg.manifest import parse_manifest
from vuln_pkg.output import Output

MANIFEST = """
apps:
  - name: dnsvuln
    version: "1.0"
    type: dockerfile
    dockerfile: |
      FROM alpine
    ports:
      - port: 53
        protocol: udp
"""


def make_output(json_mode):
    buf = io.StringIO()
    return Output(json_mode=json_mode, console=Console(file=buf, width=200)), buf


def test_json_listing_uses_configured_namespace():
    output, buf = make_output(json_mode=True)

    output.list_apps(parse_manifest(MANIFEST).apps, {}, namespace="lab")

    listed = json.loads(buf.getvalue())
    assert listed[0]["image"] == "lab/dnsvuln:1.0"


def test_console_listing_uses_configured_namespace():
    output, buf = make_output(json_mode=False)

    output.search_results("dns", parse_manifest(MANIFEST).apps, {}, namespace="lab")

    assert "lab/dnsvuln:1.0" in buf.getvalue()
    assert "vuln-pkg/dnsvuln" not in buf.getvalue()
