from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_IMAGE_NAMESPACE = "vuln-pkg"


class Protocol(str, Enum):
    HTTP = "http"  # routed through the reverse proxy
    TCP = "tcp"
    UDP = "udp"


class PackageType(str, Enum):
    """How the image for an application is obtained."""

    PREBUILT = "prebuilt"
    DOCKERFILE = "dockerfile"
    GIT = "git"


class PortConfig(BaseModel):
    port: int = Field(..., ge=1, le=65535, description="Container port")
    protocol: Protocol = Field(Protocol.HTTP, description="http ports are proxied, tcp/udp are published")
    label: Optional[str] = Field(None, description="Human readable name for the port")

    @property
    def is_http(self) -> bool:
        return self.protocol == Protocol.HTTP

    @property
    def needs_direct_mapping(self) -> bool:
        return self.protocol in (Protocol.TCP, Protocol.UDP)


class BaseApp(BaseModel):
    name: str = Field(..., description="Unique application name")
    version: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    env: list[str] = Field(default_factory=list, description="KEY=VALUE pairs")
    ports: list[PortConfig] = Field(default_factory=list)

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, v):
        # YAML reads an unquoted 1.0 as a float
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @field_validator("ports", mode="before")
    @classmethod
    def expand_bare_ports(cls, v):
        if not isinstance(v, list):
            return v
        return [{"port": p} if isinstance(p, int) else p for p in v]

    def effective_image(self, namespace: str = DEFAULT_IMAGE_NAMESPACE) -> str:
        """Image reference used to run the app; built apps get <namespace>/<name>:<version>."""
        return f"{namespace}/{self.name}:{self.version}"

    @property
    def package_type(self) -> PackageType:
        return PackageType(self.type)

    def http_ports(self) -> list[PortConfig]:
        return [p for p in self.ports if p.is_http]

    def direct_ports(self) -> list[PortConfig]:
        return [p for p in self.ports if p.needs_direct_mapping]


class PrebuiltApp(BaseApp):
    type: Literal["prebuilt"] = "prebuilt"
    image: str = Field(..., description="Registry image reference")

    def effective_image(self, namespace: str = DEFAULT_IMAGE_NAMESPACE) -> str:
        return self.image


class DockerfileApp(BaseApp):
    type: Literal["dockerfile"] = "dockerfile"
    dockerfile: Optional[str] = Field(None, description="Inline Dockerfile text")
    dockerfile_url: Optional[str] = None
    context_url: Optional[str] = Field(None, description="Tarball merged under the fetched Dockerfile")

    @model_validator(mode="after")
    def require_source(self):
        if self.dockerfile is None and self.dockerfile_url is None:
            raise ValueError(f"Dockerfile app '{self.name}' requires 'dockerfile' or 'dockerfile_url' field")
        return self


class GitApp(BaseApp):
    type: Literal["git"] = "git"
    repo: str = Field(..., description="Repository URL")
    ref: Optional[str] = Field(None, description="Branch, tag or commit")
    dockerfile_path: Optional[str] = Field(None, description="Dockerfile path inside the repository")


App = Annotated[Union[PrebuiltApp, DockerfileApp, GitApp], Field(discriminator="type")]

_REQUIRED_FIELDS = {
    PackageType.PREBUILT.value: ("Prebuilt", "image"),
    PackageType.GIT.value: ("Git", "repo"),
}


class ManifestMeta(BaseModel):
    author: Optional[str] = None
    email: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None


class Manifest(BaseModel):
    meta: ManifestMeta = Field(default_factory=ManifestMeta)
    apps: list[App]
    signature: Optional[str] = None

    @field_validator("apps", mode="before")
    @classmethod
    def tag_app_kinds(cls, v):
        """Default the kind to prebuilt and name the missing field per kind."""
        if not isinstance(v, list):
            return v
        tagged = []
        for entry in v:
            if isinstance(entry, dict):
                entry = dict(entry)
                kind = str(entry.get("type") or PackageType.PREBUILT.value).lower()
                entry["type"] = kind
                if kind in _REQUIRED_FIELDS:
                    label, field = _REQUIRED_FIELDS[kind]
                    if not entry.get(field):
                        raise ValueError(f"{label} app '{entry.get('name')}' requires '{field}' field")
            tagged.append(entry)
        return tagged

    def find_app(self, name: str) -> Optional[BaseApp]:
        return next((app for app in self.apps if app.name == name), None)


class AllocatedPort(BaseModel):
    container_port: int
    host_port: int
    protocol: Protocol
    label: Optional[str] = None


class AppState(BaseModel):
    installed: bool = False
    running: bool = False
    container_id: Optional[str] = None
    hostnames: list[str] = Field(default_factory=list)
    allocated_ports: list[AllocatedPort] = Field(default_factory=list)

    image_source: PackageType = PackageType.PREBUILT
    image_tag: Optional[str] = None
    git_commit: Optional[str] = None
    built_at: Optional[str] = Field(None, description="UTC ISO-8601 timestamp of the last build")

    def clear_container(self):
        """Forget everything tied to a container that no longer exists."""
        self.container_id = None
        self.running = False
        self.hostnames = []
        self.allocated_ports = []


class State(BaseModel):
    apps: dict[str, AppState] = Field(default_factory=dict)
    network_id: Optional[str] = None
    proxy_container_id: Optional[str] = None

    def used_host_ports(self, exclude: Optional[str] = None) -> set[int]:
        """Host ports held by every instance except `exclude`."""
        return {
            allocation.host_port
            for name, app_state in self.apps.items()
            if name != exclude
            for allocation in app_state.allocated_ports
        }


class AcceptedManifest(BaseModel):
    accepted_at: str
    author: Optional[str] = None
    email: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None


class AcceptedManifests(BaseModel):
    manifests: dict[str, AcceptedManifest] = Field(default_factory=dict)
