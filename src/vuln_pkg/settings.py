from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application configuration loaded from Environment Variables or .env file.
    CLI flags override individual fields for a single invocation.
    """

    HOME_DIR: Path = Path.home() / ".vuln-pkg"
    DOCKER_BASE_URL: str | None = None  # Optional: Connect to remote docker

    MANIFEST_URL: str = "https://raw.githubusercontent.com/neutrno2211/vuln-pkg/main/manifest.yml"
    RESOLVE_ADDRESS: str = "127.0.0.1"
    DOMAIN: str | None = None  # Falls back to <RESOLVE_ADDRESS>.sslip.io
    HTTPS: bool = False

    NETWORK_NAME: str = "vuln-pkg"
    OWNER_LABEL: str = "vuln-pkg"
    IMAGE_NAMESPACE: str = "vuln-pkg"
    CONTAINER_PREFIX: str = "vuln-pkg-"

    PROXY_IMAGE: str = "traefik:v3.0"
    PROXY_CONTAINER: str = "vuln-pkg-traefik"

    PORT_RANGE_START: int = 40000
    PORT_RANGE_END: int = 49999
    STOP_TIMEOUT: int = 10

    model_config = SettingsConfigDict(env_prefix="VULN_PKG_")

    def resolve_domain(self) -> str:
        """Configured domain, or a sslip.io wildcard domain for the resolve address."""
        return self.DOMAIN or f"{self.RESOLVE_ADDRESS}.sslip.io"


@lru_cache
def get_settings() -> AppSettings:
    """
    Process-wide AppSettings, read from the environment once.
    """
    return AppSettings()
