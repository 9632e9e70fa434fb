"""Reverse-proxy (Traefik) routing labels derived from an app's HTTP ports."""
from dataclasses import dataclass, field

from .models import PortConfig

WEB_ENTRYPOINT = "web"
SECURE_ENTRYPOINT = "websecure"


@dataclass
class RoutingConfig:
    labels: dict[str, str] = field(default_factory=dict)
    hostnames: list[str] = field(default_factory=list)


def router_name(app_name: str, port: int, index: int) -> str:
    """First HTTP port routes on the bare app name, later ones on <name>-<port>."""
    return app_name if index == 0 else f"{app_name}-{port}"


def build_routing_labels(app_name: str, ports: list[PortConfig], domain: str, https: bool = False) -> RoutingConfig:
    """
    Build router/service labels and hostnames for every HTTP port.

    Non-HTTP ports are skipped entirely. Keys and values only depend on the
    inputs so the proxy sees identical labels for identical apps.
    """
    routing = RoutingConfig()
    http_ports = [p for p in ports if p.is_http]

    for index, port_config in enumerate(http_ports):
        name = router_name(app_name, port_config.port, index)
        hostname = f"{name}.{domain}"
        rule = f"Host(`{hostname}`)"
        routing.hostnames.append(hostname)

        routing.labels[f"traefik.http.routers.{name}.rule"] = rule
        routing.labels[f"traefik.http.routers.{name}.entrypoints"] = WEB_ENTRYPOINT
        routing.labels[f"traefik.http.routers.{name}.service"] = name
        routing.labels[f"traefik.http.services.{name}.loadbalancer.server.port"] = str(port_config.port)

        if https:
            secure = f"{name}-secure"
            routing.labels[f"traefik.http.routers.{secure}.rule"] = rule
            routing.labels[f"traefik.http.routers.{secure}.entrypoints"] = SECURE_ENTRYPOINT
            routing.labels[f"traefik.http.routers.{secure}.tls"] = "true"
            routing.labels[f"traefik.http.routers.{secure}.service"] = name

    return routing
