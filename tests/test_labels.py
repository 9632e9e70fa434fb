"""Tests for Traefik routing labels."""
from vuln_pkg.labels import build_routing_labels
from vuln_pkg.models import PortConfig, Protocol


def test_tcp_only_app_gets_no_routes():
    routing = build_routing_labels("mongobleed", [PortConfig(port=27017, protocol=Protocol.TCP)], "lab.test")

    assert routing.labels == {}
    assert routing.hostnames == []


def test_hostnames_for_multiple_http_ports():
    ports = [PortConfig(port=80), PortConfig(port=8081)]

    routing = build_routing_labels("dvwa", ports, "lab.test")

    assert routing.hostnames == ["dvwa.lab.test", "dvwa-8081.lab.test"]


def test_http_router_labels():
    routing = build_routing_labels("dvwa", [PortConfig(port=80)], "lab.test")

    assert routing.labels == {
        "traefik.http.routers.dvwa.rule": "Host(`dvwa.lab.test`)",
        "traefik.http.routers.dvwa.entrypoints": "web",
        "traefik.http.routers.dvwa.service": "dvwa",
        "traefik.http.services.dvwa.loadbalancer.server.port": "80",
    }


def test_https_adds_secure_router_sharing_service():
    routing = build_routing_labels("dvwa", [PortConfig(port=80), PortConfig(port=8081)], "lab.test", https=True)

    assert routing.labels["traefik.http.routers.dvwa-secure.entrypoints"] == "websecure"
    assert routing.labels["traefik.http.routers.dvwa-secure.tls"] == "true"
    assert routing.labels["traefik.http.routers.dvwa-secure.service"] == "dvwa"
    assert routing.labels["traefik.http.routers.dvwa-8081-secure.rule"] == "Host(`dvwa-8081.lab.test`)"
    assert routing.labels["traefik.http.routers.dvwa-8081-secure.service"] == "dvwa-8081"


def test_mixed_protocols_only_route_http():
    ports = [
        PortConfig(port=80, label="Web Admin"),
        PortConfig(port=27017, protocol=Protocol.TCP),
        PortConfig(port=53, protocol=Protocol.UDP),
    ]

    routing = build_routing_labels("multi", ports, "lab.test")

    assert routing.hostnames == ["multi.lab.test"]
    assert [v for k, v in routing.labels.items() if k.endswith("server.port")] == ["80"]


def test_labels_are_reproducible():
    ports = [PortConfig(port=80), PortConfig(port=3000)]

    first = build_routing_labels("juice", ports, "127.0.0.1.sslip.io", https=True)
    second = build_routing_labels("juice", ports, "127.0.0.1.sslip.io", https=True)

    assert list(first.labels.items()) == list(second.labels.items())
    assert first.hostnames == second.hostnames
