"""Offline backend tests"""
import re

import pytest

from service_exporter.errors import UpstreamUnavailable
from service_exporter.mock import MockClusterClient, MockTunnelClient
from service_exporter.models import ServiceRef
from service_exporter.orchestrator import Orchestrator
from service_exporter.resolver import resolve


def test_catalogue_resolves():
    services = MockClusterClient().list_services()
    assert len(services) == 6
    assert services[-1] == "notification-service (ns: kube-system)"
    assert [resolve(s).name for s in services][:2] == ["web-frontend", "api-gateway"]


def test_ports():
    ports = MockClusterClient().list_ports(ServiceRef("web-frontend"))
    assert [(p.display_name, p.port, p.target_port) for p in ports] == [
        ("http", 80, 8080),
        ("https", 443, 8443),
    ]


def test_unknown_service():
    with pytest.raises(UpstreamUnavailable, match="not found"):
        MockClusterClient().list_ports(ServiceRef("web-frontend", "kube-system"))


def test_forward_tracks_and_stops():
    cluster = MockClusterClient()
    ref = ServiceRef("api-gateway")
    stop = cluster.start_forward(ref, 443, 8005)
    assert cluster.active_forwards == {8005: (ref, 443)}
    stop()
    stop()
    assert cluster.active_forwards == {}


def test_forward_unknown_port():
    with pytest.raises(UpstreamUnavailable, match="port 8080 not found"):
        MockClusterClient().start_forward(ServiceRef("api-gateway"), 8080, 8005)


def test_tunnel_url_is_stable_per_port():
    tunnel = MockTunnelClient()
    url_a, close_a = tunnel.start_tunnel(8005)
    url_b, _ = MockTunnelClient().start_tunnel(8005)
    url_c, _ = tunnel.start_tunnel(8006)

    assert url_a == url_b != url_c
    assert re.fullmatch(r"https://[0-9a-f]{8}\.ngrok\.io", url_a)
    close_a()
    assert tunnel.open_tunnels == {url_c}
    tunnel.shutdown()
    assert tunnel.open_tunnels == set()


def test_mock_backends_drive_full_session(fixed_port):
    cluster, tunnel = MockClusterClient(), MockTunnelClient()
    with Orchestrator(cluster, tunnel) as orch:
        ref = resolve(orch.get_targets()[0])
        local_port = orch.forward(ref, orch.get_ports(ref)[0].port)
        url = orch.expose(local_port)
        assert url in tunnel.open_tunnels
        assert local_port in cluster.active_forwards

    assert tunnel.open_tunnels == set()
    assert cluster.active_forwards == {}
