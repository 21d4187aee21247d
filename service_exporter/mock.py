"""
Offline backends for running the exporter without a cluster or ngrok account.

Both classes follow the same interface as KubernetesClient and NgrokClient and
behave deterministically.
"""
import logging
import zlib

from service_exporter.errors import UpstreamUnavailable
from service_exporter.models import ServicePort
from service_exporter.orchestrator import check_cancelled

logger = logging.getLogger(__name__)

MOCK_SERVICES = [
    ("web-frontend", "default"),
    ("api-gateway", "default"),
    ("user-service", "default"),
    ("database-service", "default"),
    ("cache-service", "default"),
    ("notification-service", "kube-system"),
]

MOCK_PORTS = [
    ServicePort(name="http", port=80, target_port=8080, protocol="TCP"),
    ServicePort(name="https", port=443, target_port=8443, protocol="TCP"),
]


class MockClusterClient:
    """Cluster client serving a fixed service catalogue."""

    def __init__(self, services=None, ports=None):
        self.services = list(MOCK_SERVICES if services is None else services)
        self.ports = list(MOCK_PORTS if ports is None else ports)
        self.active_forwards = {}

    def list_services(self, cancel=None):
        check_cancelled(cancel, "service listing")
        return [f"{name} (ns: {namespace})" for name, namespace in self.services]

    def list_ports(self, ref, cancel=None):
        check_cancelled(cancel, "port listing")
        self._require_service(ref)
        return list(self.ports)

    def start_forward(self, ref, service_port, local_port, cancel=None, timeout=30.0):
        check_cancelled(cancel, "port forwarding")
        self._require_service(ref)
        if service_port not in {p.port for p in self.ports}:
            raise UpstreamUnavailable(f"port {service_port} not found in service {ref.label}")

        logger.info(f"🔄 Mock port forwarding for {ref.label} on port {local_port} -> {service_port}")
        self.active_forwards[local_port] = (ref, service_port)

        def stop():
            self.active_forwards.pop(local_port, None)

        return stop

    def _require_service(self, ref):
        if (ref.name, ref.namespace) not in self.services:
            raise UpstreamUnavailable(f"service {ref.name} not found in namespace {ref.namespace}")


class MockTunnelClient:
    """Tunnel client handing out stable fake ngrok URLs."""

    def __init__(self):
        self.open_tunnels = set()

    def start_tunnel(self, local_port, cancel=None):
        check_cancelled(cancel, "tunnel creation")
        public_url = f"https://{zlib.crc32(str(local_port).encode()):08x}.ngrok.io"
        logger.info(f"🌐 Mock tunnel for port {local_port}: {public_url}")
        self.open_tunnels.add(public_url)

        def close():
            self.open_tunnels.discard(public_url)

        return public_url, close

    def shutdown(self):
        self.open_tunnels.clear()
