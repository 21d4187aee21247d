"""Value types shared by the orchestrator and its collaborators."""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

DEFAULT_NAMESPACE = "default"


class SessionState(str, Enum):
    IDLE = "idle"
    FORWARDING = "forwarding"
    EXPOSED = "exposed"


@dataclass(frozen=True)
class ServiceRef:
    """A cluster service addressed by name and namespace."""

    name: str
    namespace: str = DEFAULT_NAMESPACE

    @property
    def label(self):
        """Human-facing label in the form produced by the service listing."""
        return f"{self.name} (ns: {self.namespace})"

    def __str__(self):
        return self.label


@dataclass(frozen=True)
class ServicePort:
    name: str
    port: int
    target_port: int
    protocol: str = "TCP"

    @classmethod
    def from_spec(cls, name, port, target_port, protocol):
        """
        Build a ServicePort from raw upstream values.

        Args:
            name: Port name (may be None or empty)
            port: Service port
            target_port: Target port as reported upstream; named ports, None and
                zero all fall back to ``port``
            protocol: Protocol string (defaults to TCP when missing)

        Returns:
            ServicePort
        """
        if not isinstance(target_port, int) or isinstance(target_port, bool) or target_port == 0:
            target_port = port
        return cls(name=name or "", port=int(port), target_port=int(target_port), protocol=protocol or "TCP")

    @property
    def display_name(self):
        return self.name or "unnamed"


@dataclass
class ForwardSession:
    """A live local-port-to-cluster link and the capability that stops it."""

    local_port: int
    service_ref: ServiceRef
    service_port: int
    cancel: Callable[[], None]


@dataclass
class TunnelSession:
    """A live public-endpoint-to-local-port link and the capability that closes it."""

    public_url: str
    local_port: int
    close: Callable[[], Optional[object]]
