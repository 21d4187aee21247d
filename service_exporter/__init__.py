"""
Expose a Kubernetes service to the internet through a port-forward and an ngrok tunnel.

Submodules:
    - resolver: service identifier parsing
    - ports: local port allocation
    - orchestrator: session setup and teardown
    - k8s / port_forward: cluster client (kubernetes API + kubectl)
    - tunnel: ngrok client (pyngrok)
    - mock: offline backends
    - cli: command-line entry point
"""

from service_exporter.errors import (
    AlreadyExposed,
    AlreadyForwarding,
    ConfigError,
    ForwardTimeout,
    MalformedIdentifier,
    NoPortAvailable,
    NoPortsDefined,
    NotForwarding,
    OperationCancelled,
    ServiceExporterError,
    SessionStateError,
    TargetsNotListed,
    TeardownError,
    UpstreamUnavailable,
)
from service_exporter.models import ForwardSession, ServicePort, ServiceRef, SessionState, TunnelSession
from service_exporter.orchestrator import Orchestrator
from service_exporter.ports import allocate_port
from service_exporter.resolver import resolve

__all__ = [
    # errors
    'AlreadyExposed',
    'AlreadyForwarding',
    'ConfigError',
    'ForwardTimeout',
    'MalformedIdentifier',
    'NoPortAvailable',
    'NoPortsDefined',
    'NotForwarding',
    'OperationCancelled',
    'ServiceExporterError',
    'SessionStateError',
    'TargetsNotListed',
    'TeardownError',
    'UpstreamUnavailable',
    # models
    'ForwardSession',
    'ServicePort',
    'ServiceRef',
    'SessionState',
    'TunnelSession',
    # core
    'Orchestrator',
    'allocate_port',
    'resolve',
]
