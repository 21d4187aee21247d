"""
Session orchestrator.

Chains a local port-forward into the cluster and a public tunnel onto that
local port, and owns both live sessions until teardown.

Setup order is forward then tunnel; teardown order is tunnel then forward so a
public endpoint never outlives the forward it points at.

All operations run under one lock. Teardown may be requested from a signal
path while setup is still in flight: the controller sets the cancellation
token first, the in-flight step aborts, and teardown then runs to completion.
"""
import logging
import threading
import time

from service_exporter.errors import (
    AlreadyExposed,
    AlreadyForwarding,
    ForwardTimeout,
    NoPortsDefined,
    NotForwarding,
    OperationCancelled,
    ServiceExporterError,
    TargetsNotListed,
    TeardownError,
    UpstreamUnavailable,
)
from service_exporter.models import ForwardSession, SessionState, TunnelSession
from service_exporter.ports import DEFAULT_PORT_RANGE, allocate_port

logger = logging.getLogger(__name__)

DEFAULT_READY_TIMEOUT = 30.0


def check_cancelled(cancel, what):
    """Raise OperationCancelled if the cancellation token is set."""
    if cancel is not None and cancel.is_set():
        raise OperationCancelled(f"{what} cancelled")


def _call_upstream(what, func, *args, **kwargs):
    # Our own errors pass through; anything else a collaborator raises is upstream failure.
    try:
        return func(*args, **kwargs)
    except ServiceExporterError:
        raise
    except Exception as e:
        raise UpstreamUnavailable(f"{what} failed: {e}") from e


class Orchestrator:
    """
    Owns the forward and tunnel sessions for one exported service.

    Args:
        cluster: Cluster client (list_services, list_ports, start_forward) or None
        tunnel: Tunnel client (start_tunnel) or None
        port_range: Inclusive (start, end) range for local port allocation
        ready_timeout: Readiness window in seconds for port forwarding
    """

    def __init__(self, cluster, tunnel, port_range=DEFAULT_PORT_RANGE, ready_timeout=DEFAULT_READY_TIMEOUT):
        self.cluster = cluster
        self.tunnel = tunnel
        self.port_range = port_range
        self.ready_timeout = ready_timeout
        self._lock = threading.Lock()
        self._targets_listed = False
        self._forward = None
        self._tunnel = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.teardown()

    @property
    def state(self):
        with self._lock:
            if self._tunnel is not None:
                return SessionState.EXPOSED
            if self._forward is not None:
                return SessionState.FORWARDING
            return SessionState.IDLE

    @property
    def targets_listed(self):
        """True once get_targets has succeeded since the last teardown."""
        with self._lock:
            return self._targets_listed

    @property
    def forward_session(self):
        with self._lock:
            return self._forward

    @property
    def tunnel_session(self):
        with self._lock:
            return self._tunnel

    def get_targets(self, cancel=None):
        """
        List exportable services.

        Returns:
            list: Service identifiers as rendered by the cluster client

        Raises:
            UpstreamUnavailable: If no cluster client is configured or listing fails
        """
        with self._lock:
            cluster = self._require_cluster()
            check_cancelled(cancel, "service listing")
            services = _call_upstream("listing services", cluster.list_services, cancel=cancel)
            self._targets_listed = True
        logger.info(f"✓ Found {len(services)} service(s)")
        return list(services)

    def get_ports(self, ref, cancel=None):
        """
        List the ports of a service.

        Raises:
            TargetsNotListed: If get_targets has not succeeded yet
            NoPortsDefined: If the service exposes no ports
        """
        with self._lock:
            self._require_listed()
            cluster = self._require_cluster()
            check_cancelled(cancel, "port listing")
            ports = _call_upstream(f"listing ports of {ref.label}", cluster.list_ports, ref, cancel=cancel)
        if not ports:
            raise NoPortsDefined(ref)
        return list(ports)

    def forward(self, ref, service_port, cancel=None):
        """
        Start forwarding a free local port to ``service_port`` of ``ref``.

        Args:
            ref: ServiceRef of the target service
            service_port: Service port to forward to
            cancel: Optional threading.Event that aborts the readiness wait

        Returns:
            int: The local port now forwarding into the cluster

        Raises:
            AlreadyForwarding: If a forward session is active (it is left untouched)
            ForwardTimeout: If forwarding is not ready within the readiness window
        """
        with self._lock:
            if self._forward is not None:
                raise AlreadyForwarding(
                    f"already forwarding {self._forward.service_ref.label} on port {self._forward.local_port}"
                )
            self._require_listed()
            cluster = self._require_cluster()
            check_cancelled(cancel, "port forwarding")

            local_port = allocate_port(*self.port_range)
            logger.info(f"🔌 Forwarding localhost:{local_port} -> {ref.label}:{service_port}")

            started = time.monotonic()
            stop = _call_upstream(
                f"port forwarding to {ref.label}",
                cluster.start_forward,
                ref,
                service_port,
                local_port,
                cancel=cancel,
                timeout=self.ready_timeout,
            )
            elapsed = time.monotonic() - started
            if elapsed > self.ready_timeout:
                logger.warning(f"✗ Forward became ready after {elapsed:.1f}s, outside the readiness window")
                try:
                    stop()
                except Exception as e:
                    logger.warning(f"✗ Failed to stop late port forwarding: {e}")
                raise ForwardTimeout(self.ready_timeout, "collaborator exceeded the readiness window")

            self._forward = ForwardSession(
                local_port=local_port,
                service_ref=ref,
                service_port=service_port,
                cancel=stop,
            )
        logger.info(f"✓ Port forwarding ready on localhost:{local_port}")
        return local_port

    def expose(self, local_port, cancel=None):
        """
        Publish the forwarded local port through the tunnel provider.

        Returns:
            str: Public URL of the tunnel

        Raises:
            NotForwarding: If no forward session is active on ``local_port``
            AlreadyExposed: If a tunnel session is already active
        """
        with self._lock:
            if self._forward is None:
                raise NotForwarding("no active port forwarding to expose")
            if self._forward.local_port != local_port:
                raise NotForwarding(
                    f"no port forwarding on local port {local_port} (active: {self._forward.local_port})"
                )
            if self._tunnel is not None:
                raise AlreadyExposed(f"already exposed at {self._tunnel.public_url}")
            if self.tunnel is None:
                raise UpstreamUnavailable("tunnel client not configured")
            check_cancelled(cancel, "tunnel creation")

            logger.info(f"🌐 Creating tunnel for port {local_port}...")
            public_url, close = _call_upstream(
                f"creating tunnel for port {local_port}",
                self.tunnel.start_tunnel,
                local_port,
                cancel=cancel,
            )
            self._tunnel = TunnelSession(public_url=public_url, local_port=local_port, close=close)
        logger.info(f"✓ Tunnel ready: {public_url}")
        return public_url

    def teardown(self):
        """
        Close the tunnel, then stop the forward, then clear state.

        Every resource is attempted even if an earlier one fails. Calling this
        with nothing active is a no-op.

        Raises:
            TeardownError: Carrying every collected error, first one surfaced
        """
        errors = []
        with self._lock:
            tunnel, forward = self._tunnel, self._forward
            self._tunnel = None
            self._forward = None
            self._targets_listed = False

            if tunnel is None and forward is None:
                return

            logger.info("🔄 Performing graceful shutdown...")
            if tunnel is not None:
                logger.info(f"🔌 Closing tunnel: {tunnel.public_url}")
                try:
                    tunnel.close()
                except Exception as e:
                    logger.warning(f"✗ Failed to close tunnel {tunnel.public_url}: {e}")
                    errors.append(e)

            if forward is not None:
                logger.info(
                    f"🔌 Stopping port forwarding for {forward.service_ref.label} on port {forward.local_port}"
                )
                try:
                    forward.cancel()
                except Exception as e:
                    logger.warning(f"✗ Failed to stop port forwarding: {e}")
                    errors.append(e)

        if errors:
            raise TeardownError(errors) from errors[0]
        logger.info("✓ Graceful shutdown completed")

    def _require_cluster(self):
        if self.cluster is None:
            raise UpstreamUnavailable("kubernetes client not configured")
        return self.cluster

    def _require_listed(self):
        if not self._targets_listed:
            raise TargetsNotListed("services must be listed before ports or forwarding")
