"""
Port-forwarding through kubectl.

This module provides a context manager that runs ``kubectl port-forward`` in a
background process and waits until the local end accepts connections.
"""
import logging
import socket
import subprocess
import threading
import time
from collections import deque

from service_exporter.errors import ForwardTimeout, OperationCancelled, UpstreamUnavailable
from service_exporter.ports import LOOPBACK

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.25
STOP_GRACE = 5
STDERR_TAIL_LINES = 20


class PortForward:
    """Context manager for kubectl port-forward to a pod or service."""

    def __init__(self, namespace, resource, port, local_port=None, kubectl="kubectl", kubeconfig=None):
        """
        Initialize port-forward configuration.

        Args:
            namespace: Kubernetes namespace containing the resource
            resource: Resource to forward to, e.g. ``pod/web-0`` or ``svc/web``
            port: Remote port on the resource
            local_port: Local port to bind to (defaults to same as remote port)
            kubectl: kubectl executable
            kubeconfig: Optional kubeconfig path passed to kubectl
        """
        self.namespace = namespace
        self.resource = resource
        self.port = port
        self.local_port = local_port or port
        self.kubectl = kubectl
        self.kubeconfig = kubeconfig
        self.process = None
        self._stderr_tail = deque(maxlen=STDERR_TAIL_LINES)
        self._stderr_reader = None

    @property
    def command(self):
        cmd = [
            self.kubectl, "port-forward",
            self.resource,
            f"{self.local_port}:{self.port}",
            "-n", self.namespace,
            "--address", LOOPBACK,
        ]
        if self.kubeconfig:
            cmd += ["--kubeconfig", str(self.kubeconfig)]
        return cmd

    def start(self, timeout=30.0, cancel=None):
        """
        Start port-forward and wait until the local port accepts connections.

        Args:
            timeout: Readiness window in seconds
            cancel: Optional threading.Event that aborts the wait

        Returns:
            PortForward: self

        Raises:
            ForwardTimeout: If the port is not ready within ``timeout``
            OperationCancelled: If ``cancel`` is set while waiting
            UpstreamUnavailable: If kubectl is missing or exits early
        """
        try:
            self.process = subprocess.Popen(
                self.command,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise UpstreamUnavailable(f"{self.kubectl} not found: {e}") from e

        # kubectl keeps writing connection errors to stderr; an undrained pipe blocks it.
        self._stderr_tail.clear()
        self._stderr_reader = threading.Thread(
            target=self._drain_stderr,
            args=(self.process.stderr,),
            name=f"kubectl-stderr-{self.local_port}",
            daemon=True,
        )
        self._stderr_reader.start()

        deadline = time.monotonic() + timeout
        while True:
            if self.process.poll() is not None:
                detail = self._stderr_output()
                self.process = None
                raise UpstreamUnavailable(
                    f"kubectl port-forward to {self.namespace}/{self.resource} exited: {detail or 'no output'}"
                )
            if cancel is not None and cancel.is_set():
                self.stop()
                raise OperationCancelled("port forwarding cancelled")
            if self._is_ready():
                logger.info(
                    f"✓ Port forwarding ready from localhost:{self.local_port} to "
                    f"{self.namespace}/{self.resource}:{self.port}"
                )
                return self
            if time.monotonic() >= deadline:
                self.stop()
                raise ForwardTimeout(timeout)
            time.sleep(POLL_INTERVAL)

    def stop(self):
        """Stop port-forward. Safe to call more than once."""
        process, self.process = self.process, None
        if process is None:
            return
        process.terminate()
        try:
            process.wait(timeout=STOP_GRACE)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
        self._join_stderr_reader()

    def __enter__(self):
        """Start port-forward."""
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Stop port-forward."""
        self.stop()

    def _is_ready(self):
        try:
            with socket.create_connection((LOOPBACK, self.local_port), timeout=POLL_INTERVAL):
                return True
        except OSError:
            return False

    def _drain_stderr(self, stream):
        """Read kubectl stderr until EOF, keeping the last lines for diagnostics."""
        if stream is None:
            return
        try:
            for raw in iter(stream.readline, b""):
                line = raw.decode(errors="replace").rstrip()
                if line:
                    logger.debug(f"kubectl port-forward {self.namespace}/{self.resource}: {line}")
                    self._stderr_tail.append(line)
        except (OSError, ValueError):
            # Stream closed underneath the reader.
            return
        finally:
            stream.close()

    def _join_stderr_reader(self):
        reader, self._stderr_reader = self._stderr_reader, None
        if reader is not None:
            reader.join(timeout=STOP_GRACE)

    def _stderr_output(self):
        self._join_stderr_reader()
        return "\n".join(self._stderr_tail)
