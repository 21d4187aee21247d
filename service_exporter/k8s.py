"""
Kubernetes cluster client.

Lists services and their ports through the kubernetes Python client and opens
port-forwards to a running pod behind a service with kubectl.
"""
import logging
import os
from pathlib import Path

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from service_exporter.errors import UpstreamUnavailable
from service_exporter.models import ServicePort
from service_exporter.orchestrator import check_cancelled
from service_exporter.port_forward import PortForward

logger = logging.getLogger(__name__)

DEFAULT_KUBECONFIG = Path.home() / ".kube" / "config"


def default_kubeconfig_path():
    """Kubeconfig path from KUBECONFIG, or ~/.kube/config."""
    return os.environ.get("KUBECONFIG") or str(DEFAULT_KUBECONFIG)


def format_label_selector(selector):
    """Render a service selector dict as a label selector string."""
    return ",".join(f"{key}={value}" for key, value in sorted((selector or {}).items()))


class KubernetesClient:
    """
    Cluster client backed by the kubernetes API and kubectl.

    Args:
        kubeconfig_path: Path to kubeconfig (defaults to KUBECONFIG or ~/.kube/config)
        core_v1: Preconfigured CoreV1Api client; kubeconfig is not loaded when given
        kubectl: kubectl executable used for port-forwarding
    """

    def __init__(self, kubeconfig_path=None, core_v1=None, kubectl="kubectl"):
        self.kubeconfig_path = kubeconfig_path or default_kubeconfig_path()
        self.kubectl = kubectl
        if core_v1 is None:
            try:
                config.load_kube_config(config_file=self.kubeconfig_path)
            except (ConfigException, OSError) as e:
                raise UpstreamUnavailable(
                    f"failed to load kubeconfig from {self.kubeconfig_path}: {e}"
                ) from e
            core_v1 = client.CoreV1Api()
        self.core_v1 = core_v1

    def list_services(self, cancel=None):
        """
        List services in all namespaces.

        Returns:
            list: Identifiers of the form ``"<name> (ns: <namespace>)"``
        """
        check_cancelled(cancel, "service listing")
        try:
            services = self.core_v1.list_service_for_all_namespaces()
        except ApiException as e:
            raise UpstreamUnavailable(f"failed to list services: {e.reason}") from e
        return [f"{svc.metadata.name} (ns: {svc.metadata.namespace})" for svc in services.items]

    def list_ports(self, ref, cancel=None):
        """List the ports of a service; target ports fall back to the service port."""
        check_cancelled(cancel, "port listing")
        svc = self._read_service(ref)
        return [
            ServicePort.from_spec(p.name, p.port, p.target_port, p.protocol)
            for p in (svc.spec.ports or [])
        ]

    def start_forward(self, ref, service_port, local_port, cancel=None, timeout=30.0):
        """
        Forward ``local_port`` to the first running pod behind a service.

        Args:
            ref: ServiceRef of the service
            service_port: Service port to forward; mapped to its target port on the pod
            local_port: Local port for kubectl to bind
            cancel: Optional threading.Event that aborts the readiness wait
            timeout: Readiness window in seconds

        Returns:
            callable: Stops the port-forward

        Raises:
            UpstreamUnavailable: If the port or a running pod cannot be found
            ForwardTimeout: If kubectl is not ready within ``timeout``
        """
        check_cancelled(cancel, "port forwarding")
        svc = self._read_service(ref)

        selected = None
        for p in svc.spec.ports or []:
            if p.port == service_port:
                selected = ServicePort.from_spec(p.name, p.port, p.target_port, p.protocol)
                break
        if selected is None:
            raise UpstreamUnavailable(f"port {service_port} not found in service {ref.label}")

        pod_name = self._find_running_pod(ref, svc.spec.selector)
        pf = PortForward(
            namespace=ref.namespace,
            resource=f"pod/{pod_name}",
            port=selected.target_port,
            local_port=local_port,
            kubectl=self.kubectl,
            kubeconfig=self.kubeconfig_path,
        )
        pf.start(timeout=timeout, cancel=cancel)
        return pf.stop

    def _read_service(self, ref):
        try:
            return self.core_v1.read_namespaced_service(name=ref.name, namespace=ref.namespace)
        except ApiException as e:
            raise UpstreamUnavailable(
                f"failed to get service {ref.name} in namespace {ref.namespace}: {e.reason}"
            ) from e

    def _find_running_pod(self, ref, selector):
        if not selector:
            raise UpstreamUnavailable(f"service {ref.label} has no pod selector")
        try:
            pods = self.core_v1.list_namespaced_pod(
                namespace=ref.namespace,
                label_selector=format_label_selector(selector),
            )
        except ApiException as e:
            raise UpstreamUnavailable(f"failed to list pods for service {ref.label}: {e.reason}") from e

        for pod in pods.items:
            if pod.status and pod.status.phase == "Running":
                logger.debug(f"Selected pod {pod.metadata.name} for {ref.label}")
                return pod.metadata.name
        raise UpstreamUnavailable(f"no running pods found for service {ref.label}")
