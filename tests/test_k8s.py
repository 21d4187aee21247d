"""Kubernetes cluster client tests (CoreV1Api is mocked, no cluster needed)"""
from unittest.mock import MagicMock

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from service_exporter.errors import UpstreamUnavailable
from service_exporter.k8s import KubernetesClient, format_label_selector
from service_exporter.models import ServicePort, ServiceRef

pytestmark = pytest.mark.k8s

REF = ServiceRef("web", "prod")


def _service(name="web", namespace="prod", ports=None, selector=None):
    return client.V1Service(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace),
        spec=client.V1ServiceSpec(
            ports=ports if ports is not None else [
                client.V1ServicePort(name="http", port=80, target_port=8080, protocol="TCP"),
                client.V1ServicePort(name="metrics", port=9090, target_port=None, protocol="TCP"),
            ],
            selector=selector if selector is not None else {"app": "web"},
        ),
    )


def _pod(name, phase):
    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name),
        status=client.V1PodStatus(phase=phase),
    )


@pytest.fixture
def core_v1():
    api = MagicMock()
    api.read_namespaced_service.return_value = _service()
    api.list_namespaced_pod.return_value = client.V1PodList(
        items=[_pod("web-0", "Pending"), _pod("web-1", "Running"), _pod("web-2", "Running")]
    )
    return api


@pytest.fixture
def k8s(core_v1):
    return KubernetesClient(kubeconfig_path="/tmp/kubeconfig", core_v1=core_v1)


@pytest.fixture
def port_forwards(monkeypatch):
    """Replace PortForward with a recorder."""
    created = []

    class FakePortForward:
        def __init__(self, **kwargs):
            self.kwargs = kwargs
            self.started_with = None
            self.stopped = False
            created.append(self)

        def start(self, timeout=30.0, cancel=None):
            self.started_with = (timeout, cancel)
            return self

        def stop(self):
            self.stopped = True

    monkeypatch.setattr("service_exporter.k8s.PortForward", FakePortForward)
    return created


def test_list_services_renders_namespace(k8s, core_v1):
    core_v1.list_service_for_all_namespaces.return_value = client.V1ServiceList(
        items=[_service("a", "default"), _service("b", "kube-system")]
    )
    assert k8s.list_services() == ["a (ns: default)", "b (ns: kube-system)"]


def test_list_services_api_error(k8s, core_v1):
    core_v1.list_service_for_all_namespaces.side_effect = ApiException(status=403, reason="Forbidden")
    with pytest.raises(UpstreamUnavailable, match="Forbidden"):
        k8s.list_services()


def test_list_ports_defaults_target_port(k8s, core_v1):
    ports = k8s.list_ports(REF)

    core_v1.read_namespaced_service.assert_called_once_with(name="web", namespace="prod")
    assert ports == [
        ServicePort("http", 80, 8080, "TCP"),
        ServicePort("metrics", 9090, 9090, "TCP"),
    ]


def test_list_ports_named_target_port_falls_back(k8s, core_v1):
    core_v1.read_namespaced_service.return_value = _service(
        ports=[client.V1ServicePort(name=None, port=53, target_port="dns", protocol="UDP")]
    )
    assert k8s.list_ports(REF) == [ServicePort("", 53, 53, "UDP")]


def test_list_ports_empty(k8s, core_v1):
    core_v1.read_namespaced_service.return_value = _service(ports=[])
    assert k8s.list_ports(REF) == []


def test_list_ports_missing_service(k8s, core_v1):
    core_v1.read_namespaced_service.side_effect = ApiException(status=404, reason="Not Found")
    with pytest.raises(UpstreamUnavailable, match="web in namespace prod"):
        k8s.list_ports(REF)


def test_start_forward_targets_first_running_pod(k8s, core_v1, port_forwards, cancel):
    stop = k8s.start_forward(REF, 80, 8123, cancel=cancel, timeout=7.5)

    core_v1.list_namespaced_pod.assert_called_once_with(namespace="prod", label_selector="app=web")
    (pf,) = port_forwards
    assert pf.kwargs == {
        "namespace": "prod",
        "resource": "pod/web-1",
        "port": 8080,
        "local_port": 8123,
        "kubectl": "kubectl",
        "kubeconfig": "/tmp/kubeconfig",
    }
    assert pf.started_with == (7.5, cancel)
    stop()
    assert pf.stopped


def test_start_forward_unknown_port(k8s, port_forwards):
    with pytest.raises(UpstreamUnavailable, match="port 443 not found"):
        k8s.start_forward(REF, 443, 8123)
    assert port_forwards == []


def test_start_forward_no_running_pods(k8s, core_v1, port_forwards):
    core_v1.list_namespaced_pod.return_value = client.V1PodList(items=[_pod("web-0", "Pending")])
    with pytest.raises(UpstreamUnavailable, match="no running pods"):
        k8s.start_forward(REF, 80, 8123)
    assert port_forwards == []


def test_start_forward_without_selector(k8s, core_v1, port_forwards):
    core_v1.read_namespaced_service.return_value = _service(selector={})
    with pytest.raises(UpstreamUnavailable, match="no pod selector"):
        k8s.start_forward(REF, 80, 8123)


def test_kubeconfig_load_failure(tmp_path):
    missing = tmp_path / "nope"
    with pytest.raises(UpstreamUnavailable, match="failed to load kubeconfig"):
        KubernetesClient(kubeconfig_path=str(missing))


def test_kubeconfig_defaults_to_env(monkeypatch, core_v1):
    monkeypatch.setenv("KUBECONFIG", "/etc/kube/admin.conf")
    assert KubernetesClient(core_v1=core_v1).kubeconfig_path == "/etc/kube/admin.conf"


def test_format_label_selector():
    assert format_label_selector({"tier": "web", "app": "shop"}) == "app=shop,tier=web"
    assert format_label_selector(None) == ""
