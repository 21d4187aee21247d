"""Pytest fixtures for the service exporter test suite"""
import logging
import threading

import pytest

from service_exporter.log import SafeUnicodeFilter
from service_exporter.orchestrator import Orchestrator
from tests.helpers.fakes import RecordingCluster, RecordingTunnel

logger = logging.getLogger(__name__)


@pytest.fixture(scope="session", autouse=True)
def configure_safe_logging():
    """Install the surrogate-sanitizing filter on the root logger for the session."""
    safe_filter = SafeUnicodeFilter()
    logging.root.addFilter(safe_filter)
    yield
    logging.root.removeFilter(safe_filter)


@pytest.fixture
def events():
    """Shared, ordered log of collaborator calls"""
    return []


@pytest.fixture
def cluster(events):
    return RecordingCluster(events)


@pytest.fixture
def tunnel(events):
    return RecordingTunnel(events)


@pytest.fixture
def fixed_port(monkeypatch):
    """Make port allocation deterministic (always 8007)."""
    calls = []

    def allocate(range_start, range_end):
        calls.append((range_start, range_end))
        return 8007

    monkeypatch.setattr("service_exporter.orchestrator.allocate_port", allocate)
    return calls


@pytest.fixture
def orchestrator(cluster, tunnel, fixed_port):
    """Orchestrator wired to recording collaborators; torn down after the test."""
    orch = Orchestrator(cluster, tunnel, ready_timeout=2.0)
    yield orch
    try:
        orch.teardown()
    except Exception as e:
        logger.info(f"teardown after test raised: {e}")


@pytest.fixture
def cancel():
    return threading.Event()


def pytest_configure(config):
    """Configure pytest with custom settings"""
    config.addinivalue_line("markers", "quick: Quick tests that run in <5 seconds")
    config.addinivalue_line("markers", "slow: Tests that spawn processes or wait on timeouts")
    config.addinivalue_line("markers", "orchestrator: Session orchestrator tests")
    config.addinivalue_line("markers", "k8s: Kubernetes client and port-forward tests")
    config.addinivalue_line("markers", "tunnel: ngrok tunnel client tests")
    config.addinivalue_line("markers", "cli: Command-line entry point tests")


def pytest_collection_modifyitems(config, items):
    """Mark everything that does not touch subprocesses or sleeps as quick"""
    for item in items:
        if "slow" not in item.keywords:
            item.add_marker(pytest.mark.quick)
