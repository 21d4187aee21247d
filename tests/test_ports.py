"""Local port allocation tests"""
import socket

import pytest

from service_exporter.errors import NoPortAvailable
from service_exporter.ports import allocate_port, is_port_available


def _listen():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    return sock


def test_allocates_within_inclusive_range():
    port = allocate_port(8000, 9000)
    assert 8000 <= port <= 9000


def test_allocated_port_is_released():
    port = allocate_port(8000, 9000)
    assert is_port_available(port)


def test_sequential_allocations_may_repeat():
    """Probe-and-release does not reserve: the same port may come back (accepted race)."""
    first = allocate_port(8000, 9000)
    second = allocate_port(8000, 9000)
    assert 8000 <= first <= 9000
    assert 8000 <= second <= 9000


def test_skips_bound_port():
    busy = _listen()
    try:
        port = busy.getsockname()[1]
        assert not is_port_available(port)
        if port == 65535:
            return
        try:
            allocated = allocate_port(port, port + 1)
        except NoPortAvailable:
            return
        assert allocated == port + 1
    finally:
        busy.close()


def test_no_port_available_when_range_exhausted():
    busy = _listen()
    try:
        port = busy.getsockname()[1]
        with pytest.raises(NoPortAvailable) as excinfo:
            allocate_port(port, port)
        assert excinfo.value.range_start == port
        assert excinfo.value.range_end == port
    finally:
        busy.close()


@pytest.mark.parametrize("start, end", [(9000, 8000), (0, 10), (65000, 70000)])
def test_rejects_invalid_range(start, end):
    with pytest.raises(ValueError):
        allocate_port(start, end)
