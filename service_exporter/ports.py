"""
Local port allocation.

Ports are found by binding a listener on loopback and releasing it right away.
Another process may grab the port between the probe and the moment the
port-forward binds it; callers accept that race.
"""
import logging
import socket

from service_exporter.errors import NoPortAvailable

logger = logging.getLogger(__name__)

LOOPBACK = "127.0.0.1"
DEFAULT_PORT_RANGE = (8000, 8999)


def is_port_available(port, host=LOOPBACK):
    """Return True if ``port`` can be bound on ``host`` right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def allocate_port(range_start=DEFAULT_PORT_RANGE[0], range_end=DEFAULT_PORT_RANGE[1]):
    """
    Find the first bindable local TCP port in an inclusive range.

    Args:
        range_start: First candidate port
        range_end: Last candidate port (inclusive)

    Returns:
        int: A port that was free at probe time

    Raises:
        ValueError: If the range is inverted or outside 1-65535
        NoPortAvailable: If no port in the range can be bound
    """
    if not 0 < range_start <= range_end <= 65535:
        raise ValueError(f"invalid port range {range_start}-{range_end}")

    for port in range(range_start, range_end + 1):
        if is_port_available(port):
            logger.debug(f"Allocated local port {port}")
            return port

    raise NoPortAvailable(range_start, range_end)
