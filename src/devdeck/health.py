"""
Health probes.

A probe is a single bounded reachability check. Results are informational:
they set a handle's health state and never touch its process state.
"""

import socket

import requests

from .exceptions import ProbeError
from .status_constants import PROBE_HTTP, PROBE_TCP
from .task_config import HealthProbe


def _split_host_port(target: str):
    host, sep, port = target.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ProbeError(f"invalid tcp target '{target}', expected host:port")
    return host.strip("[]"), int(port)


def probe_tcp(target: str, timeout: float) -> None:
    """Connect to host:port and close again.

    Raises:
        ProbeError: If the connection can't be made within timeout
    """
    host, port = _split_host_port(target)
    try:
        conn = socket.create_connection((host, port), timeout=timeout)
    except OSError as e:
        raise ProbeError(f"tcp {target}: {e}") from e
    conn.close()


def probe_http(target: str, timeout: float) -> None:
    """GET the target URL. 2xx and 3xx count as healthy.

    Redirects are not followed, so a 3xx response is itself the answer.

    Raises:
        ProbeError: On connection errors, timeouts or other status codes
    """
    try:
        response = requests.get(target, timeout=timeout, allow_redirects=False)
    except requests.RequestException as e:
        raise ProbeError(f"http {target}: {e}") from e
    try:
        if not 200 <= response.status_code < 400:
            raise ProbeError(f"http {target}: status {response.status_code}")
    finally:
        response.close()


def check_health(probe: HealthProbe) -> bool:
    """Run one probe. Returns True when healthy, False otherwise."""
    try:
        if probe.kind == PROBE_TCP:
            probe_tcp(probe.target, probe.timeout)
        elif probe.kind == PROBE_HTTP:
            probe_http(probe.target, probe.timeout)
        else:
            raise ProbeError(f"unknown probe kind '{probe.kind}'")
    except ProbeError:
        return False
    return True
