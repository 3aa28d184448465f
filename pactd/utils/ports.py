"""Port allocation and readiness checks.

Allocation is point-in-time: a port reported free here can still be taken by
someone else before the caller binds it.
"""

import socket
import time
from typing import Any

from pactd.errors import ValidationError

_FAMILIES = {
    "tcp": socket.AF_UNSPEC,
    "tcp4": socket.AF_INET,
    "tcp6": socket.AF_INET6,
}


def address_family(network: str) -> socket.AddressFamily:
    try:
        return _FAMILIES[network]
    except KeyError:
        raise ValidationError(f"Unsupported network {network!r}, expected one of {sorted(_FAMILIES)}") from None


def resolve_bind_address(
    host: str,
    port: int,
    network: str = "tcp",
) -> tuple[socket.AddressFamily, tuple[Any, ...]]:
    """
    Pick the address family and socket address to bind `host:port` with.

    With plain "tcp", IPv4 is preferred when the host resolves to both.
    """
    try:
        infos = socket.getaddrinfo(host, port, address_family(network), socket.SOCK_STREAM)
    except socket.gaierror as e:
        raise ValidationError(f"Cannot bind {host!r} over {network}: {e}") from None

    infos.sort(key=lambda info: info[0] != socket.AF_INET)
    family, _, _, _, addr = infos[0]
    return family, addr


def bind_socket(port: int, host: str = "localhost", network: str = "tcp") -> socket.socket:
    """Bind (without listening) a TCP socket; the caller owns and closes it."""
    family, addr = resolve_bind_address(host, port, network)
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind(addr)
    except OSError:
        sock.close()
        raise
    return sock


def get_free_port(host: str = "localhost", network: str = "tcp") -> int:
    # Binding to port 0 asks the OS for an arbitrary free port
    with bind_socket(0, host, network) as sock:
        return sock.getsockname()[1]


def parse_port_spec(spec: str) -> list[int]:
    """
    Expand "1234", "1234,5667" or "1234-5667" (or a mix) into candidate ports.
    """
    ports: list[int] = []
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                low, high = (int(p) for p in part.split("-", 1))
                if low > high:
                    raise ValidationError(f"Invalid port range {part!r}")
                ports.extend(range(low, high + 1))
            else:
                ports.append(int(part))
        except ValueError:
            raise ValidationError(f"Invalid port specification {part!r}") from None

    if not ports:
        raise ValidationError(f"No ports in specification {spec!r}")

    return ports


def is_port_free(port: int, host: str = "localhost", network: str = "tcp") -> bool:
    try:
        bind_socket(port, host, network).close()
    except OSError:
        return False
    return True


def find_port_in_range(spec: str, host: str = "localhost", network: str = "tcp") -> int:
    for port in parse_port_spec(spec):
        if is_port_free(port, host, network):
            return port

    raise ValidationError(f"No free port available in {spec!r}")


def is_port_open(port: int, host: str = "localhost", network: str = "tcp", timeout: float = 0.5) -> bool:
    family = address_family(network)
    try:
        infos = socket.getaddrinfo(host, port, family, socket.SOCK_STREAM)
    except socket.gaierror:
        return False

    for af, socktype, proto, _, addr in infos:
        with socket.socket(af, socktype, proto) as sock:
            sock.settimeout(timeout)
            try:
                sock.connect(addr)
            except OSError:
                continue
            return True

    return False


def wait_for_port(
    port: int,
    host: str = "localhost",
    network: str = "tcp",
    timeout: float = 10.0,
    interval: float = 0.05,
) -> bool:
    """Poll until something accepts connections on `port`, or `timeout` passes."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if is_port_open(port, host, network):
            return True
        time.sleep(interval)
    return False
