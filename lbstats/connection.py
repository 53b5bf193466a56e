"""Address resolution and connection setup."""

import logging
import socket

from .errors import ConnectError, ResolutionError
from .models import Endpoint
from .utils import split_address


def resolve_address(address: str) -> Endpoint:
    """Resolve a ``[host:]port`` string to an IPv4 stream endpoint.

    Args:
        address: ``host:port`` or a bare ``port`` (host defaults to localhost)

    Raises:
        ResolutionError: if the port is empty or the lookup fails
    """
    host, port = split_address(address)
    if not port:
        raise ResolutionError(f"no port in address '{address}'")

    try:
        infos = socket.getaddrinfo(host, port, socket.AF_INET, socket.SOCK_STREAM)
    except (OSError, UnicodeError) as e:
        # socket.gaierror is an OSError
        raise ResolutionError(f"getaddrinfo(): {e}") from e

    if not infos:
        raise ResolutionError("getaddrinfo(): no usable address")

    family, _, _, _, sockaddr = infos[0]
    return Endpoint(host=host, port=port, family=family, sockaddr=sockaddr)


def open_connection(endpoint: Endpoint, log: logging.Logger) -> socket.socket:
    """Open a blocking stream socket connected to the endpoint.

    No connect timeout is set, the operating system default applies.

    Raises:
        ConnectError: if the socket cannot be created or connected
    """
    log.info("opening connection to host = %s, port = %s", endpoint.host, endpoint.port)

    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    except OSError as e:
        raise ConnectError(f"socket(): {e}") from e

    try:
        sock.connect(endpoint.sockaddr)
    except OSError as e:
        sock.close()
        raise ConnectError(f"connect(): {e}") from e

    return sock
