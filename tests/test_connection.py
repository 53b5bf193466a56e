import socket

import pytest

from lbstats.connection import open_connection, resolve_address
from lbstats.errors import ConnectError, ResolutionError


def _closed_port() -> int:
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(('127.0.0.1', 0))
    port = s.getsockname()[1]
    s.close()
    return port


def test_resolve_host_and_port():
    endpoint = resolve_address('127.0.0.1:9000')
    assert endpoint.host == '127.0.0.1'
    assert endpoint.port == '9000'
    assert endpoint.family == socket.AF_INET
    assert endpoint.sockaddr == ('127.0.0.1', 9000)


def test_resolve_bare_port_uses_localhost():
    endpoint = resolve_address('9000')
    assert endpoint.host == 'localhost'
    assert endpoint.family == socket.AF_INET
    assert endpoint.sockaddr[1] == 9000


@pytest.mark.parametrize('address', ['', 'localhost:'])
def test_resolve_rejects_missing_port(address):
    with pytest.raises(ResolutionError):
        resolve_address(address)


def test_resolve_reports_lookup_failure(monkeypatch):
    def fail(*args, **kwargs):
        raise socket.gaierror(socket.EAI_NONAME, 'Name or service not known')

    monkeypatch.setattr(socket, 'getaddrinfo', fail)
    with pytest.raises(ResolutionError, match='Name or service not known'):
        resolve_address('nowhere.invalid:9000')


def test_resolve_reports_empty_lookup(monkeypatch):
    monkeypatch.setattr(socket, 'getaddrinfo', lambda *args, **kwargs: [])
    with pytest.raises(ResolutionError, match='no usable address'):
        resolve_address('somewhere:9000')


def test_open_connection_connects(log, caplog):
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(('127.0.0.1', 0))
    server.listen(1)
    port = server.getsockname()[1]
    try:
        sock = open_connection(resolve_address(f'127.0.0.1:{port}'), log)
        peer, _ = server.accept()
        try:
            assert sock.getpeername() == ('127.0.0.1', port)
        finally:
            peer.close()
            sock.close()
    finally:
        server.close()

    assert f'opening connection to host = 127.0.0.1, port = {port}' in caplog.text


def test_open_connection_refused(log):
    endpoint = resolve_address(f'127.0.0.1:{_closed_port()}')
    with pytest.raises(ConnectError, match='connect()'):
        open_connection(endpoint, log)
