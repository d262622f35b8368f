import os
import socket

import pytest

from hastecat import listeners
from hastecat.config import ServerConfig
from hastecat.errors import ListenerError
from hastecat.listeners import get_listener, parse_listen_address, systemd_sockets


posix_only = pytest.mark.skipif(os.name != "posix", reason="socket activation is POSIX only")


class TestParseListenAddress:
    """Test host:port parsing."""

    @pytest.mark.parametrize("address,expected", [
        (":99", ("", 99)),
        ("127.0.0.1:8080", ("127.0.0.1", 8080)),
        ("localhost:0", ("localhost", 0)),
        ("[::1]:9999", ("::1", 9999)),
        ("[::]:99", ("::", 99)),
    ])
    def test_valid(self, address, expected):
        assert parse_listen_address(address) == expected

    @pytest.mark.parametrize("address", ["99", "localhost", ":http", ":70000", "::1:99", ""])
    def test_invalid(self, address):
        with pytest.raises(ValueError):
            parse_listen_address(address)


@posix_only
class TestSystemdSockets:
    """Test the socket activation environment contract."""

    def test_no_environment(self):
        assert systemd_sockets({}) == []

    def test_other_pid(self):
        env = {"LISTEN_PID": str(os.getpid() + 1), "LISTEN_FDS": "1"}
        assert systemd_sockets(env) == []

    def test_zero_fds(self):
        env = {"LISTEN_PID": str(os.getpid()), "LISTEN_FDS": "0"}
        assert systemd_sockets(env) == []

    def test_garbage_values(self):
        env = {"LISTEN_PID": "abc", "LISTEN_FDS": "1"}
        assert systemd_sockets(env) == []

    def test_adopts_inherited_socket(self, monkeypatch):
        """A listening stream socket at the first descriptor is adopted."""
        original = socket.create_server(("127.0.0.1", 0))
        address = original.getsockname()
        fd = original.detach()
        monkeypatch.setattr(listeners, "LISTEN_FDS_START", fd)

        env = {"LISTEN_PID": str(os.getpid()), "LISTEN_FDS": "1", "LISTEN_FDNAMES": "hastecat"}
        sockets = systemd_sockets(env)
        try:
            assert len(sockets) == 1
            assert sockets[0].fileno() == fd
            assert sockets[0].getsockname() == address
            assert os.get_inheritable(fd) is False
        finally:
            for sock in sockets:
                if sock is not None:
                    sock.close()

    def test_datagram_socket_is_gap(self, monkeypatch):
        udp = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        monkeypatch.setattr(listeners, "LISTEN_FDS_START", udp.fileno())

        env = {"LISTEN_PID": str(os.getpid()), "LISTEN_FDS": "1"}
        try:
            assert systemd_sockets(env) == [None]
            # Descriptor is left untouched for its owner
            assert udp.fileno() != -1
        finally:
            udp.close()


class TestGetListener:
    """Test choosing between an inherited socket and a fresh bind."""

    def test_binds_configured_address(self):
        config = ServerConfig(hastebin_url="https://x", listen="127.0.0.1:0")

        listener = get_listener(config, environ={})
        try:
            host, port = listener.getsockname()[:2]
            assert host == "127.0.0.1"
            assert port > 0
            assert listener.getblocking() is False
        finally:
            listener.close()

    def test_bind_failure(self):
        """An address already in use is a startup failure."""
        taken = socket.create_server(("127.0.0.1", 0))
        port = taken.getsockname()[1]
        config = ServerConfig(hastebin_url="https://x", listen=f"127.0.0.1:{port}")
        try:
            with pytest.raises(ListenerError, match="failed to listen"):
                get_listener(config, environ={})
        finally:
            taken.close()

    def test_bad_address(self):
        config = ServerConfig(hastebin_url="https://x", listen="nonsense")
        with pytest.raises(ListenerError):
            get_listener(config, environ={})

    @posix_only
    def test_prefers_single_inherited_socket(self, monkeypatch):
        original = socket.create_server(("127.0.0.1", 0))
        address = original.getsockname()
        fd = original.detach()
        monkeypatch.setattr(listeners, "LISTEN_FDS_START", fd)
        config = ServerConfig(hastebin_url="https://x", listen="127.0.0.1:0")

        env = {"LISTEN_PID": str(os.getpid()), "LISTEN_FDS": "1"}
        listener = get_listener(config, environ=env)
        try:
            assert listener.getsockname() == address
        finally:
            listener.close()
