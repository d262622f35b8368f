"""
Listening socket acquisition.

When started by systemd with socket activation the listening socket is
inherited, which lets hastecat serve a privileged port without privileges of
its own. Otherwise the configured address is bound directly.
"""

import os
import socket
from typing import List, Mapping, Optional, Tuple

from .config import ServerConfig
from .errors import ListenerError
from .logger import create_logger


# SD_LISTEN_FDS_START
LISTEN_FDS_START = 3

logger = create_logger("Hastecat.Listener")


def parse_listen_address(address: str) -> Tuple[str, int]:
    """
    Split a host:port listen address.

    An empty host means all interfaces; IPv6 hosts are written in brackets.

    >>> parse_listen_address(":99")
    ('', 99)
    >>> parse_listen_address("[::1]:8080")
    ('::1', 8080)

    Raises:
        ValueError: If the address has no port or the port is out of range
    """
    host, sep, port = address.strip().rpartition(":")
    if not sep:
        raise ValueError(f"listen address must be host:port: {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ValueError(f"IPv6 listen addresses must be bracketed: {address!r}")

    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"invalid port in listen address: {address!r}") from None
    if not 0 <= port_number <= 65535:
        raise ValueError(f"port out of range in listen address: {address!r}")
    return host, port_number


def systemd_sockets(environ: Optional[Mapping[str, str]] = None) -> List[Optional[socket.socket]]:
    """
    Return the sockets passed to this process by systemd.

    Order is preserved. Descriptors that are not stream sockets are returned
    as None so the positions still line up with the unit's socket list.
    """
    if os.name != "posix":
        return []

    env = os.environ if environ is None else environ
    try:
        pid = int(env.get("LISTEN_PID", ""))
        nfds = int(env.get("LISTEN_FDS", ""))
    except ValueError:
        return []
    if pid != os.getpid() or nfds <= 0:
        return []

    names = env.get("LISTEN_FDNAMES", "").split(":")
    sockets: List[Optional[socket.socket]] = []
    for fd in range(LISTEN_FDS_START, LISTEN_FDS_START + nfds):
        offset = fd - LISTEN_FDS_START
        name = names[offset] if offset < len(names) and names[offset] else f"LISTEN_FD_{fd}"
        try:
            os.set_inheritable(fd, False)
            sock = socket.socket(fileno=fd)
        except OSError as error:
            logger.warning(f"Ignoring inherited descriptor {name}: {error}")
            sockets.append(None)
            continue
        if sock.type != socket.SOCK_STREAM:
            logger.debug(f"Ignoring inherited descriptor {name}: not a stream socket")
            sock.detach()
            sockets.append(None)
            continue
        logger.debug(f"Inherited listener {name} on {sock.getsockname()}")
        sockets.append(sock)
    return sockets


def bind_listener(address: str) -> socket.socket:
    """
    Bind and listen on ``address``.

    Raises:
        ValueError: If the address cannot be parsed
        OSError: If binding fails
    """
    host, port = parse_listen_address(address)
    if host:
        return socket.create_server((host, port))
    # Empty host: every interface, dual-stack where the platform allows it
    if socket.has_dualstack_ipv6():
        return socket.create_server(("", port), family=socket.AF_INET6, dualstack_ipv6=True)
    return socket.create_server(("", port))


def get_listener(config: ServerConfig, environ: Optional[Mapping[str, str]] = None) -> socket.socket:
    """
    Return the socket to accept connections on.

    A single inherited systemd socket is used as-is; with none or several,
    ``config.listen`` is bound instead. The result is non-blocking.

    Raises:
        ListenerError: If no listener could be obtained
    """
    inherited = systemd_sockets(environ)
    if len(inherited) == 1 and inherited[0] is not None:
        listener = inherited[0]
        logger.info(f"Using socket from systemd on {listener.getsockname()}")
    else:
        for sock in inherited:
            if sock is not None:
                sock.close()
        try:
            listener = bind_listener(config.listen)
        except (OSError, ValueError) as error:
            raise ListenerError(f"failed to listen on {config.listen}: {error}") from error
        logger.info(f"Listening on {listener.getsockname()}")

    listener.setblocking(False)
    return listener
