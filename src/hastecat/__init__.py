"""
hastecat - pipe data over raw TCP into a haste-server.
"""

__version__ = "1.0.0"

from .logger import create_logger
from .config import ServerConfig
from .errors import HastecatError, PublishError, StatusError, ListenerError
from .haste import BasePublisher, HasteClient
from .ingest import IngestOutcome, IngestResult, read_stream
from .response import compose_response, rejection_message
from .listeners import get_listener, systemd_sockets
from .server import HastecatServer

__all__ = [
    "create_logger",
    "ServerConfig",
    "HastecatError",
    "PublishError",
    "StatusError",
    "ListenerError",
    "BasePublisher",
    "HasteClient",
    "IngestOutcome",
    "IngestResult",
    "read_stream",
    "compose_response",
    "rejection_message",
    "get_listener",
    "systemd_sockets",
    "HastecatServer",
]
