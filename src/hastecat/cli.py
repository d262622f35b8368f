"""
hastecat command line entry point.

    hastecat --hastebin https://hastebin.example --listen :9999

Pipe anything into the server and get a paste URL back:

    echo "hello" | nc localhost 9999
"""

import argparse
import asyncio
import signal
from typing import List, Optional

from . import __version__
from .config import DEFAULT_LIMIT, ServerConfig
from .errors import ListenerError
from .haste import HasteClient
from .listeners import get_listener
from .logger import create_logger
from .server import HastecatServer


LOGGER_NAMES = ("Hastecat.CLI", "Hastecat.Server", "Hastecat.Haste", "Hastecat.Listener")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hastecat",
        description="Forward data piped over raw TCP to a haste-server and reply with the paste URL",
    )
    parser.add_argument("--listen", default=None,
                        help="Listen address, used without systemd socket activation (default: :99)")
    parser.add_argument("--hastebin", default=None, metavar="URL",
                        help="haste-server URL, e.g. https://ptero.co (env: HASTECAT_HASTEBIN)")
    parser.add_argument("--limit", type=int, default=None,
                        help=f"Maximum size per paste in bytes, 0 for no limit (default: {DEFAULT_LIMIT})")
    parser.add_argument("--read-timeout", type=float, default=None,
                        help="Seconds of silence after which the client is considered done")
    parser.add_argument("--write-timeout", type=float, default=None,
                        help="Seconds allowed for writing the reply")
    parser.add_argument("--publish-timeout", type=float, default=None,
                        help="Seconds allowed for the haste-server request")
    parser.add_argument("--shutdown-timeout", type=float, default=None,
                        help="Seconds to wait for open connections on shutdown")
    parser.add_argument("--log-level", default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        type=str.upper, help="Log level (env: HASTECAT_LOG_LEVEL)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


async def serve(server: HastecatServer, shutdown_timeout: float) -> int:
    """
    Run ``server`` until SIGINT/SIGTERM, then wait for open connections.

    Returns:
        Process exit code
    """
    logger = create_logger("Hastecat.CLI", level=server.config.log_level)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Windows: SIGINT still arrives as KeyboardInterrupt
            pass

    logger.info("starting server...")
    try:
        await server.run(stop)
    except Exception as error:
        logger.error(f"error while running server: {error}")
        return 1
    finally:
        # A second signal during the grace period exits right away
        for sig in installed:
            loop.remove_signal_handler(sig)

    logger.info("shutting down...")
    remaining = await server.wait_closed(shutdown_timeout)
    if remaining:
        logger.warning(f"{remaining} connection(s) still open after {shutdown_timeout}s, exiting anyway")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = create_logger("Hastecat.CLI", level=args.log_level)

    try:
        config = ServerConfig.from_env(
            hastebin_url=args.hastebin,
            listen=args.listen,
            limit=args.limit,
            read_timeout=args.read_timeout,
            write_timeout=args.write_timeout,
            publish_timeout=args.publish_timeout,
            shutdown_timeout=args.shutdown_timeout,
            log_level=args.log_level,
        )
    except ValueError as error:
        logger.error(f"invalid configuration: {error}")
        return 1

    for name in LOGGER_NAMES:
        create_logger(name, level=config.log_level)

    try:
        client = HasteClient(config.hastebin_url, timeout=config.publish_timeout, log_level=config.log_level)
    except ValueError as error:
        logger.error(f"failed to create hastebin client: {error}")
        return 1

    try:
        listener = get_listener(config)
    except ListenerError as error:
        logger.error(f"failed to start listener: {error}")
        client.close()
        return 1

    try:
        server = HastecatServer(listener, client, config)
        return asyncio.run(serve(server, config.shutdown_timeout))
    except KeyboardInterrupt:
        logger.info("shutting down...")
        return 0
    finally:
        listener.close()
        client.close()
