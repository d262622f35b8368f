"""
hastecat TCP server

Accepts raw TCP connections, reads whatever the client sends, forwards it to
a haste-server and writes the paste URL back to the client.
"""

import asyncio
import functools
import socket
from typing import Any, Optional, Set

from .config import ServerConfig
from .errors import PublishError
from .haste import BasePublisher
from .ingest import IngestOutcome, read_stream
from .logger import create_logger
from .response import compose_response, rejection_message


# Pause after a failed accept so descriptor exhaustion does not spin the loop
ACCEPT_RETRY_DELAY = 0.1


class HastecatServer:
    """
    Accept loop plus per-connection handling.

    Every accepted connection is handled in its own task. Stopping the
    server only stops new connections from being accepted; connections
    already in progress finish on their own read/write deadlines.
    """

    def __init__(self, listener: socket.socket, publisher: BasePublisher, config: ServerConfig):
        """
        Args:
            listener: Listening socket; owned and closed by the caller
            publisher: Where finished pastes are sent
            config: Server settings
        """
        self.listener = listener
        self.publisher = publisher
        self.config = config
        self.logger = create_logger("Hastecat.Server", level=config.log_level)

        self._connections: Set[asyncio.Task] = set()
        self._running = False

    @property
    def active_connections(self) -> int:
        """Number of connections, and timed-out upstream requests, still running."""
        return len(self._connections)

    async def run(self, stop: Optional[asyncio.Event] = None) -> None:
        """
        Accept connections until ``stop`` is set or the listener is closed.

        Accept errors are logged and do not stop the server.

        Raises:
            RuntimeError: If the server is already running
        """
        if self._running:
            raise RuntimeError("server is already running")
        self._running = True

        if stop is None:
            stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        stopped = asyncio.ensure_future(stop.wait())
        accept = None

        self.logger.info("listening for incoming connections...")
        try:
            while not stop.is_set():
                accept = asyncio.ensure_future(loop.sock_accept(self.listener))
                await asyncio.wait({accept, stopped}, return_when=asyncio.FIRST_COMPLETED)

                if not accept.done():
                    accept.cancel()
                    await asyncio.wait({accept})
                if accept.cancelled():
                    break

                error = accept.exception()
                if error is None:
                    conn, _ = accept.result()
                    self._spawn(conn)
                    continue

                # The listener is closed when the server is shutting down
                if self.listener.fileno() == -1:
                    break
                if not isinstance(error, (OSError, ValueError)):
                    raise error
                self.logger.warning(f"error while accepting connection: {error}")
                await asyncio.sleep(ACCEPT_RETRY_DELAY)
        finally:
            stopped.cancel()
            if accept is not None and not accept.done():
                accept.cancel()
            self._running = False

    async def wait_closed(self, timeout: Optional[float] = None) -> int:
        """
        Wait for in-flight connections and late upstream requests to finish.

        Args:
            timeout: Seconds to wait, None to wait indefinitely

        Returns:
            Number of connections still running when the wait ended
        """
        pending = set(self._connections)
        if not pending:
            return 0
        _, pending = await asyncio.wait(pending, timeout=timeout)
        return len(pending)

    def _spawn(self, conn: socket.socket) -> None:
        task = asyncio.ensure_future(self._serve(conn))
        self._connections.add(task)
        task.add_done_callback(self._connections.discard)

    async def _serve(self, conn: socket.socket) -> None:
        try:
            reader, writer = await asyncio.open_connection(sock=conn)
        except OSError as error:
            conn.close()
            self.logger.warning(f"error while handling connection: {error}")
            return

        try:
            await self.handle(reader, writer)
        except Exception as error:
            self.logger.warning(f"error while handling connection: {error}")

    async def handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """
        Handle one connection: read the paste, publish it, reply, close.

        The writer is closed on every path. Nothing is written back for an
        empty paste or on any error.

        Raises:
            OSError: If reading from or writing to the client fails
            PublishError: If the paste could not be published
            TimeoutError: If writing the reply timed out
        """
        remote_addr = format_address(writer.get_extra_info("peername"))
        self.logger.info(f"new connection remote_addr={remote_addr}")
        try:
            result = await read_stream(reader, self.config.limit, self.config.read_timeout)

            if result.outcome is IngestOutcome.EMPTY:
                self.logger.info(
                    f"no data received from client before connection timed out remote_addr={remote_addr}"
                )
                return

            if result.outcome is IngestOutcome.ERRORED:
                raise result.error

            if result.outcome is IngestOutcome.REJECTED:
                self.logger.info(f"paste exceeded {self.config.limit} bytes remote_addr={remote_addr}")
                await self._write(writer, rejection_message(self.config.limit))
                return

            publish = asyncio.ensure_future(self.publisher.publish(result.payload))
            try:
                key = await asyncio.wait_for(asyncio.shield(publish), timeout=self.config.publish_timeout)
            except asyncio.TimeoutError:
                # The upstream request cannot be interrupted and may still
                # create the paste; it is tracked until it settles
                self._connections.add(publish)
                publish.add_done_callback(self._connections.discard)
                publish.add_done_callback(functools.partial(self._late_publish_done, remote_addr))
                raise PublishError(
                    f"failed to forward data to hastebin: timed out after {self.config.publish_timeout}s"
                ) from None
            except PublishError as error:
                raise PublishError(f"failed to forward data to hastebin: {error}") from error

            self.logger.info(f"published {len(result.payload)} bytes as {key} remote_addr={remote_addr}")
            await self._write(writer, compose_response(self.publisher.base_url, key))
        finally:
            await self._close(writer)
            self.logger.info(f"connection closed remote_addr={remote_addr}")

    def _late_publish_done(self, remote_addr: str, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.debug(f"publish failed after timing out: {error} remote_addr={remote_addr}")
        else:
            self.logger.debug(f"publish finished after timing out as {task.result()} remote_addr={remote_addr}")

    async def _write(self, writer: asyncio.StreamWriter, data: bytes) -> None:
        writer.write(data)
        try:
            await asyncio.wait_for(writer.drain(), timeout=self.config.write_timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"timed out writing response after {self.config.write_timeout}s") from None

    async def _close(self, writer: asyncio.StreamWriter) -> None:
        writer.close()
        try:
            await asyncio.wait_for(writer.wait_closed(), timeout=self.config.write_timeout)
        except asyncio.TimeoutError:
            # Peer stopped reading; drop whatever is still buffered
            writer.transport.abort()
        except OSError as error:
            self.logger.debug(f"error while closing connection: {error}")


def format_address(address: Any) -> str:
    """Render a socket address as host:port."""
    if isinstance(address, tuple) and len(address) >= 2:
        host, port = address[0], address[1]
        if ":" in str(host):
            return f"[{host}]:{port}"
        return f"{host}:{port}"
    return str(address)
