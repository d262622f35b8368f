"""
Reading a paste from a raw TCP connection.

Clients such as netcat never signal that they are done sending, so the end of
a paste is inferred from silence: every read gets its own idle deadline, and
a read that times out means the client has finished.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional


DEFAULT_CHUNK_SIZE = 1024


class IngestOutcome(Enum):
    """Terminal states of a connection read."""
    FINISHED = "finished"
    REJECTED = "rejected"
    EMPTY = "empty"
    ERRORED = "errored"


@dataclass(frozen=True)
class IngestResult:
    """
    Result of reading one connection.

    Attributes:
        outcome: How reading ended
        payload: Data read; only meaningful for FINISHED
        error: The transport error for ERRORED
    """
    outcome: IngestOutcome
    payload: bytes = b""
    error: Optional[BaseException] = None


async def read_stream(
    reader: asyncio.StreamReader,
    limit: Optional[int],
    idle_timeout: float,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> IngestResult:
    """
    Read from ``reader`` until the client goes quiet, disconnects, sends too
    much, or the transport fails.

    Args:
        reader: Stream for the connection
        limit: Maximum payload size in bytes, None for no limit
        idle_timeout: Seconds a single read may wait for data
        chunk_size: Maximum bytes requested per read

    Returns:
        IngestResult. REJECTED is returned as soon as the payload grows past
        ``limit``; the rest of the stream is not read. Partial data is
        dropped on ERRORED.
    """
    buf = bytearray()
    while True:
        try:
            # A fresh deadline for every read, not for the whole connection
            data = await asyncio.wait_for(reader.read(chunk_size), timeout=idle_timeout)
        except asyncio.TimeoutError as error:
            # Only the deadline above means silence; on 3.11+ a socket
            # ETIMEDOUT is the same class but carries an errno
            if getattr(error, "errno", None) is None:
                break
            return IngestResult(IngestOutcome.ERRORED, error=error)
        except OSError as error:
            return IngestResult(IngestOutcome.ERRORED, error=error)

        if not data:
            # EOF: the client shut down its side, which ends input the same way
            break

        buf += data
        if limit is not None and len(buf) > limit:
            return IngestResult(IngestOutcome.REJECTED)

    if not buf:
        return IngestResult(IngestOutcome.EMPTY)
    return IngestResult(IngestOutcome.FINISHED, payload=bytes(buf))
