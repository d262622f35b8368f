"""
Exceptions raised by hastecat.
"""

from typing import Optional

# Upper bound on how much of an error response body is kept for diagnostics
MAX_ERROR_BODY = 4 * 1024


class HastecatError(Exception):
    """Base class for hastecat errors."""


class PublishError(HastecatError):
    """Forwarding a payload to the haste-server failed."""


class StatusError(PublishError):
    """
    The haste-server answered with an unexpected HTTP status code.

    Attributes:
        status_code: Status code of the response
        expected: Status code the response should have had
        data: Up to MAX_ERROR_BODY bytes of the response body
    """

    def __init__(self, status_code: int, expected: int, data: Optional[bytes] = None):
        self.status_code = status_code
        self.expected = expected
        self.data = (data or b"")[:MAX_ERROR_BODY]
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.data:
            body = self.data.decode("utf-8", errors="replace")
            return f"expected {self.expected} status code, but got {self.status_code} ({body})"
        return f"expected {self.expected} status code, but got {self.status_code}"


class ListenerError(HastecatError):
    """No listening socket could be obtained."""
