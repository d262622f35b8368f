"""
haste-server client

Publishes pastes to a haste-server (https://github.com/toptal/haste-server)
and returns the key the paste can be retrieved under.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Optional

import requests

from . import __version__
from .errors import MAX_ERROR_BODY, PublishError, StatusError
from .logger import create_logger


class BasePublisher(ABC):
    """
    Abstract destination for finished pastes.

    Attributes:
        base_url: URL that retrieval keys are appended to
    """

    base_url: str

    @abstractmethod
    async def publish(self, payload: bytes) -> str:
        """
        Store ``payload`` and return its retrieval key.

        Raises:
            PublishError: If the paste could not be stored
        """


class HasteClient(BasePublisher):
    """
    Client for a haste-server instance.

    The HTTP request itself is blocking (requests), so it runs in a worker
    thread; callers bound the wait with asyncio.wait_for.
    """

    DOCUMENTS_PATH = "/documents"

    def __init__(
        self,
        url: str,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        log_level: Optional[str] = None,
    ):
        """
        Args:
            url: Base URL of the haste-server, e.g. https://hastebin.example
            timeout: Per-request timeout in seconds passed to requests
            session: Session to reuse (a new one is created if not provided)
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)

        Raises:
            ValueError: If url is empty or not an http(s) URL
        """
        url = (url or "").strip()
        if not url:
            raise ValueError("haste-server URL is required")
        if not url.startswith(("http://", "https://")):
            raise ValueError(f"haste-server URL must start with http:// or https://: {url}")

        self.base_url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": f"hastecat/{__version__}",
        })
        self.logger = create_logger("Hastecat.Haste", level=log_level)

    async def publish(self, payload: bytes) -> str:
        return await asyncio.to_thread(self.paste, payload)

    def paste(self, payload: bytes) -> str:
        """
        Send a paste to the haste-server (blocking).

        Args:
            payload: Raw paste contents

        Returns:
            Retrieval key of the new paste

        Raises:
            StatusError: If the response status is not 200 or 201
            PublishError: If the request fails or the response has no key
        """
        try:
            response = self.session.post(
                self.base_url + self.DOCUMENTS_PATH,
                data=payload,
                headers={"Content-Type": "application/octet-stream"},
                timeout=self.timeout,
                stream=True,
            )
        except requests.RequestException as error:
            raise PublishError(f"failed to execute http request: {error}") from error

        with response:
            if not 200 <= response.status_code <= 201:
                raise StatusError(response.status_code, 200, _read_limited(response))

            try:
                document = json.loads(response.content)
            except (ValueError, requests.RequestException) as error:
                raise PublishError(f"failed to decode response body: {error}") from error

        key = document.get("key") if isinstance(document, dict) else None
        if not isinstance(key, str) or not key:
            raise PublishError(f"response did not contain a paste key: {document!r}")

        self.logger.debug(f"Published {len(payload)} bytes as {key}")
        return key

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self.session.close()


def _read_limited(response: requests.Response) -> bytes:
    """Read at most MAX_ERROR_BODY bytes of a streamed response body."""
    try:
        data = b""
        for chunk in response.iter_content(chunk_size=1024):
            data += chunk
            if len(data) >= MAX_ERROR_BODY:
                break
        return data[:MAX_ERROR_BODY]
    except requests.RequestException:
        return b""
