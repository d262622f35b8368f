"""
Shared fixtures: an in-memory publisher and a fake haste-server.
"""

import asyncio
import hashlib
import socket
import threading
import time

import pytest
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from hastecat.errors import StatusError
from hastecat.haste import BasePublisher


BASE_URL = "https://example.test"


class FakePublisher(BasePublisher):
    """Publisher that records payloads instead of sending them anywhere."""

    def __init__(self, base_url=BASE_URL, keys=None, fail_on=None, delay=0.0):
        self.base_url = base_url
        self.keys = keys or {}
        self.fail_on = fail_on
        self.delay = delay
        self.calls = []

    async def publish(self, payload: bytes) -> str:
        self.calls.append(payload)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_on is not None and self.fail_on in payload:
            raise StatusError(500, 200, b"upstream exploded")
        if payload in self.keys:
            return self.keys[payload]
        return hashlib.sha256(payload).hexdigest()[:10]


@pytest.fixture
def publisher():
    return FakePublisher()


def create_fake_haste_app() -> FastAPI:
    """
    Minimal haste-server lookalike.

    Keys are derived from the body so tests can predict them. Path prefixes
    select misbehaving variants.
    """
    app = FastAPI()
    app.state.received = []

    @app.post("/documents")
    async def create_document(request: Request):
        body = await request.body()
        app.state.received.append({"body": body, "headers": dict(request.headers)})
        return {"key": hashlib.sha256(body).hexdigest()[:10]}

    @app.post("/created/documents")
    async def create_document_201(request: Request):
        body = await request.body()
        return JSONResponse(status_code=201, content={"key": "created" + str(len(body))})

    @app.post("/broken/documents")
    async def broken():
        return PlainTextResponse("x" * 10000, status_code=500)

    @app.post("/teapot/documents")
    async def teapot():
        return PlainTextResponse("", status_code=418)

    @app.post("/nokey/documents")
    async def no_key():
        return {"message": "stored"}

    @app.post("/emptykey/documents")
    async def empty_key():
        return {"key": ""}

    @app.post("/notjson/documents")
    async def not_json():
        return PlainTextResponse("definitely not json")

    return app


@pytest.fixture(scope="module")
def fake_haste():
    """
    Run the fake haste-server for the whole test module.
    Server runs in a background thread.
    """
    app = create_fake_haste_app()

    sock = socket.create_server(("127.0.0.1", 0))
    port = sock.getsockname()[1]

    config = uvicorn.Config(app, log_level="error", access_log=False)
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, kwargs={"sockets": [sock]}, daemon=True)
    thread.start()

    deadline = time.monotonic() + 10
    while not server.started:
        if time.monotonic() > deadline:
            raise RuntimeError("fake haste-server did not start")
        time.sleep(0.05)

    yield {"app": app, "url": f"http://127.0.0.1:{port}"}

    server.should_exit = True
    thread.join(timeout=5)
    sock.close()
