from __future__ import annotations

import asyncio
import json
import logging
import random
from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from typing import Any

import pytest
import pytest_asyncio

from jsonsock.codec import STREAM_HEADER, decode_modified_utf8, decode_response_header, encode_request
from jsonsock.config import Config
from jsonsock.handlers import HandlerContext
from jsonsock.quiz import QuestionBank, QuizQuestion, QuizSession
from jsonsock.server import Server


class StreamClient:
    """Speaks the wire protocol over asyncio streams so tests can drive a live server."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.reader = reader
        self.writer = writer

    async def send_raw(self, text: str) -> dict[str, Any]:
        self.writer.write(encode_request(text))
        await self.writer.drain()
        return await self.receive()

    async def send(self, req: dict[str, Any]) -> dict[str, Any]:
        return await self.send_raw(json.dumps(req))

    async def receive(self) -> dict[str, Any]:
        length = decode_response_header(await asyncio.wait_for(self.reader.readexactly(2), timeout=5))
        body = await asyncio.wait_for(self.reader.readexactly(length), timeout=5)
        return json.loads(decode_modified_utf8(body))

    async def closed_by_server(self) -> bool:
        data = await asyncio.wait_for(self.reader.read(1), timeout=5)
        return data == b""

    async def close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except ConnectionError:
            pass


@pytest.fixture()
def bank() -> QuestionBank:
    return QuestionBank(rng=random.Random(1234))


@pytest.fixture()
def single_question_bank() -> QuestionBank:
    return QuestionBank([QuizQuestion("What is the capital of France?", "Paris")])


@pytest.fixture()
def ctx(bank: QuestionBank) -> HandlerContext:
    return HandlerContext(QuizSession(), bank)


def make_config(**overrides: Any) -> Config:
    options: dict[str, Any] = {"host": "127.0.0.1", "port": 0, "timeout_graceful_shutdown": 5}
    options.update(overrides)
    return Config(**options)


@pytest_asyncio.fixture()
async def start_server() -> AsyncGenerator[Callable[..., Awaitable[Server]], None]:
    """Factory fixture: start a server on an ephemeral port, shut every one of them down afterwards."""

    servers: list[Server] = []

    async def _start(question_bank: QuestionBank | None = None, **overrides: Any) -> Server:
        server = Server(make_config(**overrides), question_bank=question_bank)
        await server.startup()
        servers.append(server)
        return server

    yield _start

    for server in servers:
        await server.shutdown()


@pytest_asyncio.fixture()
async def connect() -> AsyncGenerator[Callable[..., Awaitable[StreamClient]], None]:
    clients: list[StreamClient] = []

    async def _connect(server: Server, header: bytes = STREAM_HEADER) -> StreamClient:
        reader, writer = await asyncio.open_connection("127.0.0.1", server.port)
        writer.write(header)
        await writer.drain()
        client = StreamClient(reader, writer)
        clients.append(client)
        return client

    yield _connect

    for client in clients:
        await client.close()


@pytest.fixture()
def restore_jsonsock_logger() -> Generator[logging.Logger, None, None]:
    """configure_logging() rewires the package logger; put it back so caplog keeps seeing records."""
    logger = logging.getLogger("jsonsock")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
