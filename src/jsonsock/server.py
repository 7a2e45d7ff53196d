from typing import Generator
import asyncio
import functools
import signal
import socket
import sys
import logging
import contextlib
import threading
import click
from .config import Config
from .dispatch import Dispatcher
from .quiz import QuestionBank
from .rate_limit import RateLimiter
from .server_state import ServerState
from .sock_conn import SockConn


HANDLED_SIGNALS = {
    signal.SIGINT: "SIGINT",
    signal.SIGTERM: "SIGTERM",
}
if sys.platform == "win32":
    HANDLED_SIGNALS[signal.SIGBREAK] = "SIGBREAK"


logger = logging.getLogger(__name__)


class Server:
    def __init__(self, config: Config, question_bank: QuestionBank | None = None):
        self.config = config
        self.server_state = ServerState(
            question_bank=question_bank,
            rate_limiter=RateLimiter(max_attempts=config.rate_limit, window=config.rate_limit_window),
        )
        self.dispatcher = Dispatcher()
        self.started = False
        self.should_exit = False
        self.force_exit = False
        self._captured_signals: list[int] = []
        self.server: asyncio.Server | None = None

    def run(self) -> None:
        return asyncio.run(self.serve())

    async def serve(self) -> None:
        with self.capture_signals():
            await self._serve()

    async def _serve(self):
        logger.info("Starting server...")
        await self.startup()
        if self.should_exit:
            return
        await self.main_loop()
        await self.shutdown()
        logger.info("Server shutdown complete!")

    async def startup(self) -> None:
        loop = asyncio.get_running_loop()
        protocol_factory = functools.partial(
            SockConn,
            config=self.config,
            server_state=self.server_state,
            dispatcher=self.dispatcher,
            loop=loop,
        )
        try:
            server = await loop.create_server(protocol_factory,
                                              host=self.config.host,
                                              port=self.config.port,
                                              backlog=self.config.backlog
                                              )
        except OSError as exc:
            logger.error(exc)
            sys.exit(1)

        self.server = server
        self.started = True
        self._log_startup_message(server.sockets[0])

    @property
    def port(self) -> int | None:
        if self.server is None or not self.server.sockets:
            return None
        return self.server.sockets[0].getsockname()[1]

    def _log_startup_message(self, listener: socket.socket):
        addr_format = "%s:%d"
        host = "0.0.0.0" if self.config.host is None else self.config.host
        if ":" in host:
            # It's an IPv6 address.
            addr_format = "[%s]:%d"

        port = self.config.port
        if port == 0:
            port = listener.getsockname()[1]

        message = f"jsonsock running on {addr_format} (Press CTRL+C to quit)"
        color_message = "jsonsock running on " + click.style(addr_format, bold=True) + " (Press CTRL+C to quit)"
        logger.info(
            message,
            host,
            port,
            extra={"color_message": color_message},
        )
        logger.info("Question bank holds %d question(s)", len(self.server_state.question_bank))

    async def main_loop(self) -> None:
        # Polled instead of serve_forever() so a signal only has to flip should_exit.
        # Accepting and every connection's run_loop keep going on the event loop meanwhile.
        while not self.should_exit:
            await asyncio.sleep(0.1)

    async def shutdown(self) -> None:
        logger.info("Shutting down server...")
        self.server.close()

        for connection in list(self.server_state.connections):
            connection.shutdown()
        # one tick for the closed transports to call connection_lost
        await asyncio.sleep(0.1)

        try:
            await asyncio.wait_for(self._wait_tasks_to_complete(), timeout=self.config.timeout_graceful_shutdown)
        except asyncio.TimeoutError:
            pending = [task for task in self.server_state.tasks if not task.done()]
            logger.warning("Graceful shutdown timed out, cancelling %d connection task(s)", len(pending))
            for task in pending:
                task.cancel()

        logger.info("Handled %d request(s)", self.server_state.total_requests)

    async def _wait_tasks_to_complete(self) -> None:
        """
        Connections drop out of server_state first (connection_lost), their run_loop tasks a
        moment later once the transport is closed and logged, so both sets are waited on.
        """
        await self._wait_until_empty(self.server_state.connections, "connections to close")
        await self._wait_until_empty(self.server_state.tasks, "connection tasks to finish")
        await self.server.wait_closed()

    async def _wait_until_empty(self, pending: set, what: str) -> None:
        if not pending or self.force_exit:
            return
        logger.info("Waiting for %d %s (CTRL+C to force quit)", len(pending), what)
        while pending and not self.force_exit:
            await asyncio.sleep(0.1)

    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None, None, None]:
        # signal.signal() may only be called from the main thread
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        previous = {}
        for sig in HANDLED_SIGNALS:
            previous[sig] = signal.signal(sig, self.handle_exit)
        try:
            yield
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)
            # hand the swallowed signals back to whoever was listening before, newest first
            for sig in reversed(self._captured_signals):
                signal.raise_signal(sig)

    def handle_exit(self, sig: int, frame) -> None:
        """First SIGINT/SIGTERM asks for a graceful stop, a second SIGINT stops waiting on clients."""
        self._captured_signals.append(sig)
        if sig == signal.SIGINT and self.should_exit:
            self.force_exit = True
            return
        self.should_exit = True
