"""
One SockConn instance per accepted TCP connection.

asyncio calls the Protocol methods as bytes arrive:
- connection_made(transport): admission checks, then the per-connection task is started.
- data_received(data): bytes go straight into the RequestReader; the task is woken up.
- eof_received(): the client closed its write side. We keep ours open until every buffered
  request has been answered.
- connection_lost(exc): the transport is gone, the task sees end of stream and exits.
- pause_writing() / resume_writing(): send buffer back-pressure from the transport.

The per-connection task (run_loop) is strictly sequential: request N+1 is not decoded until the
response to request N has been handed to the transport.
"""
import asyncio
import logging

from .codec import NEED_DATA, EndOfStream, FramingError, RequestReader, encode_response
from .config import Config
from .dispatch import Dispatcher
from .flow_control import HIGH_WATER_LIMIT_READ, FlowControl
from .handlers import HandlerContext
from .quiz import QuizSession
from .server_state import ServerState
from ._types import Response
from .util import format_addr, get_local_addr, get_remote_addr

logger = logging.getLogger(__name__)


class SockConn(asyncio.Protocol):

    def __init__(self,
                 config: Config,
                 server_state: ServerState,
                 dispatcher: Dispatcher | None = None,
                 loop: asyncio.AbstractEventLoop | None = None):
        self.loop = loop or asyncio.get_event_loop()
        self.config = config
        self.reader = RequestReader(max_message_size=config.max_message_size)
        self.dispatcher = dispatcher or Dispatcher()

        # Per-connection state
        self.transport: asyncio.Transport | None = None
        self.flow_control: FlowControl | None = None
        self.client: tuple[str, int] | None = None
        self.server: tuple[str, int] | None = None
        self.session = QuizSession()
        self.data_event = asyncio.Event()
        self.disconnected = False
        self.main_task: asyncio.Task[None] | None = None
        self.limit_concurrency = config.limit_concurrency

        # Shared server state
        self.server_state = server_state
        self.connections = server_state.connections
        self.tasks = server_state.tasks
        self.context = HandlerContext(self.session, server_state.question_bank)

    @property
    def peer(self) -> str:
        return format_addr(self.client)

    def connection_made(self, transport: asyncio.Transport):
        self.transport = transport
        self.flow_control = FlowControl(transport)
        self.client = get_remote_addr(transport)
        self.server = get_local_addr(transport)
        logger.info("Client connected: %s -> %s", self.peer, format_addr(self.server))

        if self.limit_concurrency is not None and len(self.connections) >= self.limit_concurrency:
            logger.warning("Exceeded concurrency limit, closing connection from %s", self.peer)
            self.transport.close()
            return

        client_ip = self.client[0] if self.client else self.peer
        if self.server_state.rate_limiter.is_rate_limited(client_ip):
            logger.warning("Rate limit exceeded for client IP: %s", client_ip)
            self.transport.close()
            return

        self.connections.add(self)
        task = self.loop.create_task(self.run_loop())
        task.add_done_callback(self.tasks.discard)
        self.tasks.add(task)
        self.main_task = task

    def connection_lost(self, exc: Exception | None = None) -> None:
        """
        This method is called when:
        1. peer closes connection (gracefully), or when the server closes connection (gracefully)
        2. network error / abrupt disconnect, including a failed write.
        """
        self.connections.discard(self)
        self.disconnected = True
        if exc is not None:
            logger.warning("[%s] Connection lost: %s", self.peer, exc)

        self.reader.receive_data(b"")
        self.data_event.set()
        if self.flow_control is not None:
            self.flow_control.resume_writing()  # avoid deadlock or 'stalled' tasks.

    def eof_received(self) -> bool:
        self.reader.receive_data(b"")
        self.data_event.set()
        # keep the transport open so responses to already buffered requests still go out
        return True

    def data_received(self, data: bytes):
        self.reader.receive_data(data)
        if self.reader.buffered > HIGH_WATER_LIMIT_READ:
            self.flow_control.pause_reading()
        self.data_event.set()

    async def run_loop(self) -> None:
        try:
            while True:
                try:
                    event = self.reader.next_event()
                except FramingError as exc:
                    logger.warning("[%s] %s. Connection will be closed.", self.peer, exc)
                    break

                if event is NEED_DATA:
                    self.flow_control.resume_reading()
                    await self.wait_for_data()
                    continue

                if isinstance(event, EndOfStream):
                    logger.info("[%s] Client disconnected", self.peer)
                    break

                response = self.handle_message(event.text)
                if not await self.send_response(response):
                    break
        except asyncio.TimeoutError:
            logger.warning("[%s] No request for %s seconds, closing idle connection",
                           self.peer, self.config.timeout_idle)
        except Exception as exc:
            logger.error("[%s] Connection task failed: %s", self.peer, exc, exc_info=exc)
        finally:
            self.transport.close()
            logger.info("Closed connection to client %s", self.peer)

    async def wait_for_data(self) -> None:
        if self.config.timeout_idle is None:
            await self.data_event.wait()
        else:
            await asyncio.wait_for(self.data_event.wait(), timeout=self.config.timeout_idle)
        self.data_event.clear()

    def handle_message(self, text: str) -> Response:
        logger.info("[%s] Received request: %s", self.peer, text)
        response = self.dispatcher.dispatch(text, self.context)
        self.server_state.total_requests += 1
        return response

    async def send_response(self, response: Response) -> bool:
        try:
            output = encode_response(response)
        except FramingError as exc:
            logger.error("[%s] Error writing response: %s", self.peer, exc)
            return False

        if self.flow_control.write_paused:
            await self.flow_control.drain()
        if self.disconnected or self.transport.is_closing():
            return False
        self.transport.write(output)
        logger.info("[%s] Sent response: %s", self.peer, response)
        return True

    def shutdown(self) -> None:
        """
        Called by the server to commence a graceful shutdown.
        Whatever has already been written is flushed before the socket closes.
        """
        if self.transport is not None and not self.transport.is_closing():
            self.transport.close()

    def pause_writing(self) -> None:
        """
        Called by the transport when the write buffer exceeds the high water mark
        """
        self.flow_control.pause_writing()

    def resume_writing(self) -> None:
        """
        Called by the transport when the write buffer goes below the low water mark
        """
        self.flow_control.resume_writing()
