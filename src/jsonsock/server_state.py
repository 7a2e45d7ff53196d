from typing import TYPE_CHECKING
import asyncio

from .quiz import QuestionBank
from .rate_limit import RateLimiter

if TYPE_CHECKING:
    from .sock_conn import SockConn


class ServerState:
    """
    Shared server state that is available b/w all protocol instances.
    """
    def __init__(self,
                 question_bank: QuestionBank | None = None,
                 rate_limiter: RateLimiter | None = None):
        """
        Each SockConn instance represents a single client connection and owns that client's quiz session.
        Everything here outlives the individual connections.
        """
        self.connections: set["SockConn"] = set()
        """
        One task per admitted connection, running that connection's read -> dispatch -> write loop.
        The server waits on these during a graceful shutdown.
        """
        self.tasks: set[asyncio.Task[None]] = set()
        self.question_bank = question_bank if question_bank is not None else QuestionBank()
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.total_requests = 0
