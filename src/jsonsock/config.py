from .codec import DEFAULT_MAX_MESSAGE_SIZE
from .rate_limit import DEFAULT_RATE_LIMIT


class Config:

    def __init__(
            self,
            host: str | None = "0.0.0.0",
            port: int = 8888,
            backlog: int = 100,
            timeout_graceful_shutdown: float | None = None,
            limit_concurrency: int | None = None,
            rate_limit: int = DEFAULT_RATE_LIMIT,
            rate_limit_window: float | None = None,
            timeout_idle: float | None = None,
            max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE,
            log_level: str = "info",
    ):
        self.host = host
        self.port = port
        self.backlog = backlog
        self.timeout_graceful_shutdown = timeout_graceful_shutdown
        self.limit_concurrency = limit_concurrency
        self.rate_limit = rate_limit
        self.rate_limit_window = rate_limit_window
        self.timeout_idle = timeout_idle
        self.max_message_size = max_message_size
        self.log_level = log_level
