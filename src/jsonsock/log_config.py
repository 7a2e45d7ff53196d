"""
Console logging for the `jsonsock` command.

Records go through uvicorn's DefaultFormatter, which renders the `color_message` extra the
server attaches to its startup line and colours the level prefix when stderr is a terminal.
"""
import logging

from uvicorn.logging import DefaultFormatter

LOG_LEVELS: dict[str, int] = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

LOG_FORMAT = "%(levelprefix)s %(asctime)s %(name)s %(message)s"


def configure_logging(level: str = "info", use_colors: bool | None = None) -> logging.Logger:
    handler = logging.StreamHandler()
    handler.setFormatter(DefaultFormatter(LOG_FORMAT, use_colors=use_colors))

    logger = logging.getLogger("jsonsock")
    logger.handlers[:] = [handler]
    logger.setLevel(LOG_LEVELS[level.lower()])
    logger.propagate = False
    return logger
