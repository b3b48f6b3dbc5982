import logging
import sys

FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(name: str = "oblivious_fib", level: str = "INFO") -> logging.Logger:
    """
    Attach a console handler to the package logger.

    Module loggers (logging.getLogger(__name__)) propagate to it, so this is
    called once by the entry points (CLI, server) and never by library code.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Avoid duplicate handlers when called twice in one process
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    return logger
