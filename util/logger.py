# util/logger.py
import contextvars
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Iterable
from config.settings import settings

logging.captureWarnings(True)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [run=%(run_id)s] - %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Libraries that log every request at INFO
QUIET_LOGGERS: Iterable[str] = ("httpx", "httpcore", "sentence_transformers")

_run_id: contextvars.ContextVar[str] = contextvars.ContextVar("run_id", default="-")


def bind_run(run_id: str) -> contextvars.Token:
    """Tag every record logged from the current task with `run_id`."""
    return _run_id.set(run_id or "-")


class RunIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _run_id.get()
        return True


class LevelColorFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[37m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[41m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Works on a copy; the file handler sees the same record afterwards
        colored = logging.makeLogRecord(record.__dict__)
        lvl = colored.levelname
        colored.levelname = f"{self.COLORS.get(lvl, self.RESET)}{lvl}{self.RESET}"
        return super().format(colored)


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(LevelColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(RunIdFilter())
    return handler


def _file_handler(level: int) -> logging.Handler:
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    handler = RotatingFileHandler(
        os.path.join(settings.LOG_DIR, settings.LOG_FILE_NAME),
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(RunIdFilter())
    return handler


def init_logger() -> logging.Logger:
    """
    Configure the root logger once per process: stdout with colored levels,
    plus a size-rotated file when LOG_TO_FILE is set. Records carry the run id
    bound with bind_run().
    """
    root = logging.getLogger()
    if getattr(root, "_verity_inited", False):
        return logging.getLogger(settings.LOGGER_NAME)

    level = getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO)
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)

    root.addHandler(_console_handler(level))
    if settings.LOG_TO_FILE:
        root.addHandler(_file_handler(level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root._verity_inited = True  # type: ignore[attr-defined]
    logger = logging.getLogger(settings.LOGGER_NAME)
    logger.debug("logger.init level=%s file=%s", logging.getLevelName(level), settings.LOG_TO_FILE)
    return logger
