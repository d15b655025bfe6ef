"""
Logging configuration for the personalization service.

Request threads, scoring workers and background invalidation all log through
one queue; a single listener thread writes the records out, so lines from
concurrent threads never interleave.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from queue import Queue
from typing import List, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - %(message)s"

# Third-party loggers kept at WARNING unless debugging
NOISY_LOGGERS = (
    "urllib3",
    "requests",
    "openai",
    "langchain_core",
    "langchain_openai",
    "langchain_deepseek",
    "langchain_ollama",
    "werkzeug",
)

# Network stacks muted entirely unless debugging
SILENT_LOGGERS = ("httpx", "httpcore")


class _MuteHttpTraffic(logging.Filter):
    """Drops per-request HTTP client chatter."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith(SILENT_LOGGERS):
            return False
        message = record.getMessage()
        return not (isinstance(message, str) and message.startswith(("HTTP Request:", "HTTP Response:")))


class ThreadSafeLoggingConfig:
    """Queue-based logging shared by every thread in the process."""

    def __init__(self):
        self._listener: Optional[logging.handlers.QueueListener] = None
        self._queue: Optional[Queue] = None

    @property
    def active(self) -> bool:
        return self._listener is not None

    def setup_logging(self, debug: bool = False, log_file: Optional[Path] = None) -> None:
        """Route the root logger through a queue.

        Args:
            debug: Log at DEBUG and keep third-party loggers verbose
            log_file: Optional rotating log file in addition to stdout
        """
        self.stop()

        formatter = logging.Formatter(LOG_FORMAT)
        outputs: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
        if log_file is not None:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            outputs.append(
                logging.handlers.RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=3, encoding="utf-8")
            )
        for handler in outputs:
            handler.setFormatter(formatter)

        self._queue = Queue()
        self._listener = logging.handlers.QueueListener(self._queue, *outputs, respect_handler_level=True)
        self._listener.start()

        queue_handler = logging.handlers.QueueHandler(self._queue)
        root = logging.getLogger()
        root.handlers.clear()
        root.addHandler(queue_handler)
        root.setLevel(logging.DEBUG if debug else logging.INFO)

        if not debug:
            queue_handler.addFilter(_MuteHttpTraffic())
            self._quiet_libraries()

    @staticmethod
    def _quiet_libraries() -> None:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
        for name in SILENT_LOGGERS:
            logger = logging.getLogger(name)
            logger.setLevel(logging.CRITICAL)
            logger.disabled = True

    def stop(self) -> None:
        """Flush and stop the listener thread."""
        if self._listener is not None:
            self._listener.stop()
            self._listener = None
        self._queue = None


# Global logging configuration instance
logging_config = ThreadSafeLoggingConfig()


def setup_logging(debug: bool = False, log_file: Optional[Path] = None) -> None:
    logging_config.setup_logging(debug, log_file)


def stop_logging() -> None:
    logging_config.stop()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
