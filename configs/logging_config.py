"""
logging_config.py - Root logger setup with an in-memory log buffer.

The buffer keeps the most recent records so the backend can serve them
to the UI without a log file.
"""
from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from typing import Any

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class LogBufferHandler(logging.Handler):
    """Logging handler that stores formatted records in a circular buffer."""

    def __init__(self, buffer_size: int = 1000):
        super().__init__()
        self.logs: deque[dict[str, Any]] = deque(maxlen=buffer_size)

    def emit(self, record: logging.LogRecord):
        try:
            self.logs.append({
                'timestamp': datetime.fromtimestamp(record.created).isoformat(),
                'level': record.levelname,
                'source': record.name,
                'message': self.format(record),
            })
        except Exception:
            self.handleError(record)

    def get_logs(
        self,
        level: str | None = None,
        source: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Get filtered logs from buffer"""
        logs_list = list(self.logs)
        if level:
            logs_list = [log for log in logs_list if log['level'] == level.upper()]
        if source:
            logs_list = [log for log in logs_list if source in log['source']]
        if limit:
            logs_list = logs_list[-limit:]
        return logs_list

    def clear(self):
        self.logs.clear()


_log_buffer: LogBufferHandler | None = None


def get_log_buffer(buffer_size: int = 1000) -> LogBufferHandler:
    """Get or create the process-wide log buffer handler."""
    global _log_buffer
    if _log_buffer is None:
        _log_buffer = LogBufferHandler(buffer_size)
    return _log_buffer


def setup_logging(level: str = 'INFO', file_output: str | None = None, buffer_size: int = 1000):
    """
    Configure the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        file_output: Optional file path for file logging
        buffer_size: Number of records kept in the in-memory buffer
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    buffer_handler = get_log_buffer(buffer_size)
    buffer_handler.setLevel(numeric_level)
    buffer_handler.setFormatter(formatter)
    root_logger.addHandler(buffer_handler)

    if file_output:
        file_handler = logging.FileHandler(file_output)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Reduce noise from the web stack
    logging.getLogger('asyncio').setLevel(logging.WARNING)
    logging.getLogger('matplotlib').setLevel(logging.WARNING)
