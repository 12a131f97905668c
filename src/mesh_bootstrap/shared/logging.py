"""Logging configuration for mesh-bootstrap.

Configures structlog on top of standard logging. Every run writes to the
terminal (stderr) and, when a log file is given, appends to it as well. The
terminal gets structlog's console (or JSON) rendering; the log file gets one
`[YYYY-MM-DD HH:MM:SS] message` line per event.
"""

import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import structlog

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def render_run_log_line(_logger, _method_name: str, event_dict: dict) -> str:
    """Render an event as a run log line, dropping any extra fields."""
    return f"[{event_dict.get('timestamp', '')}] {event_dict.get('event', '')}"


def configure_logging(
    level: str = "info",
    log_file: str | Path | None = None,
    json_output: bool = False,
) -> None:
    """Configure logging for the application.

    Called once on startup. Configures both standard logging and structlog.

    Args:
        level: Log level (debug, info, warning, error, critical)
        log_file: Optional path to the append-only run log
        json_output: If True, the terminal gets JSON lines

    Usage:
        CLI run: configure_logging(level, log_file=config.log_file)
        Tests: configure_logging("debug") (stderr only)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    timestamper = structlog.processors.TimeStamper(fmt=TIMESTAMP_FORMAT, utc=False)
    # Applied to records from plain stdlib loggers (httpx) before formatting
    foreign_pre_chain: list[structlog.types.Processor] = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        timestamper,
    ]

    if json_output:
        terminal_renderer = structlog.processors.JSONRenderer()
    else:
        terminal_renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                terminal_renderer,
            ],
            foreign_pre_chain=foreign_pre_chain,
        )
    )
    handlers.append(stream_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_path), mode="a", encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    render_run_log_line,
                ],
                foreign_pre_chain=foreign_pre_chain,
            )
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            timestamper,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


@dataclass
class RunLogEntry:
    """A single timestamped run log message."""

    timestamp: datetime
    level: str
    message: str

    def format(self) -> str:
        return f"[{self.timestamp.strftime(TIMESTAMP_FORMAT)}] {self.message}"


class RunLog:
    """Append-only record of the messages emitted during one run.

    Each message is kept in memory and forwarded to structlog, which writes
    it to the terminal and the log file.
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None):
        self._logger = logger or get_logger("mesh_bootstrap.run")
        self.entries: list[RunLogEntry] = []

    def info(self, message: str, **kwargs) -> None:
        self._record("info", message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._record("warning", message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._record("error", message, **kwargs)

    def output(self, text: str) -> None:
        """Log captured command output, skipping empty output."""
        text = (text or "").strip()
        if text:
            self.info(text)

    def _record(self, level: str, message: str, **kwargs) -> None:
        self.entries.append(RunLogEntry(datetime.now(), level, message))
        getattr(self._logger, level)(message, **kwargs)

    @property
    def last(self) -> RunLogEntry | None:
        return self.entries[-1] if self.entries else None

    def messages(self) -> list[str]:
        """Return the plain message text of every entry, in order."""
        return [entry.message for entry in self.entries]
