"""Logging setup for the annotation tool.

Every segmentation request runs under a run id (``CorrelationContext``) so
the Gemini call, the parser's boundary warnings and the canvas update that
follows can be picked out of a busy log. The console gets plain text; the
rotating log files get plain text or one JSON object per line. Gemini keys
are masked in every output.
"""
import json
import logging
import logging.handlers
import re
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

_KEY_PATTERNS = (
    (re.compile(r'(?i)(api[_-]?key["\s]*[:=]["\s]*)[\w-]+'), r'\1[REDACTED]'),
    (re.compile(r'AIza[\w-]{35}'), '[REDACTED]'),
)

# Anything on a record beyond these came in through ``extra=``
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {
    'message', 'asctime', 'correlation_id', 'taskName',
}

# Libraries that log every HTTP round trip at INFO
_NOISY_LOGGERS = ('PIL', 'urllib3', 'httpx', 'httpcore', 'google_genai')

CONSOLE_FORMAT = '%(asctime)s %(levelname)-8s [%(correlation_id)s] %(name)s: %(message)s'


def new_run_id() -> str:
    return uuid.uuid4().hex[:12]


def redact(text: str) -> str:
    """Mask anything that looks like a Gemini API key."""
    for pattern, replacement in _KEY_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class CorrelationIDFilter(logging.Filter):
    """Stamps the active run id on each record ('-' outside a run)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get() or '-'
        return True


class TextFormatter(logging.Formatter):

    def __init__(self, fmt: str = CONSOLE_FORMAT):
        super().__init__(fmt)

    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'ts': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'run': getattr(record, 'correlation_id', '-'),
            'msg': record.getMessage(),
            'where': f"{record.module}.{record.funcName}:{record.lineno}",
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry['error'] = {
                'type': record.exc_info[0].__name__,
                'detail': str(record.exc_info[1]),
                'traceback': self.formatException(record.exc_info),
            }
        extra = {k: v for k, v in vars(record).items() if k not in _STANDARD_ATTRS}
        if extra:
            entry['extra'] = extra
        return redact(json.dumps(entry, default=str))


class LoggingManager:
    """Owns the handlers installed on the root logger."""

    def __init__(self):
        self._handlers: Dict[str, logging.Handler] = {}
        self._log_dir: Optional[Path] = None

    @property
    def is_configured(self) -> bool:
        return bool(self._handlers)

    def configure(
        self,
        log_level: str = 'INFO',
        log_dir: Optional[Union[str, Path]] = None,
        enable_file_logging: bool = True,
        enable_console_logging: bool = True,
        structured_logging: bool = False,
        max_file_size: int = 5 * 1024 * 1024,
        backup_count: int = 3,
        application_name: str = 'itemlens',
    ) -> None:
        """Install console and rotating file handlers.

        A second call is a no-op until ``shutdown()`` has been called.

        Args:
            log_level: Level name; unknown names fall back to INFO
            log_dir: Directory for the log files (default ``./logs``)
            enable_file_logging: Write ``<name>.log`` and ``<name>-errors.log``
            enable_console_logging: Write to stdout
            structured_logging: Use JSON lines in the log files
            max_file_size: Rotation threshold in bytes
            backup_count: Rotated files to keep
            application_name: Base name of the log files
        """
        if self.is_configured:
            return

        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO

        root = logging.getLogger()
        root.setLevel(level)
        root.handlers.clear()

        if enable_console_logging:
            self._add('console', logging.StreamHandler(sys.stdout), level, TextFormatter())

        if enable_file_logging:
            self._log_dir = Path(log_dir or 'logs')
            self._log_dir.mkdir(parents=True, exist_ok=True)
            for key, suffix, handler_level in (('application', '', level),
                                               ('errors', '-errors', logging.ERROR)):
                handler = logging.handlers.RotatingFileHandler(
                    self._log_dir / f'{application_name}{suffix}.log',
                    maxBytes=max_file_size,
                    backupCount=backup_count,
                    encoding='utf-8',
                )
                formatter = JsonLineFormatter() if structured_logging else TextFormatter()
                self._add(key, handler, handler_level, formatter)

        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        logging.getLogger(__name__).info(
            f"Logging at {logging.getLevelName(level)} to {self.handler_names()}"
        )

    def _add(self, key: str, handler: logging.Handler, level: int,
             formatter: logging.Formatter) -> None:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(CorrelationIDFilter())
        logging.getLogger().addHandler(handler)
        self._handlers[key] = handler

    def handler_names(self) -> List[str]:
        return sorted(self._handlers)

    def shutdown(self) -> None:
        """Detach and close every handler this manager installed."""
        root = logging.getLogger()
        for handler in self._handlers.values():
            root.removeHandler(handler)
            handler.close()
        self._handlers.clear()


logging_manager = LoggingManager()


def configure_logging(**kwargs) -> None:
    logging_manager.configure(**kwargs)


class CorrelationContext:
    """Scope a block of work under one run id.

    Usage:
        with CorrelationContext() as run_id:
            ...
    """

    def __init__(self, corr_id: Optional[str] = None):
        self.corr_id = corr_id
        self._token = None

    def __enter__(self) -> str:
        run_id = self.corr_id or new_run_id()
        self._token = correlation_id.set(run_id)
        return run_id

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        correlation_id.reset(self._token)
