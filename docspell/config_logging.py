"""
DocSpell Logging & Error Module
===============================
Structured logging and the error taxonomy shared by every pipeline stage.

Logging can be tuned via environment variables:
- DOCSPELL_LOG_LEVEL   (DEBUG, INFO, WARNING, ERROR; default WARNING)
- DOCSPELL_LOG_FORMAT  (text or json; default text)
- DOCSPELL_LOG_FILE    (optional path of a rotating log file)
"""

import os
import sys
import json
import logging
import uuid
import time
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from pathlib import Path
from dataclasses import dataclass
from contextlib import contextmanager
import threading

LOG_FILE_MAX_BYTES = 5 * 1024 * 1024  # 5MB max per log file
LOG_BACKUP_COUNT = 5                  # Number of log backup files to keep

__version__ = "0.3.1"
VERSION = __version__
APP_NAME = "DocSpell"


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

@dataclass
class LogConfig:
    """Logging configuration with quiet defaults for a command line tool."""

    log_level: str = "WARNING"
    log_format: str = "text"  # Options: json, text
    log_file: Optional[Path] = None
    log_to_console: bool = True

    @classmethod
    def from_env(cls) -> 'LogConfig':
        """Load logging configuration from environment variables."""
        log_file = os.environ.get('DOCSPELL_LOG_FILE')
        return cls(
            log_level=os.environ.get('DOCSPELL_LOG_LEVEL', 'WARNING').upper(),
            log_format=os.environ.get('DOCSPELL_LOG_FORMAT', 'text').lower(),
            log_file=Path(log_file) if log_file else None,
        )


_log_config: Optional[LogConfig] = None
_loggers: Dict[str, 'StructuredLogger'] = {}
_loggers_lock = threading.Lock()


def get_log_config() -> LogConfig:
    """Get or create the global logging configuration."""
    global _log_config
    if _log_config is None:
        _log_config = LogConfig.from_env()
    return _log_config


def configure_logging(level: Optional[str] = None, quiet: bool = False,
                      log_format: Optional[str] = None):
    """
    Apply command line logging overrides to every logger.

    Args:
        level: Level name overriding the environment
        quiet: Silence all console output
        log_format: 'text' or 'json'
    """
    config = get_log_config()
    if level:
        config.log_level = level.upper()
    if log_format:
        config.log_format = log_format
    config.log_to_console = not quiet
    with _loggers_lock:
        for logger in _loggers.values():
            logger._setup_logger()


def reset_logging():
    """Reset the logging configuration (for testing)."""
    global _log_config
    _log_config = None
    with _loggers_lock:
        _loggers.clear()


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

class StructuredLogger:
    """Thread-safe structured logger with per-run correlation IDs."""

    _local = threading.local()

    def __init__(self, name: str, config: Optional[LogConfig] = None):
        self.name = name
        self.config = config or get_log_config()
        self._setup_logger()

    def _setup_logger(self):
        """Configure the underlying Python logger."""
        self.logger = logging.getLogger(f"docspell.{self.name}")
        self.logger.setLevel(getattr(logging, self.config.log_level.upper(), logging.WARNING))
        self.logger.propagate = False
        self.logger.handlers.clear()

        if self.config.log_format == 'json':
            formatter = JsonFormatter()
        else:
            formatter = logging.Formatter(
                '%(asctime)s [%(levelname)s] %(name)s - %(message)s'
            )

        if self.config.log_to_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)
        else:
            self.logger.addHandler(logging.NullHandler())

        if self.config.log_file:
            from logging.handlers import RotatingFileHandler
            file_handler = RotatingFileHandler(
                self.config.log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    @classmethod
    def set_correlation_id(cls, correlation_id: str):
        """Set correlation ID for current thread."""
        cls._local.correlation_id = correlation_id

    @classmethod
    def get_correlation_id(cls) -> str:
        """Get correlation ID for current thread."""
        return getattr(cls._local, 'correlation_id', None) or '-'

    @classmethod
    def new_correlation_id(cls) -> str:
        """Generate and set a new correlation ID."""
        correlation_id = str(uuid.uuid4())[:12]
        cls.set_correlation_id(correlation_id)
        return correlation_id

    def _build_log_record(self, level: str, message: str, **kwargs) -> Dict[str, Any]:
        """Build a structured log record."""
        return {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': level,
            'logger': self.name,
            'correlation_id': self.get_correlation_id(),
            'message': message,
            **kwargs
        }

    def _render(self, level: str, message: str, **kwargs) -> str:
        if self.config.log_format == 'json':
            return json.dumps(self._build_log_record(level, message, **kwargs), default=str)
        if kwargs:
            fields = ' '.join(f"{k}={v}" for k, v in kwargs.items())
            return f"{message} ({fields})"
        return message

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(self._render('DEBUG', message, **kwargs))

    def info(self, message: str, **kwargs):
        """Log info message."""
        if self.logger.isEnabledFor(logging.INFO):
            self.logger.info(self._render('INFO', message, **kwargs))

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self.logger.warning(self._render('WARNING', message, **kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs):
        """Log error message with optional exception info."""
        self.logger.error(self._render('ERROR', message, **kwargs), exc_info=exc_info)

    def exception(self, message: str, **kwargs):
        """Log exception with full traceback."""
        self.error(message, exc_info=True, **kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message."""
        self.logger.critical(self._render('CRITICAL', message, **kwargs))

    @contextmanager
    def log_operation(self, operation: str, **context):
        """Context manager for logging operation start/end with timing."""
        start_time = time.time()
        self.debug(f"{operation} started", operation=operation, status='started', **context)
        try:
            yield
            duration_ms = (time.time() - start_time) * 1000
            self.info(f"{operation} completed", operation=operation, status='completed',
                      duration_ms=round(duration_ms, 2), **context)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self.error(f"{operation} failed: {e}", operation=operation, status='failed',
                       duration_ms=round(duration_ms, 2), **context)
            raise


class JsonFormatter(logging.Formatter):
    """JSON log formatter for records that were not pre-rendered."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if message.startswith('{'):
            if record.exc_info:
                data = json.loads(message)
                data['traceback'] = self.formatException(record.exc_info)
                return json.dumps(data)
            return message

        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': message,
        }
        if record.exc_info:
            log_data['traceback'] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance (one per name)."""
    with _loggers_lock:
        logger = _loggers.get(name)
        if logger is None:
            logger = StructuredLogger(name, get_log_config())
            _loggers[name] = logger
        return logger


# =============================================================================
# ERROR TAXONOMY
# =============================================================================

class DocSpellError(Exception):
    """Base exception for DocSpell."""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR",
                 details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a report-friendly dict."""
        return {
            'code': self.code,
            'message': self.message,
            'details': self.details
        }


class ParseError(DocSpellError):
    """A source file could not be parsed; the file is skipped."""
    def __init__(self, message: str, path: Optional[str] = None,
                 line: Optional[int] = None, **kwargs):
        super().__init__(message, code="PARSE_ERROR",
                         details={'path': path, 'line': line, **kwargs})
        self.path = path
        self.line = line


class BackendUnavailable(DocSpellError):
    """A checker backend failed to initialize or became unreachable."""
    def __init__(self, message: str, backend: Optional[str] = None, **kwargs):
        super().__init__(message, code="BACKEND_UNAVAILABLE",
                         details={'backend': backend, **kwargs})
        self.backend = backend


class NoBackendsAvailable(DocSpellError):
    """Every configured checker backend is unavailable."""
    def __init__(self, message: str = "No checker backend is available", **kwargs):
        super().__init__(message, code="NO_BACKENDS", details=kwargs)


class PatchConflict(DocSpellError):
    """Accepted corrections overlap or the file changed since extraction."""
    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, code="PATCH_CONFLICT",
                         details={'path': path, **kwargs})
        self.path = path


class IoError(DocSpellError):
    """Writing the patched file or renaming it into place failed."""
    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, code="IO_ERROR",
                         details={'path': path, **kwargs})
        self.path = path


class ConfigurationError(DocSpellError):
    """The configuration file is missing or invalid."""
    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, code="CONFIG_ERROR",
                         details={'path': path, **kwargs})


class ManifestError(DocSpellError):
    """A Cargo manifest could not be read or parsed."""
    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, code="MANIFEST_ERROR",
                         details={'path': path, **kwargs})


class SegmentationError(DocSpellError):
    """Markdown segmentation did not produce a total partition."""
    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="SEGMENTATION_ERROR", details=kwargs)
