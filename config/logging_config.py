"""
Structured logging configuration for the storefront location engine.
Console output plus rotating JSON log files for the geocoder and search sessions.
"""

import os
import logging
import logging.handlers
from datetime import datetime, timezone
from typing import Dict, Any, Optional
import json


class JSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging.

    Outputs log records in JSON format for easy parsing and analysis.
    """

    RESERVED_ATTRS = {
        'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
        'filename', 'module', 'exc_info', 'exc_text', 'stack_info',
        'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
        'thread', 'threadName', 'processName', 'process', 'message',
        'taskName'
    }

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record (LogRecord): Log record to format

        Returns:
            str: JSON formatted log message
        """
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        # Anything passed through ``extra=`` lands on the record itself
        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in self.RESERVED_ATTRS
        }

        if extra_fields:
            log_entry['extra'] = extra_fields

        return json.dumps(log_entry, default=str)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that merges fixed context (session id, generation, ...)
    into every record's extra fields.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = dict(kwargs.get('extra') or {})
        extra.update(self.extra)
        kwargs['extra'] = extra
        return msg, kwargs


class LoggingManager:
    """
    Central logging management for the location engine.

    Configures the root logger with a console handler and rotating JSON
    file handlers, and hands out context-aware loggers.
    """

    def __init__(self, log_dir: Optional[str] = None):
        """Initialize logging manager with default configuration."""
        self.loggers: Dict[str, logging.Logger] = {}
        self.log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
        self.log_dir = log_dir or os.getenv(
            'LOG_DIR',
            os.path.join(os.path.dirname(os.path.dirname(__file__)), 'logs')
        )

        os.makedirs(self.log_dir, exist_ok=True)

        self._configure_root_logger()

    def _configure_root_logger(self) -> None:
        """Configure the root logger with handlers and formatters."""
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, self.log_level, logging.INFO))

        root_logger.handlers.clear()

        console_handler = logging.StreamHandler()
        console_handler.setLevel(getattr(logging, self.log_level, logging.INFO))
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        root_logger.addHandler(console_handler)

        self._add_file_handlers(root_logger)

    def _add_file_handlers(self, logger: logging.Logger) -> None:
        """
        Add file handlers for different log streams.

        Args:
            logger (Logger): Logger to add handlers to
        """
        # General application log (all levels)
        app_handler = logging.handlers.RotatingFileHandler(
            os.path.join(self.log_dir, 'storefront.log'),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        app_handler.setLevel(logging.DEBUG)
        app_handler.setFormatter(JSONFormatter())
        logger.addHandler(app_handler)

        # Error log (errors only)
        error_handler = logging.handlers.RotatingFileHandler(
            os.path.join(self.log_dir, 'errors.log'),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=10
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(JSONFormatter())
        logger.addHandler(error_handler)

        # Place-search provider traffic
        geocoder_handler = logging.handlers.RotatingFileHandler(
            os.path.join(self.log_dir, 'geocoder.log'),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        geocoder_handler.setLevel(logging.DEBUG)
        geocoder_handler.setFormatter(JSONFormatter())
        geocoder_handler.addFilter(lambda record: 'geocoder' in record.name.lower())
        logger.addHandler(geocoder_handler)

        # Search-session and geolocation state transitions
        session_handler = logging.handlers.RotatingFileHandler(
            os.path.join(self.log_dir, 'sessions.log'),
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3
        )
        session_handler.setLevel(logging.INFO)
        session_handler.setFormatter(JSONFormatter())
        session_handler.addFilter(
            lambda record: 'session' in record.name.lower() or 'geolocation' in record.name.lower()
        )
        logger.addHandler(session_handler)

    def get_logger(self, name: str, context: Dict[str, Any] = None) -> logging.Logger:
        """
        Get or create a logger with optional context.

        Args:
            name (str): Logger name
            context (dict): Optional fixed context attached to every record

        Returns:
            Logger: Configured logger instance
        """
        if context:
            return ContextLoggerAdapter(logging.getLogger(name), context)

        if name not in self.loggers:
            self.loggers[name] = logging.getLogger(name)
        return self.loggers[name]

    def log_geocoder_request(self, query: str, status: str, result_count: int,
                             details: Dict[str, Any] = None, level: str = 'INFO') -> None:
        """
        Log a completed place-search request with structured data.

        Args:
            query (str): Text sent to the provider
            status (str): Outcome (ok, empty, stale, error, skipped)
            result_count (int): Number of candidates returned to the caller
            details (dict): Additional request details
            level (str): Log level
        """
        logger = logging.getLogger('storefront.geocoder')
        extra = {
            'operation_type': 'geocoder',
            'query': query,
            'status': status,
            'result_count': result_count
        }
        if details:
            extra.update(details)

        logger.log(getattr(logging, level.upper()),
                   f"Place search '{query}' -> {status} ({result_count} results)", extra=extra)

    def log_session_transition(self, session_id: str, from_state: str, to_state: str,
                               generation: int, details: Dict[str, Any] = None) -> None:
        """
        Log a search-session state change.

        Args:
            session_id (str): Session identifier
            from_state (str): Previous state
            to_state (str): New state
            generation (int): Query generation that caused the change
            details (dict): Additional details
        """
        logger = logging.getLogger('storefront.session')
        extra = {
            'operation_type': 'session',
            'session_id': session_id,
            'from_state': from_state,
            'to_state': to_state,
            'generation': generation
        }
        if details:
            extra.update(details)

        logger.debug(f"Session {session_id}: {from_state} -> {to_state} (gen {generation})", extra=extra)

    def set_log_level(self, level: str) -> None:
        """
        Change the log level for the root logger and console handler.

        Args:
            level (str): New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        """
        log_level = getattr(logging, level.upper())
        self.log_level = level.upper()

        logging.getLogger().setLevel(log_level)

        for handler in logging.getLogger().handlers:
            if type(handler) is logging.StreamHandler:
                handler.setLevel(log_level)

    def get_log_stats(self) -> Dict[str, Any]:
        """
        Get logging statistics for monitoring.

        Returns:
            dict: Logging configuration and statistics
        """
        return {
            'log_level': self.log_level,
            'log_directory': self.log_dir,
            'active_loggers': list(self.loggers.keys()),
            'handlers_count': len(logging.getLogger().handlers),
            'log_files': [
                'storefront.log',
                'errors.log',
                'geocoder.log',
                'sessions.log'
            ]
        }


# Global logging manager instance
logging_manager = LoggingManager()


def get_logger(name: str, context: Dict[str, Any] = None) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name (str): Logger name
        context (dict): Optional fixed context

    Returns:
        Logger: Configured logger
    """
    return logging_manager.get_logger(name, context)


def log_geocoder_request(query: str, status: str, result_count: int,
                         details: Dict[str, Any] = None, level: str = 'INFO') -> None:
    """Log a place-search request with structured data."""
    logging_manager.log_geocoder_request(query, status, result_count, details, level)


def log_session_transition(session_id: str, from_state: str, to_state: str,
                           generation: int, details: Dict[str, Any] = None) -> None:
    """Log a search-session state change."""
    logging_manager.log_session_transition(session_id, from_state, to_state, generation, details)
