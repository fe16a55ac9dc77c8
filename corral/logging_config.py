"""
Logging Configuration for Corral.

Provides centralized logging setup with a verbose toggle and text or JSON
formatting. Structured context is attached to records as ``extra_data``
and rendered after the message.

Usage:
    import logging

    from corral.logging_config import setup_logging

    setup_logging(verbose=True)

    logger = logging.getLogger('corral.apparmor.profiles')
    logger.error("Running apparmor", extra={'extra_data': {'action': 'r'}})
"""

import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional


# =============================================================================
# FORMATTER
# =============================================================================

class CorralFormatter(logging.Formatter):
    """Formatter with color support and structured output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33;1m',  # Bold yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[31;1m', # Bold red
        'RESET': '\033[0m',
    }

    def __init__(self, use_colors: bool = True, json_format: bool = False):
        self.use_colors = use_colors and sys.stdout.isatty()
        self.json_format = json_format
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        if self.json_format:
            return self._format_json(record)
        return self._format_text(record)

    def _format_text(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        level_name = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level_name, '')
            reset = self.COLORS['RESET']
            level_str = f"{color}{level_name:8}{reset}"
        else:
            level_str = f"{level_name:8}"

        component = self._extract_component(record.name)
        msg = record.getMessage()

        extra_str = ""
        extra_data = getattr(record, 'extra_data', None)
        if extra_data:
            extra_items = [f"{k}={v}" for k, v in extra_data.items()]
            extra_str = f" | {', '.join(extra_items)}"

        text = f"{timestamp} {level_str} [{component}] {msg}{extra_str}"
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text

    def _format_json(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            'timestamp': datetime.now().isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'component': self._extract_component(record.name),
        }

        extra_data = getattr(record, 'extra_data', None)
        if extra_data:
            data['extra'] = extra_data

        if record.exc_info:
            data['exception'] = self.formatException(record.exc_info)

        return json.dumps(data, default=str)

    def _extract_component(self, logger_name: str) -> str:
        """corral.apparmor.profiles -> apparmor.profiles"""
        parts = logger_name.split('.')
        if parts[0] == 'corral' and len(parts) >= 2:
            return '.'.join(parts[1:])
        return logger_name or 'root'


# =============================================================================
# SETUP
# =============================================================================

def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    console: bool = True,
    json_format: bool = False,
) -> None:
    """
    Initialize the logging system.

    Args:
        verbose: Log at DEBUG instead of INFO
        log_file: Optional file path for log output
        console: Enable console (stderr) output
        json_format: Use JSON format for logs
    """
    base_level = logging.DEBUG if verbose else logging.INFO

    root = logging.getLogger()
    root.setLevel(base_level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(base_level)
        console_handler.setFormatter(CorralFormatter(
            use_colors=True,
            json_format=json_format,
        ))
        root.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(base_level)
        file_handler.setFormatter(CorralFormatter(
            use_colors=False,
            json_format=json_format,
        ))
        root.addHandler(file_handler)


# =============================================================================
# ENVIRONMENT VARIABLE CONFIGURATION
# =============================================================================

def _env_flag(environ: Mapping[str, str], name: str) -> bool:
    return environ.get(name, '').lower() in ('1', 'true', 'yes')


def configure_from_environment(environ: Optional[Mapping[str, str]] = None) -> None:
    """Configure logging from CORRAL_* environment variables."""
    environ = os.environ if environ is None else environ

    setup_logging(
        verbose=_env_flag(environ, 'CORRAL_VERBOSE'),
        log_file=environ.get('CORRAL_LOG_FILE') or None,
        console=not _env_flag(environ, 'CORRAL_LOG_NO_CONSOLE'),
        json_format=_env_flag(environ, 'CORRAL_LOG_JSON'),
    )


__all__ = [
    'CorralFormatter',
    'setup_logging',
    'configure_from_environment',
]
