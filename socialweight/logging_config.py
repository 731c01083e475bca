"""
Structured logging configuration.

Called once from create_app(). Supports text (human-readable) and JSON formats
via LOG_FORMAT env var. LOG_LEVEL defaults to INFO.

Scoring log calls pass `extra={'user_id': ..., 'category': ..., 'elapsed_ms': ...}`.
JSON output carries those fields as keys; text output shows the user id in
brackets, falling back to the authenticated caller inside a request.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_app_context


class JSONFormatter(logging.Formatter):
    """Single-line JSON log formatter for production log aggregators."""

    CONTEXT_FIELDS = ('user_id', 'category', 'elapsed_ms')

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for name in self.CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry)


class UserContextFilter(logging.Filter):
    """Guarantee `record.user_id` for the text format."""

    def filter(self, record):
        if getattr(record, 'user_id', None) is None:
            caller = g.get('caller') if has_app_context() else None
            record.user_id = caller.user_id if caller else '-'
        return True


TEXT_FORMAT = '[%(asctime)s] %(levelname)s %(name)s [%(user_id)s] %(message)s'

# Third-party loggers that are noisy at INFO
_NOISY_LOGGERS = [
    'urllib3',
    'redis',
    'sqlalchemy.engine',
    'sqlalchemy.pool',
    'werkzeug',
]


def configure_logging(app=None):
    """
    Set up root logger with format/level from env vars.

    Environment variables:
        LOG_LEVEL:  Python log level name (default: INFO)
        LOG_FORMAT: "text" (default) or "json"
    """
    level_name = os.getenv('LOG_LEVEL', 'INFO').upper()
    level = getattr(logging, level_name, logging.INFO)

    log_format = os.getenv('LOG_FORMAT', 'text').lower()

    root = logging.getLogger()
    root.setLevel(level)

    # Remove any existing handlers to avoid duplicates on re-init
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if log_format == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.addFilter(UserContextFilter())
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

    root.addHandler(handler)

    # Quiet noisy third-party loggers
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        app.logger.setLevel(level)
