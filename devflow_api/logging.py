import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(funcName)s:%(lineno)d %(message)s'
SIMPLE_FORMAT = '%(asctime)s %(levelname)s %(message)s'

# Extra attributes copied into structured log entries
CONTEXT_FIELDS = ('project_id', 'story_id', 'item_id', 'item_type', 'next_step', 'step')


def configure_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    enable_structured_logging: bool = False,
) -> None:
    """Configure logging with optional file rotation and structured output."""

    # Environment overrides the requested level
    env_level = os.getenv('DEVFLOW_LOG_LEVEL', '').upper()
    if env_level in ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']:
        level = getattr(logging, env_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(_build_formatter(enable_structured_logging))
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(_build_formatter(enable_structured_logging))
        root_logger.addHandler(file_handler)

    configure_traceability_loggers(level)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured - Level: {logging.getLevelName(level)}")
    if log_file:
        logger.info(f"Log file: {log_file}")


def _build_formatter(structured: bool) -> logging.Formatter:
    if structured:
        return StructuredFormatter()
    return logging.Formatter(LOG_FORMAT)


def configure_traceability_loggers(level: int) -> None:
    """Pin levels of the traceability and entity store loggers."""

    component_loggers = [
        'devflow_api.traceability.repository',
        'devflow_api.traceability.service',
        'devflow_api.traceability.router',
        'devflow_api.entities.repositories',
        'devflow_api.entities.router',
        'devflow_api.database',
    ]

    for logger_name in component_loggers:
        logging.getLogger(logger_name).setLevel(level)

    # SQL echo is noisy; only surface it when debugging
    if level == logging.DEBUG:
        logging.getLogger('sqlalchemy.engine').setLevel(logging.INFO)
    else:
        logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)


class StructuredFormatter(logging.Formatter):
    """Structured JSON formatter for production logging."""

    def format(self, record: logging.LogRecord) -> str:
        import json
        from datetime import datetime, timezone

        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def get_traceability_logger(name: str) -> logging.Logger:
    """Get a logger namespaced under the traceability package."""
    return logging.getLogger(f'devflow_api.traceability.{name}')


def log_traceability_operation(
    logger: logging.Logger,
    operation: str,
    project_id: Optional[str] = None,
    story_id: Optional[str] = None,
    level: int = logging.INFO,
    **kwargs
) -> None:
    """Log a traceability operation with structured context."""
    extra = {}
    if project_id:
        extra['project_id'] = project_id
    if story_id:
        extra['story_id'] = story_id

    extra.update(kwargs)

    logger.log(level, operation, extra=extra)
