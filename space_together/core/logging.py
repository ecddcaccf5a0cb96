import json
import logging
import os
import traceback
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from typing import Optional


LOGGER_NAME = "space_together"


class CustomJsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging"""
    def __init__(self, **kwargs):
        super().__init__()
        self.kwargs = kwargs

    def format(self, record):
        json_record = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if hasattr(record, 'request_id'):
            json_record['request_id'] = record.request_id

        if record.exc_info:
            json_record['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        if hasattr(record, 'duration'):
            json_record['duration_ms'] = record.duration

        if self.kwargs.get('extra_fields'):
            for field in self.kwargs['extra_fields']:
                if hasattr(record, field):
                    json_record[field] = getattr(record, field)

        return json.dumps(json_record, default=str)


class LoggerFactory:
    """Factory class for creating and configuring loggers"""

    @staticmethod
    def create_logger(name: str, log_dir: Optional[str] = None, level: str = "INFO"):
        logger = logging.getLogger(name)
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))

        # Reconfiguring replaces the previous handlers
        if logger.handlers:
            for handler in list(logger.handlers):
                handler.close()
            logger.handlers.clear()

        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        logger.addHandler(console)

        if not log_dir:
            return logger

        os.makedirs(log_dir, exist_ok=True)
        json_formatter = CustomJsonFormatter(
            extra_fields=['request_id', 'tenant', 'subscriber_id', 'client_ip']
        )

        app_handler = RotatingFileHandler(
            os.path.join(log_dir, 'app.log'),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        error_handler = RotatingFileHandler(
            os.path.join(log_dir, 'error.log'),
            maxBytes=10 * 1024 * 1024,
            backupCount=5
        )
        error_handler.setLevel(logging.ERROR)
        access_handler = TimedRotatingFileHandler(
            os.path.join(log_dir, 'access.log'),
            when='midnight',
            interval=1,
            backupCount=30
        )
        access_handler.addFilter(lambda record: hasattr(record, 'duration'))

        for handler in (app_handler, error_handler, access_handler):
            handler.setFormatter(json_formatter)
            logger.addHandler(handler)

        return logger


def configure_logging(level: str = "INFO", log_dir: Optional[str] = None) -> logging.Logger:
    """Reconfigure the shared application logger in place."""
    return LoggerFactory.create_logger(LOGGER_NAME, log_dir=log_dir, level=level)


# Create default logger instance
logger = LoggerFactory.create_logger(LOGGER_NAME)
