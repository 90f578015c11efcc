# taxonomy_admin/utils/logging_config.py

import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from flask import current_app, has_app_context
from pythonjsonlogger.json import JsonFormatter

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class TaxonomyJsonFormatter(JsonFormatter):
    """JSON formatter adding timestamp, severity and service metadata"""

    def __init__(self, *args, app_name=None, app_version=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.app_name = app_name
        self.app_version = app_version

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["severity"] = record.levelname
        log_record["logger"] = record.name
        if self.app_name:
            log_record["service"] = self.app_name
        if self.app_version:
            log_record["version"] = self.app_version


def _build_formatter(app):
    if str(app.config.get("LOG_FORMAT", "text")).lower() == "json":
        return TaxonomyJsonFormatter(
            "%(levelname)s %(name)s %(message)s",
            app_name=app.config.get("APP_NAME"),
            app_version=app.config.get("APP_VERSION"),
        )
    return logging.Formatter(TEXT_FORMAT)


def setup_logging(app):
    """Configure app and package loggers from the monitoring settings"""
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    formatter = _build_formatter(app)

    handlers = []
    if app.config.get("ENABLE_CONSOLE_LOGGING", True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    if app.config.get("ENABLE_FILE_LOGGING", False):
        log_dir = app.config.get("LOG_DIR", "logs")
        try:
            os.makedirs(log_dir, exist_ok=True)
            file_handler = RotatingFileHandler(
                os.path.join(log_dir, "taxonomy_admin.log"),
                maxBytes=int(app.config.get("LOG_FILE_MAX_BYTES", 10 * 1024 * 1024)),
                backupCount=int(app.config.get("LOG_FILE_BACKUP_COUNT", 5)),
            )
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except OSError as exc:
            app.logger.warning(f"File logging disabled, cannot open {log_dir}: {exc}")

    package_logger = logging.getLogger("taxonomy_admin")
    for target in (app.logger, package_logger):
        for handler in list(target.handlers):
            target.removeHandler(handler)
            handler.close()
        for handler in handlers:
            target.addHandler(handler)
        target.setLevel(level)

    app.logger.info(f"Logging configured (level={level_name}, format={app.config.get('LOG_FORMAT', 'text')})")


def get_logger(name):
    """Return the Flask app logger inside an app context, else a module logger"""
    if has_app_context():
        return current_app.logger
    return logging.getLogger(name)
