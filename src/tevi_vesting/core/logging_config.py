"""
JSON logging for the vesting ledger.

Every module logs through ``logging.getLogger(__name__)`` with an ``event``
field in ``extra``; this module attaches the JSON formatter to the package
logger. The CLI calls ``setup_logging_from_settings`` once per invocation, so
``TEVI_LOG_LEVEL``, ``TEVI_LOG_FILE`` and ``TEVI_NETWORK`` decide the level, the
rotating file target and the ``environment`` field.
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from pythonjsonlogger import jsonlogger

from .config import VestingSettings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Ledger log record: UTC timestamp, level, environment, service and call site."""

    def __init__(
        self,
        fmt: str = "%(timestamp)s %(level)s %(name)s %(message)s",
        environment: Optional[str] = None,
        service_name: str = "tevi_vesting",
    ):
        super().__init__(fmt=fmt)
        self.environment = environment or "testnet"
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_record.update(
            timestamp=created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            level=record.levelname.lower(),
            environment=self.environment,
            service=self.service_name,
            source={"module": record.module, "function": record.funcName, "line": record.lineno},
        )


def setup_logging(
    name: str = "tevi_vesting",
    log_file: Optional[str] = None,
    level: str = "INFO",
    environment: str = "testnet",
    enable_console: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    stream=None,
) -> logging.Logger:
    """
    Attach JSON handlers to logger ``name``, replacing any it already has.

    The console handler writes to ``stream`` (stderr by default). With neither
    console nor ``log_file``, a ``NullHandler`` keeps records off stderr.
    """
    numeric_level = getattr(logging, level.upper())
    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)
    logger.handlers = []

    formatter = CustomJsonFormatter(environment=environment, service_name=name.split(".")[0])
    handlers: List[logging.Handler] = []
    if enable_console:
        handlers.append(logging.StreamHandler(stream or sys.stderr))
    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                logging.handlers.RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
            )
        except OSError as exc:
            logger.warning(
                "Vesting log file unavailable",
                extra={"event": "logging.file_unavailable", "log_file": log_file, "error": str(exc)},
            )

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    if not handlers:
        logger.addHandler(logging.NullHandler())
    return logger


def setup_logging_from_settings(settings: VestingSettings, enable_console: bool = True) -> logging.Logger:
    """Configure the package logger from ``VestingSettings``."""
    return setup_logging(
        name="tevi_vesting",
        log_file=settings.log_file,
        level=settings.log_level,
        environment=settings.network.value,
        enable_console=enable_console,
    )
