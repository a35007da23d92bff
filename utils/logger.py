"""Structured logging utilities for ForwardDesk.

Every record carries a category naming the engine component that emitted
it (ledger, risk, locking, lifecycle, persistence, api, system), so one
logger hierarchy can be filtered per component. Structured fields are
passed as ``extra_data={...}``:

    logger = get_lifecycle_logger()
    logger.info("Order accepted", extra_data={"order_id": 12, "scope": "org-acme/BASE"})

Production runs emit one JSON object per line; development runs get
colored single-line output with the fields appended as ``key=value``.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Log categories
CATEGORY_LEDGER = "ledger"
CATEGORY_RISK = "risk"
CATEGORY_LOCKING = "locking"
CATEGORY_LIFECYCLE = "lifecycle"
CATEGORY_PERSISTENCE = "persistence"
CATEGORY_API = "api"
CATEGORY_SYSTEM = "system"

ROOT_LOGGER_NAME = "forwarddesk"


def _record_data(record: logging.LogRecord) -> Dict[str, Any]:
    data = getattr(record, "extra_data", None)
    return data if isinstance(data, dict) else {}


class JSONFormatter(logging.Formatter):
    """One JSON object per record: time, level, category, logger, message, data."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "category": getattr(record, "category", CATEGORY_SYSTEM),
            "logger": record.name,
            "message": record.getMessage(),
        }

        data = _record_data(record)
        if data:
            log_data["data"] = data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Single-line development format, colored by level when writing to a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = False):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        category = getattr(record, "category", CATEGORY_SYSTEM)
        level = f"{record.levelname:8s}"
        if self.use_color and record.levelname in self.COLORS:
            level = f"{self.COLORS[record.levelname]}{level}{self.RESET}"

        msg = f"[{timestamp}] {level} [{category:11s}] {record.getMessage()}"

        data = _record_data(record)
        if data:
            msg += " | " + " ".join(f"{k}={v}" for k, v in data.items() if v is not None)

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


class CategoryAdapter(logging.LoggerAdapter):
    """Logger adapter that stamps its category on every record.

    An ``extra_data`` keyword argument is moved into the record for the
    formatters.
    """

    def __init__(self, logger: logging.Logger, category: str):
        super().__init__(logger, {})
        self.category = category

    def process(self, msg: str, kwargs: Dict) -> tuple:
        extra = dict(kwargs.get("extra") or {})
        extra["category"] = self.category
        if "extra_data" in kwargs:
            extra["extra_data"] = kwargs.pop("extra_data")
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: int | str = logging.INFO,
    log_dir: Optional[Path] = None,
    json_format: bool = False,
) -> logging.Logger:
    """
    Configure the ForwardDesk logger hierarchy.

    Component loggers (``forwarddesk.lifecycle``, ``forwarddesk.locking``,
    ...) inherit the handlers installed here. Calling it again replaces
    the handlers instead of stacking them.

    Args:
        name: Root of the hierarchy to configure
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Also write JSON lines to ``<log_dir>/<name>_YYYYMMDD.log``
        json_format: JSON on stdout instead of the human-readable format

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    if json_format:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(HumanReadableFormatter(use_color=sys.stdout.isatty()))
    logger.addHandler(console_handler)

    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        log_file = log_dir / f"{name}_{datetime.now(timezone.utc).strftime('%Y%m%d')}.log"
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(JSONFormatter())
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def get_logger(
    category: str,
    name: str = ROOT_LOGGER_NAME,
    level: Optional[int] = None,
) -> CategoryAdapter:
    """
    Get a category logger.

    Args:
        category: Log category (ledger, risk, locking, ...)
        name: Logger name under the ``forwarddesk`` hierarchy
        level: Optional level override for this logger
    """
    logger = logging.getLogger(name)

    if level is not None:
        logger.setLevel(level)

    return CategoryAdapter(logger, category)


def get_ledger_logger(name: str = f"{ROOT_LOGGER_NAME}.ledger") -> CategoryAdapter:
    return get_logger(CATEGORY_LEDGER, name)


def get_risk_logger(name: str = f"{ROOT_LOGGER_NAME}.risk") -> CategoryAdapter:
    return get_logger(CATEGORY_RISK, name)


def get_locking_logger(name: str = f"{ROOT_LOGGER_NAME}.locking") -> CategoryAdapter:
    return get_logger(CATEGORY_LOCKING, name)


def get_lifecycle_logger(name: str = f"{ROOT_LOGGER_NAME}.lifecycle") -> CategoryAdapter:
    return get_logger(CATEGORY_LIFECYCLE, name)


def get_persistence_logger(name: str = f"{ROOT_LOGGER_NAME}.persistence") -> CategoryAdapter:
    return get_logger(CATEGORY_PERSISTENCE, name)
