"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from digishe_ledger.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def mask_phone(phone: str) -> str:
    """Keep the last four digits only"""
    return f"***{phone[-4:]}" if phone else ""


def log_verification(phone: str, step: str, outcome: str, request_id: str | None = None) -> None:
    """Log structured outcome of a code request or verification"""
    logging.info(
        "Verification step completed",
        extra={
            "request_id": request_id,
            "phone": mask_phone(phone),
            "step": step,
            "outcome": outcome,
        },
    )


def log_entry_recorded(business_id: str, entry_id: str, kind: str, amount: str) -> None:
    logging.info(
        "Entry recorded",
        extra={
            "business_id": business_id,
            "entry_id": entry_id,
            "kind": kind,
            "amount": amount,
        },
    )


def log_entry_unsynced(business_id: str, entry_id: str, kind: str, attempts: int, error: str) -> None:
    """Log an optimistic entry that never reached storage"""
    logging.error(
        "Entry left unsynced",
        extra={
            "business_id": business_id,
            "entry_id": entry_id,
            "kind": kind,
            "attempts": attempts,
            "error": error,
        },
    )
