"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger
from village_bank.config import settings


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


def log_transition(
    request_id: str,
    transition: str,
    loan_id: Optional[str],
    outcome: str,
    duration_ms: float,
    detail: Optional[str] = None,
) -> None:
    """Log structured transition outcome for analysis"""
    logging.getLogger("village_bank.transitions").info(
        "Loan transition completed" if outcome == "ok" else "Loan transition refused",
        extra={
            "request_id": request_id,
            "step": transition,
            "loan_id": loan_id,
            "outcome": outcome,
            "duration_ms": duration_ms,
            "detail": detail,
        },
    )
