# Audit Logging
#
# Append-only structured log of module store events.
# Every unlock, lock, encryption and entry mutation is recorded with a
# timestamp and an event ID. Details carry module names and entry labels
# only: secret values and passwords are never passed to the logger.

import logging
import os
import socket
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog


class EventType(str, Enum):
    """Types of module store events that can be logged."""
    # Module lifecycle
    MODULE_CREATED = "module.created"
    MODULE_ENCRYPTED = "module.encrypted"
    MODULE_UNLOCKED = "module.unlocked"
    MODULE_UNLOCK_FAILED = "module.unlock.failed"
    MODULE_LOCKED = "module.locked"

    # Entries
    ENTRY_ADDED = "entry.added"
    ENTRY_REMOVED = "entry.removed"

    # Persistence
    REGISTRY_SAVED = "registry.saved"
    CLEANUP_COMPLETED = "cleanup.completed"
    CLEANUP_FAILED = "cleanup.failed"

    # System Events
    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"


class EventSeverity(str, Enum):
    """
    Severity levels for audit events.

    - INFO: Normal activity
    - ALERT: Something the user should notice (failed unlock)
    - CRITICAL: Data could not be persisted
    """
    INFO = "info"
    ALERT = "alert"
    CRITICAL = "critical"


class AuditLogger:
    """
    Append-only audit logger for module store events.

    Features:
    - Structured JSON logging (structlog)
    - Automatic timestamp and event ID
    - OS user / hostname context
    - Daily log files
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs (default: ~/.pwmanager/logs)
        """
        self.log_dir = Path(log_dir) if log_dir else Path.home() / ".pwmanager" / "logs"
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer()
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._setup_file_handler()

        self.logger = structlog.get_logger("pwmanager.audit")

    def _setup_file_handler(self):
        """Attach a daily log file handler to the audit logger."""
        today = datetime.now().strftime("%Y-%m-%d")
        self.log_file = self.log_dir / f"audit_{today}.log"

        file_handler = logging.FileHandler(self.log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(message)s'))  # structlog handles formatting

        audit_logger = logging.getLogger("pwmanager.audit")
        for handler in list(audit_logger.handlers):
            audit_logger.removeHandler(handler)
            handler.close()
        audit_logger.addHandler(file_handler)
        audit_logger.setLevel(logging.INFO)
        audit_logger.propagate = False

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Log an audit event (append-only).

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            details: Additional event details (never secret values!)

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())

        self.logger.info(
            "vault_event",
            event_id=event_id,
            event_type=event_type.value,
            severity=severity.value,
            message=message,
            timestamp=datetime.now(timezone.utc).isoformat(),
            details=details or {},
            user_context=self._get_default_user_context(),
        )

        return event_id

    def log_module_event(
        self,
        event_type: EventType,
        module: str,
        message: str,
        severity: EventSeverity = EventSeverity.INFO,
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Log an event that concerns a single module."""
        event_details = dict(details or {})
        event_details["module"] = module
        return self.log_event(
            event_type=event_type,
            severity=severity,
            message=f"{module}: {message}",
            details=event_details,
        )

    def _get_default_user_context(self) -> Dict[str, Any]:
        """Get default user context (OS user, hostname, etc.)."""
        return {
            "os_user": os.getenv("USERNAME") or os.getenv("USER"),
            "hostname": socket.gethostname(),
            "platform": sys.platform,
        }


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        from ..config import load_config
        _audit_logger = AuditLogger(log_dir=load_config().log_dir)
    return _audit_logger


def set_audit_logger(instance: Optional[AuditLogger]) -> None:
    """Replace the singleton (for testing)."""
    global _audit_logger
    _audit_logger = instance
