# Core Module - Shared Utilities
#
# - Audit logging

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
    set_audit_logger,
)

__all__ = [
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "set_audit_logger",
]
