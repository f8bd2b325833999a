# pwmanager - Main Package
#
# Local secret store: named modules of label → secret entries, optionally
# encrypted at rest with a password-derived key.

__version__ = "0.3.0"
__description__ = "Local password manager with per-module encryption"

from .config import VaultConfig, load_config
from .core import EventSeverity, EventType, get_audit_logger

__all__ = [
    "__version__",
    "VaultConfig",
    "load_config",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
]
