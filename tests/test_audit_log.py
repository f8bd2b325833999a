"""Tests for the structlog audit logger.

Covers:
  - JSON events written to the daily log file
  - Module events from registry operations
  - Secrets and passwords never reach the log
"""

import json
import warnings

from pwmanager.core import AuditLogger, EventSeverity, EventType, set_audit_logger
from pwmanager.vault import EntryStore, ModuleRegistry, PasswordCache, cleanup
from pwmanager.vault.exceptions import AuthenticationError


def _events(audit):
    for handler in __import__("logging").getLogger("pwmanager.audit").handlers:
        handler.flush()
    lines = audit.log_file.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines if line.strip()]


class TestAuditLogger:

    def test_log_event_writes_json(self, tmp_path):
        audit = AuditLogger(log_dir=tmp_path / "logs")
        event_id = audit.log_event(
            EventType.SYSTEM_START, EventSeverity.INFO, "starting", details={"k": "v"},
        )
        events = _events(audit)
        assert events[-1]["event_id"] == event_id
        assert events[-1]["event_type"] == "system.start"
        assert events[-1]["details"] == {"k": "v"}

    def test_log_event_emits_no_deprecation_warning(self, tmp_path):
        audit = AuditLogger(log_dir=tmp_path / "logs")
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            audit.log_event(EventType.SYSTEM_STOP, EventSeverity.INFO, "stopping")

    def test_module_event_carries_module(self, tmp_path):
        audit = AuditLogger(log_dir=tmp_path / "logs")
        audit.log_module_event(EventType.MODULE_LOCKED, "Finance", "module locked")
        event = _events(audit)[-1]
        assert event["details"]["module"] == "Finance"
        assert event["message"] == "Finance: module locked"


class TestNoSecretsLogged:

    def test_lifecycle_never_logs_secrets(self, tmp_path, fast_kdf):
        audit = AuditLogger(log_dir=tmp_path / "logs")
        set_audit_logger(audit)
        cache = PasswordCache()

        registry = ModuleRegistry.discover(tmp_path / "store", kdf_params=fast_kdf, audit=audit)
        registry.add_module("Finance", EntryStore({"Bank": "s3cr3t-value"}))
        registry.encrypt_module("Finance", "hunter2-password", cache)
        try:
            registry.unlock("Finance", "bad-guess-password", cache)
        except AuthenticationError:
            pass
        registry.unlock("Finance", "hunter2-password", cache)
        cleanup(registry, cache)

        text = audit.log_file.read_text(encoding="utf-8")
        assert "s3cr3t-value" not in text
        assert "hunter2-password" not in text
        assert "bad-guess-password" not in text

        types = [e["event_type"] for e in _events(audit)]
        for expected in (
            "module.created",
            "module.encrypted",
            "module.unlock.failed",
            "module.unlocked",
            "module.locked",
            "cleanup.completed",
        ):
            assert expected in types
