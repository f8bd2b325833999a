"""
Shared pytest fixtures for the pwmanager test suite.

Autouse fixtures below isolate tests from the user's real data:
  - Audit logger -> temp directory  (prevents test events in ~/.pwmanager/logs)
  - Environment  -> temp home       (prevents modules written to ~/.pwmanager)
"""

import pytest

from pwmanager.vault import KdfParameters, ModuleRegistry, PasswordCache

# Low iteration count: tests exercise the scheme, not the KDF cost.
FAST_ITERATIONS = 1_000


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path):
    """Point the global AuditLogger at a temp directory for every test."""
    import pwmanager.core.audit_log as audit_mod

    old_logger = audit_mod._audit_logger
    audit_mod._audit_logger = audit_mod.AuditLogger(log_dir=tmp_path / "audit_logs")

    yield

    audit_mod._audit_logger = old_logger


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path, monkeypatch):
    """Strip PWMANAGER_* settings and point the home at a temp directory."""
    for var in ("PWMANAGER_KDF_ITERATIONS", "PWMANAGER_LOG_DIR", "PWMANAGER_DEFAULT_MODULE"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("PWMANAGER_HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def fast_kdf():
    return KdfParameters(iterations=FAST_ITERATIONS)


@pytest.fixture
def store_dir(tmp_path):
    return tmp_path / "store"


@pytest.fixture
def registry(store_dir, fast_kdf):
    """Freshly discovered registry over an empty temp directory."""
    return ModuleRegistry.discover(store_dir, kdf_params=fast_kdf)


@pytest.fixture
def cache():
    return PasswordCache()
