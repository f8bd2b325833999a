"""Tests for VaultSession, the interface driven by the UI and CLI layers.

Covers:
  - Module list with display hints
  - select / submit_password / add / remove flow
  - Shutdown runs cleanup on normal and error exits
"""

import pytest

from pwmanager.config import VaultConfig
from pwmanager.vault import (
    AlreadyExistsError,
    AuthenticationError,
    ModuleLockedError,
    ModuleRegistry,
    NotFoundError,
    VaultSession,
)
from pwmanager.vault.encryption import SALT_LENGTH
from pwmanager.vault.module import Locked

FAST_ITERATIONS = 1_000


@pytest.fixture
def config(store_dir, tmp_path):
    return VaultConfig(
        home=store_dir,
        kdf_iterations=FAST_ITERATIONS,
        log_dir=tmp_path / "logs",
        default_module="General",
    )


@pytest.fixture
def session(config):
    s = VaultSession(config=config)
    yield s
    s.shutdown()


class TestSessionFlow:

    def test_discovers_with_configured_cost(self, session):
        assert session.registry.kdf_params.iterations == FAST_ITERATIONS

    def test_ensure_default_module(self, session):
        session.ensure_default_module()
        session.ensure_default_module()
        assert session.list_modules() == [("General", "plaintext")]

    def test_create_module_twice(self, session):
        session.create_module("General")
        with pytest.raises(AlreadyExistsError):
            session.create_module("General")

    def test_hints(self, session):
        session.create_module("A")
        session.create_module("B")
        session.create_module("C")
        session.encrypt_module("B", "pw")
        session.encrypt_module("C", "pw")
        session.submit_password("C", "pw")
        assert session.list_modules() == [
            ("A", "plaintext"), ("B", "locked"), ("C", "unlocked"),
        ]

    def test_select_locked_needs_password(self, session):
        session.create_module("Finance")
        session.encrypt_module("Finance", "hunter2")
        view = session.select_module("Finance")
        assert view.needs_password
        assert view.rows == []
        assert session.selected == "Finance"

    def test_select_plaintext_shows_rows(self, session):
        session.create_module("General")
        session.add_entry("General", "wifi", "p@ss")
        view = session.select_module("General")
        assert not view.needs_password
        assert view.rows == [("wifi", "p@ss")]

    def test_add_generated_entry(self, session):
        session.create_module("General")
        entry = session.add_entry("General", "api", length=64)
        assert len(entry.secret) == 64
        assert session.entry_rows("General") == [("api", entry.secret)]

    def test_remove_entry(self, session):
        session.create_module("General")
        session.add_entry("General", "a", "1")
        assert session.remove_entry("General", "a").secret == "1"
        with pytest.raises(NotFoundError):
            session.remove_entry("General", "a")

    def test_locked_module_rejects_mutation(self, session):
        session.create_module("Finance")
        session.encrypt_module("Finance", "hunter2")
        with pytest.raises(ModuleLockedError):
            session.add_entry("Finance", "Bank", "x")
        with pytest.raises(ModuleLockedError):
            session.entry_rows("Finance")

    def test_wrong_password_on_unlocked_module(self, session):
        session.create_module("Finance")
        session.encrypt_module("Finance", "hunter2")
        session.submit_password("Finance", "hunter2")
        with pytest.raises(AuthenticationError):
            session.submit_password("Finance", "wrong")
        assert session.list_modules() == [("Finance", "unlocked")]

    def test_unknown_module(self, session):
        with pytest.raises(NotFoundError):
            session.select_module("Nope")


class TestFinanceScenario:

    def test_scenario(self, config):
        with VaultSession(config=config) as session:
            session.create_module("Finance")
            session.add_entry("Finance", "Bank", "s3cr3t!")
            session.encrypt_module("Finance", "hunter2")
            session.lock_module("Finance")
            assert session.submit_password("Finance", "hunter2") == [("Bank", "s3cr3t!")]
            session.lock_module("Finance")

            with pytest.raises(AuthenticationError):
                session.submit_password("Finance", "wrong")
            with pytest.raises(ModuleLockedError):
                session.entry_rows("Finance")

    def test_changes_survive_restart(self, config):
        with VaultSession(config=config) as session:
            session.create_module("Finance")
            session.encrypt_module("Finance", "hunter2")
            session.submit_password("Finance", "hunter2")
            session.add_entry("Finance", "Bank", "s3cr3t!")

        with VaultSession(config=config) as session:
            assert session.list_modules() == [("Finance", "locked")]
            assert session.submit_password("Finance", "hunter2") == [("Bank", "s3cr3t!")]


class TestShutdown:

    def test_exit_on_error_still_cleans_up(self, config):
        captured = {}
        with pytest.raises(RuntimeError):
            with VaultSession(config=config) as session:
                session.create_module("Finance")
                session.encrypt_module("Finance", "hunter2")
                session.submit_password("Finance", "hunter2")
                session.add_entry("Finance", "Bank", "s3cr3t!")
                captured["session"] = session
                raise RuntimeError("boom")

        session = captured["session"]
        assert len(session.passwords) == 0
        assert isinstance(session.registry.get("Finance").state, Locked)

        fresh = ModuleRegistry.discover(config.home)
        assert fresh.get("Finance").is_encrypted
        assert len(fresh.scheme_for("Finance").salt) == SALT_LENGTH

    def test_shutdown_is_idempotent(self, session):
        session.create_module("General")
        session.shutdown()
        session.shutdown()
        assert session.selected is None
