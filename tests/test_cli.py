"""Tests for the pwmanager command line.

Passwords are supplied by patching getpass.getpass.
"""

import pytest

from pwmanager.__main__ import main
from pwmanager.vault import ModuleRegistry, PasswordCache


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("PWMANAGER_KDF_ITERATIONS", "1000")
    return tmp_path / "cli_home"


@pytest.fixture
def passwords(monkeypatch):
    """Queue of answers returned by getpass.getpass()."""
    answers = []

    def fake_getpass(prompt=""):
        return answers.pop(0)

    monkeypatch.setattr("getpass.getpass", fake_getpass)
    return answers


def run(home, *args):
    return main(["--home", str(home), *args])


class TestCommands:

    def test_list_creates_default_module(self, home, capsys):
        assert run(home, "list") == 0
        assert "General\t[plaintext]" in capsys.readouterr().out
        assert (home / "General.json").exists()

    def test_create_and_duplicate(self, home, capsys):
        assert run(home, "create", "Finance") == 0
        assert run(home, "create", "Finance") == 1
        assert "already exists" in capsys.readouterr().err

    def test_add_show_remove_plaintext(self, home, capsys):
        run(home, "add", "General", "wifi", "--secret", "p@ss")
        capsys.readouterr()
        assert run(home, "show", "General") == 0
        assert "wifi\tp@ss" in capsys.readouterr().out
        assert run(home, "remove", "General", "wifi") == 0
        assert run(home, "remove", "General", "wifi") == 1

    def test_add_generated(self, home, capsys):
        assert run(home, "add", "General", "api", "--length", "64") == 0
        secret = capsys.readouterr().out.strip()
        assert len(secret) == 64

    def test_generate(self, capsys):
        assert main(["generate", "--length", "40"]) == 0
        assert len(capsys.readouterr().out.strip()) == 40

    def test_generate_too_short(self, capsys):
        assert main(["generate", "--length", "1"]) == 1


class TestEncryptedFlow:

    def test_encrypt_then_show(self, home, passwords, capsys):
        run(home, "create", "Finance")
        run(home, "add", "Finance", "Bank", "--secret", "s3cr3t!")

        passwords.extend(["hunter2", "hunter2"])
        assert run(home, "encrypt", "Finance") == 0
        assert b"s3cr3t!" not in (home / "Finance.json").read_bytes()

        capsys.readouterr()
        run(home, "list")
        assert "Finance\t[locked]" in capsys.readouterr().out

        passwords.append("hunter2")
        assert run(home, "show", "Finance") == 0
        assert "Bank\ts3cr3t!" in capsys.readouterr().out

    def test_wrong_password_exit_code(self, home, passwords, capsys):
        run(home, "create", "Finance")
        passwords.extend(["hunter2", "hunter2"])
        run(home, "encrypt", "Finance")

        passwords.append("wrong")
        assert run(home, "show", "Finance") == 2
        err = capsys.readouterr().err
        assert "Authentication failed" in err
        assert "Password for" not in err

    def test_password_mismatch(self, home, passwords):
        run(home, "create", "Finance")
        passwords.extend(["one", "two"])
        assert run(home, "encrypt", "Finance") == 1
        registry = ModuleRegistry.discover(home)
        assert not registry.get("Finance").is_encrypted

    def test_add_to_encrypted_module_is_reencrypted(self, home, passwords):
        run(home, "create", "Finance")
        passwords.extend(["hunter2", "hunter2"])
        run(home, "encrypt", "Finance")

        passwords.append("hunter2")
        assert run(home, "add", "Finance", "Bank", "--secret", "s3cr3t!") == 0
        assert b"s3cr3t!" not in (home / "Finance.json").read_bytes()

        registry = ModuleRegistry.discover(home)
        entries = registry.unlock("Finance", "hunter2", PasswordCache())
        assert entries.to_dict() == {"Bank": "s3cr3t!"}
