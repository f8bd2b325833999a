# Configuration
#
# Settings come from environment variables, optionally loaded from a .env
# file in the working directory:
#
#   PWMANAGER_HOME            base directory for module files (~/.pwmanager)
#   PWMANAGER_KDF_ITERATIONS  PBKDF2 iteration count for new schemes
#   PWMANAGER_LOG_DIR         audit log directory (<home>/logs)
#   PWMANAGER_DEFAULT_MODULE  module created on first start (General)

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_HOME = Path.home() / ".pwmanager"
DEFAULT_KDF_ITERATIONS = 600_000  # OWASP 2023: 600k iterations for PBKDF2-SHA256
DEFAULT_MODULE = "General"


@dataclass
class VaultConfig:
    """Resolved runtime settings."""
    home: Path
    kdf_iterations: int
    log_dir: Path
    default_module: str


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def load_config(home: Optional[Path] = None, use_dotenv: bool = True) -> VaultConfig:
    """Build a VaultConfig from the environment.

    Args:
        home: Explicit base directory, overrides PWMANAGER_HOME.
        use_dotenv: Load a .env file before reading variables.
    """
    if use_dotenv:
        load_dotenv(find_dotenv(usecwd=True))

    if home is None:
        env_home = os.environ.get("PWMANAGER_HOME", "").strip()
        home = Path(env_home).expanduser() if env_home else DEFAULT_HOME
    home = Path(home)

    env_log_dir = os.environ.get("PWMANAGER_LOG_DIR", "").strip()
    log_dir = Path(env_log_dir).expanduser() if env_log_dir else home / "logs"

    return VaultConfig(
        home=home,
        kdf_iterations=_int_env("PWMANAGER_KDF_ITERATIONS", DEFAULT_KDF_ITERATIONS),
        log_dir=log_dir,
        default_module=os.environ.get("PWMANAGER_DEFAULT_MODULE", "").strip() or DEFAULT_MODULE,
    )
