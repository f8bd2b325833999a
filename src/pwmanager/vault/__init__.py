# Vault Module - Encrypted Module Store
#
# Named modules of label → secret entries, each optionally encrypted at
# rest with a password-derived key (PBKDF2-HMAC-SHA256 + AES-256-GCM)

from .encryption import EncryptionScheme, KdfParameters
from .entries import EntryStore, PasswordEntry, generate, generate_secret
from .exceptions import (
    AlreadyExistsError,
    AuthenticationError,
    CleanupError,
    EncryptionError,
    InvalidModuleNameError,
    KeyDerivationError,
    ModuleLockedError,
    NotFoundError,
    SerializationError,
    StorageError,
    VaultError,
)
from .module import Locked, Module, PlaintextUnlocked, Unlocked, Unmanaged
from .registry import (
    ModuleRegistry,
    PasswordCache,
    cleanup,
    load_scheme_registry,
    save_scheme_registry,
)
from .session import ModuleView, VaultSession

__all__ = [
    "EncryptionScheme",
    "KdfParameters",
    "EntryStore",
    "PasswordEntry",
    "generate",
    "generate_secret",
    "Module",
    "Unmanaged",
    "PlaintextUnlocked",
    "Locked",
    "Unlocked",
    "ModuleRegistry",
    "PasswordCache",
    "cleanup",
    "load_scheme_registry",
    "save_scheme_registry",
    "ModuleView",
    "VaultSession",
    # Errors
    "VaultError",
    "AuthenticationError",
    "AlreadyExistsError",
    "NotFoundError",
    "ModuleLockedError",
    "InvalidModuleNameError",
    "KeyDerivationError",
    "EncryptionError",
    "SerializationError",
    "StorageError",
    "CleanupError",
]
