"""
Vault Exception Classes

Every error the module store raises derives from VaultError so the UI and
CLI layers can catch one type. Messages never contain secrets or passwords.
"""

from typing import List, Tuple


class VaultError(Exception):
    """Base exception for module store operations"""


class AuthenticationError(VaultError):
    """Raised when AEAD tag verification fails (wrong password or tampered data)"""


class AlreadyExistsError(VaultError):
    """Raised when a module name collides with an existing module"""


class NotFoundError(VaultError):
    """Raised when a referenced module or entry does not exist"""


class ModuleLockedError(VaultError):
    """Raised when entries of a locked module are accessed"""


class InvalidModuleNameError(VaultError):
    """Raised when a module name cannot be used as a file name"""


class KeyDerivationError(VaultError):
    """Raised when KDF parameters are invalid"""


class EncryptionError(VaultError):
    """Raised when the cipher cannot be constructed or rejects its input"""


class SerializationError(VaultError):
    """Raised when an entry file or the scheme registry is malformed"""


class StorageError(VaultError):
    """Raised when the underlying filesystem operation fails"""


class CleanupError(VaultError):
    """Raised after a cleanup pass in which one or more modules failed.

    The pass itself always runs to completion; ``failures`` lists the
    ``(module_name, error)`` pairs collected along the way.
    """

    def __init__(self, failures: List[Tuple[str, Exception]]):
        self.failures = failures
        names = ", ".join(name for name, _ in failures)
        super().__init__(f"Cleanup failed for module(s): {names}")
