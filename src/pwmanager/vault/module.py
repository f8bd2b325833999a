# Vault - Module Lifecycle
#
# A module is a named entry file plus its lock state:
#
#   Unmanaged --create--> PlaintextUnlocked --encrypt--> Locked
#   Locked --unlock--> Unlocked --lock--> Locked
#
# Entries only exist in memory in the PlaintextUnlocked and Unlocked states.

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from .encryption import EncryptionScheme, KdfParameters, Password
from .entries import EntryStore
from .exceptions import (
    AlreadyExistsError,
    EncryptionError,
    InvalidModuleNameError,
    KeyDerivationError,
    ModuleLockedError,
    NotFoundError,
    SerializationError,
    VaultError,
)
from .storage import atomic_write, create_exclusive, read_file

logger = logging.getLogger(__name__)

ENTRY_FILE_SUFFIX = ".json"

HINT_PLAINTEXT = "plaintext"
HINT_LOCKED = "locked"
HINT_UNLOCKED = "unlocked"
HINT_BROKEN = "broken"


# ── Lock states ──────────────────────────────────────────────────────


@dataclass
class Unmanaged:
    """No entry file on disk yet."""


@dataclass
class PlaintextUnlocked:
    """Unencrypted module. ``entries`` is None until first read."""
    entries: Optional[EntryStore] = None


@dataclass
class Locked:
    """Encrypted module; ciphertext on disk, nothing in memory."""


@dataclass
class Unlocked:
    """Encrypted module whose entries have been decrypted into memory."""
    entries: EntryStore


LockState = Union[Unmanaged, PlaintextUnlocked, Locked, Unlocked]

# Persists the scheme for a module; None unregisters it.
SchemeCommit = Callable[[Optional[EncryptionScheme]], None]


def validate_module_name(name: str) -> None:
    """
    Raises:
        InvalidModuleNameError: Empty name, path separator or leading dot
    """
    if not name or not name.strip():
        raise InvalidModuleNameError("Module name must not be empty")
    if "/" in name or "\\" in name or "\x00" in name:
        raise InvalidModuleNameError(f"Module name must not contain path separators: {name!r}")
    if name.startswith("."):
        raise InvalidModuleNameError(f"Module name must not start with a dot: {name!r}")


class Module:
    """
    Named entry store with an explicit lock state.

    The module never holds a password. Encrypting operations receive the
    scheme and password from the registry for the duration of the call.
    """

    def __init__(self, name: str, base_path: Path, state: Optional[LockState] = None):
        validate_module_name(name)
        self.name = name
        self.base_path = Path(base_path)
        self.state: LockState = state if state is not None else Unmanaged()
        self.broken: Optional[VaultError] = None

    def __repr__(self) -> str:
        return f"Module(name={self.name!r}, state={type(self.state).__name__})"

    @property
    def path(self) -> Path:
        return self.base_path / f"{self.name}{ENTRY_FILE_SUFFIX}"

    @property
    def aad(self) -> bytes:
        """Associated data binding ciphertext to this module."""
        return self.name.encode("utf-8")

    @property
    def is_encrypted(self) -> bool:
        return isinstance(self.state, (Locked, Unlocked))

    @property
    def is_unlocked(self) -> bool:
        return isinstance(self.state, Unlocked)

    @property
    def display_hint(self) -> str:
        if self.broken is not None:
            return HINT_BROKEN
        if isinstance(self.state, Unlocked):
            return HINT_UNLOCKED
        if isinstance(self.state, Locked):
            return HINT_LOCKED
        return HINT_PLAINTEXT

    def _ensure_usable(self) -> None:
        if self.broken is not None:
            raise self.broken

    def _mark_broken(self, error: VaultError) -> None:
        logger.warning(f"Module {self.name} marked unusable: {error}")
        self.broken = error

    # ── Transitions ──────────────────────────────────────────────────

    def create(self, entries: Optional[EntryStore] = None) -> None:
        """
        Unmanaged → PlaintextUnlocked. Writes the entry file immediately.

        Raises:
            AlreadyExistsError: Entry file already present
            StorageError: File could not be written
        """
        if not isinstance(self.state, Unmanaged):
            raise AlreadyExistsError(f"Module already exists: {self.name}")
        entries = entries if entries is not None else EntryStore()
        self.base_path.mkdir(parents=True, exist_ok=True)
        try:
            create_exclusive(self.path, entries.serialize())
        except FileExistsError:
            raise AlreadyExistsError(f"Module already exists: {self.name}") from None
        self.state = PlaintextUnlocked(entries)

    def entries(self) -> EntryStore:
        """
        In-memory entries of an unlocked or plaintext module.

        Plaintext modules are read from disk on first access.

        Raises:
            ModuleLockedError: Module is encrypted and locked
            NotFoundError: Module has no entry file yet
            SerializationError: Entry file is malformed
        """
        self._ensure_usable()
        state = self.state
        if isinstance(state, Unlocked):
            return state.entries
        if isinstance(state, Locked):
            raise ModuleLockedError(f"Module is locked: {self.name}")
        if isinstance(state, Unmanaged):
            raise NotFoundError(f"Module has no entry file: {self.name}")
        if state.entries is None:
            try:
                state.entries = EntryStore.deserialize(read_file(self.path))
            except SerializationError as e:
                self._mark_broken(e)
                raise
        return state.entries

    def encrypt(
        self,
        password: Password,
        kdf_params: Optional[KdfParameters] = None,
        commit: Optional[SchemeCommit] = None,
    ) -> EncryptionScheme:
        """
        PlaintextUnlocked → Locked under a newly generated scheme.

        The current entries (including unsaved changes) are encrypted in
        place and dropped from memory.

        Args:
            commit: Persists the new scheme before the entry file is
                replaced. Called again with None if that write fails.

        Returns:
            The new scheme.

        Raises:
            AlreadyExistsError: Module is already encrypted
        """
        if self.is_encrypted:
            raise AlreadyExistsError(f"Module is already encrypted: {self.name}")
        entries = self.entries()
        scheme = EncryptionScheme.default(kdf_params)
        ciphertext = scheme.encrypt(password, entries.serialize(), self.aad)
        if commit is not None:
            commit(scheme)
        try:
            atomic_write(self.path, ciphertext)
        except VaultError:
            self._rollback(commit, None)
            raise
        entries.clear()
        self.state = Locked()
        logger.debug(f"Module {self.name} encrypted")
        return scheme

    def unlock(self, scheme: EncryptionScheme, password: Password) -> EntryStore:
        """
        Locked → Unlocked. A failed attempt leaves the module Locked.

        An already unlocked module still checks the password against the
        ciphertext on disk. Plaintext modules return their entries.

        Raises:
            AuthenticationError: Wrong password or tampered ciphertext
            KeyDerivationError / EncryptionError: Corrupt scheme parameters
            SerializationError: Decrypted content is not an entry file
        """
        self._ensure_usable()
        state = self.state
        if not isinstance(state, (Locked, Unlocked)):
            # plaintext modules need no password
            return self.entries()

        ciphertext = read_file(self.path)
        try:
            plaintext = scheme.decrypt(password, ciphertext, self.aad)
        except (KeyDerivationError, EncryptionError) as e:
            self._mark_broken(e)
            raise
        if isinstance(state, Unlocked):
            return state.entries
        try:
            entries = EntryStore.deserialize(plaintext)
        except SerializationError as e:
            self._mark_broken(e)
            raise
        self.state = Unlocked(entries)
        return entries

    def lock(
        self,
        scheme: EncryptionScheme,
        password: Password,
        commit: Optional[SchemeCommit] = None,
    ) -> None:
        """
        Unlocked → Locked. Re-encrypts the entries under a fresh nonce.

        ``commit`` persists the scheme with the new nonce before the entry
        file is replaced. If either step fails the module stays Unlocked
        and the scheme keeps the nonce that matches the file on disk.
        """
        state = self.state
        if isinstance(state, Locked):
            return
        if not isinstance(state, Unlocked):
            raise NotFoundError(f"Module is not encrypted: {self.name}")

        previous_nonce = scheme.nonce
        ciphertext = scheme.encrypt(password, state.entries.serialize(), self.aad)
        try:
            if commit is not None:
                commit(scheme)
        except VaultError:
            scheme.nonce = previous_nonce
            raise
        try:
            atomic_write(self.path, ciphertext)
        except VaultError:
            scheme.nonce = previous_nonce
            self._rollback(commit, scheme)
            raise
        self.drop()

    def _rollback(self, commit: Optional[SchemeCommit], scheme: Optional[EncryptionScheme]) -> None:
        if commit is None:
            return
        try:
            commit(scheme)
        except VaultError as e:
            logger.error(f"Could not restore scheme registry for module {self.name}: {e}")

    def persist(self) -> bool:
        """Write loaded plaintext entries to disk. Returns True if written."""
        state = self.state
        if isinstance(state, PlaintextUnlocked) and state.entries is not None:
            atomic_write(self.path, state.entries.serialize())
            return True
        return False

    def drop(self) -> None:
        """Clear in-memory entries without writing anything."""
        state = self.state
        if isinstance(state, Unlocked):
            state.entries.clear()
            self.state = Locked()
        elif isinstance(state, PlaintextUnlocked) and state.entries is not None:
            state.entries.clear()
            self.state = PlaintextUnlocked()
