# Vault - Module Registry
#
# Discovers module entry files in the base directory, owns the
# module-name → EncryptionScheme map and persists it to
# <base>/encryptions.registry. cleanup() is the single exit point that
# re-encrypts unlocked modules and forgets every cached password.

import json
import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from ..core import AuditLogger, EventSeverity, EventType, get_audit_logger
from .encryption import EncryptionScheme, KdfParameters, Password
from .entries import EntryStore
from .exceptions import (
    AlreadyExistsError,
    AuthenticationError,
    CleanupError,
    InvalidModuleNameError,
    ModuleLockedError,
    NotFoundError,
    SerializationError,
    VaultError,
)
from .module import (
    ENTRY_FILE_SUFFIX,
    Locked,
    Module,
    PlaintextUnlocked,
    SchemeCommit,
    validate_module_name,
)
from .storage import atomic_write, read_file

logger = logging.getLogger(__name__)

REGISTRY_FILE_NAME = "encryptions.registry"
REGISTRY_VERSION = 1


# ── Password cache ───────────────────────────────────────────────────


class PasswordCache:
    """
    Passwords of the modules unlocked in this session.

    Held only so unlocked modules can be re-encrypted on lock or shutdown.
    Owned by a session and cleared by cleanup(); never global.
    """

    def __init__(self):
        self._passwords: Dict[str, Password] = {}

    def put(self, module: str, password: Password) -> None:
        self._passwords[module] = password

    def get(self, module: str) -> Optional[Password]:
        return self._passwords.get(module)

    def pop(self, module: str) -> Optional[Password]:
        return self._passwords.pop(module, None)

    def clear(self) -> None:
        self._passwords.clear()

    def __contains__(self, module: object) -> bool:
        return module in self._passwords

    def __len__(self) -> int:
        return len(self._passwords)

    def __repr__(self) -> str:
        return f"PasswordCache(modules={sorted(self._passwords)!r})"


# ── Scheme registry serialization ────────────────────────────────────


def save_scheme_registry(schemes: Dict[str, EncryptionScheme]) -> bytes:
    """Encode the name → scheme map as UTF-8 JSON."""
    document = {
        "version": REGISTRY_VERSION,
        "modules": {name: scheme.to_dict() for name, scheme in sorted(schemes.items())},
    }
    return json.dumps(document, ensure_ascii=False, indent=2).encode("utf-8")


def load_scheme_registry(data: bytes) -> Dict[str, EncryptionScheme]:
    """
    Decode a registry written by save_scheme_registry().

    Raises:
        SerializationError: Malformed document or scheme
    """
    if not data.strip():
        return {}
    try:
        document = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SerializationError(f"Scheme registry is not valid JSON: {e}") from e

    if not isinstance(document, dict) or not isinstance(document.get("modules"), dict):
        raise SerializationError("Scheme registry must contain a 'modules' object")
    if document.get("version") != REGISTRY_VERSION:
        raise SerializationError(f"Unsupported scheme registry version: {document.get('version')!r}")

    schemes = {}
    for name, raw in document["modules"].items():
        try:
            schemes[name] = EncryptionScheme.from_dict(raw)
        except SerializationError as e:
            raise SerializationError(f"Scheme for module {name!r} is malformed: {e}") from e
    return schemes


# ── Registry ─────────────────────────────────────────────────────────


class ModuleRegistry:
    """
    Ordered set of modules plus the schemes of the encrypted ones.

    Invariant: every key of ``schemes`` names exactly one module. Schemes
    whose entry file is missing are kept aside in ``detached_schemes`` and
    written back on save, so a moved file can still be opened once restored.
    """

    def __init__(
        self,
        base_path: Path,
        kdf_params: Optional[KdfParameters] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.base_path = Path(base_path)
        self.kdf_params = kdf_params or KdfParameters()
        self.schemes: Dict[str, EncryptionScheme] = {}
        self.detached_schemes: Dict[str, EncryptionScheme] = {}
        self._modules: Dict[str, Module] = {}
        self.audit = audit or get_audit_logger()

    @classmethod
    def discover(
        cls,
        base_path: Path,
        kdf_params: Optional[KdfParameters] = None,
        audit: Optional[AuditLogger] = None,
    ) -> "ModuleRegistry":
        """
        Scan ``base_path`` for entry files. No entry file is read.

        Creates the directory when missing. Modules with a registered scheme
        start Locked, the rest PlaintextUnlocked.

        Raises:
            SerializationError: The scheme registry file is malformed
            StorageError: The directory or registry could not be read
        """
        registry = cls(base_path, kdf_params=kdf_params, audit=audit)
        registry.base_path.mkdir(parents=True, exist_ok=True)

        schemes: Dict[str, EncryptionScheme] = {}
        if registry.registry_path.exists():
            schemes = load_scheme_registry(read_file(registry.registry_path))

        for path in sorted(registry.base_path.glob(f"*{ENTRY_FILE_SUFFIX}")):
            if not path.is_file():
                continue
            name = path.stem
            try:
                validate_module_name(name)
            except InvalidModuleNameError:
                logger.warning(f"Skipping entry file with unusable name: {path.name}")
                continue
            if name in schemes:
                registry.schemes[name] = schemes.pop(name)
                state = Locked()
            else:
                state = PlaintextUnlocked()
            registry._modules[name] = Module(name, registry.base_path, state)

        for orphan in schemes:
            logger.warning(f"Keeping scheme for missing module file: {orphan}")
        registry.detached_schemes = schemes

        logger.info(
            f"Discovered {len(registry._modules)} module(s) in {registry.base_path} "
            f"({len(registry.schemes)} encrypted)"
        )
        return registry

    @property
    def registry_path(self) -> Path:
        return self.base_path / REGISTRY_FILE_NAME

    # ── Lookup ───────────────────────────────────────────────────────

    def modules(self) -> List[Module]:
        return list(self._modules.values())

    def names(self) -> List[str]:
        return list(self._modules)

    def get(self, name: str) -> Module:
        """
        Raises:
            NotFoundError: No module with that name
        """
        try:
            return self._modules[name]
        except KeyError:
            raise NotFoundError(f"Module not found: {name}") from None

    def scheme_for(self, name: str) -> Optional[EncryptionScheme]:
        return self.schemes.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    def __iter__(self) -> Iterator[Module]:
        return iter(self.modules())

    def __len__(self) -> int:
        return len(self._modules)

    # ── Operations ───────────────────────────────────────────────────

    def add_module(self, name: str, entries: Optional[EntryStore] = None) -> Module:
        """
        Create a new plaintext module and write its entry file.

        Raises:
            AlreadyExistsError: Name registered, entry file present, or a
                scheme is kept for a missing file of that name
            InvalidModuleNameError: Name unusable as a file name
        """
        if name in self._modules:
            raise AlreadyExistsError(f"Module already exists: {name}")
        if name in self.detached_schemes:
            raise AlreadyExistsError(f"Encryption scheme registered for missing entry file: {name}")
        module = Module(name, self.base_path)
        module.create(entries)
        self._modules[name] = module

        self.audit.log_module_event(
            EventType.MODULE_CREATED, name, "module created",
            details={"entries": len(entries) if entries is not None else 0},
        )
        return module

    def encrypt_module(
        self,
        name: str,
        password: Password,
        cache: Optional[PasswordCache] = None,
    ) -> EncryptionScheme:
        """
        Encrypt a plaintext module under a new scheme.

        The scheme registry is written before the entry file is replaced.
        The password is used only for this call and is not cached.
        """
        module = self.get(name)
        if name in self.schemes:
            raise AlreadyExistsError(f"Module is already encrypted: {name}")
        scheme = module.encrypt(password, self.kdf_params, commit=self._committer(name))
        if cache is not None:
            cache.pop(name)

        self.audit.log_module_event(
            EventType.MODULE_ENCRYPTED, name, "module encrypted",
            details={"kdf": scheme.kdf_params.algorithm, "iterations": scheme.kdf_params.iterations},
        )
        return scheme

    def unlock(self, name: str, password: Password, cache: PasswordCache) -> EntryStore:
        """
        Decrypt a locked module and remember its password in ``cache``.

        Unlocking an unlocked module verifies the password again.

        Raises:
            AuthenticationError: Wrong password (module state unchanged)
            NotFoundError: Unknown module
        """
        module = self.get(name)
        scheme = self.schemes.get(name)
        if scheme is None:
            return module.unlock(scheme, password)

        try:
            entries = module.unlock(scheme, password)
        except AuthenticationError:
            self.audit.log_module_event(
                EventType.MODULE_UNLOCK_FAILED, name, "unlock failed: incorrect password",
                severity=EventSeverity.ALERT,
            )
            raise
        cache.put(name, password)

        self.audit.log_module_event(
            EventType.MODULE_UNLOCKED, name, "module unlocked",
            details={"entries": len(entries)},
        )
        return entries

    def lock(self, name: str, cache: PasswordCache) -> None:
        """
        Re-encrypt an unlocked module, persist it and forget its password.

        Raises:
            ModuleLockedError: No cached password for an unlocked module
        """
        module = self.get(name)
        if not module.is_unlocked:
            return
        password = cache.get(name)
        if password is None:
            raise ModuleLockedError(f"No cached password to re-encrypt module: {name}")

        module.lock(self.schemes[name], password, commit=self._committer(name))
        cache.pop(name)
        self.audit.log_module_event(EventType.MODULE_LOCKED, name, "module locked")

    def _committer(self, name: str) -> SchemeCommit:
        """Callback that registers (or with None, unregisters) a scheme and saves.

        A registration is undone in memory if the save fails.
        """
        def commit(scheme: Optional[EncryptionScheme]) -> None:
            previous = self.schemes.get(name)
            if scheme is None:
                self.schemes.pop(name, None)
            else:
                self.schemes[name] = scheme
            try:
                self.save()
            except VaultError:
                if scheme is not None:
                    if previous is None:
                        self.schemes.pop(name, None)
                    else:
                        self.schemes[name] = previous
                raise
        return commit

    def save(self) -> None:
        """Write the scheme registry file, detached schemes included."""
        schemes = dict(self.detached_schemes)
        schemes.update(self.schemes)
        atomic_write(self.registry_path, save_scheme_registry(schemes))
        self.audit.log_event(
            event_type=EventType.REGISTRY_SAVED,
            severity=EventSeverity.INFO,
            message="Scheme registry saved",
            details={"encrypted_modules": sorted(schemes)},
        )

    def cleanup(self, cache: PasswordCache) -> None:
        cleanup(self, cache)


def cleanup(registry: ModuleRegistry, password_cache: PasswordCache) -> None:
    """
    Flush every module and drop all secrets from memory.

    - Unlocked modules are re-encrypted with their cached password
    - Loaded plaintext modules are written back
    - The scheme registry is written
    - The password cache and every in-memory entry store are cleared

    The pass always completes; failures are raised afterwards as one
    CleanupError.
    """
    failures: List[Tuple[str, Exception]] = []

    try:
        for module in registry.modules():
            try:
                if module.is_unlocked:
                    password = password_cache.get(module.name)
                    if password is None:
                        failures.append((
                            module.name,
                            ModuleLockedError("No cached password; in-memory changes discarded"),
                        ))
                        continue
                    module.lock(
                        registry.schemes[module.name], password,
                        commit=registry._committer(module.name),
                    )
                    registry.audit.log_module_event(
                        EventType.MODULE_LOCKED, module.name, "module locked at cleanup",
                    )
                else:
                    module.persist()
            except VaultError as e:
                logger.error(f"Cleanup failed for module {module.name}: {e}")
                failures.append((module.name, e))

        try:
            registry.save()
        except VaultError as e:
            logger.error(f"Failed to write scheme registry: {e}")
            failures.append((REGISTRY_FILE_NAME, e))
    finally:
        password_cache.clear()
        for module in registry.modules():
            module.drop()

    if failures:
        registry.audit.log_event(
            event_type=EventType.CLEANUP_FAILED,
            severity=EventSeverity.CRITICAL,
            message="Cleanup finished with errors",
            details={"failed": [name for name, _ in failures]},
        )
        raise CleanupError(failures)

    registry.audit.log_event(
        event_type=EventType.CLEANUP_COMPLETED,
        severity=EventSeverity.INFO,
        message="Cleanup completed",
        details={"modules": len(registry)},
    )
