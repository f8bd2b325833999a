# Vault - Session
#
# The operations a UI or CLI drives: create/select modules, submit
# passwords, add/remove entries, shutdown. A session owns the registry and
# the password cache; leaving the context manager always runs cleanup.

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from ..config import VaultConfig, load_config
from ..core import AuditLogger, EventSeverity, EventType, get_audit_logger
from .encryption import KdfParameters, Password
from .entries import DEFAULT_LENGTH, PasswordEntry, generate
from .exceptions import NotFoundError, SerializationError
from .module import HINT_BROKEN, HINT_LOCKED
from .registry import ModuleRegistry, PasswordCache, cleanup

logger = logging.getLogger(__name__)


@dataclass
class ModuleView:
    """What a UI shows for a selected module."""
    name: str
    hint: str
    rows: List[Tuple[str, str]] = field(default_factory=list, repr=False)
    error: Optional[str] = None

    @property
    def needs_password(self) -> bool:
        return self.hint == HINT_LOCKED


class VaultSession:
    """
    Collaborator interface over a ModuleRegistry.

    Usage:
        with VaultSession(config=load_config()) as session:
            session.create_module("Finance")
            session.add_entry("Finance", "Bank", "s3cr3t!")
            session.encrypt_module("Finance", "hunter2")
    """

    def __init__(
        self,
        registry: Optional[ModuleRegistry] = None,
        config: Optional[VaultConfig] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.config = config or load_config()
        self.audit = audit or get_audit_logger()
        if registry is None:
            registry = ModuleRegistry.discover(
                Path(self.config.home),
                kdf_params=KdfParameters(iterations=self.config.kdf_iterations),
                audit=self.audit,
            )
        self.registry = registry
        self.passwords = PasswordCache()
        self.selected: Optional[str] = None
        self._closed = False

    def __enter__(self) -> "VaultSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # ── Inputs ───────────────────────────────────────────────────────

    def ensure_default_module(self) -> None:
        """Create the configured default module if it does not exist yet."""
        name = self.config.default_module
        if name not in self.registry:
            self.registry.add_module(name)

    def create_module(self, name: str) -> ModuleView:
        self.registry.add_module(name)
        return self.select_module(name)

    def select_module(self, name: str) -> ModuleView:
        """
        Select a module. Locked modules stay locked; the view reports that
        a password is needed.
        """
        module = self.registry.get(name)
        self.selected = name
        if module.display_hint == HINT_LOCKED:
            return ModuleView(name=name, hint=HINT_LOCKED)
        if module.display_hint == HINT_BROKEN:
            return ModuleView(name=name, hint=HINT_BROKEN, error=str(module.broken))
        try:
            rows = module.entries().rows()
        except SerializationError as e:
            return ModuleView(name=name, hint=HINT_BROKEN, error=str(e))
        return ModuleView(name=name, hint=module.display_hint, rows=rows)

    def submit_password(self, name: str, password: Password) -> List[Tuple[str, str]]:
        """
        Unlock a module. Returns its entry rows.

        Raises:
            AuthenticationError: Wrong password; the module stays locked
        """
        entries = self.registry.unlock(name, password, self.passwords)
        return entries.rows()

    def encrypt_module(self, name: str, password: Password) -> None:
        self.registry.encrypt_module(name, password, self.passwords)

    def lock_module(self, name: str) -> None:
        self.registry.lock(name, self.passwords)

    def add_entry(
        self,
        name: str,
        label: str,
        secret: Optional[str] = None,
        length: int = DEFAULT_LENGTH,
    ) -> PasswordEntry:
        """
        Add or overwrite an entry. A secret is generated when none is given.

        Raises:
            ModuleLockedError: Module is locked
        """
        entries = self.registry.get(name).entries()
        entry = generate(label, length) if secret is None else PasswordEntry(label, secret)
        previous = entries.insert(label, entry)
        self.audit.log_module_event(
            EventType.ENTRY_ADDED, name, f"entry {'replaced' if previous else 'added'}: {label}",
            details={"label": label, "generated": secret is None},
        )
        return entry

    def remove_entry(self, name: str, label: str) -> PasswordEntry:
        """
        Raises:
            NotFoundError: No entry with that label
            ModuleLockedError: Module is locked
        """
        removed = self.registry.get(name).entries().remove(label)
        if removed is None:
            raise NotFoundError(f"Entry not found in {name}: {label}")
        self.audit.log_module_event(
            EventType.ENTRY_REMOVED, name, f"entry removed: {label}",
            details={"label": label},
        )
        return removed

    def shutdown(self) -> None:
        """Run cleanup once. Later calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        self.selected = None
        logger.debug(f"Shutting down session with {len(self.passwords)} cached password(s)")
        try:
            cleanup(self.registry, self.passwords)
        finally:
            self.audit.log_event(
                event_type=EventType.SYSTEM_STOP,
                severity=EventSeverity.INFO,
                message="Session closed",
            )

    # ── Outputs ──────────────────────────────────────────────────────

    def list_modules(self) -> List[Tuple[str, str]]:
        """(name, hint) for every module; hint is unlocked/locked/plaintext."""
        return [(m.name, m.display_hint) for m in self.registry.modules()]

    def entry_rows(self, name: str) -> List[Tuple[str, str]]:
        """
        Raises:
            ModuleLockedError: Module is locked
        """
        return self.registry.get(name).entries().rows()
