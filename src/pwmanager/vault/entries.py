# Vault - Entry Store
#
# In-memory label → secret mapping for one module, plus secret generation
# and the plaintext JSON format of an entry file:
#
#   {"Bank": "s3cr3t!", "Mail": "..."}

import json
import secrets
import string
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional, Tuple

from .exceptions import SerializationError

DEFAULT_LENGTH = 32
LONG_LENGTH = 64

ALPHANUMERIC = string.ascii_letters + string.digits
# ASCII 33..46: ! " # $ % & ' ( ) * + , - .
SPECIAL_CHARACTERS = "".join(chr(c) for c in range(33, 47))
UPPERCASE = string.ascii_uppercase

_rng = secrets.SystemRandom()


@dataclass(frozen=True)
class PasswordEntry:
    """A labelled secret. The secret is kept out of repr()."""
    label: str
    secret: str = field(repr=False)


def generate_secret(length: int = DEFAULT_LENGTH) -> str:
    """
    Generate a random secret of exactly ``length`` characters.

    The body is drawn from the alphanumeric alphabet, then one special
    character and one uppercase letter are written at two distinct
    positions sampled without replacement.

    Raises:
        ValueError: length < 2
    """
    if length < 2:
        raise ValueError(f"Secret length must be at least 2, got {length}")

    chars = [secrets.choice(ALPHANUMERIC) for _ in range(length)]
    special_index, upper_index = _rng.sample(range(length), 2)
    chars[special_index] = secrets.choice(SPECIAL_CHARACTERS)
    chars[upper_index] = secrets.choice(UPPERCASE)
    return "".join(chars)


def generate(label: str, length: int = DEFAULT_LENGTH) -> PasswordEntry:
    """Create a PasswordEntry with a freshly generated secret."""
    return PasswordEntry(label=label, secret=generate_secret(length))


class EntryStore:
    """
    Mapping of label → PasswordEntry owned by a single module.

    Insertion order is kept for display; it carries no meaning on disk.
    """

    def __init__(self, entries: Optional[Dict[str, str]] = None):
        self._entries: Dict[str, PasswordEntry] = {}
        for label, secret in (entries or {}).items():
            self._entries[label] = PasswordEntry(label, secret)

    def insert(self, label: str, entry: PasswordEntry) -> Optional[PasswordEntry]:
        """Insert or overwrite an entry. Returns the previous entry, if any."""
        if entry.label != label:
            entry = replace(entry, label=label)
        previous = self._entries.get(label)
        self._entries[label] = entry
        return previous

    def add(self, label: str, secret: str) -> Optional[PasswordEntry]:
        return self.insert(label, PasswordEntry(label, secret))

    def add_generated(self, label: str, length: int = DEFAULT_LENGTH) -> PasswordEntry:
        entry = generate(label, length)
        self.insert(label, entry)
        return entry

    def remove(self, label: str) -> Optional[PasswordEntry]:
        """Remove an entry. Returns it, or None if the label was absent."""
        return self._entries.pop(label, None)

    def get(self, label: str) -> Optional[PasswordEntry]:
        return self._entries.get(label)

    def labels(self) -> List[str]:
        return list(self._entries)

    def rows(self) -> List[Tuple[str, str]]:
        """(label, secret) pairs in insertion order."""
        return [(e.label, e.secret) for e in self._entries.values()]

    def to_dict(self) -> Dict[str, str]:
        return {label: e.secret for label, e in self._entries.items()}

    def clear(self) -> None:
        """Drop every entry reference held by this store."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, label: object) -> bool:
        return label in self._entries

    def __iter__(self) -> Iterator[PasswordEntry]:
        return iter(list(self._entries.values()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EntryStore):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"EntryStore(labels={self.labels()!r})"

    # ── Serialization ────────────────────────────────────────────────

    def serialize(self) -> bytes:
        """Encode as a UTF-8 JSON object label → secret."""
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2).encode("utf-8")

    @classmethod
    def deserialize(cls, data: bytes) -> "EntryStore":
        """
        Decode an entry file.

        An empty file yields an empty store.

        Raises:
            SerializationError: Not UTF-8 JSON, not an object, or a
                non-string secret.
        """
        if not data.strip():
            return cls()
        try:
            document = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SerializationError(f"Entry file is not valid JSON: {e}") from e

        if not isinstance(document, dict):
            raise SerializationError("Entry file must contain a JSON object")
        for label, secret in document.items():
            if not isinstance(secret, str):
                raise SerializationError(f"Entry {label!r} has a non-string secret")
        return cls(document)
