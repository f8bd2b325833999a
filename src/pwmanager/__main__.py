# Main Entry Point - Command Line
#
# One-shot commands over the module store. Every command runs inside a
# VaultSession, so unlocked modules are re-encrypted and the password cache
# is cleared on every exit path, errors included.

import argparse
import getpass
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

from . import __version__
from .config import load_config
from .core import AuditLogger, EventSeverity, EventType, set_audit_logger
from .vault import AuthenticationError, VaultError, VaultSession, generate_secret
from .vault.entries import DEFAULT_LENGTH, LONG_LENGTH


def _unlock_if_needed(session: VaultSession, name: str) -> None:
    view = session.select_module(name)
    if view.needs_password:
        password = getpass.getpass(f"Password for {name}: ")
        session.submit_password(name, password)


def cmd_list(session: VaultSession, args: argparse.Namespace) -> int:
    for name, hint in session.list_modules():
        print(f"{name}\t[{hint}]")
    return 0


def cmd_create(session: VaultSession, args: argparse.Namespace) -> int:
    session.create_module(args.module)
    print(f"[OK] Module created: {args.module}")
    return 0


def cmd_show(session: VaultSession, args: argparse.Namespace) -> int:
    _unlock_if_needed(session, args.module)
    for label, secret in session.entry_rows(args.module):
        print(f"{label}\t{secret}")
    return 0


def cmd_add(session: VaultSession, args: argparse.Namespace) -> int:
    _unlock_if_needed(session, args.module)
    entry = session.add_entry(args.module, args.label, args.secret, length=args.length)
    if args.secret is None:
        print(entry.secret)
    else:
        print(f"[OK] Entry saved: {args.label}")
    return 0


def cmd_remove(session: VaultSession, args: argparse.Namespace) -> int:
    _unlock_if_needed(session, args.module)
    session.remove_entry(args.module, args.label)
    print(f"[OK] Entry removed: {args.label}")
    return 0


def cmd_encrypt(session: VaultSession, args: argparse.Namespace) -> int:
    password = getpass.getpass(f"New password for {args.module}: ")
    confirm = getpass.getpass("Confirm password: ")
    if password != confirm:
        print("[ERROR] Passwords do not match", file=sys.stderr)
        return 1
    session.encrypt_module(args.module, password)
    print(f"[OK] Module encrypted: {args.module}")
    return 0


COMMANDS: Dict[str, Callable[[VaultSession, argparse.Namespace], int]] = {
    "list": cmd_list,
    "create": cmd_create,
    "show": cmd_show,
    "add": cmd_add,
    "remove": cmd_remove,
    "encrypt": cmd_encrypt,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pwmanager",
        description="Local password manager with per-module encryption",
    )
    parser.add_argument(
        "--home",
        type=Path,
        default=None,
        help="Base directory for module files (default: $PWMANAGER_HOME or ~/.pwmanager)",
    )
    parser.add_argument("--version", action="version", version=f"pwmanager {__version__}")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List modules and their lock state")

    p = sub.add_parser("create", help="Create an empty plaintext module")
    p.add_argument("module")

    p = sub.add_parser("show", help="Print the entries of a module")
    p.add_argument("module")

    p = sub.add_parser("add", help="Add an entry (generates a secret unless --secret is given)")
    p.add_argument("module")
    p.add_argument("label")
    p.add_argument("--secret", default=None)
    p.add_argument("--length", type=int, default=DEFAULT_LENGTH, help=f"e.g. {DEFAULT_LENGTH} or {LONG_LENGTH}")

    p = sub.add_parser("remove", help="Remove an entry")
    p.add_argument("module")
    p.add_argument("label")

    p = sub.add_parser("encrypt", help="Encrypt a plaintext module with a password")
    p.add_argument("module")

    p = sub.add_parser("generate", help="Print a random secret without storing it")
    p.add_argument("--length", type=int, default=DEFAULT_LENGTH)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "generate":
        try:
            print(generate_secret(args.length))
        except ValueError as e:
            print(f"[ERROR] {e}", file=sys.stderr)
            return 1
        return 0

    try:
        config = load_config(home=args.home)
    except ValueError as e:
        print(f"[ERROR] Invalid configuration: {e}", file=sys.stderr)
        return 1

    audit = AuditLogger(log_dir=config.log_dir)
    set_audit_logger(audit)
    audit.log_event(
        event_type=EventType.SYSTEM_START,
        severity=EventSeverity.INFO,
        message="pwmanager starting",
        details={"version": __version__, "command": args.command},
    )

    try:
        with VaultSession(config=config, audit=audit) as session:
            session.ensure_default_module()
            return COMMANDS[args.command](session, args)
    except AuthenticationError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2
    except (VaultError, ValueError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
