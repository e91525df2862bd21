# LocalPass - Command Line Entry Point
#
# `python -m localpass serve` runs the local API for the desktop frontend.
# The other subcommands operate on the vault directly from a terminal.

import argparse
import asyncio
import getpass
import sys
from pathlib import Path

from . import __version__
from .core import EventType, get_settings, log_vault_event
from .vault import VaultError, VaultState, VaultStore, VaultTransfer
from .vault.generator import generate_password


def _store(args) -> VaultStore:
    settings = get_settings()
    return VaultStore(args.vault or settings.vault_path, kdf_iterations=settings.kdf_iterations)


async def _cmd_init(args) -> int:
    store = _store(args)
    password = getpass.getpass("New master password: ")
    if password != getpass.getpass("Repeat master password: "):
        print("Passwords do not match.", file=sys.stderr)
        return 1
    vault = await store.initialize(password)
    print(f"Vault created at {store.vault_path} (device {vault.device_id})")
    return 0


async def _cmd_status(args) -> int:
    store = _store(args)
    print(f"Vault: {store.vault_path}")
    print(f"State: {store.state.value}")
    return 0


async def _unlock_or_fail(store: VaultStore) -> bool:
    if await store.unlock(getpass.getpass("Master password: ")):
        return True
    print("Could not unlock vault.", file=sys.stderr)
    return False


async def _cmd_export(args) -> int:
    store = _store(args)
    if store.state is VaultState.UNINITIALIZED:
        print("No vault to export.", file=sys.stderr)
        return 1
    if not await _unlock_or_fail(store):
        return 1
    text = VaultTransfer(store).export_json()
    store.lock()
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        print(f"Exported to {args.output}")
    else:
        print(text)
    return 0


async def _cmd_import(args) -> int:
    store = _store(args)
    if store.state is VaultState.LOCKED:
        print("Unlock the local vault to merge the import into it.")
        if not await _unlock_or_fail(store):
            return 1
    content = Path(args.file).read_text(encoding="utf-8")
    result = await VaultTransfer(store).try_import(
        content, getpass.getpass("Password of the imported vault: ")
    )
    store.lock()
    if not result.ok:
        print(f"Import failed ({result.failure.value}): {result.message}", file=sys.stderr)
        return 1
    print(
        f"Imported: {len(result.vault.accounts)} account(s), "
        f"{len(result.vault.conflicts)} conflict(s) to resolve"
    )
    return 0


async def _cmd_reset(args) -> int:
    store = _store(args)
    if not args.yes:
        answer = input(f"Permanently delete {store.vault_path}? Type 'delete' to confirm: ")
        if answer.strip() != "delete":
            print("Aborted.")
            return 1
    await store.reset()
    print("Vault deleted.")
    return 0


def _cmd_generate(args) -> int:
    print(
        generate_password(
            length=args.length,
            symbols=not args.no_symbols,
        )
    )
    return 0


def main():
    """Main entry point for LocalPass."""
    parser = argparse.ArgumentParser(
        prog="localpass",
        description="LocalPass - offline password vault",
    )
    parser.add_argument(
        "--vault",
        help="Path to the vault file (default: LOCALPASS_VAULT_PATH or data/vault.json)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"LocalPass v{__version__}",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the local API for the desktop frontend")
    serve.add_argument("--host", default="127.0.0.1", help="Bind host (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")

    sub.add_parser("init", help="Create a new vault")
    sub.add_parser("status", help="Show vault state")

    export = sub.add_parser("export", help="Write an encrypted export package")
    export.add_argument("-o", "--output", help="Output file (default: stdout)")

    imp = sub.add_parser("import", help="Import and merge an export package")
    imp.add_argument("file", help="Export package or bare vault file")

    reset = sub.add_parser("reset", help="Delete the vault permanently")
    reset.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    gen = sub.add_parser("generate", help="Print a random password")
    gen.add_argument("--length", type=int, default=16)
    gen.add_argument("--no-symbols", action="store_true")

    args = parser.parse_args()

    log_vault_event(
        EventType.SYSTEM_START,
        "LocalPass starting",
        details={"version": __version__, "command": args.command},
    )

    if args.command == "serve":
        from .api.main import start_api_server

        try:
            start_api_server(host=args.host, port=args.port)
        except KeyboardInterrupt:
            print("\n\nShutting down...")
        log_vault_event(EventType.SYSTEM_STOP, "LocalPass API stopped")
        return

    if args.command == "generate":
        try:
            sys.exit(_cmd_generate(args))
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(2)

    handlers = {
        "init": _cmd_init,
        "status": _cmd_status,
        "export": _cmd_export,
        "import": _cmd_import,
        "reset": _cmd_reset,
    }
    try:
        code = asyncio.run(handlers[args.command](args))
    except VaultError as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
