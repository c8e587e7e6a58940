#!/usr/bin/env python3
"""Blocksmith - Entry Point"""

import argparse
import faulthandler
import logging
import sys
import traceback
from logging.handlers import RotatingFileHandler
from pathlib import Path

from errors import ConfigurationError, PackError, PackSecurityError
from pack_library import format_bytes
from pack_types import LogEntry
from settings_store import APP_DIR_NAME, AppState, auto_detect_paths, config_dir


def setup_logging(debug: bool = False) -> tuple[logging.Logger, Path]:
    log_dir = config_dir() / APP_DIR_NAME
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "blocksmith.log"

    handler = RotatingFileHandler(
        log_file,
        maxBytes=1 * 1024 * 1024,  # 1 MB
        backupCount=2,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(asctime)s  %(levelname)-8s  %(message)s"))

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if debug else logging.WARNING)
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    # Module loggers propagate here
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)
    root.addHandler(console)
    return logging.getLogger("blocksmith"), log_dir


def install_crash_handler(logger: logging.Logger, log_dir: Path):
    def handle_exception(exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        logger.critical(
            "Unhandled exception:\n%s",
            "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
        )

    sys.excepthook = handle_exception

    # faulthandler can't go through logging after a hard crash
    crash_file = log_dir / "crash.log"
    faulthandler.enable(open(crash_file, "w"), all_threads=True)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Minecraft Bedrock pack installer")
    parser.add_argument("--settings-file")
    parser.add_argument("--scan-dir")
    parser.add_argument("--dry-run", action="store_true")
    parser.add_argument("--delete-source", action="store_true")
    parser.add_argument("--debug", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("scan", help="classify the packs in the scan folder")
    sub.add_parser("status", help="show which scanned packs are new or updated")
    install = sub.add_parser("install", help="install new and updated packs")
    install.add_argument("--all", action="store_true", help="reinstall current packs too")
    sub.add_parser("stats", help="installed pack counts and sizes")
    detect = sub.add_parser("detect-paths", help="find the game's pack folders")
    detect.add_argument("--save", action="store_true")
    move = sub.add_parser("move", help="move an installed pack folder")
    move.add_argument("path")
    move.add_argument("destination")
    rename = sub.add_parser("rename", help="rename an installed pack folder")
    rename.add_argument("path")
    rename.add_argument("new_name")
    delete_all = sub.add_parser("delete-all", help="delete every installed pack")
    delete_all.add_argument("--yes", action="store_true", help="required; this cannot be undone")
    sub.add_parser("premium", help="list cached Marketplace skin packs")
    import_4d = sub.add_parser("import-4d", help="copy a 4D skin pack over a cached premium pack")
    import_4d.add_argument("skin_pack")
    import_4d.add_argument("premium_pack")
    return parser.parse_args(argv)


def print_entry(entry: LogEntry):
    print(f"[{entry.timestamp}] {entry.level:<7} {entry.message}")


def print_progress(current: int, total: int, message: str):
    print(f"  ({current}/{total}) {message}")


LIBRARY_COMMANDS = ("move", "rename", "delete-all", "premium", "import-4d")


def run_library_command(args: argparse.Namespace, manager) -> int:
    if args.command == "move":
        manager.move_installed(args.path, args.destination)
    elif args.command == "rename":
        manager.rename_installed(args.path, args.new_name)
    elif args.command == "delete-all":
        if not args.yes:
            print("Refusing to delete every installed pack without --yes", file=sys.stderr)
            return 1
        manager.delete_all()
    elif args.command == "premium":
        for pack in manager.premium_packs():
            print(f"{pack.display_name:<40} {pack.path}")
    elif args.command == "import-4d":
        manager.import_4d_skin(args.skin_pack, args.premium_pack)
    return 0


def load_state(args: argparse.Namespace) -> AppState:
    """Settings from disk with the command-line overrides applied."""
    state = AppState.load(args.settings_file, strict=bool(args.settings_file))
    changes = {}
    if args.dry_run:
        changes["dry_run"] = True
    if args.delete_source:
        changes["delete_source"] = True
    if args.debug:
        changes["debug_mode"] = True
    if changes:
        state.update(**changes)
    return state


def run(args: argparse.Namespace, state: AppState | None = None) -> int:
    from pack_manager import PackManager

    state = state or load_state(args)

    if args.command == "detect-paths":
        detected = auto_detect_paths()
        for name, value in detected.model_dump(exclude_none=True).items():
            if isinstance(value, str):
                print(f"{name}: {value}")
        if args.save:
            state.update(**detected.model_dump(exclude_none=True, exclude_defaults=True))
            print(f"Saved to {state.save()}")
        return 0

    manager = PackManager(state, log_callback=print_entry, progress_callback=print_progress)

    if args.command in LIBRARY_COMMANDS:
        try:
            return run_library_command(args, manager)
        except (PackSecurityError, OSError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    if args.command == "stats":
        for row in manager.stats():
            print(f"{row.pack_type.label:<24} {row.count:>5}  {row.total_size_formatted}")
        return 0

    scan_dir = args.scan_dir or state.snapshot().scan_location
    if not scan_dir:
        raise ConfigurationError("No scan folder given (use --scan-dir)")

    packs = manager.scan_packs(scan_dir)
    if args.command == "scan":
        for pack in packs:
            size = format_bytes(pack.file_size) if pack.file_size is not None else "?"
            print(f"{pack.display_name:<40} {pack.pack_type.label:<24} {size}")
        return 0

    manager.compute_pack_status(packs)
    if args.command == "status":
        for pack in packs:
            print(f"{pack.display_name:<40} {pack.pack_type.label:<24} {pack.status}")
        return 0

    for issue in manager.validate_paths():
        print(f"  note: {issue}")
    todo = packs if args.all else [p for p in packs if p.status != "installed"]
    results = manager.process_packs(todo)
    return 0 if all(op.success for op in results) else 1


def cli(argv=None):
    args = parse_args(argv)
    try:
        state = load_state(args)
    except PackError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    logger, log_dir = setup_logging(state.snapshot().debug_mode)
    install_crash_handler(logger, log_dir)
    logger.info("Starting Blocksmith")

    try:
        sys.exit(run(args, state))
    except PackError as e:
        logger.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    cli()
