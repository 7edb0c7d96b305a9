#!/usr/bin/env python3
"""Mod Lifecycle Engine - command line entry point"""

import argparse
import faulthandler
import json
import logging
import sys
import traceback
from logging.handlers import RotatingFileHandler
from pathlib import Path

from PySide6.QtCore import QCoreApplication

from app_paths import APP_NAME, default_paths


def setup_logging(log_dir: Path) -> logging.Logger:
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "modlifecycle.log"

    handler = RotatingFileHandler(
        log_file,
        maxBytes=1 * 1024 * 1024,  # 1 MB
        backupCount=2,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"))

    # module loggers (mod_manager, mod_archive, ...) propagate to the root
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)
    return logging.getLogger("modlifecycle")


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

    # faulthandler can't use the logging machinery after a hard crash
    crash_file = log_dir / "crash.log"
    faulthandler.enable(open(crash_file, "w"), all_threads=True)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="modlifecycle", description="Mod Lifecycle Engine")
    parser.add_argument("--app-name", default=APP_NAME)
    parser.add_argument("--mods-dir")
    parser.add_argument("--settings-file")
    parser.add_argument(
        "--repository",
        action="append",
        default=[],
        metavar="FILE",
        help="repository listing (JSON object: mod id -> mod.json data); may be repeated",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="show known mods and their state")
    install = sub.add_parser("install", help="install a mod from an archive")
    install.add_argument("name")
    install.add_argument("archive")
    for command in ("uninstall", "enable", "disable"):
        sub.add_parser(command, help=f"{command} a mod").add_argument("name")
    return parser.parse_args(argv)


def _print_mod_list(manager) -> None:
    for name in manager.catalog.get_mod_list():
        mod = manager.catalog.get_mod(name)
        if mod.is_enabled:
            state = "enabled"
        elif mod.is_installed:
            state = "disabled"
        else:
            state = "available"
        size = f"{mod.local_size_bytes / 1024:.0f} KiB" if mod.is_installed else ""
        print(f"{name:<40} {state:<10} {size}")


def run(argv=None) -> int:
    args = parse_args(argv)
    paths = default_paths(args.app_name)
    mods_dir = Path(args.mods_dir) if args.mods_dir else paths.mods_dir
    settings_file = Path(args.settings_file) if args.settings_file else paths.settings_path

    logger = setup_logging(paths.log_dir)
    install_crash_handler(logger, paths.log_dir)
    logger.info("Starting Mod Lifecycle Engine (%s)", args.command)

    # processEvents() during extraction needs an application object
    _app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])

    from mod_manager import ModManager

    manager = ModManager(mods_dir, settings_file, app_name=args.app_name, log_callback=logger.info)
    if args.repository:
        entries = [json.loads(Path(p).read_text(encoding="utf-8")) for p in args.repository]
        manager.load_repositories(entries)

    if args.command == "list":
        _print_mod_list(manager)
        ok = True
    elif args.command == "install":
        ok = manager.install_mod(args.name, args.archive)
    elif args.command == "uninstall":
        ok = manager.uninstall_mod(args.name)
    elif args.command == "enable":
        ok = manager.enable_mod(args.name)
    else:
        ok = manager.disable_mod(args.name)

    for message in manager.drain_errors():
        print(message, file=sys.stderr)
    logger.info("Finished %s: %s", args.command, "ok" if ok else "failed")
    return 0 if ok else 1


def cli():
    sys.exit(run())


if __name__ == "__main__":
    cli()
