"""
Mod Lifecycle Engine - Core Logic

Handles installing mods from archives, uninstalling them, and switching them
on and off, with dependency/conflict validation before every transition.
"""

from __future__ import annotations

import logging
import os
from collections import deque
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from typing import Any, Callable, Optional

from PySide6.QtCore import QCoreApplication

from app_paths import APP_NAME, MODS_DIR_NAME, SANDBOXED
from dependency_checks import check_disable, check_enable, check_install, check_uninstall
from mod_archive import (
    SUPPORTED_EXTENSIONS,
    detect_mod_root,
    extract_archive,
    list_archive_names,
    remove_mod_dir,
    unsafe_members,
)
from mod_catalog import LocalMod, ModCatalog, ModCatalogAdapter, scan_local_mods
from mod_errors import ArchiveError, FilesystemError, ModError, ValidationError
from mod_settings import ModSettingsStore

EXTRACT_POLL_INTERVAL = 0.05  # seconds
MAX_RECENT_ERRORS = 64

_log = logging.getLogger(__name__)


def process_qt_events():
    """Let the embedding Qt application handle pending events, if there is one."""
    app = QCoreApplication.instance()
    if app is not None:
        app.processEvents()


class ModManager:
    def __init__(
        self,
        mods_dir: str | Path,
        settings_path: str | Path,
        catalog: Optional[ModCatalogAdapter] = None,
        *,
        app_name: str = APP_NAME,
        log_callback: Optional[Callable[[str], None]] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
        process_events: Optional[Callable[[], None]] = None,
        sandboxed: bool = SANDBOXED,
        poll_interval: float = EXTRACT_POLL_INTERVAL,
        max_errors: int = MAX_RECENT_ERRORS,
    ):
        self.mods_dir = Path(mods_dir)
        self.app_name = app_name
        self.catalog = catalog if catalog is not None else ModCatalog()
        self._log_cb = log_callback or print
        self._progress_cb = progress_callback or (lambda done, total: None)
        self._process_events = process_events or process_qt_events
        self.sandboxed = sandboxed
        self.poll_interval = poll_interval

        self.local_mods: dict[str, LocalMod] = {}
        self._recent_errors: deque[str] = deque(maxlen=max_errors)

        self.settings = ModSettingsStore(settings_path, self.catalog, log_callback=self._log_cb)
        self.load_mods()
        self.settings.load()

    def log(self, msg: str):
        self._log_cb(msg)

    # ── Errors ────────────────────────────────────────────────────────

    def add_error(self, mod_name: str, message: str) -> bool:
        entry = f"{mod_name}: {message}"
        self._recent_errors.append(entry)
        _log.warning(entry)
        self.log(entry)
        return False

    def drain_errors(self) -> list[str]:
        errors = list(self._recent_errors)
        self._recent_errors.clear()
        return errors

    # ── Catalog refresh ───────────────────────────────────────────────

    def load_mods(self) -> dict[str, LocalMod]:
        self.local_mods = scan_local_mods(self.mods_dir)
        self.catalog.set_local_mod_list(self.local_mods)
        self.log(f"Found {len(self.local_mods)} installed mod(s)")
        return self.local_mods

    def reset_repositories(self):
        self.catalog.reset_repositories()

    def load_repositories(self, entries: Iterable[Mapping[str, Any]]):
        for entry in entries:
            self.catalog.add_repository(entry)
        self.catalog.reload_repositories()

    def _refresh_after_change(self):
        self.load_mods()
        self.catalog.reload_repositories()

    # ── Public operations ─────────────────────────────────────────────

    def install_mod(self, mod_name: str, archive_path: str | Path) -> bool:
        return self.can_install_mod(mod_name) and self._do_install_mod(mod_name, archive_path)

    def uninstall_mod(self, mod_name: str) -> bool:
        return self.can_uninstall_mod(mod_name) and self._do_uninstall_mod(mod_name)

    def enable_mod(self, mod_name: str) -> bool:
        return self.can_enable_mod(mod_name) and self._do_enable_mod(mod_name, True)

    def disable_mod(self, mod_name: str) -> bool:
        return self.can_disable_mod(mod_name) and self._do_enable_mod(mod_name, False)

    # ── Validation ────────────────────────────────────────────────────

    def can_install_mod(self, mod_name: str) -> bool:
        ok, reason = check_install(self.catalog.get_mod(mod_name))
        return ok or self.add_error(mod_name, reason)

    def can_uninstall_mod(self, mod_name: str) -> bool:
        ok, reason = check_uninstall(self.catalog.get_mod(mod_name))
        return ok or self.add_error(mod_name, reason)

    def can_enable_mod(self, mod_name: str) -> bool:
        ok, reason = check_enable(self.catalog, mod_name)
        return ok or self.add_error(mod_name, reason)

    def can_disable_mod(self, mod_name: str) -> bool:
        ok, reason = check_disable(self.catalog, mod_name)
        return ok or self.add_error(mod_name, reason)

    # ── State changes ─────────────────────────────────────────────────

    def _do_enable_mod(self, mod_name: str, on: bool) -> bool:
        ok, msg = self.settings.enable(mod_name, on)
        return ok or self.add_error(mod_name, msg)

    def _do_install_mod(self, mod_name: str, archive_path: str | Path) -> bool:
        try:
            self._install_from_archive(mod_name.lower(), Path(archive_path))
        except ModError as exc:
            return self.add_error(mod_name, str(exc))
        self.log(f"Installed {mod_name}")
        return True

    def _do_uninstall_mod(self, mod_name: str) -> bool:
        try:
            self._remove_installed(mod_name.lower())
        except ModError as exc:
            return self.add_error(mod_name, str(exc))
        self.log(f"Uninstalled {mod_name}")
        return True

    # ── Install pipeline ──────────────────────────────────────────────

    def _find_mod_dir(self, mod_name: str) -> Path | None:
        """Locate a top-level mod directory, ignoring case."""
        if not self.mods_dir.is_dir():
            return None
        for entry in self.mods_dir.iterdir():
            if entry.is_dir() and entry.name.lower() == mod_name.lower():
                return entry
        return None

    def _install_from_archive(self, mod_name: str, archive_path: Path):
        if not archive_path.is_file():
            raise ArchiveError("Mod archive is missing")
        if mod_name in self.local_mods or self._find_mod_dir(mod_name) is not None:
            raise ValidationError("Mod with such name is already installed")
        if archive_path.suffix.lower() not in SUPPORTED_EXTENSIONS:
            raise ArchiveError(f"Unsupported archive format: {archive_path.suffix}")

        try:
            names = list_archive_names(archive_path)
        except Exception as exc:
            _log.error("Could not read %s: %s", archive_path, exc)
            raise ArchiveError("Mod archive is invalid or corrupted") from exc

        bad = unsafe_members(names)
        if bad:
            _log.error("Archive %s has members outside its root: %s", archive_path, bad)
            raise ArchiveError("Mod archive is invalid or corrupted")

        mod_root = detect_mod_root(names)
        if mod_root is None:
            raise ArchiveError("Mod archive is invalid or corrupted")

        staging = self.mods_dir / f".{mod_name}.extract"
        target = self.mods_dir / mod_name
        # leftovers of an interrupted install must not end up in the new mod
        if not self._remove(staging):
            raise FilesystemError("Could not clear leftover extraction data")
        self.log(f"Extracting {archive_path.name}...")
        if not self._extract_with_progress(archive_path, staging, names):
            self._remove(staging)
            raise ArchiveError("Failed to extract mod data")

        extracted = staging / mod_root if mod_root else staging
        try:
            os.replace(extracted, target)
        except OSError as exc:
            _log.error("Could not move %s to %s: %s", extracted, target, exc)
            self._remove(staging)
            raise FilesystemError("Failed to move extracted mod data into place") from exc

        # anything else the archive carried next to the mod root
        if mod_root and not self._remove(staging):
            self.log(f"Warning: could not clean up {staging}")

        self._refresh_after_change()

    def _extract_with_progress(self, archive_path: Path, dest: Path, members: list[str]) -> bool:
        """Extract on a worker thread while keeping the embedding event loop alive.

        No fractional progress is available; ``progress_callback(0, 0)`` is
        called on every poll tick until the worker finishes. Extraction cannot
        be cancelled once started.
        """
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="mod-extract") as pool:
            future = pool.submit(extract_archive, archive_path, dest, members)
            while True:
                done, _ = wait([future], timeout=self.poll_interval)
                if done:
                    break
                self._progress_cb(0, 0)
                self._process_events()

        exc = future.exception()
        if exc is not None:
            _log.error("Extraction of %s failed: %s", archive_path, exc)
            return False
        return True

    # ── Uninstall pipeline ────────────────────────────────────────────

    def _remove_installed(self, mod_name: str):
        mod_dir = self._find_mod_dir(mod_name)
        if mod_dir is None:
            raise FilesystemError("Data with this mod was not found")
        if not self._remove(mod_dir):
            raise FilesystemError(
                "Mod is located in protected directory, please remove it manually:\n"
                + str(mod_dir.absolute())
            )
        self._refresh_after_change()

    def _remove(self, path: Path) -> bool:
        return remove_mod_dir(path, self.app_name, MODS_DIR_NAME, sandboxed=self.sandboxed)
