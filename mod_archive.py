"""
Archive inspection, extraction and guarded removal for mod installs.

Public API
----------
list_archive_names(filepath)            -> archive member names ("/"-separated)
unsafe_members(names)                   -> members that would escape the target dir
detect_mod_root(names)                  -> mod root inside the archive, or None
extract_archive(filepath, dest, members)
remove_mod_dir(path, app_name, ...)     -> True if removed (or already absent)
directory_size(path)                    -> total size of all files below path
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import zipfile
from pathlib import Path

import py7zr
import rarfile

from app_paths import MODS_DIR_NAME, SANDBOXED
from manifest_schema import MOD_FILENAME

SUPPORTED_EXTENSIONS = {".zip", ".7z", ".rar"}

# Deeper nesting is never searched.
MAX_ROOT_DEPTH = 1

_DRIVE_RE = re.compile(r"^[A-Za-z]:")

_log = logging.getLogger(__name__)


# ── Archive reading ───────────────────────────────────────────────────


def list_archive_names(filepath: str | Path) -> list[str]:
    filepath = Path(filepath)
    ext = filepath.suffix.lower()
    if ext == ".zip":
        with zipfile.ZipFile(filepath, "r") as zf:
            names = zf.namelist()
    elif ext == ".7z":
        with py7zr.SevenZipFile(filepath, "r") as sz:
            names = sz.getnames()
    elif ext == ".rar":
        with rarfile.RarFile(filepath, "r") as rf:
            names = [info.filename for info in rf.infolist()]
    else:
        raise ValueError(f"Unsupported archive format: {ext}")
    return [name.replace("\\", "/") for name in names]


def unsafe_members(names: list[str]) -> list[str]:
    """Return members with absolute paths, drive letters or ``..`` segments."""
    bad = []
    for name in names:
        if name.startswith("/") or _DRIVE_RE.match(name):
            bad.append(name)
        elif ".." in name.split("/"):
            bad.append(name)
    return bad


def detect_mod_root(names: list[str]) -> str | None:
    """Locate the directory holding ``mod.json`` inside an archive listing.

    The archive root is searched first, then each top-level folder. Within a
    depth the listing order decides. ``""`` means the archive root itself is
    the mod; ``None`` means no mod root was found.
    """
    for depth in range(MAX_ROOT_DEPTH + 1):
        for name in names:
            parts = name.rstrip("/").split("/")
            if len(parts) != depth + 1 or name.endswith("/"):
                continue
            if parts[-1].lower() == MOD_FILENAME:
                return "/".join(parts[:-1])

    _log.error("Failed to detect mod path in archive!")
    _log.debug("List of files in archive:")
    for name in names:
        _log.debug("%s", name)
    return None


def extract_archive(filepath: str | Path, dest: str | Path, members: list[str]) -> None:
    """Extract ``members`` of the archive into ``dest``. Raises on failure."""
    filepath = Path(filepath)
    dest = Path(dest)
    dest.mkdir(parents=True, exist_ok=True)
    ext = filepath.suffix.lower()
    if ext == ".zip":
        with zipfile.ZipFile(filepath, "r") as zf:
            for member in members:
                zf.extract(member, dest)
    elif ext == ".7z":
        with py7zr.SevenZipFile(filepath, "r") as sz:
            sz.extract(dest, targets=members)
    elif ext == ".rar":
        with rarfile.RarFile(filepath, "r") as rf:
            for member in members:
                rf.extract(member, dest)
    else:
        raise ValueError(f"Unsupported archive format: {ext}")


# ── Filesystem ────────────────────────────────────────────────────────


def directory_size(path: str | Path) -> int:
    total = 0
    for root, _dirs, files in os.walk(path):
        for fname in files:
            try:
                total += os.path.getsize(os.path.join(root, fname))
            except OSError as exc:
                _log.warning("Could not stat %s: %s", fname, exc)
    return total


def remove_mod_dir(
    path: str | Path,
    app_name: str,
    mods_dir_name: str = MODS_DIR_NAME,
    sandboxed: bool = SANDBOXED,
) -> bool:
    """Recursively delete a mod directory after checking where it lives.

    The target's parent must be the mods root and, outside sandboxed
    platforms, its grandparent must be the application directory. The full
    path must mention both names. Any failed check refuses the deletion.
    """
    target = Path(os.path.abspath(path))
    parent = target.parent

    if parent == target or parent.name.lower() != mods_dir_name.lower():
        _log.error("Refusing to remove %s: parent is not %r", target, mods_dir_name)
        return False

    full = str(target).lower()
    if not sandboxed:
        grandparent = parent.parent
        if grandparent == parent or grandparent.name.lower() != app_name.lower():
            _log.error("Refusing to remove %s: not inside %r", target, app_name)
            return False
        if app_name.lower() not in full:
            _log.error("Refusing to remove %s: path does not mention %r", target, app_name)
            return False

    if mods_dir_name.lower() not in full:
        _log.error("Refusing to remove %s: path does not mention %r", target, mods_dir_name)
        return False

    if not target.exists():
        return True

    try:
        shutil.rmtree(target)
    except OSError as exc:
        _log.error("Failed to remove %s: %s", target, exc)
        return False
    _log.info("Removed %s", target)
    return True
