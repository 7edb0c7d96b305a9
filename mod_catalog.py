"""
Merged view of locally installed and repository-listed mods.

The lifecycle engine only talks to the catalog through the methods below; the
catalog owns every ``ModDescriptor`` and the index of installed mods.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from app_paths import APP_VERSION
from manifest_schema import MOD_FILENAME, ModFile, normalize_mod_id, parse_mod_file
from mod_archive import directory_size

_log = logging.getLogger(__name__)

SUBMODS_DIR_NAMES = ("mods", "Mods")


@dataclass
class ModDescriptor:
    name: str
    is_submod: bool = False
    is_installed: bool = False
    is_available: bool = False
    is_compatible: bool = True
    is_enabled: bool = False
    dependencies: tuple[str, ...] = ()
    conflicts: tuple[str, ...] = ()
    local_size_bytes: int = 0
    is_stored_locally: bool = False

    @property
    def is_disabled(self) -> bool:
        return self.is_installed and not self.is_enabled


@dataclass
class LocalMod:
    """One entry of the installed-mod index."""

    name: str
    mod_file: ModFile
    path: Path
    size_bytes: int = 0
    stored_locally: bool = True


class ModCatalogAdapter(Protocol):
    def get_mod(self, name: str) -> ModDescriptor: ...
    def has_mod(self, name: str) -> bool: ...
    def get_mod_list(self) -> list[str]: ...
    def set_mod_settings(self, active_mods: Mapping[str, Any]) -> None: ...
    def mod_changed(self, name: str) -> None: ...
    def set_local_mod_list(self, mods: Mapping[str, LocalMod]) -> None: ...
    def add_repository(self, entry: Mapping[str, Any]) -> None: ...
    def reset_repositories(self) -> None: ...
    def reload_repositories(self) -> None: ...


# ── Installed-mod index ───────────────────────────────────────────────


def _load_local_mod(name: str, mod_dir: Path) -> LocalMod | None:
    mod_json = mod_dir / MOD_FILENAME
    try:
        mod_file = parse_mod_file(mod_json.read_bytes())
    except (OSError, ValueError) as exc:
        # json.JSONDecodeError and pydantic.ValidationError are ValueErrors
        _log.error("Unable to load mod json %s: %s", mod_json, exc)
        return None
    return LocalMod(
        name=name,
        mod_file=mod_file,
        path=mod_dir,
        size_bytes=directory_size(mod_dir),
    )


def _scan_dir(base: Path, prefix: str, found: dict[str, LocalMod]):
    for entry in sorted(base.iterdir()):
        # hidden entries include ".<name>.extract" staging dirs
        if entry.name.startswith("."):
            continue
        if not entry.is_dir() or not (entry / MOD_FILENAME).is_file():
            continue
        try:
            name = normalize_mod_id(prefix + entry.name)
        except ValueError as exc:
            _log.error("Skipping mod directory %s: %s", entry, exc)
            continue
        mod = _load_local_mod(name, entry)
        if mod is None:
            continue
        found[name] = mod
        for sub in SUBMODS_DIR_NAMES:
            if (entry / sub).is_dir():
                _scan_dir(entry / sub, name + ".", found)
                break


def scan_local_mods(mods_dir: str | Path) -> dict[str, LocalMod]:
    """Index every mod (and nested submod) found below ``mods_dir``."""
    mods_dir = Path(mods_dir)
    found: dict[str, LocalMod] = {}
    if not mods_dir.is_dir():
        _log.info("Mods directory does not exist: %s", mods_dir)
        return found
    _scan_dir(mods_dir, "", found)
    return found


# ── Catalog ───────────────────────────────────────────────────────────


class ModCatalog:
    """In-process catalog merging local mods with repository listings."""

    def __init__(self, app_version: tuple[int, ...] = APP_VERSION):
        self.app_version = app_version
        self._local: dict[str, LocalMod] = {}
        self._repositories: list[dict[str, Any]] = []
        self._remote: dict[str, ModFile] = {}
        self._active_mods: Mapping[str, Any] = {}
        self._listeners: list[Callable[[str], None]] = []

    def add_listener(self, callback: Callable[[str], None]):
        self._listeners.append(callback)

    # local state

    def set_local_mod_list(self, mods: Mapping[str, LocalMod]):
        self._local = {normalize_mod_id(name): mod for name, mod in mods.items()}

    def set_mod_settings(self, active_mods: Mapping[str, Any]):
        self._active_mods = active_mods if isinstance(active_mods, Mapping) else {}

    def mod_changed(self, name: str):
        for callback in self._listeners:
            callback(normalize_mod_id(name))

    # repositories

    def add_repository(self, entry: Mapping[str, Any]):
        self._repositories.append(dict(entry))

    def reset_repositories(self):
        self._repositories = []
        self._remote = {}

    def reload_repositories(self):
        remote: dict[str, ModFile] = {}
        for repo in self._repositories:
            for raw_name, data in repo.items():
                try:
                    name = normalize_mod_id(raw_name)
                    mod_file = data if isinstance(data, ModFile) else ModFile.model_validate(data)
                except (ValueError, ValidationError) as exc:
                    _log.warning("Skipping repository entry %r: %s", raw_name, exc)
                    continue
                remote.setdefault(name, mod_file)
        self._remote = remote
        _log.info("Repositories reloaded: %d remote mod(s)", len(remote))

    # queries

    def has_mod(self, name: str) -> bool:
        key = name.lower()
        return key in self._local or key in self._remote

    def get_mod_list(self) -> list[str]:
        return sorted(set(self._local) | set(self._remote))

    def get_mod(self, name: str) -> ModDescriptor:
        key = name.lower()
        local = self._local.get(key)
        mod_file = local.mod_file if local else self._remote.get(key)
        descriptor = ModDescriptor(name=key, is_submod="." in key)
        if mod_file is None:
            return descriptor

        descriptor.is_installed = local is not None
        descriptor.is_available = key in self._remote
        descriptor.is_compatible = mod_file.compatibility.satisfied(self.app_version)
        descriptor.dependencies = tuple(mod_file.depends)
        descriptor.conflicts = tuple(mod_file.conflicts)
        if local is not None:
            descriptor.local_size_bytes = local.size_bytes
            descriptor.is_stored_locally = local.stored_locally
            descriptor.is_enabled = self._is_active(key)
        return descriptor

    def _is_active(self, name: str) -> bool:
        # a submod is only on while every ancestor is on
        nodes: Mapping[str, Any] = self._active_mods
        for segment in name.split("."):
            node = nodes.get(segment) if isinstance(nodes, Mapping) else None
            if not isinstance(node, Mapping) or node.get("active") is not True:
                return False
            nodes = node.get("mods", {})
        return True
