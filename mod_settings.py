"""
Persistent activation state (``modSettings.json``).

Document layout:

{
    "activeMods": {
        "magic-fader": {"active": false},
        "reworked-commanders": {
            "active": true,
            "mods": {
                "reworkedwindow": {"active": false}
            }
        }
    }
}

The tree is loaded once, rebuilt copy-on-write on every change and written
through to disk after each enable/disable.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool

from mod_catalog import ModCatalogAdapter

ACTIVE_MODS_KEY = "activeMods"

_log = logging.getLogger(__name__)


class ActiveModEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    active: StrictBool = False
    mods: dict[str, ActiveModEntry] = Field(default_factory=dict)


class ModSettingsDocument(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    active_mods: dict[str, ActiveModEntry] = Field(default_factory=dict, alias=ACTIVE_MODS_KEY)


def settings_path_for(mod_name: str, field: str) -> list[str]:
    """``"a.b"`` -> ``["activeMods", "a", "mods", "b", field]``."""
    path = [ACTIVE_MODS_KEY]
    for i, segment in enumerate(mod_name.lower().split(".")):
        if i:
            path.append("mods")
        path.append(segment)
    path.append(field)
    return path


def write_value(node: Any, path: Sequence[str], value: Any) -> Any:
    """Return a copy of ``node`` with ``value`` stored at ``path``.

    Every mapping on the way from the root to the leaf is copied; missing or
    non-mapping intermediate nodes are replaced by fresh dicts. ``node``
    itself is never modified.
    """
    if not path:
        return value
    head, rest = path[0], path[1:]
    updated = dict(node) if isinstance(node, Mapping) else {}
    updated[head] = write_value(updated.get(head), rest, value)
    return updated


class ModSettingsStore:
    def __init__(
        self,
        path: str | Path,
        catalog: ModCatalogAdapter,
        log_callback: Optional[Callable[[str], None]] = None,
    ):
        self.path = Path(path)
        self.catalog = catalog
        self._log_cb = log_callback or print
        self.tree: dict[str, Any] = {}

    def log(self, msg: str):
        self._log_cb(msg)

    @property
    def active_mods(self) -> Mapping[str, Any]:
        return self.tree.get(ACTIVE_MODS_KEY, {})

    def load(self) -> dict[str, Any]:
        self.tree = self._read()
        self.catalog.set_mod_settings(self.active_mods)
        return self.tree

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            ModSettingsDocument.model_validate(data)
        except (OSError, ValueError) as exc:
            self.log(f"Warning: Could not load mod settings, starting empty: {exc}")
            _log.warning("Could not load %s: %s", self.path, exc)
            return {}
        return data

    def write(self, mod_name: str, field: str, value: Any) -> dict[str, Any]:
        return write_value(self.tree, settings_path_for(mod_name, field), value)

    def is_active(self, mod_name: str) -> bool:
        node: Any = self.tree
        for key in settings_path_for(mod_name, "active"):
            if not isinstance(node, Mapping):
                return False
            node = node.get(key)
        return node is True

    def enable(self, mod_name: str, on: bool) -> tuple[bool, str]:
        self.tree = self.write(mod_name, "active", on)
        self.catalog.set_mod_settings(self.active_mods)
        self.catalog.mod_changed(mod_name)
        self.log(f"{'Enabled' if on else 'Disabled'} {mod_name}")
        # in-memory state stays ahead of disk if this fails
        return self.save()

    def save(self) -> tuple[bool, str]:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(self.tree, fh, indent=4, ensure_ascii=False)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            _log.error("Failed to save %s: %s", self.path, exc)
            return False, f"Failed to save mod settings: {exc}"
        return True, ""
