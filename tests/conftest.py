"""
Shared fixtures and helpers for the mod lifecycle test suite.
"""

import json
import zipfile
from pathlib import Path

import pytest

from app_paths import APP_NAME, MODS_DIR_NAME
from mod_manager import ModManager


def make_zip(path: Path, members: dict) -> Path:
    """Write a zip archive with the given {member: data} contents."""
    with zipfile.ZipFile(path, "w") as zf:
        for member, data in members.items():
            zf.writestr(member, data)
    return path


def mod_json(**fields) -> str:
    data = {"name": "Test mod", "version": "1.0"}
    data.update(fields)
    return json.dumps(data)


def write_mod(mods_dir: Path, name: str, **fields) -> Path:
    """Create an installed mod directory with a mod.json and one data file."""
    mod_dir = mods_dir / name
    mod_dir.mkdir(parents=True)
    (mod_dir / "mod.json").write_text(mod_json(**fields), encoding="utf-8")
    (mod_dir / "content.txt").write_text("data", encoding="utf-8")
    return mod_dir


def make_manager(mods_dir, settings_path, **kwargs) -> ModManager:
    kwargs.setdefault("log_callback", lambda _: None)
    kwargs.setdefault("sandboxed", False)
    return ModManager(mods_dir, settings_path, **kwargs)


@pytest.fixture
def dirs(tmp_path):
    """Return (mods_dir, settings_path) with mods_dir at <tmp>/<app>/Mods."""
    mods = tmp_path / APP_NAME / MODS_DIR_NAME
    mods.mkdir(parents=True)
    settings = tmp_path / "config" / APP_NAME / "modSettings.json"
    return mods, settings


@pytest.fixture
def downloads(tmp_path):
    path = tmp_path / "downloads"
    path.mkdir()
    return path
