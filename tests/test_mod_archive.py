import zipfile

import py7zr
import pytest

from mod_archive import (
    detect_mod_root,
    directory_size,
    extract_archive,
    list_archive_names,
    remove_mod_dir,
    unsafe_members,
)
from tests.conftest import make_zip

APP = "ModLifecycle"


# ── root detection ───────────────────────────────────────────────────────────

def test_detect_root_in_top_level_folder():
    names = ["README.txt", "pkg/", "pkg/mod.json", "pkg/content/data.json", "other/file.txt"]
    assert detect_mod_root(names) == "pkg"


def test_detect_root_two_levels_deep_fails():
    assert detect_mod_root(["a/", "a/b/", "a/b/mod.json", "a/b/data.txt"]) is None


def test_detect_root_at_archive_root():
    assert detect_mod_root(["mod.json", "content/data.json"]) == ""


def test_detect_root_prefers_shallower_marker_over_listing_order():
    names = ["zzz/mod.json", "mod.json"]
    assert detect_mod_root(names) == ""


def test_detect_root_uses_listing_order_within_a_depth():
    assert detect_mod_root(["second/mod.json", "first/mod.json"]) == "second"


def test_detect_root_marker_is_case_insensitive():
    assert detect_mod_root(["Pkg/Mod.JSON"]) == "Pkg"


def test_detect_root_ignores_directory_named_like_marker():
    assert detect_mod_root(["pkg/mod.json/", "pkg/mod.json/x"]) is None


def test_unsafe_members():
    names = ["ok/file", "../evil", "a/../../evil", "/etc/passwd", "C:/windows/evil", "a..b/file"]
    assert unsafe_members(names) == ["../evil", "a/../../evil", "/etc/passwd", "C:/windows/evil"]


# ── archive reading ──────────────────────────────────────────────────────────

def test_list_zip_names_normalizes_backslashes(tmp_path):
    archive = tmp_path / "mod.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("pkg\\mod.json", "{}")
        zf.writestr("pkg/data.txt", "x")

    assert list_archive_names(archive) == ["pkg/mod.json", "pkg/data.txt"]


def test_list_7z_names(tmp_path):
    archive = tmp_path / "mod.7z"
    with py7zr.SevenZipFile(archive, "w") as sz:
        sz.writestr(b"{}", "pkg/mod.json")

    assert "pkg/mod.json" in list_archive_names(archive)


def test_list_unsupported_format(tmp_path):
    archive = tmp_path / "mod.tar"
    archive.write_bytes(b"")
    with pytest.raises(ValueError):
        list_archive_names(archive)


def test_extract_zip(tmp_path):
    archive = make_zip(tmp_path / "mod.zip", {"pkg/mod.json": "{}", "pkg/a/b.txt": "b"})
    dest = tmp_path / "out"

    extract_archive(archive, dest, list_archive_names(archive))

    assert (dest / "pkg" / "mod.json").read_text() == "{}"
    assert (dest / "pkg" / "a" / "b.txt").read_text() == "b"


def test_directory_size(tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "a.bin").write_bytes(b"12345")
    (tmp_path / "sub" / "b.bin").write_bytes(b"123")
    assert directory_size(tmp_path) == 8


# ── guarded removal ──────────────────────────────────────────────────────────

def _mod_dir(root, *parts):
    path = root.joinpath(*parts)
    path.mkdir(parents=True)
    (path / "mod.json").write_text("{}")
    return path


def test_remove_mod_dir_inside_mods_root(tmp_path):
    target = _mod_dir(tmp_path, APP, "Mods", "foo")

    assert remove_mod_dir(target, APP, sandboxed=False)
    assert not target.exists()
    assert (tmp_path / APP / "Mods").exists()


def test_remove_refused_when_parent_is_not_mods_root(tmp_path):
    target = _mod_dir(tmp_path, APP, "Documents", "foo")

    assert not remove_mod_dir(target, APP, sandboxed=False)
    assert target.exists()


def test_remove_refused_when_grandparent_is_not_app_dir(tmp_path):
    target = _mod_dir(tmp_path, "SomethingElse", "Mods", "foo")

    assert not remove_mod_dir(target, APP, sandboxed=False)
    assert target.exists()


def test_remove_sandboxed_skips_app_dir_check(tmp_path):
    target = _mod_dir(tmp_path, "Container", "Mods", "foo")

    assert remove_mod_dir(target, APP, sandboxed=True)
    assert not target.exists()


def test_remove_parent_name_is_case_insensitive(tmp_path):
    target = _mod_dir(tmp_path, APP.lower(), "mods", "foo")

    assert remove_mod_dir(target, APP, sandboxed=False)


def test_remove_refuses_path_escaping_through_dotdot(tmp_path):
    victim = _mod_dir(tmp_path, "precious")
    (tmp_path / APP / "Mods").mkdir(parents=True)
    sneaky = tmp_path / APP / "Mods" / ".." / ".." / "precious"

    assert not remove_mod_dir(sneaky, APP, sandboxed=False)
    assert victim.exists()


def test_remove_missing_target_counts_as_removed(tmp_path):
    (tmp_path / APP / "Mods").mkdir(parents=True)
    assert remove_mod_dir(tmp_path / APP / "Mods" / "gone", APP, sandboxed=False)


def test_remove_refuses_symlinked_mod_dir(tmp_path):
    victim = _mod_dir(tmp_path, "precious")
    mods = tmp_path / APP / "Mods"
    mods.mkdir(parents=True)
    link = mods / "linked"
    link.symlink_to(victim, target_is_directory=True)

    assert not remove_mod_dir(link, APP, sandboxed=False)
    assert (victim / "mod.json").exists()
