"""
End-to-end tests for PackManager: scan -> status -> install -> rollback.
"""

import pytest

from errors import ConfigurationError, PackSecurityError
from pack_manager import PackManager
from premium_cache import premium_cache_dir
from tests.conftest import make_zip, manifest


def make_manager(app_state, entries=None, progress=None):
    return PackManager(
        app_state,
        log_callback=(entries.append if entries is not None else None),
        progress_callback=(
            (lambda c, t, m: progress.append((c, t, m))) if progress is not None else None
        ),
    )


def test_scan_missing_directory_is_fatal(app_state, tmp_path):
    with pytest.raises(ConfigurationError):
        make_manager(app_state).scan_packs(tmp_path / "missing")


def test_scan_records_location_and_warns(app_state, pack_roots, tmp_path):
    downloads = tmp_path / "other_downloads"
    downloads.mkdir()
    make_zip(downloads / "Foo.mcpack", {"manifest.json": manifest("data")})
    make_zip(downloads / "Odd.mcpack", {"readme.txt": "?"})
    make_zip(
        downloads / "Robots.zip",
        {"skins.json": "{}", "a/geometry.json": "{}", "b/geometry.json": "{}"},
    )
    entries = []

    packs = make_manager(app_state, entries).scan_packs(downloads)

    assert [p.display_name for p in packs] == ["Foo", "Odd", "Robots"]
    assert app_state.snapshot().scan_location == str(downloads)
    warnings = [e.message for e in entries if e.level == "WARN"]
    assert any("Odd.mcpack" in w for w in warnings)
    assert any("Multiple geometry folders" in w for w in warnings)
    assert entries[-1].level == "SUCCESS"


def test_full_workflow(app_state, pack_roots):
    downloads = pack_roots["scan_location"]
    bp_root = pack_roots["behavior_pack_path"]
    make_zip(downloads / "Foo 2.0.mcpack", {"manifest.json": manifest("data", uuid="foo", version=(2, 0, 0))})
    make_zip(downloads / "Same.mcpack", {"manifest.json": manifest("resources", uuid="same")})
    old = bp_root / "Foo 1.0 (ADDON)"
    old.mkdir()
    (old / "manifest.json").write_text(manifest("data", uuid="foo", version=(1, 0, 0)))
    current = pack_roots["resource_pack_path"] / "Same (RESOURCE)"
    current.mkdir()
    (current / "manifest.json").write_text(manifest("resources", uuid="same"))

    progress = []
    manager = make_manager(app_state, progress=progress)
    packs = manager.compute_pack_status(manager.scan_packs(downloads))
    assert {p.display_name: p.status for p in packs} == {"Foo 2.0": "update", "Same": "installed"}

    results = manager.process_packs([p for p in packs if p.status != "installed"])

    assert [op.success for op in results] == [True]
    assert sorted(p.name for p in bp_root.iterdir()) == ["Foo 2.0 (ADDON)"]
    assert progress[-1] == (1, 1, "Complete")

    rolled_back = manager.rollback_last()
    assert rolled_back.pack_name == "Foo 2.0"
    assert list(bp_root.iterdir()) == []
    assert manager.rollback_last() is None


def test_process_nothing(app_state):
    entries = []
    assert make_manager(app_state, entries).process_packs([]) == []
    assert entries[-1].message == "Nothing to install"


def test_installer_picks_up_settings_changes(app_state, pack_roots):
    manager = make_manager(app_state)
    first = manager.installer
    app_state.update(dry_run=True)
    assert manager.installer is first
    assert manager.installer.settings.dry_run


def test_library_helpers(app_state, pack_roots):
    folder = pack_roots["behavior_pack_path"] / "Foo (ADDON)"
    folder.mkdir()
    (folder / "data.bin").write_bytes(b"x" * 10)
    manager = make_manager(app_state)

    assert [p.folder_name for p in manager.installed_packs()] == ["Foo (ADDON)"]
    assert [(s.count, s.total_size) for s in manager.stats()] == [(1, 10)]

    deleted, errors = manager.delete_installed([folder, "/definitely/not/ours"])
    assert deleted == [str(folder)]
    assert len(errors) == 1


def test_validate_paths(app_state, pack_roots, tmp_path):
    manager = make_manager(app_state)
    assert manager.validate_paths() == []

    app_state.update(resource_pack_path=None, skin_pack_path=str(tmp_path / "gone"))
    issues = manager.validate_paths()
    assert "Resource pack directory is not configured" in issues
    assert any("Skin pack directory does not exist" in i for i in issues)


def test_move_rename_and_delete_all(app_state, pack_roots):
    folder = pack_roots["behavior_pack_path"] / "Foo (ADDON)"
    folder.mkdir()
    entries = []
    manager = make_manager(app_state, entries)

    moved = manager.move_installed(folder, pack_roots["resource_pack_path"])
    renamed = manager.rename_installed(moved, "Foo (RESOURCE)")
    assert renamed == pack_roots["resource_pack_path"] / "Foo (RESOURCE)"

    assert manager.delete_all() == [str(renamed)]
    assert list(pack_roots["resource_pack_path"].iterdir()) == []
    assert [e.level for e in entries] == ["SUCCESS", "SUCCESS", "SUCCESS"]


def test_move_outside_is_refused(app_state, pack_roots, tmp_path):
    folder = pack_roots["behavior_pack_path"] / "Foo (ADDON)"
    folder.mkdir()
    with pytest.raises(PackSecurityError):
        make_manager(app_state).move_installed(folder, tmp_path)
    assert folder.exists()


def test_premium_cache_workflow(app_state, tmp_path, monkeypatch):
    monkeypatch.setenv("APPDATA", str(tmp_path / "roaming"))
    cache = premium_cache_dir()
    entries = []
    manager = make_manager(app_state, entries)

    with pytest.raises(ConfigurationError):
        manager.premium_packs()
    cache.mkdir(parents=True)
    assert manager.premium_packs() == []
    assert entries[-1].level == "WARN"

    premium = cache / "abc"
    premium.mkdir()
    (premium / "skins.json").write_text('{"localization_name": "Pirates"}')
    skin = tmp_path / "Robots"
    skin.mkdir()
    (skin / "geometry.json").write_text("{}")

    [pack] = manager.premium_packs()
    assert pack.display_name == "Pirates"
    assert manager.import_4d_skin(skin, pack.path) == ["geometry.json"]
    assert (premium / "geometry.json").is_file()
    assert entries[-1].level == "SUCCESS"
