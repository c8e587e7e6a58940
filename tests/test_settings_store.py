"""
Tests for settings persistence, path detection and the shared AppState.
"""

import json
import threading
from pathlib import Path

import pytest

from errors import ConfigurationError
from pack_types import PackType
from settings_store import (
    AppSettings,
    AppState,
    auto_detect_paths,
    config_dir,
    default_settings_path,
    destination_for,
    load_settings,
    save_settings,
)


def test_config_dir_prefers_appdata(monkeypatch, tmp_path):
    monkeypatch.setenv("APPDATA", str(tmp_path / "roaming"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    assert config_dir() == tmp_path / "roaming"


def test_config_dir_falls_back_to_xdg_then_home(monkeypatch, tmp_path):
    monkeypatch.delenv("APPDATA", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    assert config_dir() == tmp_path / "xdg"

    monkeypatch.delenv("XDG_CONFIG_HOME")
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    assert config_dir() == tmp_path / "home" / ".config"
    assert default_settings_path() == tmp_path / "home" / ".config" / "blocksmith" / "settings.json"


def test_missing_file_gives_defaults(tmp_path):
    settings = load_settings(tmp_path / "nope.json")
    assert settings == AppSettings()
    assert not settings.dry_run


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "cfg" / "settings.json"
    saved = AppSettings(behavior_pack_path="/bp", delete_source=True)
    assert save_settings(saved, path) == path
    assert load_settings(path) == saved
    assert json.loads(path.read_text())["behavior_pack_path"] == "/bp"


def test_unknown_keys_are_ignored(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"theme": "dark", "animation_speed": 2, "dry_run": True}))
    assert load_settings(path).dry_run


def test_broken_file_falls_back_or_raises_when_strict(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{oops")
    assert load_settings(path) == AppSettings()
    with pytest.raises(ConfigurationError):
        load_settings(path, strict=True)


def test_destination_for(tmp_path):
    settings = AppSettings(
        behavior_pack_path="/bp",
        world_template_path="/wt",
        scan_location=str(tmp_path),
    )
    assert destination_for(PackType.BEHAVIOR_PACK, settings) == Path("/bp")
    assert destination_for(PackType.MASHUP_PACK, settings) == Path("/wt")
    assert destination_for(PackType.SKIN_PACK_4D, settings) == tmp_path / "4D Skin Packs"
    assert destination_for(PackType.RESOURCE_PACK, settings) is None
    assert destination_for(PackType.UNKNOWN, settings) is None


def test_pack_roots_and_configured_dirs():
    settings = AppSettings(behavior_pack_path="/bp", skin_pack_4d_path="/4d", scan_location="/dl")
    assert settings.pack_roots() == [(PackType.BEHAVIOR_PACK, Path("/bp"))]
    assert settings.configured_dirs() == [Path("/bp"), Path("/4d"), Path("/dl")]


def test_auto_detect_paths(tmp_path):
    shared = tmp_path / "roaming" / "Minecraft Bedrock" / "Users" / "Shared" / "games" / "com.mojang"
    (shared / "behavior_packs").mkdir(parents=True)
    (shared / "world_templates").mkdir()
    (tmp_path / "home" / "Downloads" / "ToolCoin").mkdir(parents=True)

    settings = auto_detect_paths(tmp_path / "roaming", tmp_path / "home")

    assert settings.behavior_pack_path == str(shared / "behavior_packs")
    assert settings.world_template_path == str(shared / "world_templates")
    assert settings.resource_pack_path is None
    assert settings.scan_location == str(tmp_path / "home" / "Downloads" / "ToolCoin")


def test_auto_detect_paths_with_nothing_installed(tmp_path):
    assert auto_detect_paths(tmp_path, tmp_path) == AppSettings()


def test_app_state_snapshot_is_a_copy():
    state = AppState(AppSettings(behavior_pack_path="/bp"))
    snap = state.snapshot()
    snap.behavior_pack_path = "/changed"
    assert state.snapshot().behavior_pack_path == "/bp"


def test_app_state_update_and_replace():
    state = AppState()
    assert state.update(dry_run=True).dry_run
    assert state.snapshot().dry_run
    state.replace(AppSettings(scan_location="/dl"))
    assert state.snapshot().scan_location == "/dl"
    assert not state.snapshot().dry_run


def test_app_state_concurrent_updates():
    state = AppState()

    def flip(i):
        state.update(scan_location=f"/dl/{i}")

    threads = [threading.Thread(target=flip, args=(i,)) for i in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert state.snapshot().scan_location.startswith("/dl/")


def test_app_state_save_and_load(tmp_path):
    path = tmp_path / "settings.json"
    AppState(AppSettings(skin_pack_path="/skins"), path).save()
    assert AppState.load(path).snapshot().skin_pack_path == "/skins"
