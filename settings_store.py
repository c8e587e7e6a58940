"""
Blocksmith - settings and application state.

Settings are stored as JSON in ``<config dir>/blocksmith/settings.json``.
The file may also hold keys written by other front-ends (theme, animation
speed, ...); those are ignored here and do not stop the file from loading.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from errors import ConfigurationError
from pack_types import FOUR_D_SKIN_PACK_DIR, PackType

APP_DIR_NAME = "blocksmith"
SETTINGS_FILENAME = "settings.json"

_log = logging.getLogger(__name__)


class AppSettings(BaseModel):
    """Destination folders and install behaviour."""

    model_config = ConfigDict(extra="ignore")

    behavior_pack_path: Optional[str] = None
    resource_pack_path: Optional[str] = None
    skin_pack_path: Optional[str] = None
    skin_pack_4d_path: Optional[str] = None
    world_template_path: Optional[str] = None
    scan_location: Optional[str] = None
    dry_run: bool = False
    delete_source: bool = False
    debug_mode: bool = False

    def pack_roots(self) -> list[tuple[PackType, Path]]:
        """Configured install roots, one per base pack type."""
        roots = [
            (PackType.BEHAVIOR_PACK, self.behavior_pack_path),
            (PackType.RESOURCE_PACK, self.resource_pack_path),
            (PackType.SKIN_PACK, self.skin_pack_path),
            (PackType.WORLD_TEMPLATE, self.world_template_path),
        ]
        return [(pack_type, Path(p)) for pack_type, p in roots if p]

    def configured_dirs(self) -> list[Path]:
        """Every directory the engine may write into or delete from."""
        paths = [
            self.behavior_pack_path,
            self.resource_pack_path,
            self.skin_pack_path,
            self.skin_pack_4d_path,
            self.world_template_path,
            self.scan_location,
        ]
        return [Path(p) for p in paths if p]


def destination_for(pack_type: PackType, settings: AppSettings) -> Path | None:
    """Root folder a pack of ``pack_type`` installs into, or None if unset."""
    if pack_type == PackType.SKIN_PACK_4D:
        if settings.scan_location:
            return Path(settings.scan_location) / FOUR_D_SKIN_PACK_DIR
        return None
    path = {
        PackType.BEHAVIOR_PACK: settings.behavior_pack_path,
        PackType.RESOURCE_PACK: settings.resource_pack_path,
        PackType.SKIN_PACK: settings.skin_pack_path,
        PackType.WORLD_TEMPLATE: settings.world_template_path,
        PackType.MASHUP_PACK: settings.world_template_path,
    }.get(pack_type)
    return Path(path) if path else None


# ── Persistence ───────────────────────────────────────────────────────


def config_dir() -> Path:
    """Per-user configuration directory (APPDATA on Windows, XDG elsewhere)."""
    for var in ("APPDATA", "XDG_CONFIG_HOME"):
        value = os.environ.get(var)
        if value:
            return Path(value)
    try:
        return Path.home() / ".config"
    except RuntimeError as exc:
        raise ConfigurationError(f"Could not determine config directory: {exc}") from exc


def default_settings_path() -> Path:
    return config_dir() / APP_DIR_NAME / SETTINGS_FILENAME


def load_settings(path: str | Path | None = None, strict: bool = False) -> AppSettings:
    """Stored settings, or defaults when there are none.

    A damaged file falls back to defaults with a warning unless ``strict``
    is set, in which case it raises ConfigurationError.
    """
    settings_path = Path(path) if path else default_settings_path()
    if not settings_path.exists():
        return AppSettings()
    try:
        return AppSettings.model_validate(
            json.loads(settings_path.read_text(encoding="utf-8"))
        )
    except (OSError, ValueError, ValidationError) as exc:
        if strict:
            raise ConfigurationError(f"Invalid settings file {settings_path}: {exc}") from exc
        _log.warning("Could not load settings from %s: %s", settings_path, exc)
        return AppSettings()


def save_settings(settings: AppSettings, path: str | Path | None = None) -> Path:
    settings_path = Path(path) if path else default_settings_path()
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    settings_path.write_text(settings.model_dump_json(indent=2), encoding="utf-8")
    return settings_path


def auto_detect_paths(
    roaming: str | Path | None = None, home: str | Path | None = None
) -> AppSettings:
    """Guess pack folders from a standard Bedrock install."""
    settings = AppSettings()

    roaming_dir = Path(roaming) if roaming else config_dir()
    shared = (
        roaming_dir / "Minecraft Bedrock" / "Users" / "Shared" / "games" / "com.mojang"
    )
    if shared.exists():
        for field_name, folder in (
            ("behavior_pack_path", "behavior_packs"),
            ("resource_pack_path", "resource_packs"),
            ("skin_pack_path", "skin_packs"),
            ("world_template_path", "world_templates"),
        ):
            candidate = shared / folder
            if candidate.exists():
                setattr(settings, field_name, str(candidate))

    home_dir = Path(home) if home else Path.home()
    downloads = home_dir / "Downloads" / "ToolCoin"
    if downloads.exists():
        settings.scan_location = str(downloads)

    return settings


# ── Shared state ──────────────────────────────────────────────────────


class AppState:
    """Settings owned by one running application.

    Readers take a snapshot; writers replace fields under the lock so a
    batch in progress always sees one consistent set of paths.
    """

    def __init__(self, settings: AppSettings | None = None, settings_path: str | Path | None = None):
        self._lock = threading.Lock()
        self._settings = settings or AppSettings()
        self.settings_path = Path(settings_path) if settings_path else None

    def snapshot(self) -> AppSettings:
        with self._lock:
            return self._settings.model_copy()

    def update(self, **changes) -> AppSettings:
        with self._lock:
            self._settings = self._settings.model_copy(update=changes)
            return self._settings.model_copy()

    def replace(self, settings: AppSettings) -> None:
        with self._lock:
            self._settings = settings.model_copy()

    def save(self) -> Path:
        return save_settings(self.snapshot(), self.settings_path)

    @classmethod
    def load(cls, settings_path: str | Path | None = None, strict: bool = False) -> AppState:
        return cls(load_settings(settings_path, strict), settings_path)
