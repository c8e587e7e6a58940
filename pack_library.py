"""
Blocksmith - the installed pack library.

Listing, statistics and guarded delete, move and rename for packs that already live in
the configured pack folders. Deletions are refused for anything outside
those folders.
"""

from __future__ import annotations

import base64
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from errors import PackSecurityError
from name_heuristics import ARCHIVE_EXTENSIONS
from pack_reconciler import folder_size, scan_installed
from pack_types import InstalledPack, PackType
from settings_store import AppSettings

_log = logging.getLogger(__name__)

LIBRARY_ICON_NAMES = (
    "pack_icon.png",
    "Pack_Icon.png",
    "world_icon.jpeg",
    "world_icon.jpg",
    "icon.png",
)
MAX_ICON_SIZE = 2 * 1024 * 1024

_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_bytes(size: int) -> str:
    """Human readable size: ``0 B``, ``512 B``, ``1.50 KB``, ..."""
    if size < 1024:
        return f"{size} B"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{value:.2f} {_UNITS[unit]}"


def read_pack_icon(folder: Path) -> Optional[str]:
    for icon_name in LIBRARY_ICON_NAMES:
        icon_path = folder / icon_name
        try:
            if not icon_path.is_file() or icon_path.stat().st_size > MAX_ICON_SIZE:
                continue
            return base64.b64encode(icon_path.read_bytes()).decode("ascii")
        except OSError as exc:
            _log.debug("Could not read icon %s: %s", icon_path, exc)
    return None


def list_installed(settings: AppSettings, with_icons: bool = True) -> list[InstalledPack]:
    """Installed packs across all configured roots, sorted by name."""
    packs = scan_installed(settings)
    if with_icons:
        for pack in packs:
            pack.icon = read_pack_icon(pack.path)
    packs.sort(key=lambda p: p.name.lower())
    return packs


@dataclass
class PackStats:
    pack_type: PackType
    count: int
    total_size: int

    @property
    def total_size_formatted(self) -> str:
        return format_bytes(self.total_size)


def library_stats(settings: AppSettings) -> list[PackStats]:
    """Pack count and disk usage per type. Mash-up templates get their own row."""
    totals: dict[PackType, PackStats] = {}
    for pack in scan_installed(settings):
        stats = totals.setdefault(pack.pack_type, PackStats(pack.pack_type, 0, 0))
        stats.count += 1
        stats.total_size += folder_size(pack.path)

    order = [
        PackType.BEHAVIOR_PACK,
        PackType.RESOURCE_PACK,
        PackType.SKIN_PACK,
        PackType.WORLD_TEMPLATE,
        PackType.MASHUP_PACK,
    ]
    return [totals[t] for t in order if t in totals]


# ── Guarded deletion ──────────────────────────────────────────────────


def _resolved(path: Path) -> Path:
    try:
        return path.resolve()
    except OSError:
        return path.absolute()


def is_within_configured_dirs(path: str | Path, settings: AppSettings) -> bool:
    target = _resolved(Path(path))
    return any(target.is_relative_to(_resolved(base)) for base in settings.configured_dirs())


def delete_pack(path: str | Path, settings: AppSettings) -> None:
    folder = Path(path)
    if not is_within_configured_dirs(folder, settings):
        raise PackSecurityError(f"Path is outside configured pack directories: {folder}")
    if not folder.exists():
        raise FileNotFoundError(f"Path does not exist: {folder}")
    shutil.rmtree(folder)
    _log.info("Deleted pack folder %s", folder)


def delete_packs(paths: list[str | Path], settings: AppSettings) -> tuple[list[str], list[str]]:
    """Delete several pack folders. Returns ``(deleted, errors)``."""
    deleted: list[str] = []
    errors: list[str] = []
    for path in paths:
        try:
            delete_pack(path, settings)
        except (PackSecurityError, OSError) as exc:
            errors.append(f"{path}: {exc}")
        else:
            deleted.append(str(path))
    return deleted, errors


def delete_all_packs(settings: AppSettings) -> list[str]:
    """Remove every pack folder under the four pack roots. Returns what was deleted."""
    deleted: list[str] = []
    for _, root in settings.pack_roots():
        if not root.is_dir():
            continue
        for folder in sorted(root.iterdir()):
            if folder.is_dir():
                shutil.rmtree(folder)
                deleted.append(str(folder))
        _log.info("Cleared %s", root)
    return deleted


# ── Guarded move and rename ───────────────────────────────────────────


def move_pack(path: str | Path, destination: str | Path, settings: AppSettings) -> Path:
    """Move a pack folder into ``destination``. Returns its new path."""
    source = Path(path)
    dest = Path(destination)
    if not is_within_configured_dirs(source, settings):
        raise PackSecurityError(f"Source path is outside configured pack directories: {source}")
    if not is_within_configured_dirs(dest, settings):
        raise PackSecurityError(f"Destination is outside configured pack directories: {dest}")
    if not source.exists():
        raise FileNotFoundError(f"Source path does not exist: {source}")

    final = dest / source.name
    if final.exists():
        raise FileExistsError(f"Destination already exists: {final}")
    shutil.move(str(source), str(final))
    _log.info("Moved %s -> %s", source, final)
    return final


def rename_pack(path: str | Path, new_name: str, settings: AppSettings) -> Path:
    """Rename a pack folder in place. Returns its new path."""
    if "/" in new_name or "\\" in new_name or ".." in new_name or not new_name.strip():
        raise PackSecurityError("Invalid name: must not contain path separators or '..'")
    folder = Path(path)
    if not is_within_configured_dirs(folder, settings):
        raise PackSecurityError(f"Path is outside configured pack directories: {folder}")
    if not folder.exists():
        raise FileNotFoundError(f"Path does not exist: {folder}")

    new_path = folder.parent / new_name
    if new_path.exists():
        raise FileExistsError(f"A folder named '{new_name}' already exists")
    folder.rename(new_path)
    _log.info("Renamed %s -> %s", folder.name, new_name)
    return new_path


def delete_source_file(path: str | Path, settings: AppSettings) -> None:
    """Remove an installed-from archive. Only pack files directly in the scan folder qualify."""
    file_path = Path(path)
    if file_path.suffix.lower() not in ARCHIVE_EXTENSIONS:
        raise PackSecurityError(f"Not a pack file: {file_path}")
    if not settings.scan_location:
        raise PackSecurityError("No scan location configured")
    if not file_path.is_file():
        raise FileNotFoundError(f"File does not exist: {file_path}")

    parent = _resolved(file_path.parent)
    scan_dir = _resolved(Path(settings.scan_location))
    if str(parent).lower() != str(scan_dir).lower():
        raise PackSecurityError(f"File is outside the scan folder: {file_path}")

    file_path.unlink()
