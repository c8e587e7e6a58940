"""
Blocksmith - compare scanned packs against what is already installed.

Each candidate ends up in exactly one state:

  * not installed
  * installed, same version
  * installed, needs update

Identity is the manifest uuid when one is available, otherwise the pack
type plus the version-independent base name. Versions are compared as
strings; when neither side has a version at all, the archive size is
compared with the installed folder size instead.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from name_heuristics import base_name, extract_version, extract_version_from_path, is_mashup_name
from pack_manifest import MANIFEST_FILENAME, PackManifest, try_parse_manifest
from pack_types import InstalledPack, PackCandidate, PackType
from settings_store import AppSettings

_log = logging.getLogger(__name__)

# A pack counts as updated when the larger of (archive size, installed size)
# exceeds the smaller by more than this factor.
SIZE_UPDATE_RATIO = 1.10


def folder_size(path: str | Path) -> int:
    """Total byte size of all files below ``path``; unreadable entries are skipped."""
    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for name in filenames:
            fp = os.path.join(dirpath, name)
            if os.path.islink(fp):
                continue
            try:
                total += os.path.getsize(fp)
            except OSError:
                continue
    return total


def read_folder_manifest(folder: Path) -> PackManifest | None:
    manifest_path = folder / MANIFEST_FILENAME
    if not manifest_path.is_file():
        return None
    try:
        data = manifest_path.read_bytes()
    except OSError as exc:
        _log.debug("Could not read %s: %s", manifest_path, exc)
        return None
    return try_parse_manifest(data, source=str(manifest_path))


def installed_pack_from_folder(folder: Path, root_type: PackType) -> InstalledPack:
    manifest = read_folder_manifest(folder)
    pack_type = root_type
    if root_type == PackType.WORLD_TEMPLATE and is_mashup_name(folder.name):
        pack_type = PackType.MASHUP_PACK
    return InstalledPack(
        path=folder,
        folder_name=folder.name,
        name=(manifest.header.name if manifest and manifest.header.name else folder.name),
        pack_type=pack_type,
        uuid=manifest.uuid if manifest else None,
        version=manifest.version if manifest else None,
    )


def scan_installed(settings: AppSettings) -> list[InstalledPack]:
    """Every pack folder under the configured roots. Recomputed on each call."""
    installed: list[InstalledPack] = []
    for root_type, root in settings.pack_roots():
        if not root.is_dir():
            continue
        try:
            folders = sorted(p for p in root.iterdir() if p.is_dir())
        except OSError as exc:
            _log.warning("Could not list %s: %s", root, exc)
            continue
        for folder in folders:
            installed.append(installed_pack_from_folder(folder, root_type))
    return installed


# ── Reconciliation ────────────────────────────────────────────────────


def _candidate_version(pack: PackCandidate, uuid_match: bool) -> Optional[str]:
    by_name = extract_version(pack.display_name)
    if by_name is None:
        by_name = extract_version_from_path(str(pack.source_path))
    if uuid_match:
        return by_name if by_name is not None else pack.version
    return pack.version if pack.version is not None else by_name


def _installed_version(installed: InstalledPack, uuid_match: bool) -> Optional[str]:
    if uuid_match:
        by_name = extract_version(installed.folder_name)
        if by_name is None:
            by_name = extract_version_from_path(str(installed.path))
        return by_name if by_name is not None else installed.version

    if installed.version is not None:
        return installed.version
    by_name = extract_version(installed.name)
    if by_name is None:
        by_name = extract_version_from_path(str(installed.path))
    return by_name


def sizes_differ(new_size: int, old_size: int, ratio: float = SIZE_UPDATE_RATIO) -> bool:
    if new_size == old_size:
        return False
    smaller, larger = sorted((new_size, old_size))
    if smaller == 0:
        return True
    return larger / smaller > ratio


def _find_installed(
    pack: PackCandidate,
    by_uuid: dict[str, InstalledPack],
    by_identity: dict[tuple[PackType, str], InstalledPack],
) -> InstalledPack | None:
    if pack.uuid and pack.uuid in by_uuid:
        return by_uuid[pack.uuid]

    match = by_identity.get((pack.pack_type, base_name(pack.display_name)))
    # A name match that carries a different uuid is a different pack
    if match is not None and pack.uuid and match.uuid and match.uuid != pack.uuid:
        return None
    return match


def reconcile(
    candidates: list[PackCandidate], installed: list[InstalledPack]
) -> list[PackCandidate]:
    """Annotate each candidate with its install status and return the list."""
    by_uuid: dict[str, InstalledPack] = {}
    by_identity: dict[tuple[PackType, str], InstalledPack] = {}
    for ip in installed:
        if ip.uuid:
            by_uuid.setdefault(ip.uuid, ip)
        by_identity.setdefault((ip.pack_type, base_name(ip.name)), ip)

    size_cache: dict[Path, int] = {}

    for pack in candidates:
        pack.is_installed = False
        pack.is_update = False
        pack.installed_version = None

        match = _find_installed(pack, by_uuid, by_identity)
        if match is None:
            continue

        uuid_match = pack.uuid is not None and pack.uuid == match.uuid
        new_version = _candidate_version(pack, uuid_match)
        old_version = _installed_version(match, uuid_match)

        pack.is_installed = True
        pack.installed_version = old_version

        if new_version is not None or old_version is not None:
            pack.is_update = new_version != old_version
            continue

        if pack.file_size is None:
            continue
        if match.path not in size_cache:
            size_cache[match.path] = folder_size(match.path)
        pack.is_update = sizes_differ(pack.file_size, size_cache[match.path])

    return candidates
