"""
Blocksmith - archive classification.

Works out what a pack archive contains without extracting it:

  1. A ``skins.json`` anywhere means the whole archive is one skin pack
     (a 4D skin pack when it also ships geometry JSON).
  2. ``manifest.json`` files inside subfolders mean the archive bundles
     several packs (e.g. an .mcaddon with a behavior and a resource pack);
     each folder becomes its own candidate.
  3. Otherwise the archive is a single pack described by its root manifest.
"""

from __future__ import annotations

import base64
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional

from archive_io import PackArchive
from errors import ArchiveError, ConfigurationError
from log_sink import ProgressCallback, send_progress
from name_heuristics import ARCHIVE_EXTENSIONS, clean_pack_name, is_mashup_name
from pack_manifest import MANIFEST_FILENAME, PackManifest, try_parse_manifest
from pack_types import PackCandidate, PackType

_log = logging.getLogger(__name__)

SKINS_FILENAME = "skins.json"
ICON_NAMES = ("pack_icon.png", "Pack_Icon.png", "world_icon.jpeg", "world_icon.jpg")
PROGRESS_EVERY = 5


def _basename(name: str) -> str:
    return name.rstrip("/").rsplit("/", 1)[-1]


def _parent(name: str) -> str:
    return name.rsplit("/", 1)[0] if "/" in name else ""


# ── Single archive ────────────────────────────────────────────────────


def classify(archive_path: str | Path) -> list[PackCandidate]:
    """Return the packs inside one archive.

    Never raises: unreadable, corrupt or non-archive files give ``[]``.
    """
    archive_path = Path(archive_path)
    try:
        with PackArchive(archive_path) as archive:
            return _classify_archive(archive_path, archive)
    except Exception as exc:
        _log.warning("Skipping %s: %s", archive_path.name, exc)
        return []


def _classify_archive(archive_path: Path, archive: PackArchive) -> list[PackCandidate]:
    stem = archive_path.stem
    display_name = clean_pack_name(stem)
    is_mashup = is_mashup_name(stem)

    skins_json = _find_skins_json(archive)
    if skins_json is not None:
        return [_skin_pack_candidate(archive_path, archive, display_name, skins_json)]

    subfolders = detect_pack_folders(archive)
    if subfolders:
        packs = []
        for subfolder in subfolders:
            pack_type, uuid, version = _pack_info_for_subfolder(archive, subfolder)
            if is_mashup and pack_type == PackType.WORLD_TEMPLATE:
                pack_type = PackType.MASHUP_PACK
            packs.append(
                PackCandidate(
                    source_path=archive_path,
                    display_name=display_name,
                    pack_type=pack_type,
                    uuid=uuid,
                    version=version,
                    icon=find_icon(archive, subfolder),
                    archive_subfolder=subfolder,
                )
            )
        # Behavior packs first, then by folder path
        packs.sort(
            key=lambda p: (
                0
                if p.pack_type == PackType.BEHAVIOR_PACK
                or _looks_like_behavior_folder(p.archive_subfolder)
                else 1,
                p.archive_subfolder.lower(),
            )
        )
        return packs

    manifest = _read_manifest(archive, MANIFEST_FILENAME)
    pack_type = manifest.pack_type if manifest else PackType.UNKNOWN
    if is_mashup and pack_type == PackType.WORLD_TEMPLATE:
        pack_type = PackType.MASHUP_PACK

    return [
        PackCandidate(
            source_path=archive_path,
            display_name=display_name,
            pack_type=pack_type,
            uuid=manifest.uuid if manifest else None,
            version=manifest.version if manifest else None,
            icon=find_icon(archive, ""),
        )
    ]


def _read_manifest(archive: PackArchive, name: str) -> PackManifest | None:
    if archive.get(name) is None:
        return None
    try:
        data = archive.read(name)
    except ArchiveError as exc:
        _log.debug("Could not read %s: %s", name, exc)
        return None
    return try_parse_manifest(data, source=f"{archive.filepath.name}:{name}")


# ── Skin packs ────────────────────────────────────────────────────────


def _find_skins_json(archive: PackArchive) -> str | None:
    """Return the folder holding skins.json ("" for the root), or None."""
    if archive.get(SKINS_FILENAME) is not None:
        return ""
    for entry in archive.entries():
        if not entry.is_dir and _basename(entry.name) == SKINS_FILENAME:
            return _parent(entry.name)
    return None


def _skin_pack_candidate(
    archive_path: Path, archive: PackArchive, display_name: str, skins_folder: str
) -> PackCandidate:
    names = [e.name for e in archive.entries()]
    is_4d = has_geometry_json(names)
    needs_attention, message = check_4d_special_files(names) if is_4d else (False, None)
    return PackCandidate(
        source_path=archive_path,
        display_name=display_name,
        pack_type=PackType.SKIN_PACK_4D if is_4d else PackType.SKIN_PACK,
        icon=find_icon(archive, skins_folder),
        archive_subfolder=skins_folder or None,
        needs_attention=needs_attention,
        attention_message=message,
    )


def has_geometry_json(names: list[str]) -> bool:
    for name in names:
        lower = name.lower()
        if "geometry" in lower and lower.endswith(".json"):
            return True
    return False


def check_4d_special_files(names: list[str]) -> tuple[bool, Optional[str]]:
    """Flag 4D skin packs that probably need manual setup rather than plain extraction."""
    has_readme = False
    geometry_folders: set[str] = set()

    for name in names:
        lower = name.lower()
        if any(word in lower for word in ("readme", "instructions", "install")):
            if lower.endswith(".txt") or lower.endswith(".md"):
                has_readme = True
        if "geometry" in lower and "/" in lower:
            geometry_folders.add(lower.split("/", 1)[0])

    multiple_geometry = len(geometry_folders) > 1
    if not (has_readme or multiple_geometry):
        return False, None

    messages = []
    if has_readme:
        messages.append("Contains instructions/readme")
    if multiple_geometry:
        messages.append("Multiple geometry folders detected")
    messages.append("May require manual setup")
    messages.append("SkinMaster may not work with this pack")
    return True, ". ".join(messages) + "."


# ── Multi-pack archives ───────────────────────────────────────────────


def _looks_like_behavior_folder(folder: str) -> bool:
    s = folder.lower()
    return (
        "behavior" in s
        or "behaviour" in s
        or "ppack0" in s
        or "/bp0" in s
        or "/bp1" in s
        or s.endswith("pack0")
        or ("ppack" in s and "0" in s)
    )


def detect_pack_folders(archive: PackArchive) -> list[str]:
    """Folders inside the archive that each hold a standalone pack.

    Returns ``[]`` when the archive should be treated as one pack.
    """
    manifest_folders: list[str] = []
    has_root_manifest = False

    for entry in archive.entries():
        if entry.is_dir or _basename(entry.name) != MANIFEST_FILENAME:
            continue
        folder = _parent(entry.name)
        if folder:
            if folder not in manifest_folders:
                manifest_folders.append(folder)
        else:
            has_root_manifest = True

    root_manifest = _read_manifest(archive, MANIFEST_FILENAME) if has_root_manifest else None
    is_world_template = bool(root_manifest and root_manifest.declares_world_template)

    # A world template is installed as one unit, packs bundled inside it included
    if is_world_template:
        return []

    subfolders: list[str] = []
    for folder in manifest_folders:
        parts = folder.split("/")
        if len(parts) <= 2:
            candidate = folder
        else:
            candidate = "/".join(parts[:2])
        if candidate not in subfolders:
            subfolders.append(candidate)

    subfolders.sort(key=lambda f: (0 if _looks_like_behavior_folder(f) else 1, f.lower()))
    return subfolders


def _type_from_folder_name(subfolder: str) -> PackType:
    s = subfolder.lower()
    if "behavior" in s or "behaviour" in s or "ppack0" in s:
        return PackType.BEHAVIOR_PACK
    if "resource" in s or "ppack1" in s:
        return PackType.RESOURCE_PACK
    return PackType.UNKNOWN


def _pack_info_for_subfolder(
    archive: PackArchive, subfolder: str
) -> tuple[PackType, Optional[str], Optional[str]]:
    manifest = _read_manifest(archive, f"{subfolder}/{MANIFEST_FILENAME}")
    if manifest is None:
        return _type_from_folder_name(subfolder), None, None

    pack_type = manifest.pack_type
    if pack_type == PackType.UNKNOWN:
        pack_type = _type_from_folder_name(subfolder)
    return pack_type, manifest.uuid, manifest.version


# ── Icons ─────────────────────────────────────────────────────────────


def find_icon(archive: PackArchive, subfolder: str) -> Optional[str]:
    """Base64 icon for the pack rooted at ``subfolder`` ("" for the archive root)."""
    prefix = f"{subfolder}/" if subfolder else ""

    for icon_name in ICON_NAMES:
        if archive.get(prefix + icon_name) is not None:
            data = _try_read(archive, prefix + icon_name)
            if data is not None:
                return base64.b64encode(data).decode("ascii")

    lowered = tuple(n.lower() for n in ICON_NAMES)
    for entry in archive.entries():
        if entry.is_dir or not entry.name.startswith(prefix):
            continue
        rest = entry.name[len(prefix):]
        if "/" in rest or not rest.lower().endswith(lowered):
            continue
        data = _try_read(archive, entry.name)
        if data is not None:
            return base64.b64encode(data).decode("ascii")

    return None


def _try_read(archive: PackArchive, name: str) -> Optional[bytes]:
    try:
        return archive.read(name)
    except ArchiveError as exc:
        _log.debug("Could not read icon %s: %s", name, exc)
        return None


# ── Directory scans ───────────────────────────────────────────────────


def find_pack_files(directory: str | Path) -> list[Path]:
    """Pack archives directly inside ``directory``, sorted by name."""
    return sorted(
        p
        for p in Path(directory).iterdir()
        if p.is_file() and p.suffix.lower() in ARCHIVE_EXTENSIONS
    )


def scan_files(
    files: list[Path],
    progress_callback: Optional[ProgressCallback] = None,
    max_workers: Optional[int] = None,
) -> list[PackCandidate]:
    """Classify many archives in parallel.

    A failure on one archive never aborts the batch: that file simply
    contributes no candidates. Results keep the order of ``files``.
    """
    total = len(files)
    if total == 0:
        return []

    lock = threading.Lock()
    done = 0
    last_reported = 0

    def work(path: Path) -> list[PackCandidate]:
        nonlocal done, last_reported
        try:
            packs = classify(path)
            size = path.stat().st_size
            for pack in packs:
                pack.file_size = size
        finally:
            with lock:
                done += 1
                current = done
                emit = current == total or current - last_reported >= PROGRESS_EVERY
                if emit:
                    last_reported = current
            if emit:
                send_progress(progress_callback, current, total, f"Scanned {current}/{total}")
        return packs

    send_progress(progress_callback, 0, total, "Scanning packs in parallel...")

    workers = max_workers or os.cpu_count() or 4
    results: list[list[PackCandidate]] = []
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [(path, pool.submit(work, path)) for path in files]
        for path, future in futures:
            try:
                results.append(future.result())
            except Exception as exc:
                _log.warning("Scan of %s failed: %s", path.name, exc)
                results.append([])

    return [pack for packs in results for pack in packs]


def scan_directory(
    directory: str | Path, progress_callback: Optional[ProgressCallback] = None
) -> list[PackCandidate]:
    """Classify every pack archive directly inside ``directory``."""
    scan_dir = Path(directory)
    if not scan_dir.is_dir():
        raise ConfigurationError(f"Scan directory does not exist: {scan_dir}")
    return scan_files(find_pack_files(scan_dir), progress_callback)
