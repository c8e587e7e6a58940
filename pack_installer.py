"""
Blocksmith - installing packs into their destination folders.

Extraction is two-phase: ``plan_extraction`` walks the archive and validates
every output path without touching the disk, and ``apply_plan`` then writes
it out. A traversal attempt is therefore rejected before anything (including
a previously installed version) is removed.

Every successful install is pushed onto a bounded undo log;
``rollback_last`` pops the newest entry and deletes its folder.
"""

from __future__ import annotations

import logging
import shutil
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from archive_io import ArchiveEntry, PackArchive
from errors import PackError, PackSecurityError, RollbackError
from log_sink import LogCallback, ProgressCallback, send_log, send_progress
from name_heuristics import base_name, strip_folder_suffix
from pack_library import delete_source_file
from pack_types import FOUR_D_SKIN_PACK_DIR, LogLevel, MoveOperation, PackCandidate, PackType
from settings_store import AppSettings, destination_for

_log = logging.getLogger(__name__)

BUFFER_SIZE = 256 * 1024
MAX_CONCURRENT_INSTALLS = 8
MAX_UNDO_HISTORY = 100


# ── Extraction ────────────────────────────────────────────────────────


@dataclass
class ExtractionPlan:
    archive_path: Path
    output_path: Path
    directories: list[Path] = field(default_factory=list)
    files: list[tuple[ArchiveEntry, Path]] = field(default_factory=list)


def relative_member_path(name: str, subfolder: Optional[str]) -> Optional[str]:
    """Path of ``name`` relative to the pack root, or None if it is outside it."""
    if subfolder:
        prefix = subfolder.strip("/")
        if name == prefix or name == prefix + "/":
            return None
        if not name.startswith(prefix + "/"):
            return None
        name = name[len(prefix) + 1:]
    name = name.lstrip("/")
    return name or None


def plan_extraction(
    archive: PackArchive, output_path: Path, subfolder: Optional[str] = None
) -> ExtractionPlan:
    """Collect the directories and files to write, rejecting any path that escapes ``output_path``."""
    plan = ExtractionPlan(archive_path=archive.filepath, output_path=output_path)
    root = output_path.resolve()
    seen_dirs: set[Path] = set()

    for entry in archive.entries():
        if entry.is_symlink:
            _log.debug("Skipping symlink %s in %s", entry.name, archive.filepath.name)
            continue
        rel = relative_member_path(entry.name, subfolder)
        if rel is None:
            continue

        parts = [p for p in rel.split("/") if p and p != "."]
        if not parts:
            continue

        target = output_path.joinpath(*parts)
        if ".." in parts or not target.resolve().is_relative_to(root):
            raise PackSecurityError(
                f"Security: Attempted path traversal in archive: {entry.name}"
            )

        if entry.is_dir:
            if target not in seen_dirs:
                seen_dirs.add(target)
                plan.directories.append(target)
        else:
            parent = target.parent
            if parent != output_path and parent not in seen_dirs:
                seen_dirs.add(parent)
                plan.directories.append(parent)
            plan.files.append((entry, target))

    return plan


def apply_plan(archive: PackArchive, plan: ExtractionPlan) -> int:
    """Write out a validated plan. An existing output folder is replaced, not merged."""
    if plan.output_path.exists():
        shutil.rmtree(plan.output_path)
    plan.output_path.mkdir(parents=True)

    for directory in plan.directories:
        directory.mkdir(parents=True, exist_ok=True)

    try:
        for entry, target in plan.files:
            with open(target, "wb") as dst:
                archive.copy_member(entry, dst, BUFFER_SIZE)
    except (PackError, OSError):
        # No half-written packs
        shutil.rmtree(plan.output_path, ignore_errors=True)
        raise
    return len(plan.files)


# ── Installer ─────────────────────────────────────────────────────────


class PackInstaller:
    """
    Installs classified packs and keeps the undo log for this session.

    One instance should live as long as its undo log is wanted; a new
    instance starts with an empty history.
    """

    def __init__(self, settings: AppSettings, log_callback: Optional[LogCallback] = None):
        self.settings = settings
        self._log_cb = log_callback
        self._lock = threading.Lock()
        self._history: deque[MoveOperation] = deque(maxlen=MAX_UNDO_HISTORY)

    def log(self, level: LogLevel, msg: str):
        send_log(_log, self._log_cb, level, msg)

    @property
    def history(self) -> list[MoveOperation]:
        with self._lock:
            return list(self._history)

    # ── Naming ────────────────────────────────────────────────────────

    def destination_root(
        self, pack: PackCandidate, scan_root: Optional[Path] = None
    ) -> Optional[Path]:
        if pack.pack_type == PackType.SKIN_PACK_4D:
            if scan_root is not None:
                return Path(scan_root) / FOUR_D_SKIN_PACK_DIR
            if self.settings.scan_location:
                return Path(self.settings.scan_location) / FOUR_D_SKIN_PACK_DIR
            return pack.source_path.parent / FOUR_D_SKIN_PACK_DIR
        return destination_for(pack.pack_type, self.settings)

    @staticmethod
    def output_name(pack: PackCandidate) -> str:
        return pack.display_name + pack.pack_type.folder_suffix

    def find_old_pack_path(self, dest_base: Path, pack: PackCandidate) -> Optional[Path]:
        """An installed folder for the same pack under a different (older) name."""
        if not dest_base.is_dir():
            return None
        wanted = base_name(pack.display_name)
        new_name = self.output_name(pack)
        for folder in sorted(dest_base.iterdir()):
            if not folder.is_dir() or folder.name == new_name:
                continue
            if base_name(strip_folder_suffix(folder.name)) == wanted:
                return folder
        return None

    # ── Install ───────────────────────────────────────────────────────

    def _failed(self, pack: PackCandidate, destination: str, error: str) -> MoveOperation:
        self.log("ERROR", f"Failed to install {pack.display_name}: {error}")
        return MoveOperation(
            source=str(pack.source_path),
            destination=destination,
            pack_name=pack.display_name,
            pack_type=pack.pack_type,
            success=False,
            error=error,
        )

    def install(self, pack: PackCandidate, scan_root: Optional[Path] = None) -> MoveOperation:
        dest_base = self.destination_root(pack, scan_root)
        if dest_base is None:
            return self._failed(
                pack, "", f"No destination path configured for {pack.pack_type.label}"
            )

        output_path = dest_base / self.output_name(pack)
        if not output_path.resolve().is_relative_to(dest_base.resolve()):
            return self._failed(
                pack, str(output_path), f"Destination escapes {dest_base}: {output_path}"
            )

        is_4d = pack.pack_type == PackType.SKIN_PACK_4D
        is_template_update = pack.pack_type.is_template and output_path.exists()
        old_path = None
        if pack.is_update and not is_4d:
            old_path = self.find_old_pack_path(dest_base, pack)

        op = MoveOperation(
            source=str(pack.source_path),
            destination=str(output_path),
            pack_name=pack.display_name,
            pack_type=pack.pack_type,
            success=True,
            is_template_update=is_template_update,
            skin_pack_4d_path=str(output_path) if is_4d else None,
            deleted_old_path=str(old_path) if old_path else None,
        )

        if self.settings.dry_run:
            self.log("INFO", f"[DRY RUN] Would extract {pack.source_path.name} -> {output_path}")
            if old_path:
                self.log("INFO", f"[DRY RUN] Would remove old version {old_path.name}")
            return op

        self.log("INFO", f"Installing {pack.display_name} ({pack.pack_type.label})...")
        try:
            with PackArchive(pack.source_path) as archive:
                plan = plan_extraction(archive, output_path, pack.archive_subfolder)

                if old_path is not None:
                    try:
                        shutil.rmtree(old_path)
                        self.log("INFO", f"  Removed old version: {old_path.name}")
                    except OSError as e:
                        self.log("WARN", f"  Could not remove old version {old_path.name}: {e}")
                        op.deleted_old_path = None

                count = apply_plan(archive, plan)
        except (PackError, OSError) as e:
            return self._failed(pack, str(output_path), str(e))

        with self._lock:
            self._history.append(op)

        self.log("SUCCESS", f"  Installed {pack.display_name} ({count} files) -> {output_path}")
        if is_template_update:
            self.log(
                "WARN",
                f"  Updated world template {pack.display_name}. Existing worlds "
                f"created from the old template are not migrated.",
            )
        if is_4d:
            self.log(
                "INFO",
                f"  4D skin pack placed in {dest_base}. Import it with a skin tool to use it in-game.",
            )
        return op

    # ── Rollback ──────────────────────────────────────────────────────

    def rollback_last(self) -> Optional[MoveOperation]:
        """Undo the newest install. Returns it, or None if the log is empty.

        The entry is taken off the log before the folder is removed; a
        failure raises ``RollbackError`` and the entry stays gone.
        """
        with self._lock:
            if not self._history:
                return None
            if self.settings.dry_run:
                op = self._history[-1]
            else:
                op = self._history.pop()

        destination = Path(op.destination)
        if self.settings.dry_run:
            self.log("INFO", f"[DRY RUN] Would remove {destination}")
            return op

        if not destination.exists():
            raise RollbackError(f"Destination no longer exists: {destination}", op)
        try:
            shutil.rmtree(destination)
        except OSError as e:
            raise RollbackError(f"Could not remove {destination}: {e}", op) from e

        self.log("SUCCESS", f"Rolled back {op.pack_name}")
        return op

    # ── Batch ─────────────────────────────────────────────────────────

    def install_batch(
        self,
        packs: list[PackCandidate],
        scan_root: Optional[Path] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> list[MoveOperation]:
        """Install ``packs`` with at most MAX_CONCURRENT_INSTALLS in flight.

        Results are sorted by pack name. Source archives are deleted (when
        enabled) only after every install has finished.
        """
        total = len(packs)
        lock = threading.Lock()
        started = 0

        def work(pack: PackCandidate) -> MoveOperation:
            nonlocal started
            with lock:
                started += 1
                current = started
            send_progress(progress_callback, current, total, f"Processing {pack.display_name}")
            return self.install(pack, scan_root)

        results: list[MoveOperation] = []
        with ThreadPoolExecutor(max_workers=MAX_CONCURRENT_INSTALLS) as pool:
            futures = {pool.submit(work, pack): pack for pack in packs}
            for future in as_completed(futures):
                pack = futures[future]
                try:
                    results.append(future.result())
                except Exception as e:
                    results.append(self._failed(pack, "", f"Unexpected error: {e}"))

        if self.settings.delete_source and not self.settings.dry_run:
            self.delete_processed_sources(results)

        send_progress(progress_callback, total, total, "Complete")
        results.sort(key=lambda op: op.pack_name.lower())
        return results

    def delete_processed_sources(self, results: list[MoveOperation]) -> list[str]:
        """Delete source archives whose packs all installed successfully."""
        outcome: dict[str, bool] = {}
        for op in results:
            outcome[op.source] = outcome.get(op.source, True) and op.success

        deleted = []
        for source, ok in outcome.items():
            if not ok:
                continue
            try:
                delete_source_file(source, self.settings)
            except (PackSecurityError, OSError) as e:
                self.log("WARN", f"Kept source {Path(source).name}: {e}")
            else:
                deleted.append(source)
                self.log("INFO", f"Deleted source {Path(source).name}")
        return deleted
