"""
Blocksmith - Core Logic

Ties the detector, reconciler and installer together around one AppState.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from log_sink import LogCallback, ProgressCallback, send_log
from pack_detector import scan_directory
from pack_installer import PackInstaller
from pack_library import (
    PackStats,
    delete_all_packs,
    delete_packs,
    library_stats,
    list_installed,
    move_pack,
    rename_pack,
)
from pack_reconciler import reconcile, scan_installed
from pack_types import InstalledPack, LogLevel, MoveOperation, PackCandidate, PackType
from premium_cache import PremiumCachePack, import_4d_skin_to_premium, list_premium_cache_packs
from settings_store import AppState

_log = logging.getLogger(__name__)


class PackManager:
    """
    Main pack manager controller.

    Workflow:
        1. scan_packs() to classify the archives in a download folder
        2. compute_pack_status() to mark which ones are new, current or updates
        3. process_packs() to install them; rollback_last() undoes the newest one
    """

    def __init__(
        self,
        app_state: AppState,
        log_callback: Optional[LogCallback] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.state = app_state
        self._log_cb = log_callback
        self._progress_cb = progress_callback
        self._installer: PackInstaller | None = None

        # Runtime state
        self.packs: list[PackCandidate] = []
        self.scan_root: Path | None = None

    # ── Logging ───────────────────────────────────────────────────────

    def log(self, level: LogLevel, msg: str):
        send_log(_log, self._log_cb, level, msg)

    @property
    def installer(self) -> PackInstaller:
        """The installer owning this session's undo log, refreshed with current settings."""
        settings = self.state.snapshot()
        if self._installer is None:
            self._installer = PackInstaller(settings, self._log_cb)
        else:
            self._installer.settings = settings
        return self._installer

    # ── Scanning ──────────────────────────────────────────────────────

    def scan_packs(self, directory: str | Path) -> list[PackCandidate]:
        scan_dir = Path(directory)
        self.log("INFO", f"Scanning {scan_dir}...")
        packs = scan_directory(scan_dir, self._progress_cb)

        for pack in packs:
            if pack.pack_type == PackType.UNKNOWN:
                self.log("WARN", f"  {pack.source_path.name}: could not determine pack type")
            if pack.needs_attention:
                self.log("WARN", f"  {pack.display_name}: {pack.attention_message}")

        self.state.update(scan_location=str(scan_dir))
        self.scan_root = scan_dir
        self.packs = packs
        files = len({pack.source_path for pack in packs})
        self.log("SUCCESS", f"Scan complete: {len(packs)} pack(s) in {files} file(s)")
        return packs

    def compute_pack_status(
        self, packs: list[PackCandidate] | None = None
    ) -> list[PackCandidate]:
        packs = self.packs if packs is None else packs
        installed = scan_installed(self.state.snapshot())
        reconcile(packs, installed)

        updates = sum(1 for p in packs if p.is_update)
        current = sum(1 for p in packs if p.is_installed and not p.is_update)
        self.log(
            "INFO",
            f"{len(packs) - updates - current} new, {updates} update(s), "
            f"{current} already installed",
        )
        return packs

    # ── Install ───────────────────────────────────────────────────────

    def process_packs(self, packs: list[PackCandidate] | None = None) -> list[MoveOperation]:
        packs = self.packs if packs is None else packs
        if not packs:
            self.log("INFO", "Nothing to install")
            return []

        results = self.installer.install_batch(packs, self.scan_root, self._progress_cb)
        ok = sum(1 for op in results if op.success)
        level: LogLevel = "SUCCESS" if ok == len(results) else "WARN"
        self.log(level, f"Installed {ok}/{len(results)} pack(s)")
        return results

    def rollback_last(self) -> Optional[MoveOperation]:
        op = self.installer.rollback_last()
        if op is None:
            self.log("INFO", "Nothing to roll back")
        return op

    # ── Library ───────────────────────────────────────────────────────

    def installed_packs(self) -> list[InstalledPack]:
        return list_installed(self.state.snapshot())

    def stats(self) -> list[PackStats]:
        return library_stats(self.state.snapshot())

    def delete_installed(self, paths: list[str | Path]) -> tuple[list[str], list[str]]:
        deleted, errors = delete_packs(paths, self.state.snapshot())
        for path in deleted:
            self.log("INFO", f"Deleted {Path(path).name}")
        for error in errors:
            self.log("ERROR", error)
        return deleted, errors

    def delete_all(self) -> list[str]:
        deleted = delete_all_packs(self.state.snapshot())
        self.log("SUCCESS", f"Cleared all pack folders ({len(deleted)} pack(s) deleted)")
        return deleted

    def move_installed(self, path: str | Path, destination: str | Path) -> Path:
        new_path = move_pack(path, destination, self.state.snapshot())
        self.log("SUCCESS", f"Moved {new_path.name} to {new_path.parent}")
        return new_path

    def rename_installed(self, path: str | Path, new_name: str) -> Path:
        new_path = rename_pack(path, new_name, self.state.snapshot())
        self.log("SUCCESS", f"Renamed {Path(path).name} to {new_name}")
        return new_path

    # ── Premium skin cache ────────────────────────────────────────────

    def premium_packs(self) -> list[PremiumCachePack]:
        packs = list_premium_cache_packs()
        if not packs:
            self.log(
                "WARN",
                "No premium skin packs found in cache. Download some from the Minecraft Marketplace first.",
            )
        return packs

    def import_4d_skin(self, skin_pack_path: str | Path, premium_pack_path: str | Path) -> list[str]:
        self.log("INFO", f"Importing 4D skin from {skin_pack_path} into {premium_pack_path}")
        copied = import_4d_skin_to_premium(skin_pack_path, premium_pack_path)
        self.log(
            "SUCCESS",
            f"4D skin pack imported ({len(copied)} entries). Restart Minecraft to see the changes.",
        )
        return copied

    # ── Validation ────────────────────────────────────────────────────

    def validate_paths(self) -> list[str]:
        settings = self.state.snapshot()
        issues = []

        for label, value in (
            ("Behavior pack", settings.behavior_pack_path),
            ("Resource pack", settings.resource_pack_path),
            ("Skin pack", settings.skin_pack_path),
            ("World template", settings.world_template_path),
        ):
            if not value:
                issues.append(f"{label} directory is not configured")
            elif not Path(value).is_dir():
                issues.append(f"{label} directory does not exist: {value}")

        if settings.scan_location and not Path(settings.scan_location).is_dir():
            issues.append(f"Scan directory does not exist: {settings.scan_location}")

        return issues
