"""
Blocksmith - data model shared by the detector, reconciler and installer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Literal, Optional

PackStatus = Literal["not_installed", "installed", "update"]


class PackType(str, Enum):
    BEHAVIOR_PACK = "BehaviorPack"
    RESOURCE_PACK = "ResourcePack"
    SKIN_PACK = "SkinPack"
    SKIN_PACK_4D = "SkinPack4D"
    WORLD_TEMPLATE = "WorldTemplate"
    MASHUP_PACK = "MashupPack"
    UNKNOWN = "Unknown"

    @property
    def label(self) -> str:
        return _TYPE_LABELS[self]

    @property
    def folder_suffix(self) -> str:
        """Bracket tag appended to an installed folder name for this type."""
        return TYPE_SUFFIXES[self]

    @property
    def is_template(self) -> bool:
        return self in (PackType.WORLD_TEMPLATE, PackType.MASHUP_PACK)


_TYPE_LABELS = {
    PackType.BEHAVIOR_PACK: "Behavior Pack (Addon)",
    PackType.RESOURCE_PACK: "Resource Pack",
    PackType.SKIN_PACK: "Skin Pack",
    PackType.SKIN_PACK_4D: "Skin Pack (4D Geometry)",
    PackType.WORLD_TEMPLATE: "World Template",
    PackType.MASHUP_PACK: "Mash-Up Pack",
    PackType.UNKNOWN: "Unknown",
}

# On-disk naming contract: installed folders are "<display name><suffix>".
# The same table is used when reading installed folders back, so both
# directions must stay in sync.
TYPE_SUFFIXES = {
    PackType.BEHAVIOR_PACK: " (ADDON)",
    PackType.RESOURCE_PACK: " (RESOURCE)",
    PackType.SKIN_PACK: " (SKIN)",
    PackType.SKIN_PACK_4D: "",
    PackType.WORLD_TEMPLATE: " (TEMPLATE)",
    PackType.MASHUP_PACK: " (MASHUP)",
    PackType.UNKNOWN: "",
}

FOUR_D_SKIN_PACK_DIR = "4D Skin Packs"


@dataclass
class PackCandidate:
    """One pack found inside an archive, plus its reconciliation status."""

    source_path: Path
    display_name: str
    pack_type: PackType
    uuid: Optional[str] = None
    version: Optional[str] = None
    icon: Optional[str] = None  # base64-encoded image bytes
    archive_subfolder: Optional[str] = None  # slice of a multi-pack archive
    needs_attention: bool = False
    attention_message: Optional[str] = None
    file_size: Optional[int] = None  # byte size of the source archive
    # Filled in by the reconciler
    is_installed: bool = False
    is_update: bool = False
    installed_version: Optional[str] = None

    @property
    def status(self) -> PackStatus:
        if not self.is_installed:
            return "not_installed"
        return "update" if self.is_update else "installed"


@dataclass
class InstalledPack:
    """A pack folder already present under one of the configured roots."""

    path: Path
    folder_name: str
    name: str  # manifest header name, or the folder name when there is none
    pack_type: PackType
    uuid: Optional[str] = None
    version: Optional[str] = None
    icon: Optional[str] = None


@dataclass
class MoveOperation:
    """Outcome of installing one candidate."""

    source: str
    destination: str
    pack_name: str
    pack_type: PackType
    success: bool
    error: Optional[str] = None
    is_template_update: bool = False
    skin_pack_4d_path: Optional[str] = None
    deleted_old_path: Optional[str] = None


LogLevel = Literal["INFO", "WARN", "ERROR", "SUCCESS"]


@dataclass
class LogEntry:
    timestamp: str  # HH:MM:SS.mmm, local time
    level: LogLevel
    message: str
