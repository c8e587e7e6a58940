"""
Blocksmith - the Marketplace premium skin cache.

Minecraft keeps downloaded Marketplace skin packs unpacked under
``<roaming>/Minecraft Bedrock/premium_cache/skin_packs``. A 4D skin pack
can't be installed like an ordinary one; instead its files are copied over
one of these cached packs, keeping the cached pack's manifest so the game
still recognises it.
"""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ValidationError, field_validator

from errors import ConfigurationError, PackSecurityError
from pack_manifest import MANIFEST_FILENAME, try_parse_manifest
from settings_store import config_dir

_log = logging.getLogger(__name__)

SKINS_FILENAME = "skins.json"
LANG_FILE = Path("texts") / "en_US.lang"


@dataclass
class PremiumCachePack:
    folder_name: str
    display_name: str
    path: Path


class _NameFields(BaseModel):
    """Loose name fields found at the top level of skins.json or an old-style manifest."""

    name: Optional[str] = None
    localization_name: Optional[str] = None
    serialize_name: Optional[str] = None

    @field_validator("name", "localization_name", "serialize_name", mode="before")
    @classmethod
    def _only_strings(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None


def premium_cache_dir(roaming: str | Path | None = None) -> Path:
    base = Path(roaming) if roaming else config_dir()
    return base / "Minecraft Bedrock" / "premium_cache" / "skin_packs"


def _read_name_fields(path: Path) -> _NameFields | None:
    try:
        return _NameFields.model_validate(json.loads(path.read_bytes().decode("utf-8-sig")))
    except (OSError, ValueError, ValidationError) as exc:
        _log.debug("Ignoring unreadable %s: %s", path, exc)
        return None


def premium_pack_display_name(pack_path: str | Path) -> Optional[str]:
    """Human-readable name of a cached pack.

    The manifest's internal name is looked up as ``skinpack.<name>=`` in
    ``texts/en_US.lang``. Failing that, skins.json's ``localization_name``
    or ``serialize_name`` is used.
    """
    pack_path = Path(pack_path)

    internal_name = None
    manifest_path = pack_path / MANIFEST_FILENAME
    if manifest_path.is_file():
        try:
            data = manifest_path.read_bytes()
        except OSError:
            data = b""
        manifest = try_parse_manifest(data, str(manifest_path)) if data else None
        internal_name = manifest.header.name if manifest else None
        if internal_name is None:
            fields = _read_name_fields(manifest_path)
            internal_name = fields.name if fields else None

    lang_path = pack_path / LANG_FILE
    if internal_name and lang_path.is_file():
        key = f"skinpack.{internal_name}="
        try:
            lines = lang_path.read_text(encoding="utf-8-sig", errors="replace").splitlines()
        except OSError:
            lines = []
        for line in lines:
            if line.startswith(key):
                return line[len(key):]

    skins_path = pack_path / SKINS_FILENAME
    if skins_path.is_file():
        fields = _read_name_fields(skins_path)
        if fields:
            return fields.localization_name or fields.serialize_name

    return None


def list_premium_cache_packs(roaming: str | Path | None = None) -> list[PremiumCachePack]:
    """Cached Marketplace skin packs, sorted by display name."""
    cache = premium_cache_dir(roaming)
    if not cache.is_dir():
        raise ConfigurationError(
            "Premium cache folder not found. Open Minecraft and visit the skin packs section first."
        )

    packs = []
    for folder in cache.iterdir():
        if not folder.is_dir():
            continue
        packs.append(
            PremiumCachePack(
                folder_name=folder.name,
                display_name=premium_pack_display_name(folder) or folder.name,
                path=folder,
            )
        )
    packs.sort(key=lambda p: p.display_name)
    return packs


def import_4d_skin_to_premium(
    skin_pack_path: str | Path,
    premium_pack_path: str | Path,
    roaming: str | Path | None = None,
) -> list[str]:
    """Copy a 4D skin pack over a cached premium pack. Returns the names copied.

    The premium pack's ``texts`` folder is removed and its manifest.json is
    kept. Folders from the skin pack replace same-named folders; files
    overwrite.
    """
    skin_path = Path(skin_pack_path)
    premium_path = Path(premium_pack_path)

    allowed = premium_cache_dir(roaming).resolve()
    if not premium_path.resolve().is_relative_to(allowed):
        raise PackSecurityError(
            f"Premium pack path is outside the premium cache skin_packs directory: {premium_path}"
        )
    if not skin_path.is_dir():
        raise FileNotFoundError(f"4D skin pack folder does not exist: {skin_path}")
    if not premium_path.is_dir():
        raise FileNotFoundError(f"Premium pack folder does not exist: {premium_path}")

    texts = premium_path / "texts"
    if texts.exists():
        shutil.rmtree(texts)
        _log.info("Removed texts folder from %s", premium_path.name)

    copied = []
    for src in sorted(skin_path.iterdir()):
        if src.name == MANIFEST_FILENAME:
            continue
        dst = premium_path / src.name
        if src.is_dir():
            if dst.exists():
                shutil.rmtree(dst)
            shutil.copytree(src, dst)
        else:
            shutil.copy2(src, dst)
        copied.append(src.name)

    _log.info("Imported %s into %s (%d entries)", skin_path.name, premium_path.name, len(copied))
    return copied
