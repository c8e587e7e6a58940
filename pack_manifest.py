"""
Bedrock ``manifest.json`` schema.

Every behavior, resource, skin and world-template pack carries a
``manifest.json`` describing it. Only the parts the pack engine needs are
modelled here; anything else in the file is ignored.

    {
        "format_version": 2,
        "header": {
            "name": "My Addon",
            "uuid": "0f6b...",
            "version": [1, 2, 0]          <- or the string "1.2.0"
        },
        "modules": [
            {"type": "data", "uuid": "...", "version": [1, 2, 0]}
        ]
    }

The pack type comes from the first module with a recognised ``type``. Packs
whose modules say nothing useful fall back to the ``scriptEngineVersion``
capability and finally to words in the header name.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from pack_types import PackType

MANIFEST_FILENAME = "manifest.json"

MODULE_TYPES = {
    "data": PackType.BEHAVIOR_PACK,
    "script": PackType.BEHAVIOR_PACK,
    "resources": PackType.RESOURCE_PACK,
    "world_template": PackType.WORLD_TEMPLATE,
    "skin_pack": PackType.SKIN_PACK,
}

BEHAVIOR_NAME_MARKERS = ("behavior", "behaviour", "addon")

_log = logging.getLogger(__name__)


def _str_or_none(v: Any) -> Optional[str]:
    return v if isinstance(v, str) else None


class ManifestModule(BaseModel):
    type: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _only_strings(cls, v: Any) -> Optional[str]:
        return _str_or_none(v)


class ManifestHeader(BaseModel):
    name: Optional[str] = None
    uuid: Optional[str] = None
    version: Optional[str] = None
    capabilities: list[str] = Field(default_factory=list)

    @field_validator("name", "uuid", mode="before")
    @classmethod
    def _only_strings(cls, v: Any) -> Optional[str]:
        return _str_or_none(v)

    @field_validator("version", mode="before")
    @classmethod
    def _join_version(cls, v: Any) -> Optional[str]:
        # [1, 2, 0] -> "1.2.0"; non-integer array items are dropped
        if isinstance(v, list):
            return ".".join(
                str(n) for n in v if isinstance(n, int) and not isinstance(n, bool) and n >= 0
            )
        return _str_or_none(v)

    @field_validator("capabilities", mode="before")
    @classmethod
    def _string_capabilities(cls, v: Any) -> list[str]:
        if not isinstance(v, list):
            return []
        return [c for c in v if isinstance(c, str)]


class PackManifest(BaseModel):
    """Parsed contents of a pack's manifest.json."""

    header: ManifestHeader = Field(default_factory=ManifestHeader)
    modules: list[ManifestModule] = Field(default_factory=list)

    @field_validator("header", mode="before")
    @classmethod
    def _header_object(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else {}

    @field_validator("modules", mode="before")
    @classmethod
    def _module_objects(cls, v: Any) -> list[Any]:
        if not isinstance(v, list):
            return []
        return [m for m in v if isinstance(m, dict)]

    @property
    def uuid(self) -> Optional[str]:
        return self.header.uuid

    @property
    def version(self) -> Optional[str]:
        return self.header.version

    @property
    def declares_world_template(self) -> bool:
        return any(m.type == "world_template" for m in self.modules)

    @property
    def pack_type(self) -> PackType:
        for module in self.modules:
            if module.type in MODULE_TYPES:
                return MODULE_TYPES[module.type]

        if "scriptEngineVersion" in self.header.capabilities:
            return PackType.BEHAVIOR_PACK

        name = (self.header.name or "").lower()
        if any(marker in name for marker in BEHAVIOR_NAME_MARKERS):
            return PackType.BEHAVIOR_PACK

        return PackType.UNKNOWN


def parse_manifest(data: bytes) -> PackManifest:
    """Parse raw manifest bytes.

    Raises ``json.JSONDecodeError`` / ``UnicodeDecodeError`` for unreadable
    bytes and ``pydantic.ValidationError`` when the top level is not an object.
    """
    return PackManifest.model_validate(json.loads(data.decode("utf-8-sig")))


def try_parse_manifest(data: bytes, source: str = "manifest.json") -> PackManifest | None:
    """Like :func:`parse_manifest` but returns ``None`` for a broken manifest."""
    try:
        return parse_manifest(data)
    except (ValueError, ValidationError) as exc:
        _log.debug("Ignoring unreadable manifest %s: %s", source, exc)
        return None
