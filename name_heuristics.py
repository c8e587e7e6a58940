"""
Name and version heuristics for pack files and installed pack folders.

Creators label their downloads inconsistently ("Foo v2", "Foo.2.1 (ADDON)",
"Foo 3"), so identity without a manifest uuid falls back to a *base name*:
the display name lower-cased, with one bracketed type tag and one trailing
version token removed. Versions are pulled out of names with an ordered
list of patterns; narrow, anchored patterns are tried first and the first
hit wins.
"""

from __future__ import annotations

import re
from typing import Optional

from pack_types import TYPE_SUFFIXES

PACK_EXTENSIONS = (".mcpack", ".mcaddon", ".mctemplate")
ARCHIVE_EXTENSIONS = PACK_EXTENSIONS + (".zip", ".7z", ".rar")

# Words that may appear in a trailing "(...)" tag to label the pack type.
TYPE_TAG_WORDS = (
    "addon",
    "add-on",
    "behavior",
    "behaviour",
    "resource",
    "resources",
    "bp",
    "rp",
    "skin",
    "skins",
    "skin_pack",
    "template",
    "world_template",
    "mashup",
    "mash-up",
)

_TYPE_TAGS = sorted(
    [f" ({w})" for w in TYPE_TAG_WORDS] + [f"({w})" for w in TYPE_TAG_WORDS],
    key=len,
    reverse=True,
)

# Tags written by the installer, matched case-sensitively in upper and lower form
_FOLDER_TAGS = sorted(
    {
        tag
        for suffix in TYPE_SUFFIXES.values()
        if suffix
        for tag in (suffix, suffix.strip(), suffix.lower(), suffix.strip().lower())
    },
    key=len,
    reverse=True,
)

MASHUP_MARKERS = ("mashup", "mash-up", "mash up")

_TRAILING_VERSION_PATTERNS = (
    re.compile(r"\s+v?\.\d+(\.\d+)*$"),
    re.compile(r"\s+v\d+(\.\d+)*$"),
    re.compile(r"\s+\d+(\.\d+)+$"),
    re.compile(r"\s+\d+$"),
)

_VERSION_PATTERNS = (
    re.compile(r"(?<!\d)v?\.(\d+(?:\.\d+)*)"),  # "v.1.0.1", ".1.0.1"
    re.compile(r"v(\d+(?:\.\d+)*)"),  # "v1.0.1"
    re.compile(r"\s(\d+(?:\.\d+)+)\s*\("),  # " 1.8.1 ("
    re.compile(r"\s(\d+(?:\.\d+)+)$"),  # " 1.8.1" at the end
    re.compile(r"\s(\d+)\s*\("),  # " 1 ("
    re.compile(r"\s(\d+(?:\.\d+)*)\s"),  # " 1.1 "
)


def strip_type_tag(name: str) -> str:
    """Remove the longest trailing type tag, ignoring case. Only one tag is removed."""
    lower = name.lower()
    for tag in _TYPE_TAGS:
        if lower.endswith(tag):
            return name[: len(name) - len(tag)]
    return name


def strip_folder_suffix(name: str) -> str:
    """Remove one installer-written suffix such as " (ADDON)" (case-sensitive)."""
    for tag in _FOLDER_TAGS:
        if name.endswith(tag):
            return name[: len(name) - len(tag)]
    return name


def clean_pack_name(stem: str) -> str:
    """Display name for an archive: its filename stem without a type tag."""
    return strip_type_tag(stem).strip()


def is_mashup_name(name: str) -> bool:
    lower = name.lower()
    return any(marker in lower for marker in MASHUP_MARKERS)


def base_name(display_name: str) -> str:
    """Version-independent identity key for a pack name.

    >>> base_name("Foo Pack v2.1 (ADDON)")
    'foo pack'
    """
    cleaned = strip_type_tag(display_name.lower()).strip()
    for pattern in _TRAILING_VERSION_PATTERNS:
        stripped = pattern.sub("", cleaned, count=1)
        if stripped != cleaned:
            cleaned = stripped
            break
    return cleaned.strip()


def extract_version(name: str) -> Optional[str]:
    """Best-effort version string from a pack or folder name."""
    lower = name.lower()
    for pattern in _VERSION_PATTERNS:
        match = pattern.search(lower)
        if match:
            return match.group(1)
    return None


def strip_archive_extension(name: str) -> str:
    lower = name.lower()
    for ext in ARCHIVE_EXTENSIONS:
        if lower.endswith(ext):
            return name[: len(name) - len(ext)]
    return name


def extract_version_from_path(path: str) -> Optional[str]:
    """Version from the last component of a file or folder path.

    Tries the bare name first, then the name with one installer suffix removed.
    """
    name = re.split(r"[\\/]", str(path))[-1]
    name = strip_archive_extension(name)

    version = extract_version(name)
    if version is not None:
        return version

    return extract_version(strip_folder_suffix(name))
