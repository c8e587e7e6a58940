"""
Uniform read access to pack archives.

``.mcpack`` / ``.mcaddon`` / ``.mctemplate`` files are plain zip archives.
Packs are also commonly passed around re-zipped, 7-zipped or rar'ed, so the
same interface covers ``.zip``, ``.7z`` and ``.rar``. Entry names are always
reported with forward slashes.
"""

from __future__ import annotations

import shutil
import stat
import sys
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

import py7zr
import rarfile

from errors import ArchiveError

if getattr(sys, "frozen", False):
    _unrar = Path(sys._MEIPASS) / "UnRAR.exe"
else:
    _unrar = Path(__file__).parent / "assets" / "UnRAR.exe"
if _unrar.exists():
    rarfile.UNRAR_TOOL = str(_unrar)


@dataclass(frozen=True)
class ArchiveEntry:
    name: str  # forward-slash path inside the archive
    raw_name: str  # name exactly as stored, used for member lookups
    is_dir: bool
    is_symlink: bool


def _zip_is_symlink(info: zipfile.ZipInfo) -> bool:
    return stat.S_ISLNK(info.external_attr >> 16)


class PackArchive:
    """An open archive. Use as a context manager."""

    def __init__(self, filepath: str | Path):
        self.filepath = Path(filepath)
        self.kind = self._kind_for(self.filepath)
        self._handle = None
        self._entries: list[ArchiveEntry] | None = None
        self._by_name: dict[str, ArchiveEntry] = {}

        try:
            if self.kind == "7z":
                self._handle = py7zr.SevenZipFile(self.filepath, "r")
            elif self.kind == "rar":
                self._handle = rarfile.RarFile(self.filepath, "r")
            else:
                self._handle = zipfile.ZipFile(self.filepath, "r")
        except (OSError, zipfile.BadZipFile, py7zr.Bad7zFile, rarfile.Error) as exc:
            raise ArchiveError(f"Failed to read archive {self.filepath.name}: {exc}") from exc

    @staticmethod
    def _kind_for(filepath: Path) -> str:
        ext = filepath.suffix.lower()
        if ext == ".7z":
            return "7z"
        if ext == ".rar":
            return "rar"
        # Unknown extensions are tried as zip; pack files are zips in disguise
        return "zip"

    def __enter__(self) -> PackArchive:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    # ── Listing ───────────────────────────────────────────────────────

    def entries(self) -> list[ArchiveEntry]:
        if self._entries is None:
            self._entries = self._load_entries()
            for entry in self._entries:
                self._by_name.setdefault(entry.name, entry)
        return self._entries

    def _load_entries(self) -> list[ArchiveEntry]:
        entries = []
        if self.kind == "zip":
            for info in self._handle.infolist():
                name = info.filename.replace("\\", "/")
                entries.append(
                    ArchiveEntry(
                        name=name,
                        raw_name=info.filename,
                        is_dir=name.endswith("/"),
                        is_symlink=_zip_is_symlink(info),
                    )
                )
        elif self.kind == "7z":
            for f in self._handle.files:
                name = f.filename.replace("\\", "/")
                entries.append(
                    ArchiveEntry(
                        name=name + "/" if f.is_directory and not name.endswith("/") else name,
                        raw_name=f.filename,
                        is_dir=f.is_directory,
                        is_symlink=f.is_symlink,
                    )
                )
        else:
            for info in self._handle.infolist():
                name = info.filename.replace("\\", "/")
                entries.append(
                    ArchiveEntry(
                        name=name + "/" if info.is_dir() and not name.endswith("/") else name,
                        raw_name=info.filename,
                        is_dir=info.is_dir(),
                        is_symlink=info.is_symlink(),
                    )
                )
        return entries

    def names(self) -> list[str]:
        return [e.name for e in self.entries()]

    def get(self, name: str) -> ArchiveEntry | None:
        self.entries()
        return self._by_name.get(name)

    # ── Reading ───────────────────────────────────────────────────────

    def read(self, name: str) -> bytes:
        """Read a member into memory by its forward-slash name."""
        entry = self.get(name)
        if entry is None:
            raise ArchiveError(f"{name} not found in {self.filepath.name}")
        with self.open(entry) as fh:
            try:
                return fh.read()
            except (OSError, zlib.error, zipfile.BadZipFile, rarfile.Error) as exc:
                raise ArchiveError(f"Failed to read {name}: {exc}") from exc

    def copy_member(self, entry: ArchiveEntry, dst: BinaryIO, buffer_size: int) -> None:
        """Stream a member into an open file. Corrupt data raises ArchiveError."""
        with self.open(entry) as src:
            try:
                shutil.copyfileobj(src, dst, buffer_size)
            except (zlib.error, zipfile.BadZipFile, rarfile.Error) as exc:
                raise ArchiveError(f"Failed to extract {entry.name}: {exc}") from exc

    def open(self, entry: ArchiveEntry) -> BinaryIO:
        """Open a member for streaming."""
        try:
            if self.kind == "7z":
                # py7zr reads are one-shot; rewind the archive before each one
                self._handle.reset()
                results = self._handle.read(targets=[entry.raw_name])
                data = results.get(entry.raw_name)
                if data is None:
                    raise ArchiveError(f"{entry.name} not found in {self.filepath.name}")
                return data
            return self._handle.open(entry.raw_name)
        except (
            OSError,
            RuntimeError,
            NotImplementedError,
            zipfile.BadZipFile,
            py7zr.Bad7zFile,
            rarfile.Error,
        ) as exc:
            raise ArchiveError(f"Failed to read {entry.name}: {exc}") from exc
