"""
Shared fixtures and helpers for the Blocksmith test suite.
"""

import json
import zipfile
from pathlib import Path

import pytest

from settings_store import AppSettings, AppState


def make_zip(path: Path, members: dict) -> Path:
    """Write a zip at ``path``. Values are str/bytes contents; a name ending in "/" is a directory."""
    with zipfile.ZipFile(path, "w") as zf:
        for member, data in members.items():
            zf.writestr(member, data)
    return path


def manifest(
    module_type: str | None = "data",
    name: str = "Test Pack",
    uuid: str | None = "11111111-1111-1111-1111-111111111111",
    version=(1, 0, 0),
    capabilities=None,
) -> str:
    """JSON text of a minimal manifest.json."""
    header = {"name": name}
    if uuid is not None:
        header["uuid"] = uuid
    if version is not None:
        header["version"] = list(version) if isinstance(version, tuple) else version
    if capabilities is not None:
        header["capabilities"] = capabilities
    modules = [{"type": module_type, "uuid": "22222222-2222-2222-2222-222222222222"}]
    return json.dumps(
        {
            "format_version": 2,
            "header": header,
            "modules": modules if module_type else [],
        }
    )


@pytest.fixture
def pack_roots(tmp_path):
    """Fresh per-type install roots plus a download folder."""
    roots = {
        "behavior_pack_path": tmp_path / "game" / "behavior_packs",
        "resource_pack_path": tmp_path / "game" / "resource_packs",
        "skin_pack_path": tmp_path / "game" / "skin_packs",
        "world_template_path": tmp_path / "game" / "world_templates",
        "scan_location": tmp_path / "downloads",
    }
    for path in roots.values():
        path.mkdir(parents=True)
    return roots


@pytest.fixture
def settings(pack_roots):
    return AppSettings(**{k: str(v) for k, v in pack_roots.items()})


@pytest.fixture
def app_state(settings, tmp_path):
    return AppState(settings, tmp_path / "config" / "settings.json")
