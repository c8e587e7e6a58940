"""
Tests for manifest.json parsing and pack type detection.
"""

import json

import pytest

from pack_manifest import parse_manifest, try_parse_manifest
from pack_types import PackType
from tests.conftest import manifest


@pytest.mark.parametrize(
    "module_type, expected",
    [
        ("data", PackType.BEHAVIOR_PACK),
        ("script", PackType.BEHAVIOR_PACK),
        ("resources", PackType.RESOURCE_PACK),
        ("world_template", PackType.WORLD_TEMPLATE),
        ("skin_pack", PackType.SKIN_PACK),
    ],
)
def test_pack_type_from_module(module_type, expected):
    assert parse_manifest(manifest(module_type).encode()).pack_type == expected


def test_first_recognised_module_wins():
    data = {
        "header": {"name": "X"},
        "modules": [{"type": "client_data"}, {"type": "resources"}, {"type": "data"}],
    }
    assert parse_manifest(json.dumps(data).encode()).pack_type == PackType.RESOURCE_PACK


def test_script_engine_capability_means_behavior():
    m = parse_manifest(manifest(None, name="Thing", capabilities=["scriptEngineVersion"]).encode())
    assert m.pack_type == PackType.BEHAVIOR_PACK


def test_header_name_fallback():
    assert parse_manifest(manifest(None, name="My Behaviour Stuff").encode()).pack_type == (
        PackType.BEHAVIOR_PACK
    )
    assert parse_manifest(manifest(None, name="Plain").encode()).pack_type == PackType.UNKNOWN


def test_version_array_and_string():
    assert parse_manifest(manifest(version=(1, 2, 0)).encode()).version == "1.2.0"
    assert parse_manifest(manifest(version="3.1").encode()).version == "3.1"
    assert parse_manifest(manifest(version=None).encode()).version is None


def test_uuid_and_world_template_flag():
    m = parse_manifest(manifest("world_template", uuid="abc").encode())
    assert m.uuid == "abc"
    assert m.declares_world_template


def test_bom_is_accepted():
    data = b"\xef\xbb\xbf" + manifest("resources").encode()
    assert parse_manifest(data).pack_type == PackType.RESOURCE_PACK


def test_odd_field_types_are_tolerated():
    data = {"header": {"name": 5, "uuid": ["x"], "version": [1, "a", 2]}, "modules": "nope"}
    m = parse_manifest(json.dumps(data).encode())
    assert m.header.name is None
    assert m.uuid is None
    assert m.version == "1.2"
    assert m.modules == []


def test_try_parse_manifest_returns_none_for_garbage():
    assert try_parse_manifest(b"{not json") is None
    assert try_parse_manifest(b"[1, 2]") is None
    assert try_parse_manifest(b"\xff\xfe\x00") is None
