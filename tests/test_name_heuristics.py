"""
Tests for pack name cleanup, base names and version extraction.
"""

import pytest

from name_heuristics import (
    base_name,
    clean_pack_name,
    extract_version,
    extract_version_from_path,
    is_mashup_name,
    strip_archive_extension,
    strip_folder_suffix,
    strip_type_tag,
)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Foo Pack v2.1 (ADDON)", "foo pack"),
        ("Foo Pack 1.0 (ADDON)", "foo pack"),
        ("Foo Pack 2.0 (addon)", "foo pack"),
        ("Foo Pack v3", "foo pack"),
        ("Foo Pack 3", "foo pack"),
        ("Foo Pack .1.2", "foo pack"),
        ("Foo Pack", "foo pack"),
        ("Foo Pack (RESOURCE)", "foo pack"),
    ],
)
def test_base_name(name, expected):
    assert base_name(name) == expected


def test_base_name_strips_only_one_version_token():
    assert base_name("Foo 1 2") == "foo 1"


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Foo v1.2.3", "1.2.3"),
        ("Foo v.1.0.1", "1.0.1"),
        ("Foo 1.8.1 (ADDON)", "1.8.1"),
        ("Foo 1.8.1", "1.8.1"),
        ("Foo 2 (ADDON)", "2"),
        ("Foo 1.1 Edition", "1.1"),
        ("Foo Pack", None),
        ("Foo (ADDON)", None),
    ],
)
def test_extract_version(name, expected):
    assert extract_version(name) == expected


def test_extract_version_from_path_uses_last_component():
    assert extract_version_from_path("/downloads/v9 stuff/Foo 1.2.mcaddon") == "1.2"
    assert extract_version_from_path(r"C:\packs\Foo v3.mcpack") == "3"
    assert extract_version_from_path("/games/behavior_packs/Foo 2.0 (ADDON)") == "2.0"
    assert extract_version_from_path("/games/behavior_packs/Foo (ADDON)") is None


def test_strip_type_tag_removes_one_tag_case_insensitively():
    assert strip_type_tag("Foo (Addon)") == "Foo"
    assert strip_type_tag("Foo(BP)") == "Foo"
    assert strip_type_tag("Foo (RP) (BP)") == "Foo (RP)"
    assert strip_type_tag("Foo (Extra)") == "Foo (Extra)"


def test_strip_folder_suffix():
    assert strip_folder_suffix("Foo (ADDON)") == "Foo"
    assert strip_folder_suffix("Foo (template)") == "Foo"
    assert strip_folder_suffix("Foo (Addon)") == "Foo (Addon)"
    assert strip_folder_suffix("Foo") == "Foo"


def test_clean_pack_name():
    assert clean_pack_name("Cool Mobs (ADDON)") == "Cool Mobs"
    assert clean_pack_name("Cool Mobs v2") == "Cool Mobs v2"


def test_is_mashup_name():
    assert is_mashup_name("Halloween Mash-up")
    assert is_mashup_name("CHRISTMAS MASHUP")
    assert is_mashup_name("Greek Mash Up Pack")
    assert not is_mashup_name("Smash Bros")


def test_strip_archive_extension():
    assert strip_archive_extension("Foo.MCADDON") == "Foo"
    assert strip_archive_extension("Foo.7z") == "Foo"
    assert strip_archive_extension("Foo.txt") == "Foo.txt"
