import pytest

from hytale_pm.config import ModEntry
from hytale_pm.matcher import (
    build_latest_file_names,
    build_match_keys,
    file_name_of,
    find_local_file,
    is_up_to_date,
    loose_match,
    normalize,
    select_latest_file,
    strip_archive_extension,
)

from conftest import project, release


@pytest.mark.parametrize(
    "value,expected",
    [
        ("My Mod", "mymod"),
        ("Better_Entities-1.2.3", "betterentities123"),
        ("ÄÖü", "äöü"),
        ("", ""),
        ("---___", ""),
    ],
)
def test_normalize(value, expected):
    assert normalize(value) == expected


@pytest.mark.parametrize("value", ["Hello World!", "a.b_c-d", "İstanbul", "  ", "MOD (v2).JAR"])
def test_normalize_is_idempotent(value):
    once = normalize(value)
    assert normalize(once) == once
    assert all(ch.isalnum() for ch in once)


def test_loose_match_plural_variants():
    assert loose_match("mods", "mod")
    assert loose_match("mod", "mods")
    assert loose_match("entities", "entity")
    assert loose_match("entity", "entities")
    assert loose_match("apple", "banana") is False


def test_loose_match_es_variant():
    # "boxes" -> "box" via the "es" variant
    assert loose_match("box", "boxes")
    assert loose_match("boxes12", "box")


def test_loose_match_containment():
    assert loose_match("coolmod120", "coolmod")
    assert loose_match("coolmod", "coolmod120")
    assert not loose_match("coolmod", "othermod")


def test_loose_match_requires_shared_text():
    assert not loose_match("entities", "entry")
    assert not loose_match("s", "mod")


def test_build_match_keys_order_and_blanks():
    entry = ModEntry(name="Cool Mod", project_id=1)
    proj = project(
        "cool-mod",
        "Cool Mod Official",
        [release("coolmod-1.1.jar", display_name="Cool Mod 1.1"), release("coolmod-1.0.jar", display_name="  ")],
    )
    keys = build_match_keys(entry, proj)
    assert keys == [
        "Cool Mod",
        "cool-mod",
        "Cool Mod Official",
        "coolmod-1.1.jar",
        "Cool Mod 1.1",
        "coolmod-1.0.jar",
    ]


def test_find_local_file_first_match_wins():
    files = ["/mods/alpha.jar", "/mods/coolmod-1.0.jar", "/mods/coolmod-extra.jar"]
    assert find_local_file(files, ["Cool Mod"]) == "/mods/coolmod-1.0.jar"


def test_find_local_file_any_key_matches():
    files = ["/mods/alpha.jar", "/mods/zeta-widgets.zip"]
    assert find_local_file(files, ["Nothing", "Zeta Widget"]) == "/mods/zeta-widgets.zip"


def test_find_local_file_none():
    assert find_local_file([], ["Cool Mod"]) is None
    assert find_local_file(["/mods/alpha.jar"], ["beta"]) is None
    assert find_local_file(["/mods/alpha.jar"], []) is None
    assert find_local_file(["/mods/alpha.jar"], ["", "  ", "!!!"]) is None


def test_find_local_file_windows_paths():
    files = ["C:\\server\\mods\\CoolMod.jar"]
    assert find_local_file(files, ["cool mod"]) == files[0]


def test_file_name_of():
    assert file_name_of("/a/b/c.jar") == "c.jar"
    assert file_name_of("C:\\a\\b.zip") == "b.zip"
    assert file_name_of("plain.jar") == "plain.jar"


def test_strip_archive_extension():
    assert strip_archive_extension("mod.JAR") == "mod"
    assert strip_archive_extension("mod.zip") == "mod"
    assert strip_archive_extension("mod.tar") == "mod.tar"


def test_is_up_to_date_case_and_extension_insensitive():
    assert is_up_to_date("MyMod_1.2.jar", ["mymod_1.2.ZIP"])
    assert is_up_to_date("MyMod 1.2.jar", ["mymod-1.2"])


def test_is_up_to_date_differing_stems():
    assert not is_up_to_date("MyMod_1.1.jar", ["MyMod_1.2.jar"])
    # containment is not enough for version identity
    assert not is_up_to_date("MyMod_1.2.jar", ["MyMod_1.2.1.jar"])


def test_is_up_to_date_empty_inputs():
    assert not is_up_to_date("MyMod.jar", [])
    assert not is_up_to_date(".jar", ["jar"])
    assert not is_up_to_date("MyMod.jar", ["", "---"])


def test_build_latest_file_names_dedupes():
    proj = project(
        "m",
        "M",
        [
            release("M-1.0.jar", display_name="M-1.0.jar"),
            release("m-1.0.JAR", day=2, display_name="M 1.0"),
        ],
    )
    assert build_latest_file_names(proj) == ["M-1.0.jar", "M 1.0"]


def test_select_latest_file():
    old = release("a.jar", day=1)
    new = release("b.jar", day=5)
    tie = release("c.jar", day=5)
    assert select_latest_file([old, new, tie]) is new
    assert select_latest_file([]) is None
