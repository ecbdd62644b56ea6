"""Matching installed mod files against configured mods and registry releases.

Registry names and on-disk filenames rarely agree exactly: authors mix
spaces, underscores and dashes, and "Mod" on the registry may be "Mods" in
the jar name. Identity is decided by a loose containment match that tolerates
this; version equality requires the normalized filename stems to be equal.
"""

import logging
from typing import Callable, Iterable

from .api import RegistryProject, ReleaseFile
from .config import ModEntry

logger = logging.getLogger(__name__)

ARCHIVE_EXTENSIONS = (".jar", ".zip")


def normalize(value: str) -> str:
    """Lower-case and drop every character that is not a letter or digit."""
    return "".join(ch for ch in value.lower() if ch.isalnum())


def strip_archive_extension(value: str) -> str:
    """Remove a trailing .jar/.zip extension (case-insensitive)."""
    if value.lower().endswith(ARCHIVE_EXTENSIONS):
        return value[:-4]
    return value


def has_archive_extension(value: str) -> bool:
    return value.lower().endswith(ARCHIVE_EXTENSIONS)


def _add_key(keys: list[str], value: str | None) -> None:
    if value and value.strip():
        keys.append(value)


def build_match_keys(entry: ModEntry, project: RegistryProject) -> list[str]:
    """
    Collect candidate names for a configured mod.

    Order: configured name, registry slug, registry display name, then each
    release file's name and display name. Duplicates are kept here and
    dropped in find_local_file.
    """
    keys: list[str] = []
    _add_key(keys, entry.name)
    _add_key(keys, project.slug)
    _add_key(keys, project.name)
    for release in project.latest_files:
        _add_key(keys, release.file_name)
        _add_key(keys, release.display_name)
    return keys


def _plural_variants(value: str) -> list[str]:
    variants = [value]
    if value.endswith("ies") and len(value) > 3:
        variants.append(value[:-3] + "y")
    if value.endswith("es") and len(value) > 2:
        variants.append(value[:-2])
    if value.endswith("s") and len(value) > 1:
        variants.append(value[:-1])
    return variants


def loose_match(normalized_file_name: str, normalized_key: str) -> bool:
    """Containment match in either direction, tolerant of plural drift."""
    if normalized_key in normalized_file_name or normalized_file_name in normalized_key:
        return True
    if any(v in normalized_file_name for v in _plural_variants(normalized_key)):
        return True
    return any(v in normalized_key for v in _plural_variants(normalized_file_name))


def _normalized_keys(match_keys: Iterable[str]) -> list[str]:
    """Normalize, drop blanks and de-duplicate while keeping first-seen order."""
    seen: set[str] = set()
    keys: list[str] = []
    for key in match_keys:
        if not key or not key.strip():
            continue
        normalized = normalize(key)
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        keys.append(normalized)
    return keys


def file_name_of(path: str) -> str:
    """Last path segment after '/' or '\\'."""
    return path.replace("\\", "/").rsplit("/", 1)[-1]


def find_local_file(
    installed_files: list[str],
    match_keys: Iterable[str],
    get_file_name: Callable[[str], str] = file_name_of,
) -> str | None:
    """
    Return the first installed file whose name loosely matches any key.

    The listing order decides ties; candidates are not scored.
    """
    keys = _normalized_keys(match_keys)
    if not keys:
        return None

    for path in installed_files:
        normalized_name = normalize(get_file_name(path))
        if any(loose_match(normalized_name, k) for k in keys):
            logger.debug("Matched local file %s using keys %s", path, keys)
            return path
    return None


def build_latest_file_names(project: RegistryProject) -> list[str]:
    """File names and display names of every release file, de-duplicated."""
    seen: set[str] = set()
    names: list[str] = []
    for release in project.latest_files:
        for name in (release.file_name, release.display_name):
            if not name or not name.strip() or name.lower() in seen:
                continue
            seen.add(name.lower())
            names.append(name)
    return names


def is_up_to_date(local_file_name: str, latest_file_names: list[str]) -> bool:
    """True if the local file's normalized stem equals any release's stem."""
    if not latest_file_names:
        return False

    local = normalize(strip_archive_extension(local_file_name))
    if not local:
        return False

    for candidate in latest_file_names:
        normalized = normalize(strip_archive_extension(candidate))
        if normalized and normalized == local:
            return True
    return False


def select_latest_file(files: list[ReleaseFile]) -> ReleaseFile | None:
    """Release file with the newest file_date; the first one wins on ties."""
    if not files:
        return None
    return max(files, key=lambda f: f.file_date)
