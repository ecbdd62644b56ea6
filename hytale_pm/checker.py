"""Classify configured mods against installed files and the registry."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

from .api import CurseForgeAPI, RegistryError
from .config import ModEntry
from .matcher import (
    build_latest_file_names,
    build_match_keys,
    find_local_file,
    is_up_to_date,
    select_latest_file,
)
from .storage import FileStorage

logger = logging.getLogger(__name__)

# progress callback: (event_type, percentage 0-1, message)
ProgressCallback = Callable[[str, float, str], None]


class CheckStatus(str, Enum):
    REGISTRY_ERROR = "registry_error"
    NO_RELEASE_FILES = "no_release_files"
    NOT_INSTALLED = "not_installed"
    UP_TO_DATE = "up_to_date"
    UPDATE_AVAILABLE = "update_available"
    ERROR = "error"

    @property
    def is_error(self) -> bool:
        return self in (CheckStatus.REGISTRY_ERROR, CheckStatus.NO_RELEASE_FILES, CheckStatus.ERROR)

    @property
    def is_actionable(self) -> bool:
        return self in (CheckStatus.UPDATE_AVAILABLE, CheckStatus.NOT_INSTALLED)


@dataclass(frozen=True)
class CheckResult:
    mod_name: str
    project_id: int
    status: CheckStatus
    latest_version: str | None = None
    latest_file_date: datetime | None = None
    download_url: str | None = None
    local_file: str | None = None
    match_keys: tuple[str, ...] = field(default_factory=tuple)
    message: str = ""


def _noop_progress(event: str, pct: float, msg: str) -> None:
    pass


class ModChecker:
    """Produces one CheckResult per configured mod."""

    def __init__(self, api: CurseForgeAPI, mods: list[ModEntry]):
        self.api = api
        self.mods = mods

    def check_mods(
        self,
        mods_dir: str,
        storage: FileStorage,
        on_progress: ProgressCallback | None = None,
    ) -> list[CheckResult]:
        """
        Check every configured mod against the files in mods_dir.

        Listing mods_dir happens once up front; if it fails the whole check
        fails. Failures for an individual mod are recorded on its result and
        never stop the remaining mods.
        """
        progress = on_progress or _noop_progress

        progress("scan", 0.0, f"Scanning {mods_dir} for mod files")
        installed = storage.list_mod_files(mods_dir)
        logger.info("Scan complete: %d mod files found in %s", len(installed), mods_dir)

        results: list[CheckResult] = []
        total = len(self.mods)
        for i, mod in enumerate(self.mods):
            progress("check", i / total if total else 1.0, f"Checking: {mod.name}")
            try:
                result = self.check_mod(mod, installed, storage)
            except Exception as e:
                logger.exception(
                    "Error while checking mod %s (project_id=%s)", mod.name, mod.project_id
                )
                result = CheckResult(
                    mod_name=mod.name,
                    project_id=mod.project_id,
                    status=CheckStatus.ERROR,
                    message=str(e) or type(e).__name__,
                )
            results.append(result)

        progress("done", 1.0, f"Checked {total} mods")
        return results

    def check_mod(
        self, mod: ModEntry, installed: list[str], storage: FileStorage
    ) -> CheckResult:
        logger.info("Checking mod %s (project_id=%s)", mod.name, mod.project_id)

        try:
            project = self.api.get_mod(mod.project_id)
        except RegistryError as e:
            logger.warning("Registry error for project_id %s: %s", mod.project_id, e)
            return CheckResult(
                mod_name=mod.name,
                project_id=mod.project_id,
                status=CheckStatus.REGISTRY_ERROR,
                message=str(e),
            )

        if project is None:
            logger.warning("No mod data returned for project_id %s", mod.project_id)
            return CheckResult(
                mod_name=mod.name,
                project_id=mod.project_id,
                status=CheckStatus.REGISTRY_ERROR,
                message="Could not fetch mod information from CurseForge",
            )

        latest = select_latest_file(project.latest_files)
        if latest is None:
            logger.warning("No files found for project_id %s", mod.project_id)
            return CheckResult(
                mod_name=mod.name,
                project_id=mod.project_id,
                status=CheckStatus.NO_RELEASE_FILES,
                message="No files found for this mod",
            )

        match_keys = build_match_keys(mod, project)
        logger.debug("Match keys for %s: %s", mod.name, match_keys)
        local_path = find_local_file(installed, match_keys, storage.get_file_name)
        local_file = storage.get_file_name(local_path) if local_path else None
        logger.info("Local file match for %s: %s", mod.name, local_file or "none")

        if local_file is None:
            status = CheckStatus.NOT_INSTALLED
        else:
            latest_names = build_latest_file_names(project)
            if is_up_to_date(local_file, latest_names):
                status = CheckStatus.UP_TO_DATE
            else:
                status = CheckStatus.UPDATE_AVAILABLE
            logger.info(
                "%s: %s (local=%s, latest=%s)",
                mod.name,
                status.value,
                local_file,
                ", ".join(latest_names),
            )

        return CheckResult(
            mod_name=mod.name,
            project_id=mod.project_id,
            status=status,
            latest_version=latest.display_name or latest.file_name,
            latest_file_date=latest.file_date,
            download_url=latest.download_url,
            local_file=local_file,
            match_keys=tuple(match_keys),
        )


def summarize(results: list[CheckResult]) -> dict[CheckStatus, int]:
    """Count results per status."""
    counts = {status: 0 for status in CheckStatus}
    for result in results:
        counts[result.status] += 1
    return counts
