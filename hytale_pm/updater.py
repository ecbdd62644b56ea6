"""Download, back up and replace installed mod files one mod at a time."""

import logging
from dataclasses import dataclass
from enum import Enum

from .checker import CheckResult, ProgressCallback, _noop_progress
from .matcher import find_local_file, has_archive_extension
from .storage import FileStorage

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"
NO_DOWNLOAD_URL = "no download URL available"


class UpdateStep(str, Enum):
    PENDING = "pending"
    DOWNLOADING = "downloading"
    BACKING_UP = "backing_up"
    DELETING_OLD = "deleting_old"
    MOVING = "moving"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_FAILURE_LABELS = {
    UpdateStep.PENDING: "locating installed file failed",
    UpdateStep.DOWNLOADING: "download failed",
    UpdateStep.BACKING_UP: "backup failed",
    UpdateStep.DELETING_OLD: "delete failed",
    UpdateStep.MOVING: "move failed",
}


@dataclass
class UpdateResult:
    mod_name: str
    success: bool = False
    message: str = ""
    old_file: str | None = None
    new_file: str | None = None
    backup_path: str | None = None
    step: UpdateStep = UpdateStep.PENDING


def destination_file_name(check: CheckResult) -> str:
    """Registry display name (or {mod}.jar), forced to an archive extension."""
    name = check.latest_version or f"{check.mod_name}.jar"
    if not has_archive_extension(name):
        name += ".jar"
    return name


class ModUpdater:
    """Runs the update transaction for each selected mod in turn."""

    def __init__(self, backup_directory: str):
        self.backup_directory = backup_directory

    def backup_dir_for(self, mods_dir: str, storage: FileStorage) -> str:
        return storage.join(mods_dir, self.backup_directory)

    def update_mods(
        self,
        mods_dir: str,
        storage: FileStorage,
        mods_to_update: list[CheckResult],
        on_progress: ProgressCallback | None = None,
    ) -> list[UpdateResult]:
        """Update each mod, returning exactly one UpdateResult per input."""
        progress = on_progress or _noop_progress
        backup_dir = self.backup_dir_for(mods_dir, storage)

        results: list[UpdateResult] = []
        total = len(mods_to_update)
        for i, check in enumerate(mods_to_update):
            progress("update", i / total if total else 1.0, f"Updating: {check.mod_name}")
            results.append(self.update_mod(mods_dir, backup_dir, storage, check))

        progress("done", 1.0, f"Processed {total} mods")
        return results

    def update_mod(
        self,
        mods_dir: str,
        backup_dir: str,
        storage: FileStorage,
        check: CheckResult,
    ) -> UpdateResult:
        result = UpdateResult(mod_name=check.mod_name)
        try:
            self._run(mods_dir, backup_dir, storage, check, result)
        except Exception as e:
            logger.exception("Update failed for %s during %s", check.mod_name, result.step.value)
            result.success = False
            result.message = f"{_FAILURE_LABELS.get(result.step, 'update failed')}: {e}"
            result.step = UpdateStep.FAILED
        return result

    def _run(
        self,
        mods_dir: str,
        backup_dir: str,
        storage: FileStorage,
        check: CheckResult,
        result: UpdateResult,
    ) -> None:
        logger.info("Updating mod %s", check.mod_name)

        installed = storage.list_mod_files(mods_dir)
        local_file = find_local_file(
            installed, check.match_keys or (check.mod_name,), storage.get_file_name
        )
        logger.info("Update target match for %s: %s", check.mod_name, local_file or "none")

        if not check.download_url:
            logger.warning("No download URL for %s", check.mod_name)
            result.message = NO_DOWNLOAD_URL
            result.step = UpdateStep.FAILED
            return

        new_file = destination_file_name(check)
        destination = storage.join(mods_dir, new_file)
        temp_path = destination + TEMP_SUFFIX

        # Nothing installed is touched until the download has fully succeeded
        result.step = UpdateStep.DOWNLOADING
        logger.info("Downloading %s from %s to %s", check.mod_name, check.download_url, temp_path)
        storage.download_file(check.download_url, temp_path)

        try:
            self._replace(storage, check, result, local_file, backup_dir, temp_path, destination)
        except Exception:
            _discard_temp_file(storage, temp_path)
            raise

        result.new_file = new_file
        result.success = True
        result.message = "Successfully updated"
        result.step = UpdateStep.SUCCEEDED

    def _replace(
        self,
        storage: FileStorage,
        check: CheckResult,
        result: UpdateResult,
        local_file: str | None,
        backup_dir: str,
        temp_path: str,
        destination: str,
    ) -> None:
        if local_file is not None:
            result.step = UpdateStep.BACKING_UP
            logger.info("Creating backup for %s from %s in %s", check.mod_name, local_file, backup_dir)
            result.backup_path = storage.create_backup(local_file, backup_dir)
            result.old_file = storage.get_file_name(local_file)

            result.step = UpdateStep.DELETING_OLD
            logger.info("Deleting old file for %s: %s", check.mod_name, local_file)
            storage.delete_file(local_file)

        result.step = UpdateStep.MOVING
        logger.info("Moving %s to %s for %s", temp_path, destination, check.mod_name)
        storage.move_file(temp_path, destination)


def _discard_temp_file(storage: FileStorage, temp_path: str) -> None:
    """Best-effort removal of a downloaded file that was never promoted."""
    try:
        storage.delete_file(temp_path)
    except Exception:
        logger.warning("Could not remove temporary file %s", temp_path, exc_info=True)


def successful(results: list[UpdateResult]) -> list[UpdateResult]:
    return [r for r in results if r.success]


def failed(results: list[UpdateResult]) -> list[UpdateResult]:
    return [r for r in results if not r.success]
