from datetime import datetime, timezone

import pytest

from hytale_pm.api import RegistryProject, ReleaseFile
from hytale_pm.storage import DownloadError, LocalStorage


def release(file_name, day=1, display_name=None, url="https://cdn.example/file.jar"):
    return ReleaseFile(
        file_name=file_name,
        display_name=display_name,
        file_date=datetime(2025, 1, day, tzinfo=timezone.utc),
        download_url=url,
    )


def project(slug, name, files, project_id=1):
    return RegistryProject(project_id=project_id, slug=slug, name=name, latest_files=files)


class FakeAPI:
    """Returns canned projects by id; values that are exceptions get raised."""

    def __init__(self, projects):
        self.projects = projects
        self.calls = []

    def get_mod(self, project_id):
        self.calls.append(project_id)
        value = self.projects.get(project_id)
        if isinstance(value, Exception):
            raise value
        return value


class FakeStorage(LocalStorage):
    """Local storage whose downloads come from a url -> bytes map."""

    def __init__(self, downloads=None):
        super().__init__()
        self.downloads = downloads or {}
        self.downloaded = []

    def download_file(self, url, destination_path):
        self.downloaded.append((url, destination_path))
        content = self.downloads.get(url)
        if content is None:
            raise DownloadError(f"Failed to download {url}: 404 Not Found")
        with open(destination_path, "wb") as f:
            f.write(content)


@pytest.fixture
def mods_dir(tmp_path):
    d = tmp_path / "mods"
    d.mkdir()
    return d


@pytest.fixture
def storage():
    s = FakeStorage()
    yield s
    s.close()
