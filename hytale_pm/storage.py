"""File storage backends for the mods directory (local disk or SFTP)."""

import logging
import os
import shutil
import stat
from abc import ABC, abstractmethod
from datetime import datetime
from typing import IO, Iterator

import paramiko
import requests

from .config import SshConfig
from .matcher import file_name_of, has_archive_extension

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = (15, 120)  # connect, read
CHUNK_SIZE = 8192


class StorageError(Exception):
    """Raised when a storage backend cannot perform an operation."""

    pass


class DownloadError(StorageError):
    """Raised when a download fails."""

    pass


def combine_path(directory: str, name: str, is_local: bool) -> str:
    """Join a directory and a file name using the backend's path convention."""
    if is_local:
        return os.path.join(directory, name)
    left = directory.replace("\\", "/").rstrip("/")
    right = name.replace("\\", "/").lstrip("/")
    return f"{left}/{right}"


def _timestamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def backup_file_name(file_name: str, timestamp: str, counter: int = 0) -> str:
    """{stem}_{timestamp}[_{counter}]{ext}"""
    stem, ext = os.path.splitext(file_name)
    if counter:
        return f"{stem}_{timestamp}_{counter}{ext}"
    return f"{stem}_{timestamp}{ext}"


class FileStorage(ABC):
    """Operations the check and update engines need from a mods directory."""

    is_local: bool = False

    def __init__(self, session: requests.Session | None = None):
        self.session = session or requests.Session()

    def __enter__(self) -> "FileStorage":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def get_file_name(self, path: str) -> str:
        return file_name_of(path)

    def join(self, directory: str, name: str) -> str:
        return combine_path(directory, name, self.is_local)

    def _unique_backup_path(self, source_file: str, backup_directory: str) -> str:
        file_name = self.get_file_name(source_file)
        timestamp = _timestamp()
        backup_path = self.join(backup_directory, backup_file_name(file_name, timestamp))
        counter = 1
        while self._exists(backup_path):
            backup_path = self.join(
                backup_directory, backup_file_name(file_name, timestamp, counter)
            )
            counter += 1
        return backup_path

    def _stream(self, url: str) -> Iterator[bytes]:
        """Yield the body of a successful GET; raises DownloadError otherwise."""
        try:
            response = self.session.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT)
            response.raise_for_status()
        except requests.RequestException as e:
            raise DownloadError(f"Failed to download {url}: {e}")

        with response:
            try:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        yield chunk
            except requests.RequestException as e:
                raise DownloadError(f"Failed to download {url}: {e}")

    @abstractmethod
    def _exists(self, path: str) -> bool: ...

    @abstractmethod
    def list_mod_files(self, directory: str) -> list[str]:
        """Archive files (.jar, .zip) directly inside directory."""

    @abstractmethod
    def create_backup(self, source_file: str, backup_directory: str) -> str:
        """Copy source_file into backup_directory under a unique timestamped name."""

    @abstractmethod
    def download_file(self, url: str, destination_path: str) -> None:
        """Download url to destination_path; nothing is left behind on failure."""

    @abstractmethod
    def delete_file(self, path: str) -> None:
        """Delete path; missing files are ignored."""

    @abstractmethod
    def move_file(self, source_path: str, destination_path: str) -> None:
        """Rename source_path to destination_path, replacing any existing file."""


class LocalStorage(FileStorage):
    """Mods directory on the local filesystem."""

    is_local = True

    def _exists(self, path: str) -> bool:
        return os.path.exists(path)

    def list_mod_files(self, directory: str) -> list[str]:
        if not os.path.isdir(directory):
            raise FileNotFoundError(f"Directory not found: {directory}")

        files = [
            os.path.join(directory, entry.name)
            for entry in sorted(os.scandir(directory), key=lambda e: e.name)
            if entry.is_file() and has_archive_extension(entry.name)
        ]
        logger.debug("Local list returned %d files for %s", len(files), directory)
        return files

    def create_backup(self, source_file: str, backup_directory: str) -> str:
        if not os.path.isfile(source_file):
            raise FileNotFoundError(f"Source file not found: {source_file}")

        os.makedirs(backup_directory, exist_ok=True)
        backup_path = self._unique_backup_path(source_file, backup_directory)
        shutil.copy2(source_file, backup_path)
        logger.info("Created local backup %s from %s", backup_path, source_file)
        return backup_path

    def download_file(self, url: str, destination_path: str) -> None:
        logger.info("Downloading %s to %s", url, destination_path)
        try:
            with open(destination_path, "wb") as f:
                for chunk in self._stream(url):
                    f.write(chunk)
        except Exception:
            # Clean up partial file on error
            if os.path.exists(destination_path):
                os.remove(destination_path)
            raise

    def delete_file(self, path: str) -> None:
        if os.path.exists(path):
            os.remove(path)
            logger.info("Deleted local file %s", path)

    def move_file(self, source_path: str, destination_path: str) -> None:
        os.replace(source_path, destination_path)
        logger.info("Moved local file from %s to %s", source_path, destination_path)


def _remote(path: str) -> str:
    return path.replace("\\", "/")


class SftpStorage(FileStorage):
    """Mods directory on a remote server, accessed over SFTP."""

    is_local = False

    def __init__(self, client: paramiko.SSHClient, session: requests.Session | None = None):
        super().__init__(session)
        self.client = client
        self.sftp = client.open_sftp()

    @classmethod
    def connect(cls, ssh: SshConfig, timeout: float = 30) -> "SftpStorage":
        """Open an SSH connection using a private key or password."""
        client = paramiko.SSHClient()
        client.load_system_host_keys()
        client.set_missing_host_key_policy(paramiko.WarningPolicy())

        kwargs = {
            "hostname": ssh.host,
            "port": ssh.port,
            "username": ssh.username,
            "timeout": timeout,
            "banner_timeout": timeout,
            "auth_timeout": timeout,
        }
        if ssh.private_key_path:
            kwargs["key_filename"] = ssh.private_key_path
            kwargs["passphrase"] = ssh.private_key_passphrase
            kwargs["look_for_keys"] = False
        elif ssh.password:
            kwargs["password"] = ssh.password
            kwargs["look_for_keys"] = False
            kwargs["allow_agent"] = False
        else:
            raise StorageError("SSH configuration requires either password or private_key_path.")

        try:
            client.connect(**kwargs)
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise StorageError(f"Could not connect to {ssh.host}:{ssh.port}: {e}")

        logger.info("SSH connection established to %s:%s", ssh.host, ssh.port)
        return cls(client)

    def close(self) -> None:
        try:
            self.sftp.close()
            self.client.close()
        finally:
            super().close()

    def _exists(self, path: str) -> bool:
        try:
            self.sftp.stat(_remote(path))
        except FileNotFoundError:
            return False
        return True

    def list_mod_files(self, directory: str) -> list[str]:
        directory = _remote(directory)
        if not self._exists(directory):
            raise FileNotFoundError(f"Remote directory not found: {directory}")

        files = [
            self.join(directory, attr.filename)
            for attr in sorted(self.sftp.listdir_attr(directory), key=lambda a: a.filename)
            if attr.st_mode is not None
            and stat.S_ISREG(attr.st_mode)
            and has_archive_extension(attr.filename)
        ]
        logger.debug("SFTP list returned %d files for %s", len(files), directory)
        return files

    def create_backup(self, source_file: str, backup_directory: str) -> str:
        source_file = _remote(source_file)
        backup_directory = _remote(backup_directory)

        if not self._exists(source_file):
            raise FileNotFoundError(f"Remote source file not found: {source_file}")
        if not self._exists(backup_directory):
            self.sftp.mkdir(backup_directory)

        backup_path = self._unique_backup_path(source_file, backup_directory)
        with self.sftp.open(source_file, "rb") as source:
            self.sftp.putfo(source, backup_path)
        logger.info("Created SFTP backup %s from %s", backup_path, source_file)
        return backup_path

    def _write_chunks(self, remote_file: IO[bytes], url: str) -> None:
        for chunk in self._stream(url):
            remote_file.write(chunk)

    def download_file(self, url: str, destination_path: str) -> None:
        destination_path = _remote(destination_path)
        logger.info("Downloading %s to remote path %s", url, destination_path)
        try:
            with self.sftp.open(destination_path, "wb") as remote_file:
                self._write_chunks(remote_file, url)
        except Exception:
            if self._exists(destination_path):
                self.sftp.remove(destination_path)
            raise

    def delete_file(self, path: str) -> None:
        path = _remote(path)
        if self._exists(path):
            self.sftp.remove(path)
            logger.info("Deleted SFTP file %s", path)

    def move_file(self, source_path: str, destination_path: str) -> None:
        source_path = _remote(source_path)
        destination_path = _remote(destination_path)
        if self._exists(destination_path):
            self.sftp.remove(destination_path)
            logger.info("Removed existing SFTP destination %s", destination_path)
        self.sftp.rename(source_path, destination_path)
        logger.info("Moved SFTP file from %s to %s", source_path, destination_path)


def open_storage(ssh: SshConfig | None) -> FileStorage:
    """SFTP storage when SSH is configured, otherwise the local filesystem."""
    if ssh is not None:
        return SftpStorage.connect(ssh)
    return LocalStorage()
