"""Configuration file loading and validation."""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

DEFAULT_CONFIG_FILENAME = "config.json"
DEFAULT_BACKUP_DIRECTORY = "backups"


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""

    pass


@dataclass(frozen=True)
class ProjectUrl:
    """Parsed CurseForge project page URL."""

    game: str
    category: str
    slug: str
    url: str


@dataclass(frozen=True)
class ModEntry:
    """A mod the user wants tracked."""

    name: str
    project_id: int
    url: str | None = None


@dataclass(frozen=True)
class SshConfig:
    host: str
    username: str
    port: int = 22
    password: str | None = None
    private_key_path: str | None = None
    private_key_passphrase: str | None = None


@dataclass
class ModConfig:
    mods: list[ModEntry]
    api_key: str | None = None
    backup_directory: str = DEFAULT_BACKUP_DIRECTORY
    auto_update: bool = False
    ssh: SshConfig | None = None
    source: Path | None = field(default=None, compare=False)

    @property
    def uses_ssh(self) -> bool:
        return self.ssh is not None


def parse_project_url(url: str) -> ProjectUrl:
    """
    Parse a CurseForge project page URL.

    Supported format:
        - https://www.curseforge.com/{game}/{category}/{slug}
        - With trailing path segments (e.g. /files) or query params

    Returns ProjectUrl with game, category and slug.
    """
    parsed = urlparse(url)

    if parsed.netloc not in ("www.curseforge.com", "curseforge.com"):
        raise ConfigError(f"Invalid domain: {parsed.netloc}. Expected www.curseforge.com")

    path_match = re.match(r"^/([^/]+)/([^/]+)/([^/?]+)", parsed.path)
    if not path_match:
        raise ConfigError(
            f"Invalid CurseForge URL format: {url}\n"
            "Expected: https://www.curseforge.com/{game}/{category}/{slug}"
        )

    game, category, slug = path_match.groups()
    return ProjectUrl(
        game=game,
        category=category,
        slug=slug,
        url=f"https://www.curseforge.com/{game}/{category}/{slug}",
    )


def _parse_mod(index: int, data: Any) -> ModEntry:
    if not isinstance(data, dict):
        raise ConfigError(f"mods[{index}] must be an object")

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ConfigError(f"mods[{index}] is missing a name")

    project_id = data.get("project_id")
    if isinstance(project_id, bool) or not isinstance(project_id, int) or project_id <= 0:
        raise ConfigError(f"mods[{index}] ({name}) needs a positive integer project_id")

    url = data.get("url") or None
    if url is not None:
        parse_project_url(url)

    return ModEntry(name=name, project_id=project_id, url=url)


def _parse_ssh(data: Any) -> SshConfig | None:
    if not data:
        return None
    if not isinstance(data, dict):
        raise ConfigError("ssh must be an object")

    host = (data.get("host") or "").strip()
    if not host:
        return None

    password = data.get("password") or None
    private_key_path = data.get("private_key_path") or None
    if not password and not private_key_path:
        raise ConfigError("SSH configuration requires either password or private_key_path.")

    return SshConfig(
        host=host,
        port=int(data.get("port", 22)),
        username=data.get("username", ""),
        password=password,
        private_key_path=private_key_path,
        private_key_passphrase=data.get("private_key_passphrase") or None,
    )


def config_from_dict(data: dict[str, Any]) -> ModConfig:
    mods_data = data.get("mods") or []
    if not isinstance(mods_data, list) or not mods_data:
        raise ConfigError("No mods configured in the config file.")

    return ModConfig(
        mods=[_parse_mod(i, m) for i, m in enumerate(mods_data)],
        api_key=data.get("api_key") or None,
        backup_directory=data.get("backup_directory") or DEFAULT_BACKUP_DIRECTORY,
        auto_update=bool(data.get("auto_update", False)),
        ssh=_parse_ssh(data.get("ssh")),
    )


def load_config(path: Path) -> ModConfig:
    """Load and validate a config file."""
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid config file: {e}")

    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a JSON object")

    config = config_from_dict(data)
    config.source = path
    return config


def example_config() -> str:
    """Example config shown when no config file is found."""
    example = {
        "api_key": "your-api-key-here",
        "backup_directory": DEFAULT_BACKUP_DIRECTORY,
        "auto_update": False,
        "mods": [
            {
                "name": "ModName",
                "project_id": 12345,
                "url": "https://www.curseforge.com/hytale/mods/mod-slug",
            }
        ],
        "ssh": {
            "host": "example.com",
            "port": 22,
            "username": "user",
            "password": "password",
            "private_key_path": "/path/to/key",
            "private_key_passphrase": "passphrase",
        },
    }
    return json.dumps(example, indent=2)
