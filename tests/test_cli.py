import json

import pytest
from click.testing import CliRunner

from hytale_pm import cli

from conftest import FakeAPI, FakeStorage, project, release


class ContextAPI(FakeAPI):
    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


PROJECTS = {
    1: project("cool-mod", "Cool Mod", [release("CoolMod-1.1.jar", url="https://cdn/cool-1.1.jar")]),
    2: project("zeta", "Zeta", [release("zeta-1.0.jar", url="https://cdn/zeta-1.0.jar")]),
}


@pytest.fixture
def setup(tmp_path, monkeypatch):
    mods_dir = tmp_path / "mods"
    mods_dir.mkdir()
    (mods_dir / "CoolMod-1.0.jar").write_bytes(b"old")

    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "api_key": "k",
                "mods": [
                    {"name": "Cool Mod", "project_id": 1},
                    {"name": "Zeta", "project_id": 2},
                ],
            }
        )
    )

    storage = FakeStorage({"https://cdn/cool-1.1.jar": b"new", "https://cdn/zeta-1.0.jar": b"z"})
    monkeypatch.setattr(cli, "CurseForgeAPI", lambda key: ContextAPI(PROJECTS))
    monkeypatch.setattr(cli, "open_storage", lambda ssh: storage)

    base_args = ["--config", str(config_path), "--log-dir", str(tmp_path / "logs")]
    return mods_dir, base_args


def test_check_reports_status(setup):
    mods_dir, base_args = setup
    result = CliRunner().invoke(cli.main, base_args + ["check", str(mods_dir)])

    assert result.exit_code == 0, result.output
    assert "Update available" in result.output
    assert "Not installed" in result.output
    assert (mods_dir / "CoolMod-1.0.jar").exists()


def test_check_missing_config(tmp_path):
    result = CliRunner().invoke(
        cli.main,
        ["--config", str(tmp_path / "none.json"), "--log-dir", str(tmp_path / "logs"), "check", str(tmp_path)],
    )
    assert result.exit_code == 1
    assert "Config file not found" in result.output
    assert "project_id" in result.output


def test_check_missing_mods_dir(setup, tmp_path):
    _, base_args = setup
    result = CliRunner().invoke(cli.main, base_args + ["check", str(tmp_path / "nowhere")])
    assert result.exit_code == 1
    assert "Mods directory not found" in result.output


def test_update_with_yes(setup):
    mods_dir, base_args = setup
    result = CliRunner().invoke(cli.main, base_args + ["update", str(mods_dir), "--yes"])

    assert result.exit_code == 0, result.output
    assert "Successfully updated 2 mod(s)" in result.output
    assert sorted(p.name for p in mods_dir.glob("*.jar")) == ["CoolMod-1.1.jar", "zeta-1.0.jar"]
    assert len(list((mods_dir / "backups").iterdir())) == 1


def test_update_declined(setup):
    mods_dir, base_args = setup
    result = CliRunner().invoke(cli.main, base_args + ["update", str(mods_dir)], input="n\n")

    assert result.exit_code == 0
    assert "No changes made" in result.output
    assert sorted(p.name for p in mods_dir.glob("*.jar")) == ["CoolMod-1.0.jar"]


def test_update_dry_run(setup):
    mods_dir, base_args = setup
    result = CliRunner().invoke(cli.main, base_args + ["update", str(mods_dir), "--dry-run"])

    assert result.exit_code == 0
    assert "Dry run" in result.output
    assert sorted(p.name for p in mods_dir.glob("*.jar")) == ["CoolMod-1.0.jar"]


def test_update_only_selected_mod(setup):
    mods_dir, base_args = setup
    result = CliRunner().invoke(
        cli.main, base_args + ["update", str(mods_dir), "--mod", "zeta", "--yes"]
    )

    assert result.exit_code == 0, result.output
    assert sorted(p.name for p in mods_dir.glob("*.jar")) == ["CoolMod-1.0.jar", "zeta-1.0.jar"]


def test_update_failure_exits_nonzero(setup, monkeypatch):
    mods_dir, base_args = setup
    monkeypatch.setitem(PROJECTS, 2, project("zeta", "Zeta", [release("zeta-1.0.jar", url="https://cdn/missing")]))

    result = CliRunner().invoke(cli.main, base_args + ["update", str(mods_dir), "--yes"])

    assert result.exit_code == 1
    assert "Failed to update 1 mod(s)" in result.output
    assert "Successfully updated 1 mod(s)" in result.output


def test_check_listing_failure_is_reported(setup, monkeypatch):
    mods_dir, base_args = setup

    def denied(directory):
        raise PermissionError("permission denied")

    monkeypatch.setattr(cli.open_storage(None), "list_mod_files", denied)
    result = CliRunner().invoke(cli.main, base_args + ["check", str(mods_dir)])

    assert result.exit_code == 1
    assert "permission denied" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_update_warns_about_unknown_mod_name(setup):
    mods_dir, base_args = setup
    result = CliRunner().invoke(
        cli.main, base_args + ["update", str(mods_dir), "--mod", "nope", "--yes"]
    )

    assert result.exit_code == 0, result.output
    assert "nope does not match any configured mod" in result.output
    assert "Everything is up to date" not in result.output
    assert sorted(p.name for p in mods_dir.glob("*.jar")) == ["CoolMod-1.0.jar"]
