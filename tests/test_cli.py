"""
Tests for the command-line interface.
"""

import json

import pytest
from typer.testing import CliRunner

from syncraft_updater import __version__
from syncraft_updater.cli import app as app_module

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    monkeypatch.setattr(app_module, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(app_module, "CONFIG_FILE", config_dir / "config.ini")
    return config_dir / "config.ini"


@pytest.fixture
def manifest_json(tmp_path):
    path = tmp_path / "manifest.json"
    path.write_text(
        json.dumps(
            {
                "host": "updates.example.org",
                "port": 25565,
                "install_root": "/srv/game",
                "remove": {"old.dat": "h0"},
                "update": {"lib/a.jar": "h1"},
            }
        ),
        encoding="utf-8",
    )
    return path


def test_version():
    result = runner.invoke(app_module.app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_encode_then_inspect(manifest_json, tmp_path):
    output = tmp_path / "update.bin"

    result = runner.invoke(app_module.app, ["encode", str(manifest_json), str(output)])
    assert result.exit_code == 0, result.output
    assert "1 removal(s) and 1 update(s)" in result.output
    assert output.read_bytes().startswith(b"\x00\x13updates.example.org")

    result = runner.invoke(app_module.app, ["inspect", str(output)])
    assert result.exit_code == 0, result.output
    assert "updates.example.org:25565" in result.output
    assert "lib/a.jar" in result.output
    assert "old.dat" in result.output


def test_encode_rejects_escaping_path(tmp_path):
    source = tmp_path / "bad.json"
    source.write_text(
        json.dumps(
            {
                "host": "localhost",
                "port": 80,
                "install_root": "/srv/game",
                "update": {"../../etc/passwd": "h1"},
            }
        ),
        encoding="utf-8",
    )
    result = runner.invoke(app_module.app, ["encode", str(source), str(tmp_path / "o.bin")])
    assert result.exit_code == 1
    assert not (tmp_path / "o.bin").exists()


def test_inspect_rejects_garbage(tmp_path):
    garbage = tmp_path / "garbage.bin"
    garbage.write_bytes(b"\x00\x05ab")
    result = runner.invoke(app_module.app, ["inspect", str(garbage)])
    assert result.exit_code == 1
    assert "Invalid manifest" in result.output


def test_init_writes_config(isolated_config):
    result = runner.invoke(app_module.app, ["init"])
    assert result.exit_code == 0, result.output
    assert isolated_config.is_file()
    assert "grace_period" in isolated_config.read_text(encoding="utf-8")

    result = runner.invoke(app_module.app, ["init"], input="n\n")
    assert result.exit_code == 1

    result = runner.invoke(app_module.app, ["init", "--force"])
    assert result.exit_code == 0


def test_show_config():
    result = runner.invoke(app_module.app, ["--show-config"])
    assert result.exit_code == 0
    assert "grace_period" in result.output
    assert "cancel_during_apply" in result.output


def test_run_with_invalid_manifest_fails(tmp_path):
    manifest = tmp_path / "broken.bin"
    manifest.write_bytes(b"\x00\x09localhost")
    result = runner.invoke(
        app_module.app, ["run", "--manifest", str(manifest), "--no-progress", "--grace", "0"]
    )
    assert result.exit_code == 1
    assert "Update Failed" in result.output


def test_run_rejects_invalid_option(tmp_path):
    manifest = tmp_path / "m.bin"
    manifest.write_bytes(b"")
    result = runner.invoke(
        app_module.app, ["run", "--manifest", str(manifest), "--chunk-size", "1"]
    )
    assert result.exit_code == 1
    assert "Configuration validation failed" in result.output
