import json

from click.testing import CliRunner

from upload2dir.cli import cli


def test_show_config(monkeypatch, storage_root):
    monkeypatch.setenv("UPLOAD2DIR_FILE_SERVER_ROOT", str(storage_root))
    monkeypatch.setenv("UPLOAD2DIR_USER_CONFIG", '["secret-token:alice:put_file"]')
    monkeypatch.setenv("UPLOAD2DIR_MAX_FILESIZE", "5MB")

    result = CliRunner().invoke(cli, ["show-config"])

    assert result.exit_code == 0
    assert "secret-token" not in result.output
    described = json.loads(result.output.split("Current Configuration:", 1)[1].rsplit("  User table lines", 1)[0])
    assert described["max_filesize"] == 5_000_000
    assert described["authorization"] == "enabled"
    assert "User table lines: 1" in result.output


def test_show_config__invalid_size_exits(monkeypatch):
    monkeypatch.setenv("UPLOAD2DIR_MAX_FILESIZE", "huge")

    result = CliRunner().invoke(cli, ["show-config"])

    assert result.exit_code == 2
