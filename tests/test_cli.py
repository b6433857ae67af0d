import sys
from unittest.mock import patch

import pytest

import checkup.cli as cli


@pytest.mark.unit
def test_no_command_prints_help(capsys):
    """Running without a subcommand shows usage."""
    with patch.object(sys, "argv", ["checkup"]):
        cli.main()

    captured = capsys.readouterr()
    assert "usage: checkup" in captured.out
    assert "serve" in captured.out


@pytest.mark.unit
def test_version_command(mocker, capsys):
    mocker.patch("checkup.cli.get_version", return_value="1.2.3")

    with patch.object(sys, "argv", ["checkup", "version"]):
        cli.main()

    assert capsys.readouterr().out.strip() == "checkup v1.2.3"


@pytest.mark.unit
def test_latest_name_command(capsys):
    """latest-name prints one mapping per filename."""
    argv = [
        "checkup",
        "latest-name",
        "forgejo-14.0.2-linux-amd64.xz.sha256",
        "linux-6.19.2.tar.gz",
    ]
    with patch.object(sys, "argv", argv):
        cli.main()

    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "forgejo-14.0.2-linux-amd64.xz.sha256 -> latest-linux-amd64.xz.sha256",
        "linux-6.19.2.tar.gz -> latest.tar.gz",
    ]


@pytest.mark.unit
def test_latest_name_requires_filename():
    with patch.object(sys, "argv", ["checkup", "latest-name"]):
        with pytest.raises(SystemExit) as exc_info:
            cli.main()

    assert exc_info.value.code == 2


@pytest.mark.unit
def test_serve_applies_cli_overrides(mocker, tmp_path):
    """Flags given to serve override the config file."""
    config_path = tmp_path / "checkup.yaml"
    config_path.write_text("PORT: 8080\nHOST: 0.0.0.0\n", encoding="utf-8")
    mock_run = mocker.patch("checkup.cli.run_server")

    argv = [
        "checkup",
        "serve",
        "--config",
        str(config_path),
        "--port",
        "9000",
        "--cache",
        str(tmp_path / "cache"),
        "--cache-hours",
        "2",
    ]
    with patch.object(sys, "argv", argv):
        cli.main()

    config = mock_run.call_args[0][0]
    assert config.port == 9000
    assert config.host == "0.0.0.0"
    assert config.cache_dir == str(tmp_path / "cache")
    assert config.cache_hours == 2.0


@pytest.mark.unit
def test_serve_configures_logging(mocker, tmp_path):
    config_path = tmp_path / "checkup.yaml"
    config_path.write_text("LOG_LEVEL: DEBUG\n", encoding="utf-8")
    mocker.patch("checkup.cli.run_server")
    mock_level = mocker.patch("checkup.cli.log_utils.set_log_level")
    mock_file = mocker.patch("checkup.cli.log_utils.add_file_logging")

    argv = [
        "checkup",
        "serve",
        "--config",
        str(config_path),
        "--log-dir",
        str(tmp_path / "logs"),
    ]
    with patch.object(sys, "argv", argv):
        cli.main()

    mock_level.assert_called_once_with("DEBUG")
    mock_file.assert_called_once()
    assert str(mock_file.call_args[0][0]) == str(tmp_path / "logs")
    assert mock_file.call_args[0][1] == "DEBUG"


@pytest.mark.unit
def test_serve_exits_on_invalid_config(mocker, tmp_path):
    config_path = tmp_path / "checkup.yaml"
    config_path.write_text("CACHE_HOURS: -3\n", encoding="utf-8")
    mock_run = mocker.patch("checkup.cli.run_server")
    mock_logger = mocker.patch("checkup.cli.log_utils.logger")

    with patch.object(sys, "argv", ["checkup", "serve", "--config", str(config_path)]):
        with pytest.raises(SystemExit) as exc_info:
            cli.main()

    assert exc_info.value.code == 1
    mock_run.assert_not_called()
    assert "Configuration error" in mock_logger.error.call_args[0][0]
