"""Tests for the command line entry point."""

import os
from unittest.mock import patch

import pytest

import cli


class TestParser:

    def test_defaults_to_start(self):
        args = cli.build_parser().parse_args([])

        assert args.command == "start"
        assert args.open_browser is None
        assert args.exit_after_callback is None

    def test_flags(self):
        args = cli.build_parser().parse_args([
            "start", "--port", "9000", "--no-browser", "--fetch-profile", "--keep-running",
        ])

        assert args.port == 9000
        assert args.open_browser is False
        assert args.fetch_profile is True
        assert args.exit_after_callback is False


class TestCommands:

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["version"])

        assert exc_info.value.code == 0
        assert cli.VERSION in capsys.readouterr().out

    def test_start_requires_settings(self, monkeypatch, tmp_path, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("EPIC_BASE_URL", raising=False)
        monkeypatch.delenv("CLIENT_ID", raising=False)

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["start"])

        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert "EPIC_BASE_URL" in err
        assert "CLIENT_ID" in err

    def test_start_rejects_unusable_settings(self, monkeypatch, tmp_path, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("EPIC_BASE_URL", "https://fhir.example.org/R4")
        monkeypatch.setenv("CLIENT_ID", "abc")
        monkeypatch.setenv("PORT", "not-a-port")
        monkeypatch.setenv("LOG_LEVEL", "loud")

        with patch("main.run") as run:
            with pytest.raises(SystemExit) as exc_info:
                cli.main(["start"])

        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert "[X] Invalid setting: PORT must be a number" in err
        assert "LOG_LEVEL must be one of" in err
        run.assert_not_called()

    def test_start_runs_server_with_overrides(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("EPIC_BASE_URL", "https://fhir.example.org/R4")
        monkeypatch.setenv("CLIENT_ID", "abc")

        with patch("main.run", return_value=True) as run, patch("cli.setup_logging"):
            with pytest.raises(SystemExit) as exc_info:
                cli.main(["start", "--port", "9000", "--no-browser"])

        assert exc_info.value.code == 0
        config = run.call_args[0][0]
        assert config.port == 9000
        assert config.open_browser is False
        assert config.client_id == "abc"

    def test_start_reports_startup_failure(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("EPIC_BASE_URL", "https://fhir.example.org/R4")
        monkeypatch.setenv("CLIENT_ID", "abc")

        with patch("main.run", return_value=False), patch("cli.setup_logging"):
            with pytest.raises(SystemExit) as exc_info:
                cli.main(["start"])

        assert exc_info.value.code == 1

    def test_env_file_loaded(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("EPIC_BASE_URL", raising=False)
        monkeypatch.delenv("CLIENT_ID", raising=False)
        env_file = tmp_path / "sandbox.env"
        env_file.write_text("EPIC_BASE_URL=https://fhir.example.org/R4\nCLIENT_ID=from-file\n")

        with patch.dict(os.environ), patch("main.run", return_value=True) as run, patch("cli.setup_logging"):
            with pytest.raises(SystemExit):
                cli.main(["start", "--env-file", str(env_file)])

        assert run.call_args[0][0].client_id == "from-file"
