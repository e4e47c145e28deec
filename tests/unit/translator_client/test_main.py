"""Tests for the command-line front end."""

import pytest

from services.translator_client.src.main import build_parser, main


class TestParser:
    """Test argument parsing."""

    def test_translate_arguments(self):
        args = build_parser().parse_args(["translate", "thesis.docx", "--target", "zu"])

        assert args.command == "translate"
        assert args.file == "thesis.docx"
        assert args.source is None
        assert args.target == "zu"

    def test_redirect_before_command(self):
        args = build_parser().parse_args(["--redirect", "?payment=success", "status"])

        assert args.redirect == "?payment=success"
        assert args.command == "status"

    def test_upgrade_rejects_unknown_tier(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["upgrade", "platinum"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMain:
    """Test the entry point."""

    def test_invalid_configuration_exits_early(self, monkeypatch, capsys):
        monkeypatch.setenv("TRANSLATOR_STORAGE_BACKEND", "sqlite")

        assert main(["plans"]) == 2

        assert "Storage backend" in capsys.readouterr().err

    def test_plans_listing(self, monkeypatch, capsys):
        monkeypatch.setenv("TRANSLATOR_STORAGE_BACKEND", "memory")

        assert main(["plans"]) == 0

        out = capsys.readouterr().out
        assert "Professional" in out
        assert "R999" in out
