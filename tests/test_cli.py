"""Tests for the localpass command line."""

import json
import sys

import pytest


def _run(monkeypatch, *argv, passwords=(), answers=()):
    from localpass.__main__ import main

    password_iter = iter(passwords)
    answer_iter = iter(answers)
    monkeypatch.setattr("getpass.getpass", lambda prompt="": next(password_iter))
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answer_iter))
    monkeypatch.setattr(sys, "argv", ["localpass", *argv])
    with pytest.raises(SystemExit) as exc_info:
        main()
    return exc_info.value.code


class TestCli:
    def test_init_and_status(self, monkeypatch, capsys, vault_path):
        code = _run(
            monkeypatch, "--vault", str(vault_path), "init", passwords=["pw-1", "pw-1"]
        )
        assert code == 0
        assert vault_path.exists()

        assert _run(monkeypatch, "--vault", str(vault_path), "status") == 0
        assert "State: locked" in capsys.readouterr().out

    def test_init_password_mismatch(self, monkeypatch, vault_path):
        code = _run(
            monkeypatch, "--vault", str(vault_path), "init", passwords=["pw-1", "pw-2"]
        )
        assert code == 1
        assert not vault_path.exists()

    def test_init_existing_vault(self, monkeypatch, capsys, vault_path):
        _run(monkeypatch, "--vault", str(vault_path), "init", passwords=["pw-1", "pw-1"])
        code = _run(
            monkeypatch, "--vault", str(vault_path), "init", passwords=["pw-2", "pw-2"]
        )
        assert code == 1
        assert "already exists" in capsys.readouterr().err

    def test_export_and_import(self, monkeypatch, tmp_path, vault_path):
        export_file = tmp_path / "export.json"
        other = tmp_path / "other.json"

        _run(monkeypatch, "--vault", str(vault_path), "init", passwords=["pw-1", "pw-1"])
        code = _run(
            monkeypatch,
            "--vault", str(vault_path), "export", "-o", str(export_file),
            passwords=["pw-1"],
        )
        assert code == 0
        assert "vaultData" in json.loads(export_file.read_text(encoding="utf-8"))

        code = _run(
            monkeypatch, "--vault", str(other), "import", str(export_file),
            passwords=["pw-1"],
        )
        assert code == 0
        assert other.exists()

    def test_export_wrong_password(self, monkeypatch, vault_path):
        _run(monkeypatch, "--vault", str(vault_path), "init", passwords=["pw-1", "pw-1"])
        code = _run(monkeypatch, "--vault", str(vault_path), "export", passwords=["nope"])
        assert code == 1

    def test_import_wrong_password(self, monkeypatch, capsys, tmp_path, vault_path):
        export_file = tmp_path / "export.json"
        _run(monkeypatch, "--vault", str(vault_path), "init", passwords=["pw-1", "pw-1"])
        _run(
            monkeypatch,
            "--vault", str(vault_path), "export", "-o", str(export_file),
            passwords=["pw-1"],
        )
        code = _run(
            monkeypatch, "--vault", str(tmp_path / "other.json"), "import", str(export_file),
            passwords=["wrong"],
        )
        assert code == 1
        assert "import_wrong_password" in capsys.readouterr().err

    def test_reset_requires_confirmation(self, monkeypatch, vault_path):
        _run(monkeypatch, "--vault", str(vault_path), "init", passwords=["pw-1", "pw-1"])
        assert _run(monkeypatch, "--vault", str(vault_path), "reset", answers=["no"]) == 1
        assert vault_path.exists()
        assert _run(monkeypatch, "--vault", str(vault_path), "reset", answers=["delete"]) == 0
        assert not vault_path.exists()

    def test_reset_yes(self, monkeypatch, vault_path):
        _run(monkeypatch, "--vault", str(vault_path), "init", passwords=["pw-1", "pw-1"])
        assert _run(monkeypatch, "--vault", str(vault_path), "reset", "--yes") == 0
        assert not vault_path.exists()

    def test_generate(self, monkeypatch, capsys):
        assert _run(monkeypatch, "generate", "--length", "24", "--no-symbols") == 0
        password = capsys.readouterr().out.strip()
        assert len(password) == 24
        assert password.isalnum()

    def test_generate_invalid_length(self, monkeypatch):
        assert _run(monkeypatch, "generate", "--length", "2") == 2
