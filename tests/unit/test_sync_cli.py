"""
Unit tests for the zotsync command line.
"""

import json

import pytest

from zotsync.snapshot.loader import SnapshotStore
from zotsync.sync_cli import main, parse_args


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("ZOTERO_API_KEY", "ZOTSYNC_STORE_DIR", "ZOTSYNC_VAULT_DIR", "ZOTSYNC_FOLDER"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_path(tmp_path, library, sample_snapshot):
    store_dir = tmp_path / "store"
    SnapshotStore(store_dir).save(library, sample_snapshot)
    path = tmp_path / "config.yaml"
    path.write_text(
        f"store:\n  dir: {store_dir}\n"
        f"vault:\n  dir: {tmp_path / 'vault'}\n"
        "sync:\n  generator_timeout_seconds: 0\n",
        encoding="utf-8",
    )
    return str(path)


class TestSyncCli:
    """Tests for main()."""

    def test_plan_lists_operations(self, config_path, tmp_path, capsys):
        """Test that plan prints operations without writing notes."""
        code = main(["--config", config_path, "plan", "--offline", "--library", "/users/12345"])

        out = capsys.readouterr().out
        assert code == 0
        assert "item DOE19: create References/Doe2019.md" in out
        assert not (tmp_path / "vault" / "References").exists()

    def test_sync_writes_notes(self, config_path, tmp_path, capsys):
        """Test an offline sync of all stored libraries."""
        code = main(["--config", config_path, "sync", "--offline", "--json"])

        out = capsys.readouterr().out
        assert code == 0
        assert (tmp_path / "vault" / "References" / "Doe2019.md").is_file()
        reports = json.loads(out[out.index("["):])
        assert reports[0]["library"] == "/users/12345"
        assert reports[0]["operations"]["item"]["create"] == 2

    def test_clear(self, config_path, tmp_path):
        """Test that clear removes the status file."""
        main(["--config", config_path, "sync", "--offline"])
        status_file = tmp_path / "store" / "%2Fusers%2F12345.status.json"
        assert status_file.exists()

        assert main(["--config", config_path, "clear", "--library", "/users/12345"]) == 0
        assert not status_file.exists()

    def test_fetch_without_api_key_fails(self, config_path):
        """Test that a missing API key exits with an error."""
        assert main(["--config", config_path, "sync"]) == 1

    def test_options_after_command(self, config_path, tmp_path):
        """Test that --config and --verbose are accepted after the command."""
        code = main(["sync", "--offline", "--config", config_path, "--verbose"])

        assert code == 0
        assert (tmp_path / "vault" / "References" / "Doe2019.md").is_file()

    def test_options_before_command_are_kept(self):
        """Test that options given before the command are not reset."""
        args = parse_args(["--verbose", "--config", "a.yaml", "plan"])

        assert args.verbose is True
        assert args.config == "a.yaml"

    def test_no_command(self, capsys):
        """Test that running without a command prints usage help."""
        assert main([]) == 1
        assert "No command specified" in capsys.readouterr().err
