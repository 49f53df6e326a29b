"""Tests for the icecache CLI commands."""
import sys
from unittest.mock import patch

import pytest

from icecache.signature import ICE_MAGIC


def _run(argv):
    from icecache.main import main

    with patch.object(sys, "argv", ["icecache", *argv]):
        main()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    from icecache import config as config_mod

    monkeypatch.setenv("ICECACHE_CONFIG_PATH", str(tmp_path / "missing.config"))
    monkeypatch.delenv("ICECACHE_DB_PATH", raising=False)
    config_mod._config = None
    yield
    config_mod._config = None


class TestResolveDbPath:
    def test_flag_wins(self, tmp_path):
        from icecache.commands import resolve_db_path

        class Args:
            db = str(tmp_path / "flag.duckdb")

        assert resolve_db_path(Args()) == str(tmp_path / "flag.duckdb")

    def test_env_used_without_flag(self, tmp_path, monkeypatch):
        from icecache.commands import resolve_db_path

        monkeypatch.setenv("ICECACHE_DB_PATH", str(tmp_path / "env.duckdb"))
        assert resolve_db_path(object()) == str(tmp_path / "env.duckdb")


class TestCmdScan:
    def test_scan_then_status(self, tmp_path, capsys):
        data = tmp_path / "data"
        data.mkdir()
        (data / "a.ice").write_bytes(ICE_MAGIC + b"X")
        (data / "b.txt").write_bytes(b"irrelevant")
        db = str(tmp_path / "cache.duckdb")

        _run(["scan", str(data), "--db", db, "--quiet"])
        err = capsys.readouterr().err
        assert "1 new" in err
        assert "1 skipped" in err

        _run(["status", "--db", db])
        out = capsys.readouterr().out
        assert "1 container files" in out

    def test_failures_exit_nonzero(self, tmp_path, capsys):
        data = tmp_path / "data"
        data.mkdir()
        bad = data / "a.ice"
        bad.write_bytes(ICE_MAGIC + b"X")
        db = str(tmp_path / "cache.duckdb")

        def _refuse(path, *args, **kwargs):
            raise PermissionError(13, "Permission denied", str(path))

        with patch("icecache.scan.open", create=True, side_effect=_refuse), \
             pytest.raises(SystemExit) as exc_info:
            _run(["scan", str(data), "--db", db, "--quiet"])
        assert exc_info.value.code == 1
        assert "Permission denied" in capsys.readouterr().err

    def test_missing_root_exit_one(self, tmp_path, capsys):
        db = str(tmp_path / "cache.duckdb")
        with pytest.raises(SystemExit) as exc_info:
            _run(["scan", str(tmp_path / "nope"), "--db", db, "--quiet"])
        assert exc_info.value.code == 1
        assert "not a directory" in capsys.readouterr().err

    def test_bad_store_location_exit_one(self, tmp_path, capsys):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        with pytest.raises(SystemExit) as exc_info:
            _run(["scan", str(tmp_path), "--db", str(blocker / "cache.duckdb"), "--quiet"])
        assert exc_info.value.code == 1


class TestCmdContents:
    def test_reports_not_implemented(self, tmp_path, capsys, monkeypatch):
        monkeypatch.setenv("ICECACHE_DB_PATH", str(tmp_path / "cache.duckdb"))
        with pytest.raises(SystemExit) as exc_info:
            _run(["contents", str(tmp_path)])
        assert exc_info.value.code == 2
        assert "not implemented" in capsys.readouterr().err
        assert not (tmp_path / "cache.duckdb").exists()


class TestMain:
    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            _run([])
        assert exc_info.value.code == 0
        assert "usage" in capsys.readouterr().out.lower()


class TestCmdHash:
    def test_prints_digest_and_kind(self, tmp_path, capsys):
        from icecache.hash_utils import hash_bytes

        ice = tmp_path / "a.ice"
        ice.write_bytes(ICE_MAGIC + b"X")
        txt = tmp_path / "b.txt"
        txt.write_bytes(b"plain")

        _run(["hash", str(ice), str(txt)])
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == f"{hash_bytes(ICE_MAGIC + b'X')}  ice  {ice}"
        assert lines[1] == f"{hash_bytes(b'plain')}  ---  {txt}"

    def test_missing_file_exit_one(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            _run(["hash", str(tmp_path / "nope.ice")])
        assert exc_info.value.code == 1
        assert "cannot read" in capsys.readouterr().err
