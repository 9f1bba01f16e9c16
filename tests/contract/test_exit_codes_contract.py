from __future__ import annotations

import re
from pathlib import Path

from sheetload.cli.__main__ import EXIT_FATAL, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS_ALL, main as cli_main

"""Exit code and SUMMARY line contract of the CLI.

No source files exist in these fixtures, so no database connection is ever
attempted.
"""

SUMMARY_RE = re.compile(
    r"^SUMMARY databases=\d+ failed_databases=\d+ tables=\d+/\d+ failed_tables=\d+ "
    r"files_loaded=\d+ files_skipped=\d+ files_failed=\d+ rows=\d+ "
    r"elapsed_sec=[0-9.]+ throughput_rps=[0-9.]+$"
)


def _summary_lines(out: str) -> list[str]:
    return [line for line in out.splitlines() if line.startswith("SUMMARY")]


def test_exit_code_fatal_when_root_missing(tmp_path: Path, capsys):
    code = cli_main(["--root", str(tmp_path / "nowhere")])
    assert code == EXIT_FATAL == 1
    assert "ERROR root directory not found" in capsys.readouterr().out


def test_exit_code_fatal_when_databases_missing(tmp_path: Path, capsys):
    code = cli_main(["--root", str(tmp_path)])
    assert code == EXIT_FATAL
    assert "ERROR processing: databases directory not found" in capsys.readouterr().out


def test_exit_code_all_success(temp_root: Path, write_db_config, sample_config, capsys):
    write_db_config("inventory", sample_config)
    code = cli_main(["--root", str(temp_root)])
    assert code == EXIT_SUCCESS_ALL == 0
    (summary,) = _summary_lines(capsys.readouterr().out)
    assert SUMMARY_RE.match(summary)
    assert "tables=1/1" in summary


def test_exit_code_partial_failure(temp_root: Path, write_db_config, sample_config, capsys):
    sample_config["Tables"].append({"Name": "broken", "Columns": []})
    write_db_config("inventory", sample_config)
    code = cli_main(["--root", str(temp_root)])
    assert code == EXIT_PARTIAL_FAILURE == 2
    out = capsys.readouterr().out
    (summary,) = _summary_lines(out)
    assert "tables=1/2 failed_tables=1" in summary
    assert "ERROR table=broken failed (INVALID_SCHEMA)" in out


def test_database_without_config_is_partial_failure(temp_root: Path, capsys):
    (temp_root / "databases" / "orphan").mkdir()
    assert cli_main(["--root", str(temp_root)]) == EXIT_PARTIAL_FAILURE
    assert "failed_databases=1" in capsys.readouterr().out


def test_root_from_environment(temp_root: Path, monkeypatch, capsys):
    monkeypatch.setenv("SHEETLOAD_ROOT", str(temp_root))
    assert cli_main([]) == EXIT_SUCCESS_ALL
    assert "databases=0" in capsys.readouterr().out


def test_debug_flag_enables_debug_output(temp_root: Path, capsys):
    cli_main(["--root", str(temp_root), "--debug"])
    assert "DEBUG debug mode enabled" in capsys.readouterr().out
