"""End-to-end CLI coverage for the public commands exposed by lib_ini_merge.

These tests run the documented workflows (merge with and without rule files,
filter, metadata lookups) against real files in a temporary directory.
"""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

import lib_cli_exit_tools

from lib_ini_merge import cli
from lib_ini_merge.domain.errors import RuleFileError, SecretNotFound

RULES_TOML = """
[[rules]]
section = "General"
key = "lastOpened"
action = "ignore"

[[rules]]
section = "Account"
key = "password"
action = "secret"
service = "mail"
account = "{section}"
"""


def _runner() -> CliRunner:
    """Return a fresh CLI runner so each test starts from a clean state."""

    return CliRunner()


def _write(path: Path, text: str) -> Path:
    path.write_bytes(text.encode("utf-8"))
    return path


def test_cli_merge_prints_result(tmp_path: Path) -> None:
    """`merge` without rules should copy source values and append new sections."""

    source = _write(tmp_path / "source.ini", "[General]\ntheme=light\n[Window]\nwidth=800\n")
    target = _write(tmp_path / "target.ini", "[General]\ntheme=dark\n")
    result = _runner().invoke(cli.cli, ["merge", "--source", str(source), "--target", str(target)])
    assert result.exit_code == 0
    assert result.output == "[General]\ntheme=light\n[Window]\nwidth=800\n"


def test_cli_merge_with_rules_and_output_file(tmp_path: Path) -> None:
    """`merge --rules --output` should honour the rule file and write bytes verbatim."""

    source = _write(tmp_path / "source.ini", "[General]\r\ntheme=light\r\nlastOpened=\r\n")
    target = _write(tmp_path / "target.ini", "[General]\r\ntheme=dark\r\nlastOpened=/tmp/x\r\n")
    rules = tmp_path / "rules.toml"
    rules.write_text('[[rules]]\nsection = "General"\nkey = "lastOpened"\naction = "ignore"\n', encoding="utf-8")
    output = tmp_path / "merged.ini"
    result = _runner().invoke(
        cli.cli,
        ["merge", "--source", str(source), "--target", str(target), "--rules", str(rules), "--output", str(output)],
    )
    assert result.exit_code == 0
    assert output.read_bytes() == b"[General]\r\ntheme=light\r\nlastOpened=/tmp/x\r\n"


def test_cli_merge_missing_target_counts_as_empty(tmp_path: Path) -> None:
    source = _write(tmp_path / "source.ini", "[a]\nx=1\n")
    result = _runner().invoke(cli.cli, ["merge", "--source", str(source), "--target", str(tmp_path / "absent.ini")])
    assert result.exit_code == 0
    assert result.output == "[a]\nx=1\n"


def test_cli_merge_env_secrets(tmp_path: Path) -> None:
    """`--secrets env` should read the conventional environment variable."""

    source = _write(tmp_path / "source.ini", "[Account]\npassword=\n")
    target = _write(tmp_path / "target.ini", "[Account]\npassword=old\n")
    rules = tmp_path / "rules.toml"
    rules.write_text(RULES_TOML, encoding="utf-8")
    result = _runner().invoke(
        cli.cli,
        ["merge", "--source", str(source), "--target", str(target), "--rules", str(rules), "--secrets", "env"],
        env={"LIB_INI_MERGE_SECRET__MAIL__ACCOUNT": "from-env"},
    )
    assert result.exit_code == 0
    assert result.output == "[Account]\npassword=from-env\n"


def test_cli_merge_secret_failure_aborts(tmp_path: Path) -> None:
    source = _write(tmp_path / "source.ini", "[Account]\npassword=\n")
    target = _write(tmp_path / "target.ini", "[Account]\npassword=old\n")
    rules = tmp_path / "rules.toml"
    rules.write_text(RULES_TOML, encoding="utf-8")
    output = tmp_path / "merged.ini"
    result = _runner().invoke(
        cli.cli,
        ["merge", "--source", str(source), "--target", str(target), "--rules", str(rules), "--output", str(output)],
    )
    assert result.exit_code != 0
    assert isinstance(result.exception, SecretNotFound)
    assert not output.exists()


def test_cli_merge_keep_policy_reports_warning(tmp_path: Path) -> None:
    source = _write(tmp_path / "source.ini", "[Account]\npassword=\n")
    target = _write(tmp_path / "target.ini", "[Account]\npassword=old\n")
    rules = tmp_path / "rules.json"
    rules.write_text(
        json.dumps(
            {
                "rules": [
                    {
                        "section": "Account",
                        "key": "password",
                        "action": "secret",
                        "service": "mail",
                        "on_error": "keep",
                    }
                ]
            }
        ),
        encoding="utf-8",
    )
    output = tmp_path / "merged.ini"
    result = _runner().invoke(
        cli.cli,
        ["merge", "--source", str(source), "--target", str(target), "--rules", str(rules), "--output", str(output)],
    )
    assert result.exit_code == 0
    assert output.read_text(encoding="utf-8") == "[Account]\npassword=old\n"
    assert "warning: [Account] password" in result.output


def test_cli_merge_rejects_unsupported_rule_format(tmp_path: Path) -> None:
    source = _write(tmp_path / "source.ini", "[a]\nx=1\n")
    rules = _write(tmp_path / "rules.ini", "[rules]\n")
    result = _runner().invoke(
        cli.cli, ["merge", "--source", str(source), "--target", str(source), "--rules", str(rules)]
    )
    assert result.exit_code != 0
    assert isinstance(result.exception, RuleFileError)


def test_cli_filter_command(tmp_path: Path) -> None:
    """`filter` should redact values and drop removed sections."""

    source = _write(tmp_path / "live.ini", "[auth]\nuser=me\ntoken = abc\n[cache]\nk=v\n")
    rules = tmp_path / "filter.toml"
    rules.write_text(
        '[[rules]]\nsection = "auth"\nkey = "token"\naction = "replace"\nvalue = "HIDDEN"\n\n'
        '[[rules]]\nsection = "cache"\naction = "remove"\n',
        encoding="utf-8",
    )
    result = _runner().invoke(cli.cli, ["filter", "--input", str(source), "--rules", str(rules)])
    assert result.exit_code == 0
    assert result.output == "[auth]\nuser=me\ntoken = HIDDEN\n"


def test_cli_info_handles_missing_metadata(monkeypatch) -> None:
    """`cli info` must degrade gracefully when package metadata is unavailable."""

    def _raise_pkg_not_found(*_args, **_kwargs):
        raise cli.metadata.PackageNotFoundError()

    monkeypatch.setattr(cli.metadata, "metadata", _raise_pkg_not_found)
    result = _runner().invoke(cli.cli, ["info"])
    assert result.exit_code == 0
    assert "metadata unavailable" in result.output


def test_cli_main_restores_traceback_flag(tmp_path: Path, capsys) -> None:
    """`cli main` should restore lib_cli_exit_tools tracebacks after execution."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    source = _write(tmp_path / "source.ini", "[a]\nx=1\n")
    exit_code = cli.main(
        ["--traceback", "merge", "--source", str(source), "--target", str(source)],
        restore_traceback=True,
    )
    assert exit_code == 0
    assert capsys.readouterr().out == "[a]\nx=1\n"
    assert getattr(lib_cli_exit_tools.config, "traceback", False) == previous_traceback


def test_cli_main_returns_error_code_on_parse_failure(tmp_path: Path) -> None:
    source = _write(tmp_path / "source.ini", "[broken\n")
    target = _write(tmp_path / "target.ini", "[a]\n")
    exit_code = cli.main(["merge", "--source", str(source), "--target", str(target)])
    assert exit_code != 0
