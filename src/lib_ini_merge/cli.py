"""CLI adapter for ``lib_ini_merge`` built on ``lib_cli_exit_tools``.

Purpose
-------
Expose the merge and filter engines through a command line interface so INI
files can be reconciled from dotfile managers, install scripts and CI without
writing Python code.

Contents
--------
* :data:`CLICK_CONTEXT_SETTINGS` – shared Click settings ensuring ``-h`` works.
* :func:`cli` – root command that wires global traceback handling into
  ``lib_cli_exit_tools``.
* :func:`cli_info` – prints distribution metadata for quick diagnostics.
* :func:`cli_merge` – merges a source file into a target file.
* :func:`cli_filter` – removes or replaces values in one file.
* :func:`main` – entry point used by ``console_scripts`` registration.

System Role
-----------
The CLI lives in the outermost layer. It owns all INI file I/O, selects the
secret resolver by name and calls the composition root
(:mod:`lib_ini_merge.core`). ``lib_cli_exit_tools`` centralises the exit code
strategy so all commands behave consistently across shells and CI.
"""

from __future__ import annotations

import sys
import uuid
from importlib import metadata
from pathlib import Path
from typing import Final, Optional, Sequence

import lib_cli_exit_tools
import rich_click as click

from .adapters.secrets.default import RESOLVERS
from .core import filter_ini, load_filter_rules, load_rules, merge_ini_with_report
from .domain.rules import RuleSet
from .observability import bind_trace_id, log_info

CLICK_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
_TRACEBACK_SUMMARY_LIMIT: Final[int] = 500
_TRACEBACK_VERBOSE_LIMIT: Final[int] = 10_000

SECRET_CHOICES: Final[tuple[str, ...]] = tuple(RESOLVERS)

_INPUT_FILE = click.Path(path_type=Path, exists=True, file_okay=True, dir_okay=False, readable=True)


def _resolve_version() -> str:
    """Return the installed package version with sensible fallbacks.

    Returns
    -------
    str
        Distribution version if available, otherwise ``"0.0.0"``.
    """

    try:
        return metadata.version("lib_ini_merge")
    except metadata.PackageNotFoundError:
        return "0.0.0"


@click.group(
    help="Format-preserving, rule-driven INI merge",
    context_settings=CLICK_CONTEXT_SETTINGS,
    invoke_without_command=False,
)
@click.version_option(
    version=_resolve_version(),
    prog_name="lib_ini_merge",
    message="lib_ini_merge version %(version)s",
)
@click.option(
    "--traceback/--no-traceback",
    is_flag=True,
    default=False,
    help="Show full Python traceback on errors",
)
@click.pass_context
def cli(ctx: click.Context, traceback: bool) -> None:
    """Root command configuring traceback handling for all subcommands.

    Side Effects
        Mutates ``lib_cli_exit_tools.config.traceback`` and
        ``lib_cli_exit_tools.config.traceback_force_color``.
    """

    ctx.ensure_object(dict)
    ctx.obj["traceback"] = traceback
    lib_cli_exit_tools.config.traceback = traceback
    lib_cli_exit_tools.config.traceback_force_color = traceback


@cli.command("info", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_info() -> None:
    """Print basic distribution metadata so users can confirm installation."""

    try:
        meta = metadata.metadata("lib_ini_merge")
    except metadata.PackageNotFoundError:
        click.echo("lib_ini_merge (metadata unavailable)")
        return
    click.echo(f"Info for {meta.get('Name', 'lib_ini_merge')}:")
    click.echo(f"  Version         : {meta.get('Version', _resolve_version())}")
    click.echo(f"  Requires-Python : {meta.get('Requires-Python', '>=3.10')}")
    summary = meta.get("Summary")
    if summary:
        click.echo(f"  Summary         : {summary}")
    for entry in meta.get_all("Project-URL") or []:
        click.echo(f"  {entry}")


@cli.command("merge", context_settings=CLICK_CONTEXT_SETTINGS)
@click.option("--source", "source", type=_INPUT_FILE, required=True, help="Desired configuration (source file)")
@click.option(
    "--target",
    "target",
    type=click.Path(path_type=Path, file_okay=True, dir_okay=False),
    required=True,
    help="Live configuration (target file); a missing file counts as empty",
)
@click.option("--rules", "rules_path", type=_INPUT_FILE, default=None, help="Rule file (TOML, JSON or YAML)")
@click.option(
    "--output",
    "output",
    type=click.Path(path_type=Path, file_okay=True, dir_okay=False, writable=True),
    default=None,
    help="Write the result here instead of standard output",
)
@click.option(
    "--secrets",
    "secrets",
    type=click.Choice(SECRET_CHOICES, case_sensitive=False),
    default="none",
    show_default=True,
    help="Secret store consulted by secret rules",
)
def cli_merge(
    source: Path,
    target: Path,
    rules_path: Optional[Path],
    output: Optional[Path],
    secrets: str,
) -> None:
    """Merge SOURCE into TARGET keeping the target's formatting.

    Why
    ----
    Dotfile managers keep a curated copy of an application's INI file while
    the application keeps rewriting its live copy; this command reconciles the
    two without reformatting the live file.

    What
    -----
    Prints the merged text (or writes it to ``--output``). Warnings collected
    during the merge are reported on standard error.
    """

    bind_trace_id(uuid.uuid4().hex)
    rules = load_rules(rules_path) if rules_path is not None else RuleSet()
    resolver = RESOLVERS[secrets.lower()]()
    target_text = _read_text(target) if target.exists() else ""
    merged, report = merge_ini_with_report(target_text, _read_text(source), rules, resolver=resolver)
    for warning in report.warnings:
        click.echo(f"warning: [{warning.section}] {warning.key}: {warning.message}", err=True)
    _emit(merged, output)
    log_info("cli_merge_finished", document="output", path=str(output) if output else None)


@cli.command("filter", context_settings=CLICK_CONTEXT_SETTINGS)
@click.option("--input", "input_path", type=_INPUT_FILE, required=True, help="INI file to filter")
@click.option("--rules", "rules_path", type=_INPUT_FILE, required=True, help="Filter rule file (TOML, JSON or YAML)")
@click.option(
    "--output",
    "output",
    type=click.Path(path_type=Path, file_okay=True, dir_okay=False, writable=True),
    default=None,
    help="Write the result here instead of standard output",
)
def cli_filter(input_path: Path, rules_path: Path, output: Optional[Path]) -> None:
    """Remove or replace values in one INI file (e.g. before committing it)."""

    bind_trace_id(uuid.uuid4().hex)
    rules = load_filter_rules(rules_path)
    _emit(filter_ini(_read_text(input_path), rules), output)


def _read_text(path: Path) -> str:
    """Read *path* as UTF-8 without newline translation so CRLF survives."""

    return path.read_bytes().decode("utf-8")


def _emit(text: str, output: Optional[Path]) -> None:
    """Write *text* to *output* (byte-exact) or to standard output."""

    if output is None:
        click.echo(text, nl=False)
        return
    output.write_bytes(text.encode("utf-8"))


def main(argv: Optional[Sequence[str]] = None, *, restore_traceback: bool = True) -> int:
    """Execute the CLI with shared exit handling and return the exit code."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    previous_force_color = getattr(lib_cli_exit_tools.config, "traceback_force_color", False)
    try:
        try:
            return lib_cli_exit_tools.run_cli(
                cli,
                argv=list(argv) if argv is not None else None,
                prog_name="lib_ini_merge",
            )
        except BaseException as exc:  # noqa: BLE001 - funnel through shared printers
            lib_cli_exit_tools.print_exception_message(
                trace_back=lib_cli_exit_tools.config.traceback,
                length_limit=(
                    _TRACEBACK_VERBOSE_LIMIT if lib_cli_exit_tools.config.traceback else _TRACEBACK_SUMMARY_LIMIT
                ),
            )
            return lib_cli_exit_tools.get_system_exit_code(exc)
    finally:
        if restore_traceback:
            lib_cli_exit_tools.config.traceback = previous_traceback
            lib_cli_exit_tools.config.traceback_force_color = previous_force_color


if __name__ == "__main__":  # pragma: no cover - exercised via console entry point
    raise SystemExit(main(sys.argv[1:]))
