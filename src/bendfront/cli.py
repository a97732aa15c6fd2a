"""bendfront command-line interface."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from pathlib import Path

import click

from bendfront import __version__
from bendfront.config import WarningConfig, WarningState, find_config, load_config
from bendfront.errors import CompileError, Diagnostic, DiagnosticRenderer
from bendfront.pipeline import CompileOptions, CompileResult, compile_units
from bendfront.printer import show_book
from bendfront.source import SourceUnit

_WARNING_NAMES = ["all", "unused-defs", "match-only-vars"]


def _set_warning(warnings: WarningConfig, name: str, state: WarningState) -> None:
    if name == "all":
        warnings.set_all(state)
    elif name == "unused-defs":
        warnings.unused_defs = state
    else:
        warnings.match_only_vars = state


def _compile_options(func: Callable) -> Callable:
    """Options shared by every command that compiles source units."""

    @click.argument("paths", nargs=-1, required=True,
                    type=click.Path(exists=True, dir_okay=False, path_type=Path))
    @click.option("--fail-fast", is_flag=True, default=None,
                  help="Stop at the first error instead of reporting all of them.")
    @click.option("-j", "--jobs", type=click.IntRange(min=1), default=None,
                  help="Number of threads for per-definition compilation.")
    @click.option("-W", "warn", multiple=True, type=click.Choice(_WARNING_NAMES),
                  help="Report a warning.")
    @click.option("-D", "deny", multiple=True, type=click.Choice(_WARNING_NAMES),
                  help="Turn a warning into an error.")
    @click.option("-A", "allow", multiple=True, type=click.Choice(_WARNING_NAMES),
                  help="Silence a warning.")
    @click.option("-v", "--verbose", is_flag=True, help="Log pass progress to stderr.")
    @functools.wraps(func)
    def wrapper(paths: tuple[Path, ...], fail_fast: bool | None, jobs: int | None,
                warn: tuple[str, ...], deny: tuple[str, ...], allow: tuple[str, ...],
                verbose: bool) -> None:
        if verbose:
            logging.basicConfig(level=logging.DEBUG,
                                format="%(name)s: %(message)s")
        try:
            config = load_config(find_config(paths[0]))
        except (OSError, ValueError) as e:
            click.echo(f"error: invalid configuration: {e}", err=True)
            raise SystemExit(1)

        options = CompileOptions.from_config(config)
        if fail_fast is not None:
            options.fail_fast = fail_fast
        if jobs is not None:
            options.jobs = jobs
        for names, state in ((allow, WarningState.ALLOW), (warn, WarningState.WARN),
                             (deny, WarningState.DENY)):
            for name in names:
                _set_warning(options.warnings, name, state)

        units = [SourceUnit.from_path(p) for p in paths]
        renderer = DiagnosticRenderer(color=True, sources={u.name: u.text for u in units})

        def sink(diag: Diagnostic) -> None:
            click.echo(renderer.render(diag), err=True)

        try:
            result = compile_units(units, options, sink)
        except CompileError as e:
            click.echo(f"error: {len(e.diagnostics)} error(s) found", err=True)
            raise SystemExit(1)
        func(result)

    return wrapper


@click.group()
@click.version_option(__version__, prog_name="bendfront")
def main() -> None:
    """Dual-syntax language front-end."""


@main.command()
@_compile_options
def check(result: CompileResult) -> None:
    """Check source files without printing the compiled output."""
    count = len([d for d in result.book.definitions if not d.generated])
    click.echo(f"checked {count} definition(s) — no errors")


@main.command()
@_compile_options
def desugar(result: CompileResult) -> None:
    """Compile source files and print the Core IR of every definition."""
    click.echo(show_book(result.book))
