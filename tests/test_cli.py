"""Tests for the bendfront CLI and error rendering."""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from bendfront.cli import main
from bendfront.errors import (
    Diagnostic,
    DiagnosticLabel,
    DiagnosticRenderer,
    ErrorKind,
    Severity,
    make_error,
)
from bendfront.source import Span

BROKEN_SWITCH = (
    "def main(n):\n"
    "  switch n:\n"
    "    case 1:\n"
    "      return 1\n"
    "    case _:\n"
    "      return 0\n"
)

TWO_BROKEN = (
    "def first():\n"
    "  return y\n"
    "def main():\n"
    "  return (first, z)\n"
)

UNUSED = "def helper():\n  return 1\ndef main():\n  return 2\n"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def write(tmp_path):
    def _write(text: str, name: str = "main.bend"):
        path = tmp_path / name
        path.write_text(text)
        return str(path)
    return _write


# --- CLI tests ---


class TestCLI:
    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "check" in result.output
        assert "desugar" in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_check_help_lists_warning_flags(self, runner):
        result = runner.invoke(main, ["check", "--help"])
        assert result.exit_code == 0
        assert "--fail-fast" in result.output
        assert "--jobs" in result.output
        assert "unused-defs" in result.output

    def test_check_clean(self, runner, write):
        result = runner.invoke(main, ["check", write("def main():\n  return 1\n")])
        assert result.exit_code == 0
        assert "checked 1 definition(s)" in result.output
        assert "no errors" in result.output

    def test_check_counts_only_user_definitions(self, runner, write):
        source = (
            "def main(xs):\n"
            "  fold xs:\n"
            "    case List/Cons:\n"
            "      return 1 + xs.tail\n"
            "    case List/Nil:\n"
            "      return 0\n"
        )
        result = runner.invoke(main, ["check", write(source)])
        assert result.exit_code == 0
        assert "checked 1 definition(s)" in result.output

    def test_desugar_prints_book(self, runner, write):
        result = runner.invoke(main, ["desugar", write("def main():\n  return 1\n")])
        assert result.exit_code == 0
        assert "(def main 1)" in result.output

    def test_desugar_several_files(self, runner, write):
        lib = write("def double(x):\n  return x * 2\n", "lib.bend")
        app = write("main = (double 21)\n", "app.bend")
        result = runner.invoke(main, ["desugar", lib, app])
        assert result.exit_code == 0
        assert "(def double (λ x (op * x 2)))" in result.output
        assert "(def main (double 21))" in result.output

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(main, ["check", str(tmp_path / "nope.bend")])
        assert result.exit_code == 2

    def test_error_exits_nonzero(self, runner, write):
        result = runner.invoke(main, ["check", write(BROKEN_SWITCH)])
        assert result.exit_code == 1
        assert "error[E500]" in result.output
        assert "(ControlFlowError)" in result.output
        assert "error: 1 error(s) found" in result.output

    def test_error_points_at_source(self, runner, write):
        path = write(BROKEN_SWITCH)
        result = runner.invoke(main, ["check", path])
        assert f"--> {path}:3:" in result.output
        assert "case 1:" in result.output

    def test_batch_reports_all_errors(self, runner, write):
        result = runner.invoke(main, ["check", write(TWO_BROKEN)])
        assert result.exit_code == 1
        assert "error: 2 error(s) found" in result.output

    def test_fail_fast(self, runner, write):
        result = runner.invoke(main, ["check", "--fail-fast", write(TWO_BROKEN)])
        assert result.exit_code == 1
        assert "error: 1 error(s) found" in result.output

    def test_jobs(self, runner, write):
        result = runner.invoke(main, ["desugar", "-j", "2", write(UNUSED)])
        assert result.exit_code == 0
        assert "(def helper 1)" in result.output
        assert "(def main 2)" in result.output

    def test_jobs_must_be_positive(self, runner, write):
        result = runner.invoke(main, ["check", "-j", "0", write(UNUSED)])
        assert result.exit_code == 2

    def test_warning_is_reported(self, runner, write):
        result = runner.invoke(main, ["check", write(UNUSED)])
        assert result.exit_code == 0
        assert "warning[W100]" in result.output
        assert "definition 'helper' is never used" in result.output

    def test_allow_silences_warning(self, runner, write):
        result = runner.invoke(main, ["check", "-A", "all", write(UNUSED)])
        assert result.exit_code == 0
        assert "W100" not in result.output

    def test_deny_fails(self, runner, write):
        result = runner.invoke(main, ["check", "-D", "unused-defs", write(UNUSED)])
        assert result.exit_code == 1
        assert "error[W100]" in result.output

    def test_deny_wins_over_allow(self, runner, write):
        result = runner.invoke(
            main, ["check", "-A", "unused-defs", "-D", "unused-defs", write(UNUSED)],
        )
        assert result.exit_code == 1

    def test_verbose(self, runner, write):
        result = runner.invoke(main, ["check", "-v", write("def main():\n  return 1\n")])
        assert result.exit_code == 0


class TestConfigFile:
    def test_config_denies_warning(self, runner, tmp_path, write):
        (tmp_path / "bendfront.toml").write_text('[warnings]\nunused_defs = "deny"\n')
        result = runner.invoke(main, ["check", write(UNUSED)])
        assert result.exit_code == 1

    def test_flag_overrides_config(self, runner, tmp_path, write):
        (tmp_path / "bendfront.toml").write_text('[warnings]\nunused_defs = "deny"\n')
        result = runner.invoke(main, ["check", "-W", "unused-defs", write(UNUSED)])
        assert result.exit_code == 0
        assert "warning[W100]" in result.output

    def test_config_fail_fast(self, runner, tmp_path, write):
        (tmp_path / "bendfront.toml").write_text('[check]\nmode = "fail-fast"\n')
        result = runner.invoke(main, ["check", write(TWO_BROKEN)])
        assert "error: 1 error(s) found" in result.output

    def test_invalid_config(self, runner, tmp_path, write):
        (tmp_path / "bendfront.toml").write_text('[check]\nmode = "sometimes"\n')
        result = runner.invoke(main, ["check", write(UNUSED)])
        assert result.exit_code == 1
        assert "invalid configuration" in result.output


# --- Renderer tests ---


class TestRenderer:
    SPAN = Span("demo.bend", 2, 10, 2, 12)

    def test_header_and_location(self):
        renderer = DiagnosticRenderer(color=False, sources={"demo.bend": "a\nreturn foo\n"})
        text = renderer.render(make_error(ErrorKind.NAME, "unbound variable 'foo'", self.SPAN))
        lines = text.splitlines()
        assert lines[0] == "error[E300]: unbound variable 'foo' (NameError)"
        assert lines[1] == "  --> demo.bend:2:10"
        assert "return foo" in text
        assert "^^^" in text

    def test_warning_has_no_kind(self):
        diag = Diagnostic(
            severity=Severity.WARNING,
            code="W100",
            message="definition 'f' is never used",
            labels=[DiagnosticLabel(span=self.SPAN, message="")],
        )
        text = DiagnosticRenderer(color=False).render(diag)
        assert text.splitlines()[0] == "warning[W100]: definition 'f' is never used"

    def test_notes(self):
        diag = make_error(ErrorKind.ARITY, "too many arguments", None)
        diag.notes.append("'f' takes 1 argument")
        text = DiagnosticRenderer(color=False).render(diag)
        assert "= note: 'f' takes 1 argument" in text

    def test_color(self):
        text = DiagnosticRenderer(color=True).render(
            make_error(ErrorKind.LEX, "unterminated string literal", None),
        )
        assert "\033[" in text
