"""
Tests for host diagnostics and the diagnostics CLI.
"""

from typer.testing import CliRunner

from indesign_pdf_backend import diagnostics
from indesign_pdf_backend.diagnostics import (
    check_disk_space,
    check_display_session,
    check_python_version,
    check_running_process,
    cli,
    run_diagnostics,
)
from indesign_pdf_backend.models import CheckStatus, DiagnosticCheck, DiagnosticsReport


def _console_session(command):
    if command == ["who"]:
        return "designer console  Oct 18 09:12"
    return None


class TestChecks:
    """Tests for individual checks."""

    def test_python_version(self):
        assert check_python_version((3, 12, 1)).status is CheckStatus.PASS
        assert check_python_version((3, 8, 0)).status is CheckStatus.FAIL

    def test_display_session_only_on_macos(self):
        assert check_display_session("win32", _console_session) is None
        assert check_display_session("darwin", _console_session).status is CheckStatus.PASS
        assert check_display_session("darwin", lambda command: None).status is CheckStatus.WARN

    def test_running_process_is_informational(self):
        running = check_running_process("darwin", lambda command: "4242")
        idle = check_running_process("darwin", lambda command: None)
        assert running.status is CheckStatus.INFO
        assert "currently running" in running.detail
        assert "not currently running" in idle.detail
        assert check_running_process("linux", lambda command: "x") is None

    def test_disk_space_warns_below_threshold(self, tmp_path):
        assert check_disk_space(tmp_path, low_water_bytes=0).status is CheckStatus.PASS
        assert check_disk_space(tmp_path, low_water_bytes=10**18).status is CheckStatus.WARN


class TestRunDiagnostics:
    """Tests for the combined report."""

    def test_ready_macos_host(self, config, tmp_path):
        binary = tmp_path / "Adobe InDesign 2024"
        binary.write_text("")
        config.indesign_app_path = str(binary)

        report = run_diagnostics(config, platform="darwin", run=_console_session)

        statuses = {check.name: check.status for check in report.checks}
        assert statuses["indesign"] is CheckStatus.PASS
        assert statuses["directories"] is CheckStatus.PASS
        assert statuses["display_session"] is CheckStatus.PASS
        assert report.ok

    def test_unsupported_host_fails(self, config):
        report = run_diagnostics(config, platform="linux", run=lambda command: None)
        statuses = {check.name: check.status for check in report.checks}
        assert statuses["platform"] is CheckStatus.FAIL
        assert statuses["indesign"] is CheckStatus.FAIL
        assert not report.ok


class TestCli:
    """Tests for the diagnostics command line."""

    def test_exit_code_follows_report(self, monkeypatch):
        runner = CliRunner()
        failing = DiagnosticsReport(
            ok=False,
            checks=[DiagnosticCheck(name="indesign", status=CheckStatus.FAIL, detail="Adobe InDesign not found")],
        )
        monkeypatch.setattr(diagnostics, "run_diagnostics", lambda config: failing)
        result = runner.invoke(cli, [])
        assert result.exit_code == 1
        assert "Some checks failed" in result.output

        passing = DiagnosticsReport(
            ok=True,
            checks=[DiagnosticCheck(name="indesign", status=CheckStatus.PASS, detail="found")],
        )
        monkeypatch.setattr(diagnostics, "run_diagnostics", lambda config: passing)
        result = runner.invoke(cli, [])
        assert result.exit_code == 0
        assert "All checks passed" in result.output
