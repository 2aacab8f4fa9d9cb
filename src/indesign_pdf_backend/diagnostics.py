"""
Operator health checks for an InDesign conversion host.

Run ``python -m indesign_pdf_backend.diagnostics`` on the machine that will
serve conversions, or call ``GET /diagnostics`` on a running server. Unlike
``/health`` these checks look at the InDesign installation and the host.
"""

from __future__ import annotations

import platform as platform_module
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import typer
from rich.console import Console
from rich.table import Table

from .availability import MACOS, WINDOWS, AvailabilityProbe, is_supported_platform
from .configuration import ServiceConfig, load_config
from .models import CheckStatus, DiagnosticCheck, DiagnosticsReport

MIN_PYTHON = (3, 10)
LOW_DISK_BYTES = 2 * 1024 * 1024 * 1024

CommandRunner = Callable[[Sequence[str]], Optional[str]]

console = Console()
cli = typer.Typer(help="Check whether this host can run InDesign conversions")


def _run_command(command: Sequence[str]) -> Optional[str]:
    """Stdout of a short informational command, or None if it failed or is missing."""
    try:
        completed = subprocess.run(command, capture_output=True, text=True, timeout=5, check=False)
    except (OSError, subprocess.TimeoutExpired):
        return None
    if completed.returncode != 0:
        return None
    return completed.stdout.strip()


def check_python_version(version_info: Sequence[int] = tuple(sys.version_info[:3])) -> DiagnosticCheck:
    version = ".".join(str(part) for part in version_info)
    if tuple(version_info[:2]) >= MIN_PYTHON:
        return DiagnosticCheck(name="python", status=CheckStatus.PASS, detail=f"Python {version} is compatible")
    required = ".".join(str(part) for part in MIN_PYTHON)
    return DiagnosticCheck(name="python", status=CheckStatus.FAIL, detail=f"Python {version}; {required} or newer is required")


def check_platform(platform: str) -> DiagnosticCheck:
    description = f"{platform} ({platform_module.machine()})"
    if is_supported_platform(platform):
        return DiagnosticCheck(name="platform", status=CheckStatus.PASS, detail=f"{description} is supported for InDesign")
    return DiagnosticCheck(
        name="platform",
        status=CheckStatus.FAIL,
        detail=f"{description} is not supported (Adobe InDesign requires macOS or Windows)",
    )


def check_display_session(platform: str, run: CommandRunner = _run_command) -> Optional[DiagnosticCheck]:
    """macOS only: InDesign will not launch without a logged-in GUI session."""
    if platform != MACOS:
        return None
    output = run(["who"])
    sessions = [line for line in (output or "").splitlines() if "console" in line]
    if sessions:
        return DiagnosticCheck(name="display_session", status=CheckStatus.PASS, detail=sessions[0].strip())
    return DiagnosticCheck(
        name="display_session",
        status=CheckStatus.WARN,
        detail="No console session detected; InDesign requires a logged-in user with GUI access",
    )


def check_installation(probe: AvailabilityProbe) -> DiagnosticCheck:
    path = probe.resolved_path()
    if probe.is_available():
        return DiagnosticCheck(name="indesign", status=CheckStatus.PASS, detail=f"Adobe InDesign found at {path}")
    return DiagnosticCheck(
        name="indesign",
        status=CheckStatus.FAIL,
        detail=f"Adobe InDesign not found or not accessible (looked at: {path}); set INDESIGN_APP_PATH",
    )


def check_directories(config: ServiceConfig) -> DiagnosticCheck:
    problems: List[str] = []
    for directory in (config.upload_dir, config.extract_dir, config.scratch_path):
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryFile(dir=directory):
                pass
        except OSError as exc:
            problems.append(f"{directory}: {exc}")
    if problems:
        return DiagnosticCheck(name="directories", status=CheckStatus.FAIL, detail="; ".join(problems))
    return DiagnosticCheck(name="directories", status=CheckStatus.PASS, detail="Upload, extraction and scratch directories are writable")


def check_disk_space(directory: Path, low_water_bytes: int = LOW_DISK_BYTES) -> DiagnosticCheck:
    try:
        usage = shutil.disk_usage(directory)
    except OSError as exc:
        return DiagnosticCheck(name="disk", status=CheckStatus.WARN, detail=f"Cannot read disk usage for {directory}: {exc}")
    free_gb = usage.free / 1024 / 1024 / 1024
    if usage.free < low_water_bytes:
        return DiagnosticCheck(name="disk", status=CheckStatus.WARN, detail=f"Only {free_gb:.2f} GB free under {directory}")
    return DiagnosticCheck(name="disk", status=CheckStatus.PASS, detail=f"{free_gb:.2f} GB free under {directory}")


def check_running_process(platform: str, run: CommandRunner = _run_command) -> Optional[DiagnosticCheck]:
    if platform == MACOS:
        output = run(["pgrep", "-x", "Adobe InDesign"])
    elif platform == WINDOWS:
        output = run(["tasklist", "/FI", "IMAGENAME eq InDesign.exe", "/NH"])
        if output and "InDesign.exe" not in output:
            output = None
    else:
        return None
    if output:
        return DiagnosticCheck(name="indesign_process", status=CheckStatus.INFO, detail=f"InDesign is currently running ({output.splitlines()[0]})")
    return DiagnosticCheck(
        name="indesign_process",
        status=CheckStatus.INFO,
        detail="InDesign is not currently running (normal - launches on demand)",
    )


def run_diagnostics(
    config: ServiceConfig,
    platform: str = sys.platform,
    run: CommandRunner = _run_command,
) -> DiagnosticsReport:
    """Run every check and report ``ok`` unless one of them failed."""
    probe = AvailabilityProbe(config, platform)
    checks = [
        check_python_version(),
        check_platform(platform),
        check_display_session(platform, run),
        check_installation(probe),
        check_directories(config),
        check_disk_space(config.scratch_path),
        check_running_process(platform, run),
    ]
    present = [check for check in checks if check is not None]
    return DiagnosticsReport(ok=all(check.status is not CheckStatus.FAIL for check in present), checks=present)


_STATUS_STYLES = {
    CheckStatus.PASS: "[green]pass[/green]",
    CheckStatus.WARN: "[yellow]warn[/yellow]",
    CheckStatus.FAIL: "[red]fail[/red]",
    CheckStatus.INFO: "[blue]info[/blue]",
}


@cli.command()
def main(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to a YAML config file"),
) -> None:
    config = load_config(config_path)
    report = run_diagnostics(config)

    table = Table(title="InDesign Backend Health Check")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Detail")
    for check in report.checks:
        table.add_row(check.name, _STATUS_STYLES[check.status], check.detail)
    console.print(table)

    if report.ok:
        console.print("[green]All checks passed![/green] Backend is ready to process InDesign files.")
        return
    console.print("[red]Some checks failed.[/red] Review the issues above.")
    raise typer.Exit(1)


if __name__ == "__main__":
    cli()
