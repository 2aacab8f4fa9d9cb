"""
Pytest configuration and fixtures for InDesign PDF Backend tests.

InDesign itself is never started. ``PythonLaunchStrategy`` runs a short Python
snippet in its place, receiving the generated .jsx path as ``sys.argv[1]``,
so the real process runner (spawn, stream capture, timeout, kill) is exercised
end to end.
"""

import os
import shutil
import sys
import tempfile
import zipfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing the app
os.environ["TEMP_UPLOAD_PATH"] = tempfile.mkdtemp(prefix="indesign_test_uploads_")
os.environ["TEMP_EXTRACT_PATH"] = tempfile.mkdtemp(prefix="indesign_test_extracted_")
os.environ["SCRATCH_DIR"] = tempfile.mkdtemp(prefix="indesign_test_scratch_")
os.environ["CLEANUP_INTERVAL_HOURS"] = "0"

from indesign_pdf_backend.availability import AvailabilityProbe
from indesign_pdf_backend.configuration import load_config
from indesign_pdf_backend.conversion import ConversionOrchestrator
from indesign_pdf_backend.main import create_app
from indesign_pdf_backend.process_runner import LaunchPlan, LaunchStrategy, ProcessRunner

# Stand-in for a successful InDesign run: reads the output path out of the
# generated script and writes a minimal PDF there.
WRITE_PDF_CHILD = r"""
import re, sys
text = open(sys.argv[1], encoding="utf-8").read()
paths = re.findall(r'File\("([^"]*)"\)', text)
with open(paths[1], "wb") as pdf:
    pdf.write(b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\n%%EOF\n")
print("SUCCESS")
"""

SUCCESS_CHILD = 'print("SUCCESS")'


class PythonLaunchStrategy(LaunchStrategy):
    """Runs a Python snippet in place of InDesign."""

    name = "python"

    def __init__(self, code, binary_path=None):
        super().__init__(Path(sys.executable) if binary_path is None else binary_path)
        self.code = code
        self.prepared = []

    def prepare(self, script_path):
        self.check_binary()
        self.prepared.append(script_path)
        return LaunchPlan(command=[str(self.binary_path), "-c", self.code, str(script_path)])


@pytest.fixture(scope="session", autouse=True)
def test_dirs():
    """Create and cleanup the directories the module-level app points at."""
    dirs = {
        "upload": os.environ["TEMP_UPLOAD_PATH"],
        "extract": os.environ["TEMP_EXTRACT_PATH"],
        "scratch": os.environ["SCRATCH_DIR"],
    }

    yield dirs

    # Cleanup after all tests
    for directory in dirs.values():
        shutil.rmtree(directory, ignore_errors=True)


@pytest.fixture
def config(tmp_path):
    """Service configuration isolated in a per-test directory."""
    return load_config(
        environ={},
        use_dotenv=False,
        temp_upload_path=str(tmp_path / "uploads"),
        temp_extract_path=str(tmp_path / "extracted"),
        scratch_dir=str(tmp_path / "scratch"),
        process_timeout_seconds=10.0,
        kill_grace_seconds=2.0,
        cleanup_interval_hours=0.0,
    )


@pytest.fixture
def make_runner(config):
    """Factory for ProcessRunners whose "InDesign" is a Python snippet."""

    def _make(code=SUCCESS_CHILD, binary_path=None, timeout_seconds=10.0, grace_seconds=2.0):
        return ProcessRunner(
            PythonLaunchStrategy(code, binary_path),
            scratch_dir=config.scratch_path,
            timeout_seconds=timeout_seconds,
            grace_seconds=grace_seconds,
        )

    return _make


@pytest.fixture
def make_orchestrator(config, make_runner):
    """Factory for orchestrators backed by ``make_runner``."""

    def _make(code=WRITE_PDF_CHILD, **runner_kwargs):
        return ConversionOrchestrator(config, runner=make_runner(code, **runner_kwargs))

    return _make


@pytest.fixture
def make_client(config, make_orchestrator):
    """Factory for test clients around a fresh app; lifespan runs on entry."""
    clients = []

    def _make(code=WRITE_PDF_CHILD, **runner_kwargs):
        app = create_app(
            config,
            orchestrator=make_orchestrator(code, **runner_kwargs),
            probe=AvailabilityProbe(config, "linux"),
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def make_zip(tmp_path):
    """Build a zip archive from a ``{member name: bytes}`` mapping."""

    def _make(members, name="package.zip"):
        archive_path = tmp_path / name
        with zipfile.ZipFile(archive_path, "w") as archive:
            for member, content in members.items():
                archive.writestr(member, content)
        return archive_path

    return _make


@pytest.fixture
def indesign_package(make_zip):
    """A typical packaged document: the .indd plus its links and fonts."""
    return make_zip(
        {
            "Brochure/Brochure.indd": b"fake indesign document",
            "Brochure/Links/cover.jpg": b"jpeg",
            "Brochure/Document fonts/Minion.otf": b"font",
        }
    )
