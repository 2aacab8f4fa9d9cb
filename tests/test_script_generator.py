"""
Tests for ExtendScript and AppleScript rendering.
"""

from pathlib import PureWindowsPath

from indesign_pdf_backend.script_generator import (
    ERROR_MARKER,
    render_applescript_wrapper,
    render_export_script,
    to_script_path,
)


class TestExportScript:
    """Tests for render_export_script."""

    def test_paths_are_embedded(self):
        script = render_export_script("/tmp/job/Brochure.indd", "/tmp/job/Brochure.pdf")
        assert 'File("/tmp/job/Brochure.indd")' in script
        assert 'File("/tmp/job/Brochure.pdf")' in script

    def test_windows_paths_use_forward_slashes(self):
        """Backslashes would be read as escapes by ExtendScript."""
        script = render_export_script(
            PureWindowsPath(r"C:\Jobs\Brochure.indd"),
            PureWindowsPath(r"C:\Jobs\Brochure.pdf"),
        )
        assert 'File("C:/Jobs/Brochure.indd")' in script
        assert "\\" not in script

    def test_script_suppresses_dialogs_and_quits(self):
        script = render_export_script("/in.indd", "/out.pdf")
        assert "UserInteractionLevels.NEVER_INTERACT" in script
        assert "PageRange.ALL_PAGES" in script
        assert "ExportFormat.PDF_TYPE" in script
        assert "SaveOptions.NO" in script
        assert "app.quit();" in script

    def test_error_branch_writes_marker(self):
        """The catch branch reports failures with the marker the runner scans for."""
        script = render_export_script("/in.indd", "/out.pdf")
        assert f'$.writeln("{ERROR_MARKER} " + err.message);' in script
        assert "throw err;" in script

    def test_rendering_is_deterministic(self):
        assert render_export_script("/a.indd", "/a.pdf") == render_export_script("/a.indd", "/a.pdf")

    def test_to_script_path(self):
        assert to_script_path("C:\\a\\b.indd") == "C:/a/b.indd"


class TestAppleScriptWrapper:
    """Tests for render_applescript_wrapper."""

    def test_wrapper_targets_application(self):
        wrapper = render_applescript_wrapper("/tmp/export.jsx", "Adobe InDesign 2026")
        assert wrapper.splitlines() == [
            'tell application "Adobe InDesign 2026"',
            "\tactivate",
            '\tset scriptFile to POSIX file "/tmp/export.jsx"',
            "\tdo script scriptFile language javascript",
            "end tell",
        ]
