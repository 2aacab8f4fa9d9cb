"""
Automation script templates.

The ExtendScript text is the contract between this service and InDesign: the
``ERROR:`` line written by its catch branch is what the process runner scans
for, so marker strings and the dialog preference must stay as they are.
Rendering is pure string substitution; the same paths always produce the same
text.
"""

from __future__ import annotations

from pathlib import PurePath
from string import Template
from typing import Union

ERROR_MARKER = "ERROR:"
SUCCESS_MARKER = "SUCCESS"

PathLike = Union[str, PurePath]

EXPORT_SCRIPT_TEMPLATE = Template(
    """
#target indesign

try {
  $$.writeln("Starting InDesign conversion script...");

  // Suppress all dialogs and user interaction
  app.scriptPreferences.userInteractionLevel = UserInteractionLevels.NEVER_INTERACT;

  $$.writeln("Opening InDesign document...");

  var sourceFile = File("${input_path}");
  if (!sourceFile.exists) {
    throw new Error("Source file not found: " + sourceFile.fsName);
  }

  var doc = app.open(sourceFile, false);

  $$.writeln("Document opened successfully. Pages: " + doc.pages.length);

  if (doc.fonts.length > 0) {
    $$.writeln("Document has " + doc.fonts.length + " fonts");
  }

  var pdfFile = File("${output_path}");

  $$.writeln("Configuring PDF export preferences...");

  // Default High Quality Print preset, every page
  app.pdfExportPreferences.pageRange = PageRange.ALL_PAGES;

  $$.writeln("Starting PDF export...");

  doc.exportFile(ExportFormat.PDF_TYPE, pdfFile, false);

  $$.writeln("PDF export completed successfully");

  doc.close(SaveOptions.NO);

  $$.writeln("Document closed. Conversion complete.");

  app.quit();

  "${success_marker}";

} catch (err) {
  $$.writeln("ERROR occurred: " + err.message);

  if (typeof doc !== 'undefined') {
    try {
      $$.writeln("Attempting to close document...");
      doc.close(SaveOptions.NO);
    } catch (e) {
      $$.writeln("Could not close document: " + e.message);
    }
  }

  try {
    app.quit();
  } catch (e) {}

  $$.writeln("${error_marker} " + err.message);
  throw err;
}
"""
)

APPLESCRIPT_WRAPPER_TEMPLATE = Template(
    """tell application "${app_name}"
\tactivate
\tset scriptFile to POSIX file "${script_path}"
\tdo script scriptFile language javascript
end tell"""
)


def to_script_path(path: PathLike) -> str:
    """Render a filesystem path in the forward-slash form ExtendScript expects."""
    return str(path).replace("\\", "/")


def render_export_script(input_path: PathLike, output_path: PathLike) -> str:
    """
    Render the ExtendScript that opens ``input_path`` and exports it to ``output_path``.

    Args:
        input_path: Absolute path of the .indd/.idml document
        output_path: Absolute path the PDF should be written to

    Returns:
        The script text, with every backslash in the paths turned into ``/``
    """
    return EXPORT_SCRIPT_TEMPLATE.substitute(
        input_path=to_script_path(input_path),
        output_path=to_script_path(output_path),
        success_marker=SUCCESS_MARKER,
        error_marker=ERROR_MARKER,
    )


def render_applescript_wrapper(script_path: PathLike, app_name: str) -> str:
    """Render the macOS AppleScript that asks InDesign to run a .jsx file."""
    return APPLESCRIPT_WRAPPER_TEMPLATE.substitute(
        app_name=app_name,
        script_path=str(script_path),
    )
