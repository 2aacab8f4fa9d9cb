"""
Conversion orchestration for InDesign packages.

This module runs one conversion from start to finish:
- Validating and extracting the uploaded archive
- Locating the InDesign document
- Rendering the automation script and handing it to the ProcessRunner
- Verifying that the PDF really exists before reporting success

Failures never escape as exceptions. Each one is turned into a failed
``ConversionResult`` carrying its ``ErrorKind`` and a message prefixed with
the phase it happened in, so callers only ever branch on the result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .archive import extract_and_locate, is_valid_zip
from .configuration import ServiceConfig
from .errors import ArtifactNotProduced, ConversionError, InputMissing, ValidationError
from .models import ConversionPhase, ErrorKind
from .process_runner import ProcessRunner
from .script_generator import render_export_script
from .utils import ensure_directory

logger = logging.getLogger(__name__)

ARTIFACT_EXTENSION = ".pdf"
INVALID_ARCHIVE_MESSAGE = "Invalid or corrupt zip file"


@dataclass(frozen=True)
class ConversionRequest:
    """
    One document to convert.

    Attributes:
        input_path: The .indd/.idml document
        output_dir: Directory the PDF is written into
    """

    input_path: Path
    output_dir: Path

    @property
    def artifact_path(self) -> Path:
        return self.output_dir / f"{self.input_path.stem}{ARTIFACT_EXTENSION}"


@dataclass(frozen=True)
class ConversionResult:
    """
    Outcome of a conversion: a verified artifact path, or an error kind with a message.

    Attributes:
        artifact_path: The produced PDF (success only)
        error_kind: Failure category (failure only)
        message: Phase-prefixed failure description (failure only)
    """

    artifact_path: Optional[Path] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, artifact_path: Path) -> "ConversionResult":
        return cls(artifact_path=artifact_path)

    @classmethod
    def failure(cls, error: ConversionError) -> "ConversionResult":
        return cls(error_kind=error.kind, message=error.describe())

    @property
    def ok(self) -> bool:
        return self.error_kind is None


class ConversionOrchestrator:
    """
    Drives a conversion through extraction, script generation, execution and verification.

    Attributes:
        runner: ProcessRunner used to execute InDesign
    """

    def __init__(self, config: ServiceConfig, runner: ProcessRunner | None = None) -> None:
        self._config = config
        self.runner = runner or ProcessRunner.from_config(config)

    def convert(self, input_path: Path, output_dir: Path) -> ConversionResult:
        """
        Convert one InDesign document to PDF.

        Args:
            input_path: The .indd or .idml file
            output_dir: Directory for the PDF (created if missing)

        Returns:
            Success with the verified PDF path, or a classified failure
        """
        request = ConversionRequest(input_path=input_path, output_dir=output_dir)
        try:
            artifact = self._convert(request)
        except ConversionError as exc:
            logger.error(f"Conversion of {input_path.name} failed: {exc.describe()}")
            return ConversionResult.failure(exc)
        logger.info(f"PDF generated: {artifact}")
        return ConversionResult.success(artifact)

    def convert_archive(self, archive_path: Path, extract_dir: Path) -> ConversionResult:
        """
        Extract an uploaded zip, find its InDesign document and convert it.

        The PDF is written into ``extract_dir`` next to the extracted files so
        a single directory removal cleans up everything but the upload itself.
        """
        try:
            if not is_valid_zip(archive_path):
                raise ValidationError(INVALID_ARCHIVE_MESSAGE)
            logger.info("Extracting zip file...")
            document = extract_and_locate(archive_path, extract_dir)
        except ConversionError as exc:
            logger.error(f"Archive {archive_path.name} rejected: {exc.describe()}")
            return ConversionResult.failure(exc)
        logger.info("Converting to PDF...")
        return self.convert(document, extract_dir)

    def _convert(self, request: ConversionRequest) -> Path:
        if not request.input_path.exists():
            raise InputMissing(f"InDesign file not found: {request.input_path}")

        try:
            ensure_directory(request.output_dir)
        except OSError as exc:
            raise ConversionError(
                f"Could not create output directory {request.output_dir}: {exc}",
                phase=ConversionPhase.SCRIPT_GENERATION,
            ) from exc
        artifact = request.artifact_path.resolve()
        script = render_export_script(request.input_path.resolve(), artifact)

        self.runner.run(script).raise_for_state()

        if not artifact.exists():
            raise ArtifactNotProduced("PDF was not generated successfully")
        return artifact
