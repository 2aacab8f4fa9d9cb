"""Exception hierarchy for the conversion pipeline."""

from __future__ import annotations

from .models import ConversionPhase, ErrorKind

PHASE_PREFIXES = {
    ConversionPhase.VALIDATION: "Upload validation failed",
    ConversionPhase.EXTRACTION: "Extraction failed",
    ConversionPhase.SCRIPT_GENERATION: "Script generation failed",
    ConversionPhase.PROCESS_EXECUTION: "Process execution failed",
    ConversionPhase.VERIFICATION: "Verification failed",
}


class ConversionError(Exception):
    """Base class for every failure the service reports to a caller."""

    kind: ErrorKind = ErrorKind.INTERNAL
    phase: ConversionPhase = ConversionPhase.PROCESS_EXECUTION

    def __init__(self, message: str, *, phase: ConversionPhase | None = None) -> None:
        super().__init__(message)
        self.message = message
        if phase is not None:
            self.phase = phase

    def describe(self) -> str:
        """Cause text prefixed with the phase it happened in."""
        return f"{PHASE_PREFIXES[self.phase]}: {self.message}"


class ValidationError(ConversionError):
    kind = ErrorKind.VALIDATION
    phase = ConversionPhase.VALIDATION


class ExtractionError(ConversionError):
    """The archive could not be read or unpacked."""

    kind = ErrorKind.EXTRACTION
    phase = ConversionPhase.EXTRACTION


class NotFoundError(ConversionError):
    """No InDesign document inside the extracted archive."""

    kind = ErrorKind.NOT_FOUND
    phase = ConversionPhase.EXTRACTION


class InputMissing(ConversionError):
    kind = ErrorKind.INPUT_MISSING
    phase = ConversionPhase.SCRIPT_GENERATION


class LaunchError(ConversionError):
    """InDesign could not be started (missing binary, unsupported platform)."""

    kind = ErrorKind.LAUNCH


class ExecutionError(ConversionError):
    """InDesign exited non-zero or its script reported an error."""

    kind = ErrorKind.EXECUTION


class ProcessTimeoutError(ConversionError):
    kind = ErrorKind.TIMEOUT


class ArtifactNotProduced(ConversionError):
    """InDesign reported success but no PDF exists on disk."""

    kind = ErrorKind.ARTIFACT_NOT_PRODUCED
    phase = ConversionPhase.VERIFICATION
