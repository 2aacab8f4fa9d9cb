from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    EXTRACTION = "extraction"
    NOT_FOUND = "not_found"
    INPUT_MISSING = "input_missing"
    LAUNCH = "launch"
    EXECUTION = "execution"
    TIMEOUT = "timeout"
    ARTIFACT_NOT_PRODUCED = "artifact_not_produced"
    INTERNAL = "internal"


class ConversionPhase(str, Enum):
    VALIDATION = "validation"
    EXTRACTION = "extraction"
    SCRIPT_GENERATION = "script_generation"
    PROCESS_EXECUTION = "process_execution"
    VERIFICATION = "verification"


class CheckStatus(str, Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"
    INFO = "info"


class ErrorResponse(BaseModel):
    error: str
    detail: str
    max_size: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    message: str


class DiagnosticCheck(BaseModel):
    name: str
    status: CheckStatus
    detail: str


class DiagnosticsReport(BaseModel):
    ok: bool
    checks: List[DiagnosticCheck]
