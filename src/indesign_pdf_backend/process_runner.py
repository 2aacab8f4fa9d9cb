"""
Running InDesign with a generated automation script.

A run moves through ``IDLE -> LAUNCHING -> RUNNING`` and ends in one of
``SUCCEEDED``, ``FAILED`` or ``TIMED_OUT``. InDesign has no structured
protocol, so the terminal state is derived from the exit code and a textual
error marker; that rule lives in ``classify_outcome`` and nowhere else.

How InDesign is started depends on the host OS and is captured by a
``LaunchStrategy`` chosen once with ``select_launch_strategy``:

- macOS: the .jsx is wrapped in an AppleScript that ``osascript`` runs
- Windows: the .jsx is passed to ``InDesign.exe -ScriptPath``

Script files are written to the scratch directory before the spawn and are
always removed once the process is gone.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, IO, List, Optional, Tuple
from uuid import uuid4

from .availability import MACOS, WINDOWS, resolve_indesign_path
from .configuration import ServiceConfig
from .errors import ConversionError, ExecutionError, LaunchError, ProcessTimeoutError
from .models import ConversionPhase
from .script_generator import ERROR_MARKER, render_applescript_wrapper
from .utils import delete_paths, ensure_directory

logger = logging.getLogger(__name__)

# Harmless Objective-C runtime warnings InDesign prints on macOS
STDERR_NOISE_MARKERS = (
    "Class AdobeSimpleURLSession",
    "objc[",
    "is implemented in both",
    "One of the duplicates must be removed",
)

CHILD_ENVIRONMENT = {"OBJC_DISABLE_INITIALIZE_FORK_SAFETY": "YES"}

TIMEOUT_HINT = "This may indicate missing fonts, missing links, or InDesign waiting for user input."


class ProcessState(str, Enum):
    IDLE = "idle"
    LAUNCHING = "launching"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


def filter_stderr_noise(stderr: str) -> str:
    """Drop known-benign platform warnings from stderr."""
    kept = [line for line in stderr.split("\n") if not any(marker in line for marker in STDERR_NOISE_MARKERS)]
    return "\n".join(kept).strip()


def classify_outcome(returncode: Optional[int], stdout: str, stderr: str) -> Tuple[ProcessState, str]:
    """
    Decide whether a finished InDesign run succeeded.

    Success requires exit code 0 and no ``ERROR:`` marker in either stdout or
    the noise-filtered stderr.

    Returns:
        ``(state, detail)`` where state is SUCCEEDED or FAILED; detail is the
        trimmed stdout on success and a failure description otherwise
    """
    filtered = filter_stderr_noise(stderr)
    if returncode != 0 or ERROR_MARKER in filtered or ERROR_MARKER in stdout:
        cause = filtered or stdout.strip() or f"Exit code {returncode}"
        return ProcessState.FAILED, f"InDesign script execution failed: {cause}"
    return ProcessState.SUCCEEDED, stdout.strip()


def _describe_duration(seconds: float) -> str:
    if seconds >= 60 and seconds % 60 == 0:
        minutes = int(seconds // 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    return f"{seconds:g} seconds"


@dataclass(frozen=True)
class LaunchPlan:
    """Command line for one run plus any auxiliary files the strategy wrote."""

    command: List[str]
    extra_files: Tuple[Path, ...] = ()


class LaunchStrategy(ABC):
    """Turns a written .jsx file into a command that makes InDesign run it."""

    name = "abstract"

    def __init__(self, binary_path: Optional[Path]) -> None:
        self.binary_path = binary_path

    def check_binary(self) -> None:
        if self.binary_path is None or not self.binary_path.exists():
            raise LaunchError(f"Adobe InDesign not found at: {self.binary_path}")

    @abstractmethod
    def prepare(self, script_path: Path) -> LaunchPlan:
        """Build the launch plan; raise LaunchError when InDesign cannot be started."""


class MacOSLaunchStrategy(LaunchStrategy):
    name = "applescript"

    def __init__(self, binary_path: Optional[Path], app_name: str, osascript: str = "osascript") -> None:
        super().__init__(binary_path)
        self.app_name = app_name
        self.osascript = osascript

    def prepare(self, script_path: Path) -> LaunchPlan:
        self.check_binary()
        wrapper_path = script_path.with_suffix(".scpt")
        try:
            wrapper_path.write_text(render_applescript_wrapper(script_path, self.app_name), encoding="utf-8")
        except OSError as exc:
            raise LaunchError(f"Could not write AppleScript wrapper {wrapper_path}: {exc}") from exc
        return LaunchPlan(command=[self.osascript, str(wrapper_path)], extra_files=(wrapper_path,))


class WindowsLaunchStrategy(LaunchStrategy):
    name = "script-path"

    def prepare(self, script_path: Path) -> LaunchPlan:
        self.check_binary()
        return LaunchPlan(command=[str(self.binary_path), "-ScriptPath", str(script_path)])


class UnsupportedPlatformStrategy(LaunchStrategy):
    name = "unsupported"

    def __init__(self, platform: str) -> None:
        super().__init__(None)
        self.platform = platform

    def prepare(self, script_path: Path) -> LaunchPlan:
        raise LaunchError(f"Unsupported platform for Adobe InDesign automation: {self.platform}")


def select_launch_strategy(config: ServiceConfig, platform: str = sys.platform) -> LaunchStrategy:
    """Pick the launch strategy for ``platform``."""
    if platform == MACOS:
        return MacOSLaunchStrategy(resolve_indesign_path(config, platform), config.indesign_app_name)
    if platform == WINDOWS:
        return WindowsLaunchStrategy(resolve_indesign_path(config, platform))
    return UnsupportedPlatformStrategy(platform)


@dataclass
class ExternalProcessHandle:
    """
    One spawned InDesign process.

    Attributes:
        pid: Operating system process id
        process: The underlying Popen object
        deadline: ``time.monotonic()`` value after which the run is timed out
        state: Current position in the run state machine
        resolved: True once a terminal state was reached
        signals_sent: Termination signals issued, in order
    """

    pid: int
    process: subprocess.Popen
    deadline: float
    state: ProcessState = ProcessState.RUNNING
    resolved: bool = False
    signals_sent: List[str] = field(default_factory=list)
    stdout_chunks: List[str] = field(default_factory=list)
    stderr_chunks: List[str] = field(default_factory=list)
    readers: List[threading.Thread] = field(default_factory=list)

    @property
    def stdout(self) -> str:
        return "".join(self.stdout_chunks)

    @property
    def stderr(self) -> str:
        return "".join(self.stderr_chunks)

    def resolve(self, state: ProcessState) -> None:
        self.state = state
        self.resolved = True


@dataclass(frozen=True)
class ProcessOutcome:
    state: ProcessState
    returncode: Optional[int]
    stdout: str
    stderr: str
    detail: str
    signals_sent: Tuple[str, ...] = ()
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state is ProcessState.SUCCEEDED

    def raise_for_state(self) -> "ProcessOutcome":
        """Return self on success, raise the matching ConversionError otherwise."""
        if self.state is ProcessState.SUCCEEDED:
            return self
        if self.state is ProcessState.TIMED_OUT:
            raise ProcessTimeoutError(self.detail)
        raise ExecutionError(self.detail)


class ProcessRunner:
    """
    Runs InDesign once per call, one call at a time.

    The lock guarantees at most one live InDesign process per runner. Requests
    that arrive while a conversion is running wait for it instead of starting
    a second InDesign instance; there is no queue beyond that wait.
    """

    def __init__(
        self,
        strategy: LaunchStrategy,
        scratch_dir: Path,
        timeout_seconds: float = 300.0,
        grace_seconds: float = 5.0,
        env: Dict[str, str] | None = None,
    ) -> None:
        self.strategy = strategy
        self.scratch_dir = scratch_dir
        self.timeout_seconds = timeout_seconds
        self.grace_seconds = grace_seconds
        self._env = env
        self._lock = threading.Lock()
        self._state = ProcessState.IDLE

    @classmethod
    def from_config(cls, config: ServiceConfig, platform: str = sys.platform) -> "ProcessRunner":
        return cls(
            strategy=select_launch_strategy(config, platform),
            scratch_dir=config.scratch_path,
            timeout_seconds=config.process_timeout_seconds,
            grace_seconds=config.kill_grace_seconds,
        )

    @property
    def state(self) -> ProcessState:
        return self._state

    def run(self, script_text: str) -> ProcessOutcome:
        """
        Write ``script_text`` to the scratch directory and have InDesign execute it.

        Returns:
            The classified outcome (SUCCEEDED, FAILED or TIMED_OUT)

        Raises:
            LaunchError: If InDesign cannot be started at all
            ConversionError: If the script cannot be written to the scratch directory
        """
        with self._lock:
            script_path = self.scratch_dir / f"indesign_export_{uuid4().hex}.jsx"
            written: List[Path] = []
            self._state = ProcessState.LAUNCHING
            try:
                self._write_script(script_path, script_text)
                written.append(script_path)
                plan = self.strategy.prepare(script_path)
                written.extend(plan.extra_files)
                handle = self._spawn(plan)
                outcome = self._wait(handle)
            except ConversionError:
                self._state = ProcessState.FAILED
                raise
            finally:
                delete_paths(written)
            self._state = outcome.state
            return outcome

    @staticmethod
    def _write_script(script_path: Path, script_text: str) -> None:
        try:
            ensure_directory(script_path.parent)
            script_path.write_text(script_text, encoding="utf-8")
        except OSError as exc:
            raise ConversionError(
                f"Could not write automation script to {script_path}: {exc}",
                phase=ConversionPhase.SCRIPT_GENERATION,
            ) from exc

    def _child_env(self) -> Dict[str, str]:
        base = dict(os.environ if self._env is None else self._env)
        base.update(CHILD_ENVIRONMENT)
        return base

    def _spawn(self, plan: LaunchPlan) -> ExternalProcessHandle:
        logger.info("[InDesign] Starting InDesign process...")
        try:
            process = subprocess.Popen(
                plan.command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self._child_env(),
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            raise LaunchError(
                f"Failed to launch InDesign: {exc}. Please ensure InDesign is installed at: {self.strategy.binary_path}"
            ) from exc

        logger.info(f"[InDesign] Process spawned with PID: {process.pid}")
        handle = ExternalProcessHandle(
            pid=process.pid,
            process=process,
            deadline=time.monotonic() + self.timeout_seconds,
        )
        self._state = ProcessState.RUNNING
        handle.readers = [
            self._start_reader(process.stdout, handle.stdout_chunks, "stdout"),
            self._start_reader(process.stderr, handle.stderr_chunks, "stderr"),
        ]
        return handle

    @staticmethod
    def _start_reader(stream: Optional[IO[str]], sink: List[str], label: str) -> threading.Thread:
        def pump() -> None:
            if stream is None:
                return
            with stream:
                for line in iter(stream.readline, ""):
                    sink.append(line)
                    logger.info(f"[InDesign {label}]: {line.rstrip()}")

        thread = threading.Thread(target=pump, name=f"indesign-{label}", daemon=True)
        thread.start()
        return thread

    def _wait(self, handle: ExternalProcessHandle) -> ProcessOutcome:
        started = time.monotonic()
        process = handle.process
        try:
            returncode: Optional[int] = process.wait(timeout=max(0.0, handle.deadline - time.monotonic()))
        except subprocess.TimeoutExpired:
            returncode = self._escalate(handle)
            handle.resolve(ProcessState.TIMED_OUT)
            detail = f"InDesign process timed out after {_describe_duration(self.timeout_seconds)}. {TIMEOUT_HINT}"
        else:
            self._join_readers(handle)
            state, detail = classify_outcome(returncode, handle.stdout, handle.stderr)
            handle.resolve(state)
            logger.info(f"[InDesign] Process closed with exit code: {returncode}")
            logger.info(f"[InDesign] Conversion {'SUCCESS' if state is ProcessState.SUCCEEDED else 'FAILED'}")

        return ProcessOutcome(
            state=handle.state,
            returncode=returncode,
            stdout=handle.stdout,
            stderr=handle.stderr,
            detail=detail,
            signals_sent=tuple(handle.signals_sent),
            duration_seconds=time.monotonic() - started,
        )

    def _escalate(self, handle: ExternalProcessHandle) -> Optional[int]:
        process = handle.process
        logger.warning("[InDesign] Process timeout - terminating InDesign...")
        process.terminate()
        handle.signals_sent.append("SIGTERM")
        try:
            returncode = process.wait(timeout=self.grace_seconds)
        except subprocess.TimeoutExpired:
            logger.warning(f"[InDesign] Still running {self.grace_seconds:g}s after SIGTERM - killing...")
            process.kill()
            handle.signals_sent.append("SIGKILL")
            returncode = process.wait()
        self._join_readers(handle)
        return returncode

    def _join_readers(self, handle: ExternalProcessHandle) -> None:
        for reader in handle.readers:
            reader.join(timeout=self.grace_seconds)
