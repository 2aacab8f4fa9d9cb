"""
Utility functions for file system operations and filename sanitization.

This module provides helper functions for:
- Sanitizing user-provided filenames for download headers
- Ensuring directory creation
- Idempotent deletion of request-scoped temp files
- Sweeping stale files out of the scratch directories
"""

from __future__ import annotations

import logging
import re
import shutil
import time
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

# Pattern to match characters that are not safe in a download filename
# Allows: alphanumeric characters, dots, underscores, spaces and hyphens
SANITIZE_PATTERN = re.compile(r"[^a-zA-Z0-9._ -]+")


def sanitize_filename(name: str, fallback: str) -> str:
    """
    Generate a header-safe filename stem from user input.

    Args:
        name: The original name to sanitize
        fallback: Value to return if sanitization leaves nothing behind

    Returns:
        A filename stem without path separators or control characters

    Example:
        >>> sanitize_filename("Spring Catalog (v2)", "document")
        "Spring Catalog -v2-"
        >>> sanitize_filename("../", "document")
        "document"
    """
    cleaned = SANITIZE_PATTERN.sub("-", Path(name).name.strip())
    cleaned = cleaned.strip(" .")
    return cleaned or fallback


def ensure_directory(path: Path) -> Path:
    """
    Create a directory if it doesn't exist, including parent directories.

    Args:
        path: The directory path to create

    Returns:
        The same path object for chaining

    Raises:
        OSError: If directory creation fails due to permissions or other I/O errors
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def delete_path(target: Optional[Path]) -> None:
    """
    Delete a file or a directory tree.

    A target that is already gone is not an error, so calling this twice on
    the same path is safe. Other failures are logged and not raised: cleanup
    runs on error paths and must not mask the original failure.

    Args:
        target: Path to delete; ``None`` is ignored
    """
    if target is None:
        return
    try:
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink()
    except FileNotFoundError:
        return
    except OSError as exc:
        logger.error(f"Error deleting {target}: {exc}")


def delete_paths(targets: Iterable[Optional[Path]]) -> int:
    """
    Delete several files or directories.

    Returns:
        Number of non-None targets handed to ``delete_path``
    """
    count = 0
    for target in targets:
        if target is None:
            continue
        delete_path(target)
        count += 1
    return count


def cleanup_old_files(directory: Path, max_age_hours: float = 24.0, now: float | None = None) -> list[Path]:
    """
    Remove direct children of ``directory`` whose mtime is older than ``max_age_hours``.

    Args:
        directory: Directory to sweep
        max_age_hours: Maximum age to keep
        now: Reference timestamp (default: current time)

    Returns:
        Paths that were removed
    """
    removed: list[Path] = []
    if not directory.is_dir():
        return removed

    reference = time.time() if now is None else now
    max_age_seconds = max_age_hours * 60 * 60
    try:
        entries = list(directory.iterdir())
    except OSError as exc:
        logger.error(f"Error cleaning up directory {directory}: {exc}")
        return removed

    for entry in entries:
        try:
            age = reference - entry.stat().st_mtime
        except FileNotFoundError:
            continue
        except OSError as exc:
            logger.error(f"Error checking file {entry}: {exc}")
            continue
        if age > max_age_seconds:
            delete_path(entry)
            removed.append(entry)
            logger.info(f"Cleaned up old file: {entry}")
    return removed


def get_size(target: Path) -> int:
    """
    Size of a file, or the summed size of every file below a directory.

    Returns 0 for paths that do not exist.
    """
    try:
        if target.is_file():
            return target.stat().st_size
        if target.is_dir():
            return sum(get_size(child) for child in target.iterdir())
    except OSError:
        return 0
    return 0


def allowed_archive_extensions() -> Iterable[str]:
    """Extensions accepted for uploads."""
    return [".zip"]
