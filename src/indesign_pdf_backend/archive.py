"""
Archive handling for uploaded InDesign packages.

This module provides functionality for:
- Validating that an upload is a readable, non-empty zip archive
- Extracting the archive into a request-scoped directory
- Locating the InDesign document (.indd or .idml) inside the extracted tree
"""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import Iterable, Optional

from .errors import ExtractionError, NotFoundError
from .utils import ensure_directory, get_size

logger = logging.getLogger(__name__)

INDESIGN_EXTENSIONS = frozenset({".indd", ".idml"})
SKIPPED_DIRECTORY_NAMES = frozenset({"__MACOSX"})
NO_DOCUMENT_MESSAGE = "No InDesign file (.indd or .idml) found in the zip"


def is_valid_zip(path: Path) -> bool:
    """
    Check whether a file is a zip archive with at least one entry.

    Args:
        path: File to inspect

    Returns:
        True for a readable archive with entries, False otherwise (never raises)
    """
    try:
        with zipfile.ZipFile(path) as archive:
            return len(archive.infolist()) > 0
    except (zipfile.BadZipFile, OSError):
        return False


def extract_archive(zip_path: Path, destination: Path) -> Path:
    """
    Extract every member of ``zip_path`` into ``destination``.

    Member names are sanitized by ``zipfile`` so absolute paths and ``..``
    components cannot escape the destination.

    Raises:
        ExtractionError: If the archive cannot be read or written out
    """
    try:
        ensure_directory(destination)
        with zipfile.ZipFile(zip_path) as archive:
            archive.extractall(destination)
    except (zipfile.BadZipFile, OSError, RuntimeError) as exc:
        raise ExtractionError(f"Failed to extract zip file: {exc}") from exc
    logger.info(f"Extracted {zip_path.name} into {destination} ({get_size(destination)} bytes)")
    return destination


def _is_skipped_directory(name: str) -> bool:
    return name.startswith(".") or name in SKIPPED_DIRECTORY_NAMES


def _sorted_entries(directory: Path) -> Iterable[Path]:
    return sorted(directory.iterdir(), key=lambda entry: entry.name)


def _search(directory: Path) -> Optional[Path]:
    for entry in _sorted_entries(directory):
        if entry.is_dir():
            if _is_skipped_directory(entry.name):
                continue
            found = _search(entry)
            if found is not None:
                return found
        elif entry.is_file() and entry.suffix.lower() in INDESIGN_EXTENSIONS:
            return entry
    return None


def find_indesign_file(root: Path) -> Path:
    """
    Find the InDesign document below ``root``.

    Directory entries are visited in name order and subdirectories are
    searched depth-first at the point they sort, so when an archive holds
    several candidates the pick is stable across platforms. Hidden
    directories and ``__MACOSX`` resource forks are skipped.

    Args:
        root: Extracted archive directory

    Returns:
        Path of the first matching document

    Raises:
        NotFoundError: If no .indd or .idml file exists anywhere in the tree
        ExtractionError: If the tree cannot be read
    """
    try:
        found = _search(root)
    except OSError as exc:
        raise ExtractionError(f"Error searching for InDesign file: {exc}") from exc
    if found is None:
        raise NotFoundError(NO_DOCUMENT_MESSAGE)
    return found


def extract_and_locate(zip_path: Path, destination: Path) -> Path:
    """
    Extract an uploaded archive and return the InDesign document inside it.

    Raises:
        ExtractionError: If the archive cannot be unpacked
        NotFoundError: If the archive holds no InDesign document
    """
    extract_archive(zip_path, destination)
    document = find_indesign_file(destination)
    logger.info(f"InDesign file found: {document}")
    return document
