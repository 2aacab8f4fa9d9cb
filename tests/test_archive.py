"""
Tests for archive validation, extraction and document lookup.
"""

import zipfile

import pytest

from indesign_pdf_backend.archive import extract_and_locate, extract_archive, find_indesign_file, is_valid_zip
from indesign_pdf_backend.errors import ExtractionError, NotFoundError


class TestIsValidZip:
    """Tests for is_valid_zip."""

    def test_valid_archive(self, indesign_package):
        assert is_valid_zip(indesign_package)

    def test_empty_archive_is_invalid(self, tmp_path):
        empty = tmp_path / "empty.zip"
        with zipfile.ZipFile(empty, "w"):
            pass
        assert not is_valid_zip(empty)

    def test_garbage_is_invalid(self, tmp_path):
        garbage = tmp_path / "garbage.zip"
        garbage.write_bytes(b"\x00" * 64)
        assert not is_valid_zip(garbage)

    def test_missing_file_is_invalid(self, tmp_path):
        assert not is_valid_zip(tmp_path / "nope.zip")


class TestFindIndesignFile:
    """Tests for locating the document inside an extracted tree."""

    def test_nested_document(self, tmp_path):
        nested = tmp_path / "Job" / "Layout"
        nested.mkdir(parents=True)
        (tmp_path / "Job" / "notes.txt").write_text("x")
        (nested / "Cover.indd").write_bytes(b"indd")
        assert find_indesign_file(tmp_path) == nested / "Cover.indd"

    def test_extension_is_case_insensitive(self, tmp_path):
        (tmp_path / "SHOUT.INDD").write_bytes(b"indd")
        assert find_indesign_file(tmp_path).name == "SHOUT.INDD"

    def test_resource_forks_are_skipped(self, tmp_path):
        """__MACOSX and hidden directories never hold the real document."""
        forks = tmp_path / "__MACOSX"
        forks.mkdir()
        (forks / "._A.indd").write_bytes(b"fork")
        hidden = tmp_path / ".cache"
        hidden.mkdir()
        (hidden / "B.indd").write_bytes(b"hidden")
        (tmp_path / "Z.idml").write_bytes(b"idml")
        assert find_indesign_file(tmp_path).name == "Z.idml"

    def test_pick_is_stable_by_name(self, tmp_path):
        """With several candidates the first in name order wins, descending as directories sort."""
        (tmp_path / "b.indd").write_bytes(b"b")
        (tmp_path / "a").mkdir()
        (tmp_path / "a" / "z.indd").write_bytes(b"z")
        (tmp_path / "c.indd").write_bytes(b"c")
        assert find_indesign_file(tmp_path) == tmp_path / "a" / "z.indd"

    def test_no_document(self, tmp_path):
        (tmp_path / "readme.txt").write_text("x")
        with pytest.raises(NotFoundError, match="No InDesign file"):
            find_indesign_file(tmp_path)


class TestExtraction:
    """Tests for extract_archive and extract_and_locate."""

    def test_extract_and_locate(self, indesign_package, tmp_path):
        destination = tmp_path / "out"
        document = extract_and_locate(indesign_package, destination)
        assert document == destination / "Brochure" / "Brochure.indd"
        assert (destination / "Brochure" / "Links" / "cover.jpg").exists()

    def test_corrupt_archive_raises_extraction_error(self, tmp_path):
        corrupt = tmp_path / "broken.zip"
        corrupt.write_bytes(b"nope")
        with pytest.raises(ExtractionError) as excinfo:
            extract_archive(corrupt, tmp_path / "out")
        assert excinfo.value.describe().startswith("Extraction failed: Failed to extract zip file")

    def test_destination_under_file_raises_extraction_error(self, indesign_package, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        with pytest.raises(ExtractionError):
            extract_archive(indesign_package, blocker / "out")

    def test_members_cannot_escape_destination(self, make_zip, tmp_path):
        archive = make_zip({"../escape.indd": b"indd"})
        destination = tmp_path / "out"
        document = extract_and_locate(archive, destination)
        assert destination in document.parents
        assert not (tmp_path / "escape.indd").exists()
