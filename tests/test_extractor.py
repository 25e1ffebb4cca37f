"""Tests for text extraction from PDF and plain-text uploads."""

import fitz
import pytest

from mockify.exceptions import InsufficientContent, UnsupportedType
from mockify.ingestion.extractor import (
    TextExtractor,
    extract_text,
    guess_content_type,
    normalize_content_type,
)

from .conftest import make_pdf_bytes

PAGE_ONE = "Chapter 1: Photosynthesis\nPlants make food from sunlight,\nwater and carbon dioxide."
PAGE_TWO = "Chapter 2: Respiration\nCells release energy from glucose\nusing oxygen."


class TestPdfExtraction:
    def test_reads_all_pages_in_order(self):
        text = TextExtractor().extract(make_pdf_bytes([PAGE_ONE, PAGE_TWO]), "application/pdf")

        assert "Photosynthesis" in text
        assert "Respiration" in text
        assert text.index("Photosynthesis") < text.index("Respiration")

    def test_pages_joined_with_blank_line(self):
        text = TextExtractor().extract(make_pdf_bytes([PAGE_ONE, PAGE_TWO]), "application/pdf")
        assert "dioxide.\n\nChapter 2" in text

    def test_skips_blank_pages(self):
        text = TextExtractor().extract(make_pdf_bytes([PAGE_ONE, "", PAGE_TWO]), "application/pdf")
        assert "\n\n\n" not in text

    def test_blank_pdf_is_insufficient(self):
        with pytest.raises(InsufficientContent) as exc_info:
            TextExtractor().extract(make_pdf_bytes(["", ""]), "application/pdf")
        assert exc_info.value.details["extracted_length"] == 0

    def test_corrupt_pdf_is_unsupported(self):
        with pytest.raises(UnsupportedType):
            TextExtractor().extract(b"this is not a pdf at all", "application/pdf")

    def test_encrypted_pdf_is_insufficient(self):
        doc = fitz.open()
        doc.new_page().insert_text((72, 72), PAGE_ONE)
        encrypted = doc.tobytes(
            encryption=fitz.PDF_ENCRYPT_AES_256, owner_pw="owner", user_pw="secret"
        )
        doc.close()

        with pytest.raises(InsufficientContent, match="encrypted"):
            TextExtractor().extract(encrypted, "application/pdf")


class TestPlainTextExtraction:
    def test_reads_utf8(self):
        raw = "Ökologie: Die Lehre von den Beziehungen der Lebewesen zur Umwelt.".encode()
        assert TextExtractor().extract(raw, "text/plain").startswith("Ökologie")

    def test_ignores_content_type_parameters(self):
        raw = b"Newton's first law: an object stays at rest unless a force acts on it."
        assert "Newton" in TextExtractor().extract(raw, "Text/Plain; charset=utf-8")

    def test_tolerates_bom(self):
        raw = "\ufeffThe water cycle moves water between oceans, air and land.".encode()
        assert TextExtractor().extract(raw, "text/plain").startswith("The water cycle")

    def test_invalid_utf8_is_insufficient(self):
        with pytest.raises(InsufficientContent, match="UTF-8"):
            TextExtractor().extract(b"\xff\xfe\xfa" * 40, "text/plain")

    def test_thirty_characters_is_insufficient(self):
        raw = b"Only thirty characters here..."
        assert len(raw) == 30

        with pytest.raises(InsufficientContent) as exc_info:
            TextExtractor().extract(raw, "text/plain")
        assert exc_info.value.details["extracted_length"] == 30

    def test_custom_minimum_length(self):
        assert TextExtractor(min_text_length=5).extract(b"Short but fine", "text/plain")


class TestCleaning:
    RAW = b"Intro line about algebra and equations.\n\n\n\n12\nNext   line    with spaces."

    def test_cleans_by_default(self):
        text = TextExtractor().extract(self.RAW, "text/plain")

        assert "\n\n\n" not in text
        assert "\n12\n" not in text
        assert "Next line with spaces." in text

    def test_cleaning_can_be_disabled(self):
        text = TextExtractor(clean_text=False).extract(self.RAW, "text/plain")
        assert "Next   line" in text


class TestUnsupportedTypes:
    @pytest.mark.parametrize("content_type", ["image/png", "application/msword", "", None])
    def test_rejects(self, content_type):
        with pytest.raises(UnsupportedType):
            TextExtractor().extract(b"whatever bytes are here, long enough to matter", content_type)

    def test_error_names_the_type(self):
        with pytest.raises(UnsupportedType) as exc_info:
            TextExtractor().extract(b"data", "image/png")
        assert exc_info.value.details["content_type"] == "image/png"


class TestFilesAndHelpers:
    def test_extract_file_txt(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("Mitosis produces two identical daughter cells from one parent cell.")
        assert "Mitosis" in TextExtractor().extract_file(path)

    def test_extract_file_pdf(self, tmp_path):
        path = tmp_path / "chapter.pdf"
        path.write_bytes(make_pdf_bytes([PAGE_ONE]))
        assert "Photosynthesis" in TextExtractor().extract_file(path)

    def test_extract_file_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            TextExtractor().extract_file(tmp_path / "missing.pdf")

    @pytest.mark.parametrize(
        "name, expected",
        [("a.pdf", "application/pdf"), ("a.txt", "text/plain"), ("a.MD", "text/plain"), ("a", "application/octet-stream")],
    )
    def test_guess_content_type(self, name, expected):
        assert guess_content_type(name) == expected

    def test_normalize_content_type(self):
        assert normalize_content_type("Application/PDF; x=1") == "application/pdf"
        assert normalize_content_type(None) == ""

    def test_extract_text_function(self):
        text = extract_text(b"Gravity pulls objects toward the centre of the Earth.", "text/plain")
        assert text.startswith("Gravity")
