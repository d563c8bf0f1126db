"""Tests for importing a source document as a question bank."""

import pytest

from errors import ExtractionFailed
from models import TestModule
from upload import QuestionBankImporter, bank_name_for

from conftest import make_reading_test, make_writing_test, sequential_ids


class FakeExtractor:
    def __init__(self, tests=None, error=None):
        self.tests = tests or []
        self.error = error
        self.calls = []

    def extract_tests(self, data, module, media_type="application/pdf"):
        self.calls.append((data, module, media_type))
        if self.error:
            raise self.error
        return self.tests


def test_bank_name():
    assert bank_name_for("Cambridge 18.pdf", TestModule.READING) == "Cambridge 18 (Reading)"
    assert bank_name_for("/tmp/uploads/Mock.PDF", TestModule.WRITING) == "Mock (Writing)"


def test_import_file_saves_bank(tmp_path, content):
    pdf = tmp_path / "Cambridge 18.pdf"
    pdf.write_bytes(b"%PDF-1.4 fake")
    extractor = FakeExtractor(tests=[make_reading_test("r1"), make_reading_test("r2")])
    importer = QuestionBankImporter(content, extractor, id_factory=sequential_ids("bank"),
                                    clock=lambda: "2024-06-01T09:00:00+00:00")

    bank = importer.import_file(pdf, TestModule.READING)

    assert bank.id == "bank-1"
    assert bank.name == "Cambridge 18 (Reading)"
    assert bank.uploaded_at == "2024-06-01T09:00:00+00:00"
    assert extractor.calls[0] == (b"%PDF-1.4 fake", TestModule.READING, "application/pdf")
    assert [e.test.id for e in content.list_tests_by_module(TestModule.READING)] == ["r1", "r2"]


def test_extraction_failure_saves_nothing(content):
    extractor = FakeExtractor(error=ExtractionFailed("No Writing tests found."))
    with pytest.raises(ExtractionFailed):
        QuestionBankImporter(content, extractor).import_bytes(b"x", "Mock.pdf", TestModule.WRITING)
    assert content.list_banks() == []


def test_missing_file(tmp_path, content):
    importer = QuestionBankImporter(content, FakeExtractor(tests=[make_writing_test()]))
    with pytest.raises(ExtractionFailed):
        importer.import_file(tmp_path / "nope.pdf", TestModule.WRITING)
