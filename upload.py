"""Turning an uploaded source document into a stored question bank."""

import logging
import mimetypes
from pathlib import Path
from typing import Callable, Union

from content_repository import ContentRepository
from errors import ExtractionFailed
from examiner import DocumentExtractor, new_id
from identity import now_iso
from models import QuestionBank, TestModule

logger = logging.getLogger(__name__)


def bank_name_for(filename: str, module: TestModule) -> str:
    """'Cambridge 18.pdf' -> 'Cambridge 18 (Reading)'"""
    stem = Path(filename).name
    if stem.lower().endswith(".pdf"):
        stem = stem[:-4]
    return f"{stem} ({TestModule(module).value})"


class QuestionBankImporter:
    def __init__(
        self,
        content: ContentRepository,
        extractor: DocumentExtractor,
        id_factory: Callable[[], str] = new_id,
        clock: Callable[[], str] = now_iso,
    ):
        self.content = content
        self.extractor = extractor
        self._id_factory = id_factory
        self._clock = clock

    def import_file(self, path: Union[str, Path], module: TestModule) -> QuestionBank:
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ExtractionFailed(f"Cannot read {path.name}: {e}") from e
        media_type = mimetypes.guess_type(path.name)[0] or "application/pdf"
        return self.import_bytes(data, path.name, module, media_type)

    def import_bytes(
        self,
        data: bytes,
        filename: str,
        module: TestModule,
        media_type: str = "application/pdf",
    ) -> QuestionBank:
        """Extract tests from ``data`` and save them as one new bank.

        Raises ExtractionFailed when no valid tests come back; nothing is saved then.
        """
        module = TestModule(module)
        tests = self.extractor.extract_tests(data, module, media_type)
        if not tests:
            raise ExtractionFailed(f"No {module.value} tests found.")

        bank = QuestionBank(
            id=self._id_factory(),
            name=bank_name_for(filename, module),
            uploaded_at=self._clock(),
            tests=tests,
        )
        stored = self.content.save_bank(bank)
        logger.info("Imported %d %s test(s) from %s", len(stored.tests), module.value, filename)
        return stored
