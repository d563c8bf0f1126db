"""Question banks and their practice tests, stored on the active backend."""

import dataclasses
import logging
from typing import List, Optional

import config
from errors import ValidationError
from models import PracticeTest, QuestionBank, TestEntry, TestModule
from storage import StorageBackend, StorageMode

logger = logging.getLogger(__name__)


def validate_test(test: PracticeTest) -> None:
    """Check the per-test invariants that hold for anything we persist."""
    if not test.id:
        raise ValidationError(f"Practice test '{test.name}' has no id")
    if test.reading is not None:
        passages = len(test.reading.passages)
        questions = test.reading.question_count
        if passages != config.READING_PASSAGE_COUNT or questions != config.READING_QUESTION_COUNT:
            raise ValidationError(
                f"Reading module of '{test.name}' must have {config.READING_PASSAGE_COUNT} passages "
                f"and {config.READING_QUESTION_COUNT} questions (got {passages} passages, "
                f"{questions} questions)"
            )


class ContentRepository:
    def __init__(self, backend: StorageBackend):
        self.backend = backend

    @property
    def storage_mode(self) -> StorageMode:
        return self.backend.storage_mode

    def list_banks(self) -> List[QuestionBank]:
        """All banks, newest first."""
        attempt = self.backend.try_remote(lambda remote: remote.list_banks(), "list_banks")
        if attempt.ok:
            return attempt.value
        return self.backend.local.list_banks()

    def get_bank(self, bank_id: str) -> Optional[QuestionBank]:
        attempt = self.backend.try_remote(lambda remote: remote.get_bank(bank_id), "get_bank")
        if attempt.ok:
            return attempt.value
        return self.backend.local.get_bank(bank_id)

    def save_bank(self, bank: QuestionBank) -> QuestionBank:
        """Validate and persist ``bank`` under its own id. Returns what was stored.

        Tests carrying no module are dropped; if none remain the bank is rejected.
        """
        if not bank.id:
            raise ValidationError("Question bank has no id")

        seen_ids = set()
        for test in bank.tests:
            validate_test(test)
            if test.id in seen_ids:
                raise ValidationError(f"Duplicate test id '{test.id}' in bank '{bank.name}'")
            seen_ids.add(test.id)

        kept = [t for t in bank.tests if t.modules]
        if len(kept) < len(bank.tests):
            logger.info("Dropping %d empty test(s) from bank '%s'", len(bank.tests) - len(kept), bank.name)
        if not kept:
            raise ValidationError(f"Question bank '{bank.name}' contains no test with module content")

        stored = dataclasses.replace(bank, tests=kept)
        attempt = self.backend.try_remote(lambda remote: remote.save_bank(stored), "save_bank")
        if not attempt.ok:
            self.backend.local.save_bank(stored)
        return stored

    def delete_test(self, bank_id: str, test_id: str) -> None:
        """Remove one test; an emptied bank is deleted. Unknown ids are a no-op."""
        attempt = self.backend.try_remote(
            lambda remote: self._delete_test_from(remote, bank_id, test_id), "delete_test"
        )
        if not attempt.ok:
            self._delete_test_from(self.backend.local, bank_id, test_id)

    @staticmethod
    def _delete_test_from(store, bank_id: str, test_id: str) -> None:
        bank = store.get_bank(bank_id)
        if bank is None:
            return
        remaining = [t for t in bank.tests if t.id != test_id]
        if len(remaining) == len(bank.tests):
            return
        if not remaining:
            store.delete_bank(bank_id)
        else:
            store.update_bank(dataclasses.replace(bank, tests=remaining))

    def list_tests_by_module(self, module: TestModule) -> List[TestEntry]:
        """Every test carrying ``module``, in bank order then test order."""
        module = TestModule(module)
        entries = []
        for bank in self.list_banks():
            for test in bank.tests:
                if test.has_module(module):
                    entries.append(TestEntry(bank_id=bank.id, bank_name=bank.name, test=test))
        return entries

    def find_test(
        self, module: TestModule, test_id: str, bank_id: Optional[str] = None
    ) -> Optional[TestEntry]:
        for entry in self.list_tests_by_module(module):
            if entry.test.id == test_id and (bank_id is None or entry.bank_id == bank_id):
                return entry
        return None
