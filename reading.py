"""Reading test session: answer collection, raw score and band conversion."""

from enum import Enum
from typing import Callable, Dict, Optional

import config
import scoring
from content_repository import ContentRepository
from errors import InvalidStateError, ValidationError
from examiner import new_id
from identity import Session, now_iso
from models import PracticeTest, ReadingDetails, ReadingModule, ReadingPassage, TestModule, TestResult
from result_repository import ResultRepository


class ReadingState(str, Enum):
    UNSELECTED = "unselected"
    IN_PROGRESS = "in_progress"
    CONTENT_INCOMPLETE = "content_incomplete"
    SUBMITTED = "submitted"


class ReadingSession:
    def __init__(
        self,
        content: ContentRepository,
        results: ResultRepository,
        session: Session,
        id_factory: Callable[[], str] = new_id,
        clock: Callable[[], str] = now_iso,
    ):
        self.content = content
        self.results = results
        self.session = session
        self._id_factory = id_factory
        self._clock = clock

        self.state = ReadingState.UNSELECTED
        self.test: Optional[PracticeTest] = None
        self.bank_id: Optional[str] = None
        self.answers: Dict[int, str] = {}
        self.passage_index = 0
        self.result: Optional[TestResult] = None

    @property
    def module(self) -> Optional[ReadingModule]:
        return self.test.reading if self.test else None

    @property
    def current_passage(self) -> Optional[ReadingPassage]:
        module = self.module
        if not module or not module.passages:
            return None
        return module.passages[self.passage_index]

    def select_test(self, test_id: str, bank_id: Optional[str] = None) -> ReadingState:
        """Load a test and start a fresh attempt. Allowed from any state."""
        entry = self.content.find_test(TestModule.READING, test_id, bank_id)
        if entry is None:
            raise ValidationError(f"No reading test with id '{test_id}'")

        self.test = entry.test
        self.bank_id = entry.bank_id
        self.answers = {}
        self.passage_index = 0
        self.result = None

        if len(entry.test.reading.passages) != config.READING_PASSAGE_COUNT:
            self.state = ReadingState.CONTENT_INCOMPLETE
        else:
            self.state = ReadingState.IN_PROGRESS
        return self.state

    def go_to_passage(self, index: int) -> None:
        module = self.module
        if not module or not 0 <= index < len(module.passages):
            raise ValidationError(f"No passage at index {index}")
        self.passage_index = index

    def answer(self, question_id: int, value: str) -> bool:
        """Record an answer; the last write for a question wins.

        Ignored (returns False) outside an in-progress attempt.
        """
        if self.state != ReadingState.IN_PROGRESS:
            return False
        self.answers[int(question_id)] = value
        return True

    def submit(self) -> TestResult:
        if self.state != ReadingState.IN_PROGRESS:
            raise InvalidStateError(f"Cannot submit a reading test in state '{self.state.value}'")

        module = self.module
        raw_score = scoring.count_correct_answers(module, self.answers)
        result = TestResult(
            id=self._id_factory(),
            user_id=self.session.user_id,
            date=self._clock(),
            module=TestModule.READING,
            score=scoring.reading_band_score(raw_score),
            details=ReadingDetails(
                raw_score=raw_score,
                total_questions=module.question_count,
                answers=dict(self.answers),
            ),
        )
        self.results.save_result(result)

        self.result = result
        self.state = ReadingState.SUBMITTED
        return result

    def is_question_correct(self, question_id: int) -> Optional[bool]:
        """After submission, whether a question was answered correctly."""
        if self.state != ReadingState.SUBMITTED:
            return None
        for q in self.module.questions:
            if q.id == question_id:
                return scoring.is_correct(self.answers.get(q.id), q.correct_answer)
        return None
