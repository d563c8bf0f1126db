"""Timed writing task session with AI grading."""

import logging
from enum import Enum
from typing import Callable, Optional

import config
from content_repository import ContentRepository
from errors import GradingFailed, InvalidStateError, ValidationError
from examiner import WritingGrader, new_id
from identity import Session, now_iso
from models import PracticeTest, TaskType, TestModule, TestResult, WritingDetails, WritingFeedback
from result_repository import ResultRepository
from timer import Stopwatch

logger = logging.getLogger(__name__)


class WritingState(str, Enum):
    IDLE = "idle"
    TIMING = "timing"
    SUBMITTING = "submitting"
    GRADED = "graded"


class WritingSession:
    def __init__(
        self,
        content: ContentRepository,
        results: ResultRepository,
        grader: WritingGrader,
        session: Session,
        stopwatch: Optional[Stopwatch] = None,
        id_factory: Callable[[], str] = new_id,
        clock: Callable[[], str] = now_iso,
    ):
        self.content = content
        self.results = results
        self.grader = grader
        self.session = session
        self.stopwatch = stopwatch or Stopwatch()
        self._id_factory = id_factory
        self._clock = clock

        self.state = WritingState.IDLE
        self.test: Optional[PracticeTest] = None
        self.task_type = TaskType.TASK2
        self.essay = ""
        self.feedback: Optional[WritingFeedback] = None

    @property
    def prompt(self) -> str:
        if not self.test:
            return ""
        return self.test.writing.prompt_for(self.task_type)

    @property
    def word_count(self) -> int:
        return len(self.essay.split())

    @property
    def elapsed_seconds(self) -> int:
        return self.stopwatch.get_elapsed()

    @property
    def is_over_time(self) -> bool:
        return self.elapsed_seconds > config.WRITING_TASK_MINUTES[self.task_type.value] * 60

    def select_test(
        self,
        test_id: str,
        task_type: TaskType = TaskType.TASK2,
        bank_id: Optional[str] = None,
    ) -> None:
        entry = self.content.find_test(TestModule.WRITING, test_id, bank_id)
        if entry is None:
            raise ValidationError(f"No writing test with id '{test_id}'")

        self.test = entry.test
        self.task_type = TaskType(task_type)
        self.essay = ""
        self.feedback = None
        self.stopwatch.reset()
        self.state = WritingState.IDLE

    def start(self) -> None:
        if self.state != WritingState.IDLE or self.test is None:
            raise InvalidStateError(f"Cannot start writing in state '{self.state.value}'")
        self.state = WritingState.TIMING
        self.stopwatch.start()

    def edit(self, text: str) -> bool:
        """Replace the essay buffer. The editor only accepts text while timing."""
        if self.state != WritingState.TIMING:
            return False
        self.essay = text
        return True

    def submit(self) -> TestResult:
        """Grade the essay and persist the result.

        On grading or storage failure the session returns to timing so the
        essay can be resubmitted; no result is written.
        """
        if self.state != WritingState.TIMING:
            raise InvalidStateError(f"Cannot submit writing in state '{self.state.value}'")
        if not self.essay.strip():
            raise ValidationError("Write your essay before submitting.")

        self.state = WritingState.SUBMITTING
        self.stopwatch.stop()
        try:
            feedback = self.grader.grade(self.essay, self.prompt, self.task_type)
            result = TestResult(
                id=self._id_factory(),
                user_id=self.session.user_id,
                date=self._clock(),
                module=TestModule.WRITING,
                score=feedback.overall_band,
                details=WritingDetails(feedback=feedback, task_type=self.task_type.value),
            )
            self.results.save_result(result)
        except GradingFailed:
            logger.warning("Grading failed for %s; essay kept for resubmission", self.task_type.value)
            self._resume_timing()
            raise
        except Exception:
            self._resume_timing()
            raise

        self.feedback = feedback
        self.state = WritingState.GRADED
        return result

    def _resume_timing(self) -> None:
        self.state = WritingState.TIMING
        self.stopwatch.start()
