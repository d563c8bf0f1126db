"""Speaking mock test: an examiner/candidate transcript driven by the AI examiner."""

from typing import Callable, List, Optional

import config
from content_repository import ContentRepository
from errors import ValidationError
from examiner import SpeakingExaminer, new_id
from identity import Session, now_iso
from models import (
    PracticeTest,
    SpeakingDetails,
    SpeakingMessage,
    SpeakingModule,
    TestModule,
    TestResult,
)
from result_repository import ResultRepository

EXAMINER = "examiner"
CANDIDATE = "candidate"


def opening_transcript() -> List[SpeakingMessage]:
    return [SpeakingMessage(role=EXAMINER, text=config.SPEAKING_OPENING_LINE)]


class SpeakingSession:
    """Always active: the transcript can grow or be reset at any time.

    After every examiner reply that takes the transcript past the completion
    threshold a provisional result (score 0, ``SpeakingDetails.provisional``)
    is stored with the current length. No speaking band is computed, so
    consumers must treat those results as ungraded.
    """

    def __init__(
        self,
        content: ContentRepository,
        results: ResultRepository,
        examiner: SpeakingExaminer,
        session: Session,
        id_factory: Callable[[], str] = new_id,
        clock: Callable[[], str] = now_iso,
    ):
        self.content = content
        self.results = results
        self.examiner = examiner
        self.session = session
        self._id_factory = id_factory
        self._clock = clock

        self.test: Optional[PracticeTest] = None
        self.transcript: List[SpeakingMessage] = opening_transcript()
        self.provisional_result: Optional[TestResult] = None

    @property
    def context(self) -> Optional[SpeakingModule]:
        return self.test.speaking if self.test else None

    def select_test(self, test_id: str, bank_id: Optional[str] = None) -> None:
        entry = self.content.find_test(TestModule.SPEAKING, test_id, bank_id)
        if entry is None:
            raise ValidationError(f"No speaking test with id '{test_id}'")
        self.test = entry.test
        self.reset()

    def send_candidate_turn(self, text: str) -> str:
        """Append the candidate's turn and the examiner's reply. Returns the reply.

        If the examiner or the result store fails, the transcript is left as it was.
        """
        text = (text or "").strip()
        if not text:
            raise ValidationError("Say something before sending.")

        prior = list(self.transcript)
        self.transcript.append(SpeakingMessage(role=CANDIDATE, text=text))
        try:
            reply = self.examiner.reply(prior, text, self.context)
            self.transcript.append(SpeakingMessage(role=EXAMINER, text=reply))
            if len(self.transcript) > config.SPEAKING_COMPLETION_THRESHOLD:
                self._store_provisional_result()
        except Exception:
            self.transcript = prior
            raise
        return reply

    def reset(self) -> None:
        """Start the transcript over. Results already stored are kept."""
        self.transcript = opening_transcript()
        self.provisional_result = None

    def _store_provisional_result(self) -> None:
        result = TestResult(
            id=self._id_factory(),
            user_id=self.session.user_id,
            date=self._clock(),
            module=TestModule.SPEAKING,
            score=0,
            details=SpeakingDetails(length=len(self.transcript), provisional=True),
        )
        self.results.save_result(result)
        self.provisional_result = result
