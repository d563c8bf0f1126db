import itertools
from types import SimpleNamespace
from typing import Dict, List, Optional, Sequence

import httpx
import pytest

import config
from content_repository import ContentRepository
from errors import BackendUnavailable, ConversationFailed, GradingFailed
from identity import Session
from local_store import LocalStore
from models import (
    DBConfig,
    PracticeTest,
    QuestionBank,
    ReadingModule,
    ReadingPassage,
    ReadingQuestion,
    SpeakingModule,
    TestResult,
    User,
    WritingFeedback,
    WritingModule,
    WritingScores,
)
from result_repository import ResultRepository
from storage import StorageBackend

REMOTE_CONFIG = DBConfig(url="postgresql://postgres@db.example.com:5432/postgres", key="secret")


# ---------------------------------------------------------------------------
# Content builders
# ---------------------------------------------------------------------------

def correct_answer_for(question_id: int) -> str:
    return f"answer{question_id}"


def make_reading_module(counts: Sequence[int] = (13, 13, 14)) -> ReadingModule:
    """Passages with questions numbered 1..N across the test."""
    ids = itertools.count(1)
    passages = []
    for p, count in enumerate(counts, 1):
        questions = []
        for _ in range(count):
            qid = next(ids)
            questions.append(ReadingQuestion(
                id=qid,
                text=f"Question {qid}",
                type="fill_gap",
                correct_answer=correct_answer_for(qid),
            ))
        passages.append(ReadingPassage(title=f"Passage {p}", content=f"<p>Text {p}</p>", questions=questions))
    return ReadingModule(passages=passages)


def make_reading_test(test_id: str = "r1", name: str = "Reading Test 1", **kwargs) -> PracticeTest:
    return PracticeTest(id=test_id, name=name, reading=make_reading_module(**kwargs))


def make_writing_test(test_id: str = "w1", name: str = "Writing Test 1") -> PracticeTest:
    return PracticeTest(
        id=test_id,
        name=name,
        writing=WritingModule(
            task1_prompt="The chart shows energy use by sector.",
            task2_prompt="Some people think cities should ban cars. Discuss.",
        ),
    )


def make_speaking_test(test_id: str = "s1", name: str = "Speaking Test 1") -> PracticeTest:
    return PracticeTest(
        id=test_id,
        name=name,
        speaking=SpeakingModule(
            part1_topics=["Hometown", "Work"],
            part2_cue_card="Describe a book you enjoyed reading.",
            part3_questions=["Why do people read less today?"],
        ),
    )


def make_bank(bank_id: str = "bank1", tests: Optional[List[PracticeTest]] = None,
              name: str = "Cambridge 18 (Reading)", uploaded_at: str = "2024-05-01T10:00:00+00:00") -> QuestionBank:
    if tests is None:
        tests = [make_reading_test()]
    return QuestionBank(id=bank_id, name=name, uploaded_at=uploaded_at, tests=tests)


def make_feedback(band: float = 6.5) -> WritingFeedback:
    return WritingFeedback(
        overall_band=band,
        scores=WritingScores(band, band, band, band),
        feedback="Clear position throughout.",
        improvement_tips=["Vary sentence openings."],
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeRemoteStore:
    """In-memory stand-in for RemoteStore. Set ``fail`` to simulate an outage."""

    def __init__(self):
        self.banks: Dict[str, QuestionBank] = {}
        self.bank_order: List[str] = []
        self.results: List[TestResult] = []
        self.users: Dict[str, User] = {}
        self.fail = False
        self.closed = False

    def _check(self):
        if self.fail:
            raise BackendUnavailable("connection refused")

    def close(self):
        self.closed = True

    def list_banks(self):
        self._check()
        return [self.banks[i] for i in self.bank_order]

    def get_bank(self, bank_id):
        self._check()
        return self.banks.get(bank_id)

    def save_bank(self, bank):
        self._check()
        if bank.id in self.bank_order:
            self.bank_order.remove(bank.id)
        self.bank_order.insert(0, bank.id)
        self.banks[bank.id] = bank

    def update_bank(self, bank):
        self._check()
        if bank.id in self.banks:
            self.banks[bank.id] = bank

    def delete_bank(self, bank_id):
        self._check()
        self.banks.pop(bank_id, None)
        if bank_id in self.bank_order:
            self.bank_order.remove(bank_id)

    def insert_result(self, result):
        self._check()
        if any(r.id == result.id for r in self.results):
            return False
        self.results.insert(0, result)
        return True

    def list_results(self, user_id=None):
        self._check()
        return [r for r in self.results if user_id is None or r.user_id == user_id]

    def list_users(self):
        self._check()
        return list(self.users.values())

    def save_user(self, user):
        self._check()
        self.users[user.id] = user


class FakeGrader:
    def __init__(self, band: float = 6.5, fail: bool = False):
        self.band = band
        self.fail = fail
        self.calls = []

    def grade(self, essay, prompt, task_type):
        self.calls.append((essay, prompt, task_type))
        if self.fail:
            raise GradingFailed("model unavailable")
        return make_feedback(self.band)


class FakeExaminer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def reply(self, transcript, utterance, context=None):
        self.calls.append((list(transcript), utterance, context))
        if self.fail:
            raise ConversationFailed("model unavailable")
        return f"Examiner reply {len(self.calls)}"


def fake_claude_client(*replies):
    """An object shaped like anthropic.Anthropic whose messages.create answers with ``replies`` in turn.

    A reply that is an exception instance is raised instead of returned.
    """
    calls = []
    pending = iter(replies)

    def create(**kwargs):
        calls.append(kwargs)
        reply = next(pending)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=reply)])

    return SimpleNamespace(messages=SimpleNamespace(create=create), calls=calls)


def api_status_error(error_class, status_code: int):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    return error_class("API error", response=httpx.Response(status_code, request=request), body=None)


def sequential_ids(prefix: str = "id"):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


def sequential_clock(start_day: int = 1):
    counter = itertools.count(start_day)
    return lambda: f"2024-06-{next(counter):02d}T09:00:00+00:00"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def no_env_database(monkeypatch):
    """Keep a developer's .env from pointing tests at a real database."""
    monkeypatch.setattr(config, "DB_URL", "")
    monkeypatch.setattr(config, "DB_KEY", "")
    monkeypatch.setattr(config, "RATE_LIMIT_SECONDS", 0)


@pytest.fixture
def local_store(tmp_path):
    return LocalStore(tmp_path / "data")


@pytest.fixture
def remote():
    return FakeRemoteStore()


@pytest.fixture
def local_backend(local_store):
    return StorageBackend(local_store)


@pytest.fixture
def remote_backend(local_store, remote):
    return StorageBackend(local_store, REMOTE_CONFIG, remote_factory=lambda cfg: remote)


@pytest.fixture
def content(local_backend):
    return ContentRepository(local_backend)


@pytest.fixture
def results(local_backend):
    return ResultRepository(local_backend)


@pytest.fixture
def student():
    return User(id="student_arin", name="Arin", email="arin@arinsielts.com", role="student")


@pytest.fixture
def session(student):
    return Session(user=student)


@pytest.fixture
def no_backoff(monkeypatch):
    """Record retry waits instead of sleeping through them."""
    waits = []
    monkeypatch.setattr("examiner.time.sleep", waits.append)
    return waits
