"""Domain records. Serialized with the camelCase layout shared by both storage backends."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union


class TestModule(str, Enum):
    __test__ = False

    READING = "Reading"
    WRITING = "Writing"
    SPEAKING = "Speaking"


class Role(str, Enum):
    ADMIN = "admin"
    STUDENT = "student"


class TaskType(str, Enum):
    TASK1 = "Task 1"
    TASK2 = "Task 2"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE_NOT_GIVEN = "true_false_not_given"
    FILL_GAP = "fill_gap"
    MATCHING_HEADINGS = "matching_headings"


@dataclass
class User:
    id: str
    name: str
    email: str
    role: str = Role.STUDENT.value
    avatar: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    def to_dict(self) -> Dict:
        data = {"id": self.id, "name": self.name, "email": self.email, "role": self.role}
        if self.avatar:
            data["avatar"] = self.avatar
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "User":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            email=data.get("email", ""),
            role=data.get("role", Role.STUDENT.value),
            avatar=data.get("avatar"),
        )


@dataclass
class DBConfig:
    url: str
    key: str = ""

    @property
    def is_valid(self) -> bool:
        return bool(self.url and self.url.strip())

    def to_dict(self) -> Dict:
        return {"url": self.url, "key": self.key}

    @classmethod
    def from_dict(cls, data: Dict) -> "DBConfig":
        return cls(url=data.get("url", ""), key=data.get("key", ""))


# ---------------------------------------------------------------------------
# Test content
# ---------------------------------------------------------------------------

@dataclass
class ReadingQuestion:
    id: int
    text: str
    type: str = QuestionType.MULTIPLE_CHOICE.value
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    evidence: Optional[str] = None
    group_instruction: Optional[str] = None

    def to_dict(self) -> Dict:
        data = {"id": self.id, "text": self.text, "type": self.type}
        if self.options is not None:
            data["options"] = list(self.options)
        if self.correct_answer is not None:
            data["correctAnswer"] = self.correct_answer
        if self.evidence is not None:
            data["evidence"] = self.evidence
        if self.group_instruction is not None:
            data["groupInstruction"] = self.group_instruction
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "ReadingQuestion":
        return cls(
            id=int(data["id"]),
            text=data.get("text", ""),
            type=data.get("type", QuestionType.MULTIPLE_CHOICE.value),
            options=data.get("options"),
            correct_answer=data.get("correctAnswer"),
            evidence=data.get("evidence"),
            group_instruction=data.get("groupInstruction"),
        )


@dataclass
class ReadingPassage:
    title: str
    content: str
    questions: List[ReadingQuestion] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "title": self.title,
            "content": self.content,
            "questions": [q.to_dict() for q in self.questions],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ReadingPassage":
        return cls(
            title=data.get("title", ""),
            content=data.get("content", ""),
            questions=[ReadingQuestion.from_dict(q) for q in data.get("questions") or []],
        )


@dataclass
class ReadingModule:
    passages: List[ReadingPassage] = field(default_factory=list)

    @property
    def questions(self) -> List[ReadingQuestion]:
        return [q for p in self.passages for q in p.questions]

    @property
    def question_count(self) -> int:
        return sum(len(p.questions) for p in self.passages)

    def to_dict(self) -> Dict:
        return {"passages": [p.to_dict() for p in self.passages]}

    @classmethod
    def from_dict(cls, data: Dict) -> "ReadingModule":
        return cls(passages=[ReadingPassage.from_dict(p) for p in data.get("passages") or []])


@dataclass
class WritingModule:
    task1_prompt: str
    task2_prompt: str

    def prompt_for(self, task_type: TaskType) -> str:
        return self.task1_prompt if TaskType(task_type) == TaskType.TASK1 else self.task2_prompt

    def to_dict(self) -> Dict:
        return {"task1Prompt": self.task1_prompt, "task2Prompt": self.task2_prompt}

    @classmethod
    def from_dict(cls, data: Dict) -> "WritingModule":
        return cls(
            task1_prompt=data.get("task1Prompt", ""),
            task2_prompt=data.get("task2Prompt", ""),
        )


@dataclass
class SpeakingModule:
    part1_topics: List[str] = field(default_factory=list)
    part2_cue_card: str = ""
    part3_questions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "part1Topics": list(self.part1_topics),
            "part2CueCard": self.part2_cue_card,
            "part3Questions": list(self.part3_questions),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "SpeakingModule":
        return cls(
            part1_topics=list(data.get("part1Topics") or []),
            part2_cue_card=data.get("part2CueCard", ""),
            part3_questions=list(data.get("part3Questions") or []),
        )


@dataclass
class PracticeTest:
    id: str
    name: str
    reading: Optional[ReadingModule] = None
    writing: Optional[WritingModule] = None
    speaking: Optional[SpeakingModule] = None

    def has_module(self, module: TestModule) -> bool:
        module = TestModule(module)
        if module == TestModule.READING:
            return self.reading is not None
        if module == TestModule.WRITING:
            return self.writing is not None
        return self.speaking is not None

    @property
    def modules(self) -> List[TestModule]:
        return [m for m in TestModule if self.has_module(m)]

    def to_dict(self) -> Dict:
        data: Dict = {"id": self.id, "name": self.name}
        if self.reading is not None:
            data["reading"] = self.reading.to_dict()
        if self.writing is not None:
            data["writing"] = self.writing.to_dict()
        if self.speaking is not None:
            data["speaking"] = self.speaking.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "PracticeTest":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            reading=ReadingModule.from_dict(data["reading"]) if data.get("reading") else None,
            writing=WritingModule.from_dict(data["writing"]) if data.get("writing") else None,
            speaking=SpeakingModule.from_dict(data["speaking"]) if data.get("speaking") else None,
        )


@dataclass
class QuestionBank:
    id: str
    name: str
    uploaded_at: str
    tests: List[PracticeTest] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "uploadedAt": self.uploaded_at,
            "tests": [t.to_dict() for t in self.tests],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "QuestionBank":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            uploaded_at=data.get("uploadedAt", ""),
            tests=[PracticeTest.from_dict(t) for t in data.get("tests") or []],
        )


@dataclass
class TestEntry:
    """A practice test flattened out of its bank."""
    __test__ = False

    bank_id: str
    bank_name: str
    test: PracticeTest


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class WritingScores:
    task_response: float = 0.0
    coherence_cohesion: float = 0.0
    lexical_resource: float = 0.0
    grammatical_range: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "taskResponse": self.task_response,
            "coherenceCohesion": self.coherence_cohesion,
            "lexicalResource": self.lexical_resource,
            "grammaticalRange": self.grammatical_range,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "WritingScores":
        return cls(
            task_response=float(data.get("taskResponse", 0)),
            coherence_cohesion=float(data.get("coherenceCohesion", 0)),
            lexical_resource=float(data.get("lexicalResource", 0)),
            grammatical_range=float(data.get("grammaticalRange", 0)),
        )


@dataclass
class WritingFeedback:
    overall_band: float
    scores: WritingScores = field(default_factory=WritingScores)
    feedback: str = ""
    improvement_tips: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "overallBand": self.overall_band,
            "scores": self.scores.to_dict(),
            "feedback": self.feedback,
            "improvementTips": list(self.improvement_tips),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "WritingFeedback":
        return cls(
            overall_band=float(data["overallBand"]),
            scores=WritingScores.from_dict(data.get("scores") or {}),
            feedback=data.get("feedback", ""),
            improvement_tips=list(data.get("improvementTips") or []),
        )


@dataclass
class ReadingDetails:
    raw_score: int
    total_questions: int
    answers: Dict[int, str] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "rawScore": self.raw_score,
            "totalQuestions": self.total_questions,
            # JSON object keys are strings
            "answers": {str(k): v for k, v in self.answers.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ReadingDetails":
        return cls(
            raw_score=int(data.get("rawScore", 0)),
            total_questions=int(data.get("totalQuestions", 0)),
            answers={int(k): v for k, v in (data.get("answers") or {}).items()},
        )


@dataclass
class WritingDetails:
    feedback: WritingFeedback
    task_type: str = TaskType.TASK2.value

    def to_dict(self) -> Dict:
        data = self.feedback.to_dict()
        data["taskType"] = self.task_type
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "WritingDetails":
        return cls(
            feedback=WritingFeedback.from_dict(data),
            task_type=data.get("taskType", TaskType.TASK2.value),
        )


@dataclass
class SpeakingDetails:
    length: int
    provisional: bool = True  # no speaking band is computed; score 0 means "ungraded"

    def to_dict(self) -> Dict:
        return {"length": self.length, "provisional": self.provisional}

    @classmethod
    def from_dict(cls, data: Dict) -> "SpeakingDetails":
        return cls(
            length=int(data.get("length", 0)),
            provisional=bool(data.get("provisional", True)),
        )


ResultDetails = Union[ReadingDetails, WritingDetails, SpeakingDetails]

DETAILS_BY_MODULE = {
    TestModule.READING: ReadingDetails,
    TestModule.WRITING: WritingDetails,
    TestModule.SPEAKING: SpeakingDetails,
}


@dataclass
class TestResult:
    __test__ = False

    id: str
    user_id: str
    date: str
    module: TestModule
    score: float
    details: ResultDetails

    @property
    def is_graded(self) -> bool:
        return not (isinstance(self.details, SpeakingDetails) and self.details.provisional)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "date": self.date,
            "module": TestModule(self.module).value,
            "score": self.score,
            "details": self.details.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "TestResult":
        module = TestModule(data["module"])
        details_cls = DETAILS_BY_MODULE[module]
        return cls(
            id=data["id"],
            user_id=data.get("userId", ""),
            date=data.get("date", ""),
            module=module,
            score=float(data.get("score", 0)),
            details=details_cls.from_dict(data.get("details") or {}),
        )


@dataclass
class SpeakingMessage:
    role: str  # "examiner" | "candidate"
    text: str

    def to_dict(self) -> Dict:
        return {"role": self.role, "text": self.text}
