"""Claude API integration: test extraction, writing grading, and the speaking examiner."""

import base64
import json
import logging
import time
import uuid
from typing import Dict, List, Optional, Sequence, Type

import anthropic

import config
from errors import ConversationFailed, ExtractionFailed, GradingFailed, PracticeError
from models import (
    PracticeTest,
    ReadingModule,
    SpeakingMessage,
    SpeakingModule,
    TaskType,
    TestModule,
    WritingFeedback,
    WritingModule,
)

logger = logging.getLogger(__name__)

# Errors worth another attempt after a backoff
_TRANSIENT_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.InternalServerError,
    anthropic.OverloadedError,
    anthropic.ServiceUnavailableError,
    anthropic.DeadlineExceededError,
)


def strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = [l for l in text.split("\n") if not l.strip().startswith("```")]
        text = "\n".join(lines)
    return text


def new_id() -> str:
    return str(uuid.uuid4())


class ClaudeService:
    """Shared client, rate limiting and retry loop. Subclasses set ``error_class``."""

    error_class: Type[PracticeError] = PracticeError

    def __init__(self, client: Optional[anthropic.Anthropic] = None):
        self.client = client or anthropic.Anthropic(api_key=config.ANTHROPIC_API_KEY)
        self._last_request_time: float = 0

    def _rate_limit(self) -> None:
        elapsed = time.time() - self._last_request_time
        if elapsed < config.RATE_LIMIT_SECONDS:
            time.sleep(config.RATE_LIMIT_SECONDS - elapsed)
        self._last_request_time = time.time()

    def _call_api(
        self,
        system_prompt: str,
        messages: List[Dict],
        max_tokens: int = 0,
        temperature: Optional[float] = None,
    ) -> str:
        """Make API call with retry logic for transient errors."""
        if not max_tokens:
            max_tokens = config.MAX_TOKENS

        kwargs = {
            "model": config.MODEL,
            "max_tokens": max_tokens,
            "system": system_prompt,
            "messages": messages,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature

        last_error = None
        for attempt in range(config.MAX_RETRIES):
            self._rate_limit()
            try:
                response = self.client.messages.create(**kwargs)
                return "".join(
                    block.text for block in response.content if getattr(block, "type", "") == "text"
                )
            except _TRANSIENT_ERRORS as e:
                last_error = e
                wait = (2 ** attempt) * 2
                logger.warning("Transient API error (attempt %d): %s", attempt + 1, e)
                time.sleep(wait)
            except anthropic.AuthenticationError as e:
                raise self.error_class(
                    "Invalid API key. Check your ANTHROPIC_API_KEY in .env"
                ) from e
            except anthropic.BadRequestError as e:
                raise self.error_class(f"Bad request: {e}") from e
            except anthropic.APIError as e:
                raise self.error_class(f"API error: {e}") from e

        raise self.error_class(f"Failed after {config.MAX_RETRIES} retries: {last_error}")

    def _parse_json(self, response_text: str) -> Dict:
        text = strip_code_fences(response_text)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise self.error_class(f"Invalid JSON response: {e}\nResponse: {text[:500]}") from e
        if not isinstance(data, dict):
            raise self.error_class("Expected a JSON object in the response")
        return data


# ---------------------------------------------------------------------------
# Document extraction
# ---------------------------------------------------------------------------

_EXTRACTION_PROMPTS = {
    TestModule.READING: (
        "Analyze this IELTS PDF. Extract separate READING Practice Tests.\n\n"
        "STRICT RULES FOR VALIDITY:\n"
        "1. Each Reading Test MUST have exactly 3 Passages.\n"
        "2. Each Reading Test MUST have exactly 40 Questions total across the 3 passages.\n"
        "3. If a test has missing passages or fewer than 40 questions, DO NOT include it.\n\n"
        "Format each passage's content as clean HTML (paragraphs, lists). Number the "
        "questions 1-40 across the test.\n\n"
        "Return ONLY JSON with this exact structure:\n"
        '{"tests": [{"name": "Test 1", "reading": {"passages": [{"title": "...", '
        '"content": "<p>...</p>", "questions": [{"id": 1, "text": "...", '
        '"type": "multiple_choice|true_false_not_given|fill_gap|matching_headings", '
        '"options": ["..."], "correctAnswer": "...", "evidence": "...", '
        '"groupInstruction": "Questions 1-5: ..."}]}]}}]}'
    ),
    TestModule.WRITING: (
        "Analyze this IELTS PDF. Extract separate WRITING Practice Tests.\n"
        "Each test must contain BOTH Task 1 and Task 2 prompts.\n\n"
        "Return ONLY JSON with this exact structure:\n"
        '{"tests": [{"name": "Test 1", "writing": {"task1Prompt": "...", "task2Prompt": "..."}}]}'
    ),
    TestModule.SPEAKING: (
        "Analyze this IELTS PDF. Extract separate SPEAKING Practice Tests.\n"
        "For each test, extract:\n"
        "- Part 1 Topics/Questions\n"
        "- Part 2 Cue Card Topic\n"
        "- Part 3 Discussion Questions\n\n"
        "Return ONLY JSON with this exact structure:\n"
        '{"tests": [{"name": "Test 1", "speaking": {"part1Topics": ["..."], '
        '"part2CueCard": "...", "part3Questions": ["..."]}}]}'
    ),
}


class DocumentExtractor(ClaudeService):
    error_class = ExtractionFailed

    def extract_tests(
        self,
        data: bytes,
        module: TestModule,
        media_type: str = "application/pdf",
    ) -> List[PracticeTest]:
        """Extract practice tests of one module kind from a document.

        Returned tests carry fresh ids. Raises ExtractionFailed if nothing valid was found.
        """
        module = TestModule(module)
        if not data:
            raise ExtractionFailed("The uploaded file is empty.")

        document = {
            "type": "document",
            "source": {
                "type": "base64",
                "media_type": media_type,
                "data": base64.standard_b64encode(data).decode("ascii"),
            },
        }
        messages = [{
            "role": "user",
            "content": [document, {"type": "text", "text": _EXTRACTION_PROMPTS[module]}],
        }]
        system_prompt = (
            "You extract IELTS practice test material from documents. "
            "Return ONLY valid JSON, no other text."
        )

        response_text = self._call_api(system_prompt, messages)
        return self._parse_tests(response_text, module)

    def _parse_tests(self, response_text: str, module: TestModule) -> List[PracticeTest]:
        parsed = self._parse_json(response_text)
        tests = []
        for i, td in enumerate(parsed.get("tests") or [], 1):
            test = self._validate_and_create_test(td, module, i)
            if test:
                tests.append(test)

        if not tests:
            if module == TestModule.READING:
                raise ExtractionFailed(
                    "No valid IELTS Reading Tests (3 Passages, 40 Questions) found in this file."
                )
            raise ExtractionFailed(f"No {module.value} tests found.")
        return tests

    def _validate_and_create_test(
        self, td: Dict, module: TestModule, position: int
    ) -> Optional[PracticeTest]:
        """Build one test of ``module`` kind, or None if it fails validation."""
        if not isinstance(td, dict):
            return None
        name = (td.get("name") or "").strip() or f"Test {position}"

        try:
            if module == TestModule.READING:
                reading = ReadingModule.from_dict(td.get("reading") or {})
                if (
                    len(reading.passages) != config.READING_PASSAGE_COUNT
                    or reading.question_count != config.READING_QUESTION_COUNT
                ):
                    logger.info(
                        "Skipping reading test '%s': %d passages, %d questions",
                        name, len(reading.passages), reading.question_count,
                    )
                    return None
                return PracticeTest(id=new_id(), name=name, reading=reading)

            if module == TestModule.WRITING:
                writing = WritingModule.from_dict(td.get("writing") or {})
                if not writing.task1_prompt.strip() or not writing.task2_prompt.strip():
                    return None
                return PracticeTest(id=new_id(), name=name, writing=writing)

            speaking = SpeakingModule.from_dict(td.get("speaking") or {})
            if not speaking.part2_cue_card.strip():
                return None
            return PracticeTest(id=new_id(), name=name, speaking=speaking)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.info("Skipping malformed %s test '%s': %s", module.value, name, e)
            return None


# ---------------------------------------------------------------------------
# Writing grading
# ---------------------------------------------------------------------------

class WritingGrader(ClaudeService):
    error_class = GradingFailed

    def grade(self, essay: str, prompt: str, task_type: TaskType) -> WritingFeedback:
        task_type = TaskType(task_type)
        system_prompt = (
            f"You are a strict IELTS Writing Examiner. Grade the following {task_type.value} "
            f"essay based on official criteria: Task Response (Task Achievement for Task 1), "
            f"Coherence and Cohesion, Lexical Resource, Grammatical Range and Accuracy.\n\n"
            f"Bands are 0-9 in steps of 0.5.\n"
            f"Return ONLY JSON with this exact structure:\n"
            f'{{"overallBand": 6.5, "scores": {{"taskResponse": 6.0, "coherenceCohesion": 7.0, '
            f'"lexicalResource": 6.5, "grammaticalRange": 6.5}}, '
            f'"feedback": "markdown feedback", "improvementTips": ["..."]}}'
        )
        messages = [{"role": "user", "content": f"Prompt: {prompt}\n\nEssay:\n{essay}"}]

        response_text = self._call_api(
            system_prompt,
            messages,
            max_tokens=config.GRADING_MAX_TOKENS,
            temperature=config.GRADING_TEMPERATURE,
        )
        data = self._parse_json(response_text)
        try:
            feedback = WritingFeedback.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise GradingFailed(f"Incomplete grading response: {e}") from e
        if not config.BAND_MIN <= feedback.overall_band <= config.BAND_MAX:
            raise GradingFailed(f"Overall band out of range: {feedback.overall_band}")
        return feedback


# ---------------------------------------------------------------------------
# Speaking examiner
# ---------------------------------------------------------------------------

SPEAKING_SYSTEM_PROMPT = (
    "You are an IELTS Speaking Examiner. Conduct a mock test. Start with Part 1 "
    "(Introduction), move to Part 2 (Cue Card), then Part 3 (Discussion). Be "
    "professional, polite, but strictly adhere to the role. Do not break character. "
    "Keep responses brief like a real examiner."
)

# The API expects the conversation to open with a user turn
_SESSION_START = "(The candidate enters the examination room.)"


def to_api_messages(transcript: Sequence[SpeakingMessage], utterance: str) -> List[Dict]:
    """Map examiner/candidate turns to assistant/user messages, ending with ``utterance``."""
    messages = [
        {"role": "assistant" if m.role == "examiner" else "user", "content": m.text}
        for m in transcript
    ]
    messages.append({"role": "user", "content": utterance})
    if messages[0]["role"] != "user":
        messages.insert(0, {"role": "user", "content": _SESSION_START})
    return messages


class SpeakingExaminer(ClaudeService):
    error_class = ConversationFailed

    def reply(
        self,
        transcript: Sequence[SpeakingMessage],
        utterance: str,
        context: Optional[SpeakingModule] = None,
    ) -> str:
        system_prompt = SPEAKING_SYSTEM_PROMPT
        if context:
            system_prompt += (
                "\n\nUSE THIS SPECIFIC TEST MATERIAL:\n"
                f"Part 1 Topics: {', '.join(context.part1_topics)}\n"
                f"Part 2 Cue Card: {context.part2_cue_card}\n"
                f"Part 3 Questions: {', '.join(context.part3_questions)}"
            )

        text = self._call_api(
            system_prompt,
            to_api_messages(transcript, utterance),
            max_tokens=config.SPEAKING_MAX_TOKENS,
            temperature=config.SPEAKING_TEMPERATURE,
        ).strip()
        if not text:
            raise ConversationFailed("The examiner returned an empty reply.")
        return text
