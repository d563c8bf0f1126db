import os
from pathlib import Path
from typing import Dict, List, Tuple

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).parent / ".env")


def _get_setting(key: str, default: str = "") -> str:
    """Read a setting from the environment, treating blank values as unset."""
    value = os.getenv(key, "")
    return value if value.strip() else default


# ---------------------------------------------------------------------------
# Environment-driven settings
# ---------------------------------------------------------------------------
ANTHROPIC_API_KEY: str = _get_setting("ANTHROPIC_API_KEY", "")
MODEL: str = _get_setting("IELTS_MODEL", "claude-sonnet-4-5-20250929")
DATA_DIR: Path = Path(_get_setting("IELTS_DATA_DIR", str(Path(__file__).parent / "data")))

# Optional remote backend seeded from the environment (admin can override it)
DB_URL: str = _get_setting("IELTS_DB_URL", "")
DB_KEY: str = _get_setting("IELTS_DB_KEY", "")

# ---------------------------------------------------------------------------
# Demo accounts
# ---------------------------------------------------------------------------
ACCOUNTS: Dict[str, Dict[str, str]] = {
    "arin": {
        "password": _get_setting("IELTS_STUDENT_PASSWORD", "arin123"),
        "id": "student_arin",
        "name": "Arin",
        "email": "arin@arinsielts.com",
        "role": "student",
        "avatar": "https://ui-avatars.com/api/?name=Arin&background=random",
    },
    "admin": {
        "password": _get_setting("IELTS_ADMIN_PASSWORD", "admin123"),
        "id": "admin_01",
        "name": "Administrator",
        "email": "admin@arinsielts.com",
        "role": "admin",
        "avatar": "https://ui-avatars.com/api/?name=Admin&background=4f46e5&color=fff",
    },
}

# ---------------------------------------------------------------------------
# IELTS test structure constants
# ---------------------------------------------------------------------------

# Reading raw score (out of 40) -> band. (minimum raw, band), highest first.
READING_BAND_TABLE: List[Tuple[int, float]] = [
    (39, 9.0),
    (37, 8.5),
    (35, 8.0),
    (33, 7.5),
    (30, 7.0),
    (27, 6.5),
    (23, 6.0),
    (19, 5.5),
    (15, 5.0),
    (13, 4.5),
    (10, 4.0),
]
READING_FLOOR_BAND = 3.5

READING_PASSAGE_COUNT = 3
READING_QUESTION_COUNT = 40

BAND_MIN = 0.0
BAND_MAX = 9.0

# Recommended (not enforced) writing times
WRITING_TASK_MINUTES = {
    "Task 1": 20,
    "Task 2": 40,
}

SPEAKING_OPENING_LINE = "Good afternoon. Can you tell me your full name, please?"
SPEAKING_COMPLETION_THRESHOLD = 10  # transcript entries before a provisional result is stored

# ---------------------------------------------------------------------------
# AI collaborators
# ---------------------------------------------------------------------------
RATE_LIMIT_SECONDS = 1.0     # min delay between API calls
MAX_RETRIES = 3              # retries on transient API errors
MAX_TOKENS = 16000           # max tokens for extraction responses
GRADING_MAX_TOKENS = 2048
SPEAKING_MAX_TOKENS = 512
GRADING_TEMPERATURE = 0.3
SPEAKING_TEMPERATURE = 0.7

# ---------------------------------------------------------------------------
# Local store file layout
# ---------------------------------------------------------------------------
LOCAL_COLLECTIONS = {
    "question_banks": "ielts_question_banks_v2.json",
    "results": "ielts_results_v2.json",
    "users": "ielts_users.json",
    "current_session": "ielts_current_session.json",
}
DB_CONFIG_FILENAME = "ielts_db_config.json"
