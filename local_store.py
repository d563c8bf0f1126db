"""Single-device backend: four JSON collections, each rewritten whole on save."""

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Union

import config
from errors import FatalStorageError
from models import QuestionBank, TestResult, User


class LocalStore:
    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FatalStorageError(f"Cannot create data directory {self.data_dir}: {e}") from e

    def _path(self, collection: str) -> Path:
        return self.data_dir / config.LOCAL_COLLECTIONS[collection]

    def _read(self, collection: str) -> List[Dict]:
        path = self._path(collection)
        if not path.exists():
            return []
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise FatalStorageError(f"Cannot read {path.name}: {e}") from e
        if not isinstance(data, list):
            raise FatalStorageError(f"{path.name} does not hold a list of records")
        return data

    def _write(self, collection: str, records: List[Dict]) -> None:
        """Replace the whole collection; the rename keeps readers from seeing half a file."""
        path = self._path(collection)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{path.stem}.", suffix=".tmp")
        except OSError as e:
            raise FatalStorageError(f"Cannot write {path.name}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise FatalStorageError(f"Cannot write {path.name}: {e}") from e

    # ------------------------------------------------------------------
    # Question banks
    # ------------------------------------------------------------------
    def list_banks(self) -> List[QuestionBank]:
        return [QuestionBank.from_dict(b) for b in self._read("question_banks")]

    def get_bank(self, bank_id: str) -> Optional[QuestionBank]:
        for b in self._read("question_banks"):
            if b.get("id") == bank_id:
                return QuestionBank.from_dict(b)
        return None

    def save_bank(self, bank: QuestionBank) -> None:
        """Prepend the bank; a bank already stored under the same id is replaced."""
        others = [b for b in self._read("question_banks") if b.get("id") != bank.id]
        self._write("question_banks", [bank.to_dict()] + others)

    def update_bank(self, bank: QuestionBank) -> None:
        banks = self._read("question_banks")
        self._write(
            "question_banks",
            [bank.to_dict() if b.get("id") == bank.id else b for b in banks],
        )

    def delete_bank(self, bank_id: str) -> None:
        banks = self._read("question_banks")
        self._write("question_banks", [b for b in banks if b.get("id") != bank_id])

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------
    def insert_result(self, result: TestResult) -> bool:
        """Prepend a result. Returns False if a result with that id is already stored."""
        results = self._read("results")
        if any(r.get("id") == result.id for r in results):
            return False
        self._write("results", [result.to_dict()] + results)
        return True

    def list_results(self, user_id: Optional[str] = None) -> List[TestResult]:
        results = [TestResult.from_dict(r) for r in self._read("results")]
        if user_id is not None:
            results = [r for r in results if r.user_id == user_id]
        return results

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def list_users(self) -> List[User]:
        return [User.from_dict(u) for u in self._read("users")]

    def save_user(self, user: User) -> None:
        users = self._read("users")
        if not any(u.get("id") == user.id for u in users):
            self._write("users", users + [user.to_dict()])

    # ------------------------------------------------------------------
    # Current session
    # ------------------------------------------------------------------
    def get_current_user(self) -> Optional[User]:
        records = self._read("current_session")
        return User.from_dict(records[0]) if records else None

    def set_current_user(self, user: Optional[User]) -> None:
        self._write("current_session", [user.to_dict()] if user else [])
