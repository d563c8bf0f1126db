"""Append-only test results, scoped to users."""

import logging
import numbers
from typing import List

import config
from errors import FatalStorageError, ValidationError
from models import DETAILS_BY_MODULE, TestModule, TestResult
from storage import StorageBackend, StorageMode

logger = logging.getLogger(__name__)


def validate_result(result: TestResult) -> None:
    if not result.id:
        raise ValidationError("Result has no id")
    if not result.user_id:
        raise ValidationError("Result has no user id")
    try:
        module = TestModule(result.module)
    except ValueError as e:
        raise ValidationError(f"Unknown module: {result.module!r}") from e
    if isinstance(result.score, bool) or not isinstance(result.score, numbers.Real):
        raise ValidationError(f"Score must be a number, got {result.score!r}")
    if not config.BAND_MIN <= result.score <= config.BAND_MAX:
        raise ValidationError(
            f"Score {result.score} is outside {config.BAND_MIN}-{config.BAND_MAX}"
        )
    if not isinstance(result.details, DETAILS_BY_MODULE[module]):
        raise ValidationError(
            f"{module.value} result carries {type(result.details).__name__} details"
        )


def _newest_first(results: List[TestResult]) -> List[TestResult]:
    return sorted(results, key=lambda r: r.date, reverse=True)


class ResultRepository:
    def __init__(self, backend: StorageBackend):
        self.backend = backend

    @property
    def storage_mode(self) -> StorageMode:
        return self.backend.storage_mode

    def save_result(self, result: TestResult) -> None:
        """Insert ``result``. The local store always gets a copy.

        Writing through to the local store means a failed remote write is never
        lost, and results written while remote was active stay readable after
        the remote config is cleared. Local-only results are not synced back up.
        """
        validate_result(result)

        attempt = self.backend.try_remote(lambda remote: remote.insert_result(result), "save_result")
        try:
            self.backend.local.insert_result(result)
        except FatalStorageError:
            if not attempt.ok:
                raise
            logger.error("Result %s stored remotely but the local copy failed", result.id, exc_info=True)

    def list_results_for_user(self, user_id: str) -> List[TestResult]:
        attempt = self.backend.try_remote(
            lambda remote: remote.list_results(user_id), "list_results_for_user"
        )
        if attempt.ok:
            return _newest_first(attempt.value)
        return _newest_first(self.backend.local.list_results(user_id))

    def list_all_results(self) -> List[TestResult]:
        attempt = self.backend.try_remote(lambda remote: remote.list_results(), "list_all_results")
        if attempt.ok:
            return _newest_first(attempt.value)
        return _newest_first(self.backend.local.list_results())
