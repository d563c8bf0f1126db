"""Backend selection: the current remote handle plus the local fallback.

The remote handle is rebuilt wholesale whenever the DB config changes. Every
repository operation is a two-step attempt: ``try_remote`` first, and if that
did not produce a value, the same operation against ``local``.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from database import RemoteStore
from errors import BackendUnavailable
from local_store import LocalStore
from models import DBConfig

logger = logging.getLogger(__name__)


class StorageMode(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"


@dataclass
class RemoteAttempt:
    ok: bool
    value: Any = None


SKIPPED = RemoteAttempt(ok=False)


class StorageBackend:
    def __init__(
        self,
        local: LocalStore,
        db_config: Optional[DBConfig] = None,
        remote_factory: Callable[[DBConfig], Any] = RemoteStore,
    ):
        self.local = local
        self._remote_factory = remote_factory
        self._remote = None
        self.db_config: Optional[DBConfig] = None
        self.configure(db_config)

    def configure(self, db_config: Optional[DBConfig]) -> None:
        """Drop the current remote handle and build a new one from ``db_config``."""
        self._close_remote()
        self.db_config = db_config if db_config is not None and db_config.is_valid else None
        if self.db_config is None:
            logger.info("Storage configured for local mode")
            return

        try:
            self._remote = self._remote_factory(self.db_config)
            logger.info("Storage configured for remote mode")
        except BackendUnavailable as e:
            logger.warning("Remote store unavailable, using local store: %s", e)

    def clear(self) -> None:
        self.configure(None)

    def close(self) -> None:
        self._close_remote()

    @property
    def storage_mode(self) -> StorageMode:
        """Reported from config presence, not from a live health check."""
        return StorageMode.REMOTE if self.db_config is not None else StorageMode.LOCAL

    @property
    def remote_connected(self) -> bool:
        return self._remote is not None

    def try_remote(self, operation: Callable[[Any], Any], description: str = "") -> RemoteAttempt:
        """Run ``operation`` against the remote store if one is connected."""
        if self._remote is None:
            return SKIPPED
        try:
            return RemoteAttempt(ok=True, value=operation(self._remote))
        except BackendUnavailable as e:
            logger.warning("Remote %s failed, falling back to local store: %s", description or "call", e)
            return SKIPPED

    def _close_remote(self) -> None:
        if self._remote is None:
            return
        close = getattr(self._remote, "close", None)
        if close is not None:
            try:
                close()
            except BackendUnavailable as e:
                logger.warning("Error closing remote store: %s", e)
        self._remote = None
