"""Users, the current session, and the remote-backend configuration."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

import config
from database import normalize_db_url
from errors import FatalStorageError, ValidationError
from local_store import LocalStore
from models import DBConfig, User
from storage import StorageBackend

logger = logging.getLogger(__name__)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Session:
    """The authenticated user, passed explicitly to controllers."""
    user: User
    started_at: str = field(default_factory=now_iso)

    @property
    def user_id(self) -> str:
        return self.user.id


class UserRepository:
    def __init__(self, backend: StorageBackend):
        self.backend = backend

    def list_users(self) -> List[User]:
        attempt = self.backend.try_remote(lambda remote: remote.list_users(), "list_users")
        if attempt.ok:
            return attempt.value
        return self.backend.local.list_users()

    def save_user(self, user: User) -> None:
        # Always kept locally as well so a session survives a remote outage
        self.backend.try_remote(lambda remote: remote.save_user(user), "save_user")
        self.backend.local.save_user(user)


class IdentityProvider:
    def __init__(self, local: LocalStore, users: UserRepository):
        self.local = local
        self.users = users

    def login(self, username: str, password: str) -> Optional[Session]:
        """Return a session for a known account, or None if the credentials don't match."""
        account = config.ACCOUNTS.get((username or "").strip().lower())
        if account is None or password != account["password"]:
            return None

        user = User(
            id=account["id"],
            name=account["name"],
            email=account["email"],
            role=account["role"],
            avatar=account.get("avatar"),
        )
        self.users.save_user(user)
        self.local.set_current_user(user)
        logger.info("User %s logged in as %s", user.id, user.role)
        return Session(user=user)

    def logout(self, session: Optional[Session] = None) -> None:
        self.local.set_current_user(None)
        if session is not None:
            logger.info("User %s logged out", session.user_id)

    def restore(self) -> Optional[Session]:
        """Resume the session persisted by the last login, if any."""
        user = self.local.get_current_user()
        return Session(user=user) if user else None


class ConfigProvider:
    """Persists the remote DB config and pushes changes to the storage backend."""

    def __init__(self, data_dir: Union[str, Path], backend: Optional[StorageBackend] = None):
        self.path = Path(data_dir) / config.DB_CONFIG_FILENAME
        self.backend = backend

    def get_db_config(self) -> Optional[DBConfig]:
        if self.path.exists():
            try:
                with open(self.path, encoding="utf-8") as f:
                    db_config = DBConfig.from_dict(json.load(f))
            except (OSError, json.JSONDecodeError) as e:
                raise FatalStorageError(f"Cannot read {self.path.name}: {e}") from e
            return db_config if db_config.is_valid else None
        if config.DB_URL:
            return DBConfig(url=normalize_db_url(config.DB_URL), key=config.DB_KEY)
        return None

    def save_db_config(self, db_config: DBConfig) -> DBConfig:
        if not db_config.is_valid:
            raise ValidationError("Database URL is required")
        final = DBConfig(url=normalize_db_url(db_config.url), key=db_config.key.strip())
        self._write(final)
        if self.backend is not None:
            self.backend.configure(final)
        return final

    def clear_db_config(self) -> None:
        # An empty config on disk also overrides IELTS_DB_URL from the environment
        self._write(DBConfig(url="", key=""))
        if self.backend is not None:
            self.backend.clear()

    def _write(self, db_config: DBConfig) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(db_config.to_dict(), f)
        except OSError as e:
            raise FatalStorageError(f"Cannot write {self.path.name}: {e}") from e
