"""TinyDB database service

Collections are kept as whole JSON tables under the same names the web client
used for its local storage (``users``, ``userRoles``, ``roles``,
``userVaults`` and one ``memories_<vaultId>`` table per vault).
"""

import logging
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional, Type, TypeVar, List, Iterable

from pydantic import BaseModel, ValidationError
from tinydb import TinyDB, Query
from tinydb.table import Table

from legacy.config import settings
from legacy.errors import DeserializationError, VersionConflict

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

MEMORIES_PREFIX = "memories_"


class Database:
    """Database service using TinyDB

    Pass ``storage`` (e.g. ``tinydb.storages.MemoryStorage``) to keep the
    data in memory instead of ``db_path``.
    """

    def __init__(self, db_path: Optional[Path] = None, storage=None):
        self.db_path = db_path
        self.storage = storage
        self.db: Optional[TinyDB] = None
        # Serializes read-modify-write cycles within the process
        self.lock = threading.RLock()

    def open(self):
        """Open the database connection"""
        if self.db is not None:
            return
        if self.storage is not None:
            self.db = TinyDB(storage=self.storage)
            logger.info("Database opened in memory")
        else:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.db = TinyDB(str(self.db_path))
            logger.info(f"Database opened: {self.db_path}")

    def close(self):
        """Close the database connection"""
        if self.db is not None:
            self.db.close()
            self.db = None
            logger.info("Database closed")

    def _ensure_db(self) -> TinyDB:
        if self.db is None:
            self.open()
        return self.db

    def reset(self):
        """Drop every table (used by tests and maintenance scripts)"""
        with self.lock:
            self._ensure_db().drop_tables()

    @property
    def users(self) -> Table:
        return self._ensure_db().table("users")

    @property
    def user_roles(self) -> Table:
        return self._ensure_db().table("userRoles")

    @property
    def roles(self) -> Table:
        """Custom roles only; system roles live in code"""
        return self._ensure_db().table("roles")

    @property
    def vaults(self) -> Table:
        return self._ensure_db().table("userVaults")

    @property
    def comments(self) -> Table:
        return self._ensure_db().table("comments")

    @property
    def activity(self) -> Table:
        return self._ensure_db().table("activity")

    def memories(self, vault_id: str) -> Table:
        return self._ensure_db().table(f"{MEMORIES_PREFIX}{vault_id}")

    def drop_memories(self, vault_id: str):
        self._ensure_db().drop_table(f"{MEMORIES_PREFIX}{vault_id}")

    def load(self, model: Type[ModelT], doc: dict, collection: str) -> ModelT:
        """Validate a stored document against its schema"""
        try:
            return model.model_validate(dict(doc))
        except ValidationError as e:
            logger.error(f"Malformed record in {collection}: {e}")
            raise DeserializationError(collection, str(e)) from e

    def load_all(self, model: Type[ModelT], docs: Iterable[dict], collection: str) -> List[ModelT]:
        return [self.load(model, doc, collection) for doc in docs]

    def generate_id(self, prefix: str = None) -> str:
        if prefix:
            return f"{prefix}_{uuid.uuid4().hex[:12]}"
        return str(uuid.uuid4())[:8]

    def timestamp(self) -> str:
        return datetime.utcnow().isoformat()

    def log_activity(
        self,
        vault_id: str,
        action: str,
        user_id: str = None,
        user_name: str = None,
        details: str = "",
        memory_id: str = None
    ) -> dict:
        """Log vault activity for the activity feed"""
        event = {
            "id": self.generate_id("activity"),
            "vault_id": vault_id,
            "action": action,
            "user_id": user_id,
            "user_name": user_name,
            "memory_id": memory_id,
            "details": details,
            "timestamp": self.timestamp()
        }
        self.activity.insert(event)
        return event


def check_version(current: int, expected: Optional[int]):
    """Reject a write made against a stale copy of a record"""
    if expected is not None and expected != current:
        raise VersionConflict(expected, current)


# Query helper
Q = Query()

# Singleton instance
db = Database(Path(settings.database_path))
