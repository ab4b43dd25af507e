"""
Task store for Tilly.

Every query carries the owner filter, even though row-level security in the
database already restricts rows to their owner.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import ValidationError

from tilly.database.db import Database, DatabaseError
from tilly.models import (
    TITLE_MAX_LENGTH,
    Task,
    parse_create_input,
    parse_update_input,
)

logger = logging.getLogger(__name__)

TABLE = "tasks"


class TaskNotFound(Exception):
    """The task does not exist or belongs to someone else."""
    pass


def _task_id(value: str) -> Optional[str]:
    """Canonical hyphenated form of a task id, or None if it is not a UUID"""
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return None


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TaskStore:
    """CRUD over the `tasks` table for a single owner"""

    def __init__(self, db: Database, owner_id: str, title_max_length: int = TITLE_MAX_LENGTH):
        if not owner_id:
            raise ValueError("owner_id is required")
        self.db = db
        self.owner_id = owner_id
        self.title_max_length = title_max_length

    def _scope(self, task_id: str = None) -> dict:
        filters = {"user_id": self.owner_id}
        if task_id is not None:
            filters = {"id": task_id, **filters}
        return filters

    def _to_task(self, row: dict) -> Task:
        try:
            return Task.from_row(row)
        except (KeyError, ValidationError) as e:
            logger.error(f"Unexpected task row shape: {e}")
            raise DatabaseError("Database returned an invalid task row") from e

    def list_tasks(self) -> List[Task]:
        """Owner's tasks, newest first"""
        rows = self.db.select(TABLE, filters=self._scope(), order="created_at.desc")
        return [self._to_task(row) for row in rows]

    def create_task(self, payload: Any) -> Task:
        """
        Create a task owned by the store's owner.

        Raises:
            TaskValidationError: Before anything is written
            DatabaseError: If the insert fails
        """
        data = parse_create_input(payload, self.title_max_length)
        row = self.db.insert(TABLE, {
            "title": data.title,
            "description": data.description,
            "status": data.status.value,
            "priority": data.priority.value,
            "user_id": self.owner_id,
        })
        return self._to_task(row)

    def get_task(self, task_id: str) -> Task:
        key = _task_id(task_id)
        if key is None:
            raise TaskNotFound(task_id)
        rows = self.db.select(TABLE, filters=self._scope(key), limit=1)
        if not rows:
            raise TaskNotFound(task_id)
        return self._to_task(rows[0])

    def update_task(self, task_id: str, payload: Any) -> Task:
        """
        Apply a partial update.

        Only fields present in the payload change. The payload is validated
        before the id is looked at, so an empty patch never reaches the database.
        """
        changes = parse_update_input(payload, self.title_max_length).changes()
        key = _task_id(task_id)
        if key is None:
            raise TaskNotFound(task_id)

        changes["updated_at"] = _utc_now()
        rows = self.db.update(TABLE, changes, filters=self._scope(key))
        if not rows:
            raise TaskNotFound(task_id)
        return self._to_task(rows[0])

    def delete_task(self, task_id: str) -> None:
        key = _task_id(task_id)
        if key is None:
            raise TaskNotFound(task_id)
        rows = self.db.delete(TABLE, filters=self._scope(key))
        if not rows:
            raise TaskNotFound(task_id)
