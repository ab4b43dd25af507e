"""Task data models and validation."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError, ValidationInfo, field_validator, model_validator

TITLE_MAX_LENGTH = 200

# Fields a client may set; everything else in a payload is ignored
EDITABLE_FIELDS = ('title', 'description', 'status', 'priority')


class TaskStatus(str, Enum):
    TODO = 'todo'
    IN_PROGRESS = 'in_progress'
    DONE = 'done'


class TaskPriority(str, Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'


class TaskValidationError(Exception):
    """Raised when a task payload fails validation."""

    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


def _check_title(value: str, info: ValidationInfo) -> str:
    max_length = (info.context or {}).get('title_max_length', TITLE_MAX_LENGTH)
    title = value.strip()
    if not title:
        raise ValueError("Title is required")
    if len(title) > max_length:
        raise ValueError(f"Title must be {max_length} characters or fewer")
    return title


class CreateTaskInput(BaseModel):
    """Payload for creating a task. Only title is required."""

    title: str
    description: Optional[str] = ''
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: str, info: ValidationInfo) -> str:
        return _check_title(v, info)

    @field_validator('description')
    @classmethod
    def strip_description(cls, v: Optional[str]) -> str:
        return (v or '').strip()


class UpdateTaskInput(BaseModel):
    """
    Partial update payload.

    Only fields present in the incoming JSON are applied; at least one
    editable field must be present.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        if v is None:
            return v
        return _check_title(v, info)

    @field_validator('description')
    @classmethod
    def strip_description(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v

    @model_validator(mode='after')
    def validate_fields_present(self) -> 'UpdateTaskInput':
        if not self.model_fields_set:
            raise ValueError("No fields to update")
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> Dict[str, Any]:
        """Column values to write, containing only the supplied fields."""
        return self.model_dump(mode='json', exclude_unset=True)


class Task(BaseModel):
    """A task as returned to the browser."""

    id: str
    title: str
    description: str
    status: TaskStatus
    priority: TaskPriority
    user_id: str
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Task':
        """Build a Task from a `tasks` table row."""
        return cls(
            id=str(row['id']),
            title=row['title'],
            description=row.get('description') or '',
            status=row['status'],
            priority=row['priority'],
            user_id=str(row['user_id']),
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )

    def to_dict(self) -> Dict[str, Any]:
        """camelCase view used on the wire."""
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'status': self.status.value,
            'priority': self.priority.value,
            'userId': self.user_id,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }


def _format_errors(e: ValidationError) -> TaskValidationError:
    details = []
    for error in e.errors():
        details.append({
            'loc': list(error.get('loc', ())),
            'msg': error.get('msg'),
        })

    first = e.errors()[0]
    message = first.get('msg', 'Invalid task')
    # Custom validators surface as "Value error, <text>"
    if message.startswith('Value error, '):
        message = message[len('Value error, '):]
    loc = [str(part) for part in first.get('loc', ())]
    if loc and first.get('type') != 'value_error':
        message = f"{'.'.join(loc)}: {message}"
    return TaskValidationError(message, details)


def parse_create_input(data: Any, title_max_length: int = TITLE_MAX_LENGTH) -> CreateTaskInput:
    """
    Validate a create payload.

    Raises:
        TaskValidationError: If the payload is not an object or fails validation
    """
    if not isinstance(data, dict):
        raise TaskValidationError("Request body must be a JSON object")
    try:
        return CreateTaskInput.model_validate(data, context={'title_max_length': title_max_length})
    except ValidationError as e:
        raise _format_errors(e) from e


def parse_update_input(data: Any, title_max_length: int = TITLE_MAX_LENGTH) -> UpdateTaskInput:
    """
    Validate an update payload.

    Raises:
        TaskValidationError: If no editable field is present or a value is invalid
    """
    if not isinstance(data, dict):
        raise TaskValidationError("Request body must be a JSON object")
    supplied = {key: data[key] for key in EDITABLE_FIELDS if key in data}
    if not supplied:
        raise TaskValidationError("No fields to update")
    try:
        return UpdateTaskInput.model_validate(supplied, context={'title_max_length': title_max_length})
    except ValidationError as e:
        raise _format_errors(e) from e
