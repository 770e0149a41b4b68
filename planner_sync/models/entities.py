"""
Planner entity model definitions
Projects, categories, tasks and the other documents kept in local storage
"""

import math
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BeforeValidator, Field

from .base import BaseModel, EntityModel

# Settings are an opaque configuration blob
AppSettings = Dict[str, Any]


def _coerce_id(value: Any) -> Any:
    """Local ids were sometimes written as numbers"""
    if value is None or isinstance(value, str):
        return value
    return str(value)


def _coerce_id_list(value: Any) -> Any:
    """null lists become empty, a lone id becomes a list, numeric ids strings"""
    if value is None:
        return []
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return [str(value)]
    if isinstance(value, (list, tuple)):
        return [_coerce_id(item) for item in value if isinstance(item, (str, int))]
    return []


def _coerce_str_list(value: Any) -> Any:
    if not isinstance(value, (list, tuple)):
        return []
    return [
        item if isinstance(item, str) else str(item)
        for item in value
        if item is not None
    ]


def _coerce_dict_list(value: Any) -> Any:
    """Drop entries that are not objects (nested blocks, shifts)"""
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, dict)]


def _coerce_text(value: Any) -> Any:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _coerce_optional_text(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _coerce_flag(value: Any) -> Any:
    """null is False, "true"/"false" strings are honoured"""
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _coerce_optional_flag(value: Any) -> Any:
    return None if value is None else _coerce_flag(value)


def _coerce_active(value: Any) -> Any:
    return True if value is None else _coerce_flag(value)


def _coerce_number(value: Any) -> Any:
    """Numbers and numeric strings are kept, anything else becomes None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if value.is_integer():
            return int(value)
    return value


def _coerce_int(value: Any) -> Any:
    number = _coerce_number(value)
    if isinstance(number, float):
        return int(number)
    return number


SourceId = Annotated[Optional[str], BeforeValidator(_coerce_id)]
IdList = Annotated[List[str], BeforeValidator(_coerce_id_list)]
StrList = Annotated[List[str], BeforeValidator(_coerce_str_list)]
Text = Annotated[str, BeforeValidator(_coerce_text)]
OptionalText = Annotated[Optional[str], BeforeValidator(_coerce_optional_text)]
Flag = Annotated[bool, BeforeValidator(_coerce_flag)]
OptionalFlag = Annotated[Optional[bool], BeforeValidator(_coerce_optional_flag)]
Number = Annotated[Optional[Union[int, float]], BeforeValidator(_coerce_number)]
Integer = Annotated[Optional[int], BeforeValidator(_coerce_int)]

# Raw timestamp as stored locally (ISO string, epoch ms, ...), normalized on migration
Timestamp = Optional[Any]


# ============ Projects and Categories ============


class Project(EntityModel):
    """Project model"""

    id: SourceId = None
    name: Text = ""
    description: Text = ""
    color: OptionalText = None
    order: Integer = None
    created_at: Timestamp = None
    updated_at: Timestamp = None

    @property
    def label(self) -> str:
        return self.name


class Category(EntityModel):
    """Category model"""

    id: SourceId = None
    name: Text = ""
    color: OptionalText = None
    created_at: Timestamp = None
    updated_at: Timestamp = None

    @property
    def label(self) -> str:
        return self.name


# ============ Tasks ============


class Task(EntityModel):
    """Task model

    ``subtasks``, ``depends_on`` and ``depended_on_by`` are redundant views of
    the parent/dependency graph; the graph may contain cycles.
    """

    id: SourceId = None
    title: Text = ""
    description: Text = ""
    completed: Flag = False
    archived: Flag = False
    due_date: Timestamp = None
    project_id: SourceId = None
    category_ids: IdList = Field(default_factory=list)
    parent_task_id: SourceId = None
    priority: OptionalText = None
    energy_level: OptionalText = None
    size: OptionalText = None
    estimated_minutes: Number = None
    phase: OptionalText = None
    tags: StrList = Field(default_factory=list)

    # Multi-dimensional prioritization
    urgency: OptionalText = None
    importance: Integer = None
    emotional_weight: OptionalText = None
    energy_required: OptionalText = None

    created_at: Timestamp = None
    updated_at: Timestamp = None
    completed_at: Timestamp = None
    deleted_at: Timestamp = None
    recurring_task_id: SourceId = None

    subtasks: IdList = Field(default_factory=list)
    depends_on: IdList = Field(default_factory=list)
    depended_on_by: IdList = Field(default_factory=list)

    is_recurring: OptionalFlag = None
    recurrence_pattern: Optional[Any] = None
    recurrence_interval: Integer = None
    project_phase: OptionalText = None
    phase_order: Integer = None
    show_subtasks: OptionalFlag = None
    braindump_source: Optional[Any] = None
    ai_processed: OptionalFlag = None

    @property
    def label(self) -> str:
        return self.title

    def has_relationships(self) -> bool:
        """Whether the task carries any parent/subtask/dependency reference"""
        return bool(
            self.parent_task_id
            or self.subtasks
            or self.depends_on
            or self.depended_on_by
        )


class RecurringTask(EntityModel):
    """Recurring task template model"""

    id: SourceId = None
    title: Text = ""
    description: Text = ""
    pattern: Optional[Any] = None
    source: Optional[Any] = None
    project_id: SourceId = None
    category_ids: IdList = Field(default_factory=list)
    tags: StrList = Field(default_factory=list)
    priority: OptionalText = None
    energy_level: OptionalText = None
    estimated_minutes: Number = None
    active: Annotated[bool, BeforeValidator(_coerce_active)] = True
    next_due: Timestamp = None
    last_generated: Timestamp = None
    created_at: Timestamp = None
    updated_at: Timestamp = None

    @property
    def label(self) -> str:
        return self.title


# ============ Daily Plans ============


class TimeBlock(EntityModel):
    """Time block inside a daily plan

    ``task_id`` is the legacy single reference, ``task_ids`` the list form.
    """

    id: SourceId = None
    start_time: OptionalText = None
    end_time: OptionalText = None
    task_id: SourceId = None
    task_ids: IdList = Field(default_factory=list)
    title: Text = ""
    description: Text = ""


class DailyPlan(EntityModel):
    """Daily plan model"""

    id: SourceId = None
    date: Text = ""
    time_blocks: Annotated[List[TimeBlock], BeforeValidator(_coerce_dict_list)] = Field(
        default_factory=list
    )

    @property
    def label(self) -> str:
        return self.date


# ============ Journal and Work Schedule ============


class JournalEntry(EntityModel):
    """Weekly review journal entry"""

    id: SourceId = None
    date: Text = ""
    title: Text = ""
    content: Text = ""
    section: OptionalText = None
    prompt: OptionalText = None
    prompt_index: Integer = None
    mood: OptionalText = None
    week_number: Integer = None
    week_year: Integer = None
    tags: StrList = Field(default_factory=list)
    created_at: Timestamp = None
    updated_at: Timestamp = None

    @property
    def label(self) -> str:
        return self.date


class WorkShift(EntityModel):
    """Single work shift (date YYYY-MM-DD, times HH:MM)"""

    id: SourceId = None
    date: Text = ""
    start_time: OptionalText = None
    end_time: OptionalText = None
    shift_type: OptionalText = None
    color: OptionalText = None
    notes: OptionalText = None


class WorkSchedule(EntityModel):
    """Work schedule model"""

    id: SourceId = None
    name: Text = "My Work Schedule"
    shifts: Annotated[List[WorkShift], BeforeValidator(_coerce_dict_list)] = Field(
        default_factory=list
    )
    created_at: Timestamp = None
    updated_at: Timestamp = None

    @property
    def label(self) -> str:
        return self.name


# ============ Unreadable documents ============


class RejectedItem(BaseModel):
    """A stored item that could not be read as its entity type"""

    entity_type: str
    index: Optional[int] = None
    source_id: Optional[str] = None
    message: str = ""
