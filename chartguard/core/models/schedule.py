"""
Draft schedule model, as handed over by the schedule generator.

The model is deliberately lenient: identifiers, names, origins and confidences may
be missing or out of range. The schema gate reports those defects and the schema
repair strategy fixes them; only input that cannot be read as a task list at all
is rejected up front.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import MalformedScheduleError


class Origin(str, Enum):
    """Whether a value is traceable to source text or derived by reasoning."""
    EXPLICIT = "explicit"
    INFERRED = "inferred"


def fallback_task_id(index: int) -> str:
    """Positional id used for tasks that arrive without one (1-based)."""
    return f"task-{index + 1}"


class SourceCitation(BaseModel):
    """Pointer from a field to the quoted passage of a research document."""
    document_name: Optional[str] = None
    paragraph_index: Optional[int] = None
    start_char: Optional[int] = None
    end_char: Optional[int] = None
    exact_quote: Optional[str] = None
    provider: Optional[str] = Field(None, description="Producer that located the citation")
    retrieved_at: Optional[datetime] = Field(None, description="When the document text was retrieved")
    cited_at: Optional[datetime] = Field(None, description="When the citation was attached")
    value: Optional[Any] = Field(None, description="Value as stated by this source, if it differs from the field")


class InferenceRationale(BaseModel):
    reasoning: str = ""
    supporting_facts: List[str] = Field(default_factory=list)
    llm_provider: Optional[str] = None
    confidence: Optional[float] = None


class ScheduleField(BaseModel):
    """One bimodal task field: a value tagged explicit (cited) or inferred."""
    value: Any = None
    unit: Optional[str] = None
    origin: Optional[Origin] = None
    confidence: Optional[float] = None
    source_citations: List[SourceCitation] = Field(default_factory=list)
    inference_rationale: Optional[InferenceRationale] = None

    @property
    def has_citations(self) -> bool:
        return bool(self.source_citations)


class RegulatoryRequirement(ScheduleField):
    is_required: bool = False
    regulation: Optional[str] = None
    detected_by: Optional[str] = Field(None, description="Set when attached by the keyword heuristic")


def _coerce_fields(items: Any) -> Any:
    if not isinstance(items, list):
        return items
    return [item if isinstance(item, (dict, ScheduleField)) else {"value": item} for item in items]


class ScheduleTask(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    confidence: Optional[float] = None
    related_task_ids: List[str] = Field(default_factory=list, description="Explicit links to other tasks")
    duration: Optional[ScheduleField] = None
    start_date: Optional[ScheduleField] = None
    dependencies: List[ScheduleField] = Field(default_factory=list)
    resources: List[ScheduleField] = Field(default_factory=list)
    regulatory_requirement: Optional[RegulatoryRequirement] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("dependencies", "resources", mode="before")
    @classmethod
    def _accept_bare_values(cls, v):
        # generator may send ["task-1", "task-2"] instead of field objects
        return _coerce_fields(v)

    @field_validator("related_task_ids", mode="before")
    @classmethod
    def _none_is_empty(cls, v):
        return v or []

    def key(self, index: int) -> str:
        return self.id or fallback_task_id(index)


class Schedule(BaseModel):
    title: Optional[str] = None
    tasks: List[ScheduleTask] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "Schedule":
        """
        Parse a draft schedule payload.

        Raises:
            MalformedScheduleError: payload is not a mapping with a list of task objects,
                or a field carries a value of the wrong kind.
        """
        if isinstance(payload, Schedule):
            return payload.model_copy(deep=True)
        if not isinstance(payload, dict):
            raise MalformedScheduleError(f"Schedule must be an object, got {type(payload).__name__}")
        tasks = payload.get("tasks")
        if not isinstance(tasks, list):
            raise MalformedScheduleError("Schedule has no 'tasks' list")
        for index, task in enumerate(tasks):
            if not isinstance(task, dict):
                raise MalformedScheduleError(f"Task at position {index} is not an object")
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise MalformedScheduleError(f"Unreadable schedule: {e.error_count()} invalid value(s); {e.errors()[0]['msg']}") from e

    def task_ids(self) -> List[str]:
        """
        Resolved task identifiers, one per task position.

        Missing ids become `task-<n>`; a repeated id keeps its first occurrence and
        later ones get a `-dup<n>` suffix. Extraction and schema repair both use this,
        so claims stay attached to the same task after repair.
        """
        seen = set()
        resolved = []
        for i, task in enumerate(self.tasks):
            tid = task.key(i)
            if tid in seen:
                tid = f"{tid}-dup{i + 1}"
            seen.add(tid)
            resolved.append(tid)
        return resolved
