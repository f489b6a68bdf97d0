"""
JSON-schema checks for the working schedule and the validated deliverable.
"""
import json
import math
from functools import lru_cache
from pathlib import Path
from typing import Dict, List

from jsonschema import Draft202012Validator

from .models.report import ValidatedSchedule
from .models.schedule import Schedule, ScheduleField, ScheduleTask

SCHEMA_DIR = Path(__file__).resolve().parents[1] / "schemas"
SCHEDULE_SCHEMA = "schedule.schema.json"
VALIDATED_SCHEDULE_SCHEMA = "validated_schedule.schema.json"


@lru_cache(maxsize=None)
def load_schema(name: str) -> dict:
    return json.loads((SCHEMA_DIR / name).read_text(encoding="utf-8"))


@lru_cache(maxsize=None)
def _task_validator() -> Draft202012Validator:
    schema = load_schema(SCHEDULE_SCHEMA)
    return Draft202012Validator({"$defs": schema["$defs"], "$ref": "#/$defs/task"})


def _format(error) -> str:
    where = "/".join(str(p) for p in error.absolute_path) or "<task>"
    return f"{where}: {error.message}"


def _fields(task: ScheduleTask) -> List[ScheduleField]:
    fields = [f for f in (task.duration, task.start_date, task.regulatory_requirement) if f is not None]
    return fields + list(task.dependencies) + list(task.resources)


def _non_finite(value) -> bool:
    return isinstance(value, float) and (math.isnan(value) or math.isinf(value))


def task_violations(schedule: Schedule) -> Dict[int, List[str]]:
    """
    Structural problems per task position; positions without problems are omitted.

    Besides the JSON schema this checks what the schema cannot express: unique
    task ids and finite confidence values.
    """
    validator = _task_validator()
    violations: Dict[int, List[str]] = {}
    seen = set()
    for index, task in enumerate(schedule.tasks):
        problems = [_format(e) for e in validator.iter_errors(task.model_dump(mode="json"))]
        if task.id:
            if task.id in seen:
                problems.append(f"id: duplicate task id {task.id!r}")
            seen.add(task.id)
        fields = _fields(task)
        confidences = [task.confidence] + [f.confidence for f in fields]
        confidences += [f.inference_rationale.confidence for f in fields if f.inference_rationale is not None]
        if any(_non_finite(c) for c in confidences):
            problems.append("confidence: value is not a finite number")
        if problems:
            violations[index] = sorted(set(problems))
    return violations


def validated_schedule_errors(validated: ValidatedSchedule) -> List[str]:
    validator = Draft202012Validator(load_schema(VALIDATED_SCHEDULE_SCHEMA))
    payload = json.loads(validated.to_json())
    return [_format(e) for e in validator.iter_errors(payload)]
