"""
Schedule / Claim model tests
"""
import pytest
from pydantic import ValidationError

from chartguard.core.errors import MalformedScheduleError
from chartguard.core.models.claim import (
    Claim,
    ClaimMeta,
    ClaimSource,
    ClaimType,
    ExplicitOrigin,
    InferredOrigin,
)
from chartguard.core.models.report import ValidatedField, ValidatedSchedule, ValidatedTask
from chartguard.core.models.schedule import Origin, Schedule


class TestSchedule:

    def test_from_payload_rejects_non_objects(self):
        with pytest.raises(MalformedScheduleError):
            Schedule.from_payload("not a schedule")
        with pytest.raises(MalformedScheduleError):
            Schedule.from_payload({"title": "no tasks"})
        with pytest.raises(MalformedScheduleError):
            Schedule.from_payload({"tasks": [1, 2]})

    def test_from_payload_rejects_wrong_value_kinds(self):
        with pytest.raises(MalformedScheduleError):
            Schedule.from_payload({"tasks": [{"id": "t", "duration": "ninety"}]})

    def test_lenient_about_missing_task_data(self):
        schedule = Schedule.from_payload({"tasks": [{"name": "Unnamed"}, {}]})
        assert len(schedule.tasks) == 2
        assert schedule.tasks[0].id is None

    def test_task_ids_fill_missing_and_duplicates(self):
        schedule = Schedule.from_payload({"tasks": [{"id": "a"}, {}, {"id": "a"}]})
        assert schedule.task_ids() == ["a", "task-2", "a-dup3"]

    def test_bare_dependency_values(self):
        schedule = Schedule.from_payload({"tasks": [{"id": "t", "dependencies": ["task-1", "task-2"]}]})
        deps = schedule.tasks[0].dependencies
        assert [d.value for d in deps] == ["task-1", "task-2"]
        assert deps[0].origin is None


class TestClaim:

    def test_explicit_origin_needs_a_source(self):
        with pytest.raises(ValidationError):
            ExplicitOrigin()
        with pytest.raises(ValidationError):
            ClaimSource(document_name="")

    def test_origin_is_discriminated(self):
        claim = Claim.model_validate({
            "id": "clm-1",
            "task_id": "t",
            "type": "duration",
            "field": "duration",
            "value": 5,
            "origin": {"kind": "inferred", "rationale": "guess", "producer": "OPENAI"},
        })
        assert isinstance(claim.origin, InferredOrigin)
        assert claim.declared_origin == Origin.INFERRED
        assert claim.producer == "OPENAI"
        assert claim.source is None

    def test_claims_are_immutable(self):
        claim = Claim(
            id="clm-1", task_id="t", type=ClaimType.DURATION, field="duration", value=5,
            origin=ExplicitOrigin(source=ClaimSource(document_name="doc.txt", quote="5 days")),
        )
        with pytest.raises(ValidationError):
            claim.value = 6

    def test_reclassification_changes_effective_origin_only(self):
        claim = Claim(
            id="clm-1", task_id="t", type=ClaimType.DURATION, field="duration", value=5,
            origin=ExplicitOrigin(source=ClaimSource(document_name="doc.txt", quote="5 days")),
        )
        assert claim.requires_citation

        reclassified = claim.annotated(**{ClaimMeta.INFERENCE_RATIONALE: "not found in doc.txt"})

        assert reclassified.declared_origin == Origin.EXPLICIT
        assert reclassified.effective_origin == Origin.INFERRED
        assert not reclassified.requires_citation
        assert reclassified.rationale == "not found in doc.txt"
        assert claim.metadata == {}


class TestValidatedSchedule:

    def _field(self, cid, origin, verified, superseded_by=None):
        return ValidatedField(
            claim_id=cid, claim_type=ClaimType.DURATION, field="duration", origin=origin,
            confidence=0.8, verified=verified, superseded_by=superseded_by,
        )

    def test_facts_only(self):
        validated = ValidatedSchedule(tasks=[ValidatedTask(id="t", name="T", confidence=0.7, fields=[
            self._field("a", Origin.EXPLICIT, True),
            self._field("b", Origin.EXPLICIT, False),
            self._field("c", Origin.INFERRED, None),
            self._field("d", Origin.EXPLICIT, True, superseded_by="a"),
        ])])

        facts = validated.facts_only()

        assert [f.claim_id for f in facts.tasks[0].fields] == ["a"]
        assert len(validated.tasks[0].fields) == 4
