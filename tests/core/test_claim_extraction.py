"""
ClaimExtractor tests
"""
import pytest

from chartguard.core.extraction import ClaimExtractor, claim_id
from chartguard.core.ledger import ClaimLedger
from chartguard.core.models.claim import ClaimMeta, ClaimType, ExplicitOrigin, InferredOrigin
from chartguard.core.models.schedule import Origin, Schedule


class TestClaimExtractor:

    @pytest.fixture
    def extractor(self):
        return ClaimExtractor()

    def test_extracts_every_field(self, extractor, schedule_payload):
        schedule = Schedule.from_payload(schedule_payload)
        ledger = ClaimLedger()

        results = extractor.extract_into(schedule, ledger)

        assert all(r.success for r in results)
        types = [c.type for c in ledger.get_by_task("task-1")]
        assert types == [ClaimType.DURATION, ClaimType.RESOURCE, ClaimType.REGULATORY]
        types = [c.type for c in ledger.get_by_task("task-2")]
        assert types == [ClaimType.START_DATE, ClaimType.DEPENDENCY]

    def test_one_claim_per_citation(self, extractor, conflicting_payload):
        schedule = Schedule.from_payload(conflicting_payload)
        claims = extractor.extract(schedule.tasks[0], "task-1")

        assert [c.value for c in claims] == [90, 60]
        assert [c.source.document_name for c in claims] == ["fda_guidance.txt", "vendor_estimate.txt"]
        assert claims[0].id == claim_id("task-1", "duration", 0)
        assert claims[1].id == claim_id("task-1", "duration", 1)

    def test_ids_are_deterministic(self, extractor, schedule_payload):
        first = [c.id for r in extractor.extract_batch(Schedule.from_payload(schedule_payload)) for c in r.claims]
        second = [c.id for r in extractor.extract_batch(Schedule.from_payload(schedule_payload)) for c in r.claims]
        assert first == second
        assert all(cid.startswith("clm-") and len(cid) == 16 for cid in first)
        assert len(set(first)) == len(first)

    def test_inferred_field(self, extractor, schedule_payload):
        schedule = Schedule.from_payload(schedule_payload)
        dep = extractor.extract(schedule.tasks[1], "task-2")[1]

        assert isinstance(dep.origin, InferredOrigin)
        assert dep.rationale == "Sites open once the submission is filed"
        assert dep.producer == "GEMINI"
        assert dep.statement == "Depends on task task-1"
        assert dep.confidence == 0.6

    def test_explicit_without_citation_is_downgraded(self, extractor):
        schedule = Schedule.from_payload({"tasks": [
            {"id": "t", "confidence": 0.4, "duration": {"value": 10, "unit": "weeks", "origin": "explicit"}},
        ]})
        claim = extractor.extract(schedule.tasks[0], "t")[0]

        assert isinstance(claim.origin, InferredOrigin)
        assert claim.metadata[ClaimMeta.ORIGIN_DOWNGRADED] == "missing citation"
        assert claim.confidence == 0.4
        assert claim.statement == "Duration is 10 weeks"

    def test_citation_without_document_is_downgraded(self, extractor):
        schedule = Schedule.from_payload({"tasks": [{
            "id": "t",
            "duration": {"value": 3, "unit": "months", "origin": "explicit",
                         "source_citations": [{"exact_quote": "three months"}]},
        }]})
        claim = extractor.extract(schedule.tasks[0], "t")[0]

        assert claim.declared_origin == Origin.INFERRED
        assert claim.metadata[ClaimMeta.ORIGIN_DOWNGRADED] == "missing document name"
        assert claim.confidence == 0.5

    def test_missing_origin_follows_citations(self, extractor):
        schedule = Schedule.from_payload({"tasks": [{
            "id": "t",
            "resources": [
                {"value": "2 nurses", "source_citations": [{"document_name": "d.txt", "exact_quote": "2 nurses"}]},
                {"value": "1 pharmacist"},
            ],
        }]})
        claims = extractor.extract(schedule.tasks[0], "t")

        assert isinstance(claims[0].origin, ExplicitOrigin)
        assert isinstance(claims[1].origin, InferredOrigin)
        assert [c.field for c in claims] == ["resources[0]", "resources[1]"]

    def test_regulatory_claim_carries_regulation(self, extractor, schedule_payload):
        schedule = Schedule.from_payload(schedule_payload)
        claim = extractor.extract(schedule.tasks[0], "task-1")[-1]

        assert claim.type == ClaimType.REGULATORY
        assert claim.value is True
        assert claim.unit == "FDA"
        assert claim.statement == "FDA approval is required"

    def test_tasks_without_ids_use_position(self, extractor):
        schedule = Schedule.from_payload({"tasks": [
            {"name": "A", "duration": {"value": 1, "origin": "inferred"}},
            {"name": "B", "duration": {"value": 2, "origin": "inferred"}},
        ]})
        results = extractor.extract_batch(schedule)
        assert [r.task_id for r in results] == ["task-1", "task-2"]
        assert results[1].claims[0].task_id == "task-2"
