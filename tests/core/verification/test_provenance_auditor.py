"""
ProvenanceAuditor tests
"""
from datetime import datetime

import pytest

from chartguard.config.settings import ValidationSettings
from chartguard.core.models.claim import Claim, ClaimSource, ClaimType, ExplicitOrigin, InferredOrigin
from chartguard.core.verification.provenance import (
    PROVIDER_TRUST,
    SOURCE_VERIFICATION,
    TAMPERING_CHECK,
    TIMESTAMP_VERIFICATION,
    ProvenanceAuditor,
)

DOC = "The FDA premarket review takes 90 days for completion."
NOW = datetime(2025, 6, 1, 12, 0)


def explicit(**source) -> Claim:
    fields = {"document_name": "fda.txt", "quote": "90 days", "producer": "GEMINI", **source}
    return Claim(
        id="clm-exp", task_id="t", type=ClaimType.DURATION, field="duration", value=90, unit="days",
        statement="Duration is 90 days", confidence=0.8,
        origin=ExplicitOrigin(source=ClaimSource(**fields)),
    )


def inferred(producer=None, confidence=0.6) -> Claim:
    return Claim(
        id="clm-inf", task_id="t", type=ClaimType.DURATION, field="duration", value=90, unit="days",
        statement="Duration is 90 days", confidence=confidence,
        origin=InferredOrigin(rationale="typical review length", producer=producer),
    )


class TestProvenanceAuditor:

    @pytest.fixture
    def auditor(self):
        return ProvenanceAuditor(ValidationSettings(reference_time=NOW))

    def test_steps_run_in_order(self, auditor):
        result = auditor.audit(explicit(), {"fda.txt": DOC})
        assert result.chain_of_custody == [SOURCE_VERIFICATION, PROVIDER_TRUST, TIMESTAMP_VERIFICATION, TAMPERING_CHECK]

    def test_inferred_claim_without_document(self, auditor):
        result = auditor.audit(inferred(), {})

        assert result.sub_scores[SOURCE_VERIFICATION] == 1.0
        assert result.sub_scores[PROVIDER_TRUST] == 0.5
        assert result.score == pytest.approx(0.30 + 0.25 * 0.5 + 0.20 + 0.25)
        assert any("unknown" in issue for issue in result.issues)
        assert result.recommendations

    def test_known_producer(self, auditor):
        result = auditor.audit(inferred(producer="openai"), {})
        assert result.sub_scores[PROVIDER_TRUST] == 0.7
        assert result.issues == []

    def test_missing_document(self, auditor):
        result = auditor.audit(explicit(), {})
        assert result.sub_scores[SOURCE_VERIFICATION] == 0.0
        assert "fda.txt" in result.issues[0]

    def test_future_retrieval(self, auditor):
        result = auditor.audit(explicit(retrieved_at=datetime(2026, 1, 1)), {"fda.txt": DOC})
        assert result.sub_scores[TIMESTAMP_VERIFICATION] == 0.0

    def test_stale_retrieval(self, auditor):
        result = auditor.audit(explicit(retrieved_at=datetime(2023, 1, 1)), {"fda.txt": DOC})
        assert result.sub_scores[TIMESTAMP_VERIFICATION] == 0.7

    def test_citation_before_retrieval(self, auditor):
        result = auditor.audit(
            explicit(retrieved_at=datetime(2025, 5, 1), cited_at=datetime(2025, 4, 1)),
            {"fda.txt": DOC},
        )
        assert result.sub_scores[TIMESTAMP_VERIFICATION] == 0.5

    def test_tampering_checks(self, auditor):
        clean = auditor.audit(explicit(start_char=31, end_char=38), {"fda.txt": DOC})
        assert clean.sub_scores[TAMPERING_CHECK] == 1.0

        beyond = auditor.audit(explicit(start_char=31, end_char=500), {"fda.txt": DOC})
        assert beyond.sub_scores[TAMPERING_CHECK] < 1.0

        reversed_range = auditor.audit(explicit(start_char=38, end_char=31), {"fda.txt": DOC})
        assert reversed_range.sub_scores[TAMPERING_CHECK] < 1.0

    def test_confidence_out_of_range(self, auditor):
        result = auditor.audit(inferred(confidence=1.7), {})
        assert result.sub_scores[TAMPERING_CHECK] == 0.5
        assert any("outside" in issue for issue in result.issues)

    def test_batch(self, auditor):
        results = auditor.audit_batch([explicit(), inferred()], {"fda.txt": DOC})
        assert [r.claim_id for r in results] == ["clm-exp", "clm-inf"]
        assert all(0.0 <= r.score <= 1.0 for r in results)
