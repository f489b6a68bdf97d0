"""
ConfidenceCalibrator tests
"""
import math

import pytest

from chartguard.config.settings import ValidationSettings
from chartguard.core.models.claim import (
    Claim,
    ClaimMeta,
    ClaimSource,
    ClaimType,
    ExplicitOrigin,
    InferredOrigin,
)
from chartguard.core.models.results import (
    CitationVerificationResult,
    Contradiction,
    ContradictionType,
    MatchType,
    ProvenanceAuditResult,
    Severity,
)
from chartguard.core.verification.calibration import ALL_CLEAR, ConfidenceCalibrator


def explicit(confidence=0.8, **metadata) -> Claim:
    return Claim(
        id="clm-a", task_id="t", type=ClaimType.DURATION, field="duration", value=90, unit="days",
        statement="Duration is 90 days", confidence=confidence, metadata=metadata,
        origin=ExplicitOrigin(source=ClaimSource(document_name="doc.txt", quote="90 days")),
    )


def inferred(confidence=0.6) -> Claim:
    return Claim(
        id="clm-b", task_id="t", type=ClaimType.DURATION, field="duration", value=60, unit="days",
        statement="Duration is 60 days", confidence=confidence,
        origin=InferredOrigin(rationale="estimate"),
    )


def citation(valid=True, score=1.0) -> CitationVerificationResult:
    return CitationVerificationResult(
        claim_id="clm-a", valid=valid, match_type=MatchType.EXACT if valid else MatchType.NONE, score=score,
    )


def provenance(score=1.0) -> ProvenanceAuditResult:
    return ProvenanceAuditResult(claim_id="clm-a", score=score)


def contradiction(severity=Severity.HIGH) -> Contradiction:
    return Contradiction(
        id="ctr-1", claim_ids=("clm-a", "clm-b"), type=ContradictionType.NUMERICAL,
        severity=severity, subject="duration", description="90 vs 60",
    )


class TestConfidenceCalibrator:

    @pytest.fixture
    def calibrator(self):
        return ConfidenceCalibrator(ValidationSettings())

    def test_verified_explicit_claim(self, calibrator):
        result = calibrator.calibrate(explicit(), citation(), [], provenance())

        factors = result.calibration.factors
        assert factors.citation == pytest.approx(0.95)
        assert factors.origin == pytest.approx(0.95)
        assert result.calibration.weighted_score == pytest.approx(0.975)
        assert result.confidence == pytest.approx(0.975 * 0.7 + 0.8 * 0.3)
        assert result.calibration.adjustment_reason == ALL_CLEAR

    def test_failed_citation(self, calibrator):
        result = calibrator.calibrate(explicit(), citation(valid=False, score=0.0), [], provenance())

        assert result.calibration.factors.citation == pytest.approx(0.3)
        assert result.calibration.factors.origin == pytest.approx(0.7)
        assert result.calibration.adjustment_reason == "Weak or missing citation"

    def test_inferred_claim_uses_origin_for_citation(self, calibrator):
        result = calibrator.calibrate(inferred(), None, [], provenance())
        assert result.calibration.factors.citation == pytest.approx(0.6)
        assert result.calibration.factors.origin == pytest.approx(0.6)
        assert "Inference-based claim" in result.calibration.adjustment_reason

    def test_contradiction_penalties(self, calibrator):
        assert calibrator.contradiction_factor([contradiction(Severity.HIGH)]) == pytest.approx(0.7)
        assert calibrator.contradiction_factor([contradiction(Severity.MEDIUM)]) == pytest.approx(0.85)
        assert calibrator.contradiction_factor([contradiction()] * 4) == 0.0

        result = calibrator.calibrate(explicit(), citation(), [contradiction(), contradiction()], provenance())
        assert "Contradictions detected" in result.calibration.adjustment_reason

    def test_reasons_ordered_by_cost(self, calibrator):
        result = calibrator.calibrate(explicit(), citation(valid=False), [contradiction()] * 2, provenance(0.0))
        reasons = result.calibration.adjustment_reason.split("; ")
        assert reasons == ["Low provenance score", "Weak or missing citation", "Contradictions detected"]

    @pytest.mark.parametrize("prior", [float("nan"), float("inf"), float("-inf"), -5.0, 10.0, 0.0, 1.0])
    def test_bounds_hold_for_any_prior(self, calibrator, prior):
        for boost in (0.0, 0.9, -3.0):
            claim = explicit(confidence=prior, **{ClaimMeta.CONFIDENCE_BOOST: boost})
            for cited in (citation(), citation(valid=False), None):
                result = calibrator.calibrate(claim, cited, [contradiction()] * 5, provenance(float("nan")))
                assert 0.0 <= result.confidence <= 1.0
                assert not math.isnan(result.confidence)

    def test_repair_boost(self, calibrator):
        plain = calibrator.calibrate(explicit(confidence=0.2), citation(), [], provenance())
        boosted = calibrator.calibrate(
            explicit(confidence=0.2, **{ClaimMeta.CONFIDENCE_BOOST: 0.1}), citation(), [], provenance()
        )
        assert boosted.confidence == pytest.approx(plain.confidence + 0.1)
        assert "repair boost" in boosted.calibration.adjustment_reason


class TestTaskCalibration:

    def test_task_without_claims_keeps_prior(self):
        calibrator = ConfidenceCalibrator(ValidationSettings())
        assert calibrator.calibrate_task([], [], None, None, prior=0.65) == 0.65
        assert calibrator.calibrate_task([], [], None, None, prior=None) == 0.5

    def test_task_penalties(self):
        calibrator = ConfidenceCalibrator(ValidationSettings())
        claims = [calibrator.calibrate(explicit(), citation(), [], provenance())]
        mean = claims[0].confidence

        assert calibrator.calibrate_task(claims, [], 1.0, 0.9) == pytest.approx(mean)
        assert calibrator.calibrate_task(claims, [contradiction()], 1.0, 0.9) == pytest.approx(mean - 0.15)
        assert calibrator.calibrate_task(claims, [contradiction(Severity.MEDIUM)], 0.5, 0.9) == pytest.approx(mean - 0.15)
        assert calibrator.calibrate_task(claims, [], 1.0, 0.5) == pytest.approx(mean - 0.1)
        assert calibrator.calibrate_task(claims, [contradiction()] * 10, 0.0, 0.0) == 0.0
