"""
Confidence Calibrator.
Combines citation, contradiction, provenance and origin factors into one calibrated
confidence per claim, then rolls claims up to task level.
"""
import logging
import math
from datetime import datetime
from typing import List, Optional

from ...config.settings import ValidationSettings
from ..models.claim import Claim, ClaimMeta
from ..models.results import (
    CalibratedClaim,
    CalibrationFactors,
    CalibrationMetadata,
    CitationVerificationResult,
    Contradiction,
    ProvenanceAuditResult,
    Severity,
)

logger = logging.getLogger(__name__)

# factor -> (reason, level below which the factor is called out)
REASONS = {
    "citation": ("Weak or missing citation", 0.5),
    "contradiction": ("Contradictions detected", 0.7),
    "provenance": ("Low provenance score", 0.7),
    "origin": ("Inference-based claim", 0.7),
}
ALL_CLEAR = "High confidence across all factors"

NEUTRAL_PRIOR = 0.5


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    if math.isnan(value):
        return low
    return max(low, min(high, value))


def _number(value, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        return default
    return float(value)


class ConfidenceCalibrator:

    def __init__(self, config: Optional[ValidationSettings] = None):
        self.config = config or ValidationSettings()
        self.weights = self.config.calibration_weights

    # ---------------- factors ----------------

    def origin_factor(self, claim: Claim, citation: Optional[CitationVerificationResult]) -> float:
        if not claim.requires_citation:
            return self.config.origin_inferred
        if citation is not None and citation.valid:
            return self.config.origin_explicit
        return self.config.origin_explicit_unverified

    def citation_factor(self, claim: Claim, citation: Optional[CitationVerificationResult], origin: float) -> float:
        if not claim.requires_citation:
            return origin
        if citation is None or not citation.valid:
            return self.config.citation_factor_invalid
        span = self.config.citation_factor_max - self.config.citation_factor_min
        return self.config.citation_factor_min + span * clamp(citation.score)

    def contradiction_factor(self, contradictions: List[Contradiction]) -> float:
        penalties = self.config.severity_penalties
        total = sum(penalties.get(c.severity, 0.0) for c in contradictions)
        return max(0.0, 1.0 - total)

    # ---------------- claim level ----------------

    def calibrate(
        self,
        claim: Claim,
        citation: Optional[CitationVerificationResult],
        contradictions: List[Contradiction],
        provenance: Optional[ProvenanceAuditResult],
        calibrated_at: Optional[datetime] = None,
    ) -> CalibratedClaim:
        """
        Calibrate one claim.

        Args:
            claim: the claim (metadata may carry a repair confidence boost)
            citation: verification result, None when no citation is expected
            contradictions: contradictions counted against this claim
            provenance: audit result; a missing audit counts as neutral

        Returns:
            CalibratedClaim whose score is always within [0, 1].
        """
        origin = self.origin_factor(claim, citation)
        factors = CalibrationFactors(
            citation=self.citation_factor(claim, citation, origin),
            contradiction=self.contradiction_factor(contradictions),
            provenance=clamp(provenance.score) if provenance is not None else NEUTRAL_PRIOR,
            origin=origin,
        )
        weighted = (
            factors.citation * self.weights.citation
            + factors.contradiction * self.weights.contradiction
            + factors.provenance * self.weights.provenance
            + factors.origin * self.weights.origin
        )
        base = clamp(_number(claim.confidence, NEUTRAL_PRIOR))
        boost = _number(claim.metadata.get(ClaimMeta.CONFIDENCE_BOOST, 0.0), 0.0)
        blend = self.config.calibration_blend
        final = clamp(weighted * blend + base * (1 - blend) + boost)

        return CalibratedClaim(
            claim=claim,
            calibration=CalibrationMetadata(
                base_confidence=round(base, 6),
                weighted_score=round(weighted, 6),
                calibrated_score=round(final, 6),
                factors=factors,
                repair_boost=boost,
                adjustment_reason=self.adjustment_reason(factors, boost),
                calibrated_at=calibrated_at or datetime.now(),
            ),
        )

    def adjustment_reason(self, factors: CalibrationFactors, boost: float = 0.0) -> str:
        """Factors below their level, the one costing the most weighted score first."""
        weights = self.weights.model_dump()
        flagged = []
        for name, (reason, level) in REASONS.items():
            value = getattr(factors, name)
            if value < level:
                flagged.append((weights[name] * (1 - value), reason))
        flagged.sort(key=lambda item: -item[0])
        text = "; ".join(reason for _, reason in flagged) or ALL_CLEAR
        if boost:
            text += f" (repair boost +{boost:.2f})"
        return text

    # ---------------- task level ----------------

    def calibrate_task(
        self,
        claims: List[CalibratedClaim],
        contradictions: List[Contradiction],
        coverage: Optional[float],
        mean_provenance: Optional[float],
        prior: Optional[float] = None,
    ) -> float:
        """
        Mean of the task's calibrated claims, lowered for contradictions, weak citation
        coverage and weak provenance. A task without claims keeps its prior.
        """
        if not claims:
            return clamp(_number(prior, NEUTRAL_PRIOR))
        mean = sum(c.confidence for c in claims) / len(claims)

        adjustment = 0.0
        adjustment -= 0.15 * sum(1 for c in contradictions if c.severity == Severity.HIGH)
        adjustment -= 0.05 * sum(1 for c in contradictions if c.severity == Severity.MEDIUM)
        if coverage is not None and coverage < self.config.threshold("CITATION_COVERAGE", 0.75):
            adjustment -= self.config.task_coverage_penalty
        if mean_provenance is not None and mean_provenance < self.config.task_provenance_floor:
            adjustment -= self.config.task_provenance_penalty
        return round(clamp(mean + adjustment), 6)
