"""
Provenance Auditor.
Scores how trustworthy the origin of a claim is, in four ordered steps:
source verification, provider trust, timestamp verification, tampering check.
"""
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import List, Mapping, Optional, Tuple

from ...config.settings import ValidationSettings
from ..models.claim import Claim
from ..models.results import ProvenanceAuditResult

logger = logging.getLogger(__name__)

SOURCE_VERIFICATION = "source_verification"
PROVIDER_TRUST = "provider_trust"
TIMESTAMP_VERIFICATION = "timestamp_verification"
TAMPERING_CHECK = "tampering_check"


def _naive_utc(ts: datetime) -> datetime:
    if ts.tzinfo is not None:
        return ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


class ProvenanceAuditor:
    """
    Never raises: a missing document or a malformed source lowers the score and
    adds an issue instead of aborting the audit.
    """

    def __init__(self, config: Optional[ValidationSettings] = None):
        self.config = config or ValidationSettings()
        self.weights = self.config.provenance_weights

    def audit(self, claim: Claim, documents: Mapping[str, str]) -> ProvenanceAuditResult:
        issues: List[str] = []
        recommendations: List[str] = []
        chain: List[str] = []
        sub_scores = {}

        steps = (
            (SOURCE_VERIFICATION, self._source_verification),
            (PROVIDER_TRUST, self._provider_trust),
            (TIMESTAMP_VERIFICATION, self._timestamp_verification),
            (TAMPERING_CHECK, self._tampering_check),
        )
        for name, step in steps:
            chain.append(name)
            try:
                score, step_issues, step_recs = step(claim, documents)
            except Exception as e:
                logger.warning(f"Provenance step {name} failed for {claim.id}: {e}")
                score, step_issues, step_recs = 0.0, [f"{name} could not be completed: {e}"], []
            sub_scores[name] = round(score, 4)
            issues.extend(step_issues)
            recommendations.extend(step_recs)

        total = (
            sub_scores[SOURCE_VERIFICATION] * self.weights.source
            + sub_scores[PROVIDER_TRUST] * self.weights.provider
            + sub_scores[TIMESTAMP_VERIFICATION] * self.weights.timestamp
            + sub_scores[TAMPERING_CHECK] * self.weights.tampering
        )
        if issues:
            logger.debug(f"Provenance issues for {claim.id}: {issues}")
        return ProvenanceAuditResult(
            claim_id=claim.id,
            score=round(min(max(total, 0.0), 1.0), 4),
            sub_scores=sub_scores,
            issues=issues,
            chain_of_custody=chain,
            recommendations=recommendations,
        )

    # =========================================================
    # Step 1: Source verification
    # =========================================================

    def _source_verification(self, claim: Claim, documents) -> Tuple[float, List[str], List[str]]:
        source = claim.source
        if source is None:
            # inference: no document is expected
            return 1.0, [], []
        if source.document_name in documents:
            return 1.0, [], []
        return (
            0.0,
            [f"Cited document '{source.document_name}' is not among the provided documents"],
            ["Upload the cited document or re-cite the claim against a provided document"],
        )

    # =========================================================
    # Step 2: Provider trust
    # =========================================================

    def _provider_trust(self, claim: Claim, documents) -> Tuple[float, List[str], List[str]]:
        producer = claim.producer
        trust = self.config.trust_for(producer)
        if trust is not None:
            return trust, [], []
        label = producer or "unknown"
        return (
            self.config.unknown_provider_trust,
            [f"Producer '{label}' has no configured trust weight"],
            ["Record which producer generated this claim"],
        )

    # =========================================================
    # Step 3: Timestamp verification
    # =========================================================

    def _timestamp_verification(self, claim: Claim, documents) -> Tuple[float, List[str], List[str]]:
        source = claim.source
        if source is None or source.retrieved_at is None:
            return 1.0, [], []
        now = _naive_utc(self.config.reference_time or datetime.now(timezone.utc))
        retrieved = _naive_utc(source.retrieved_at)
        score = 1.0
        issues, recs = [], []
        if retrieved > now:
            score = 0.0
            issues.append(f"Retrieval timestamp {source.retrieved_at.isoformat()} lies in the future")
            recs.append("Check the clock of the document ingestion step")
        elif now - retrieved > timedelta(days=self.config.max_document_age_days):
            score = min(score, 0.7)
            issues.append(f"Source was retrieved more than {self.config.max_document_age_days} days ago")
            recs.append("Refresh the source document")
        if source.cited_at is not None and _naive_utc(source.cited_at) < retrieved:
            score = min(score, 0.5)
            issues.append("Citation timestamp precedes document retrieval")
        return score, issues, recs

    # =========================================================
    # Step 4: Tampering check
    # =========================================================

    def _tampering_check(self, claim: Claim, documents) -> Tuple[float, List[str], List[str]]:
        checks: List[Tuple[bool, str]] = []
        confidence = claim.confidence
        checks.append((
            isinstance(confidence, (int, float)) and not math.isnan(confidence) and 0.0 <= confidence <= 1.0,
            f"Confidence {confidence} outside [0, 1]",
        ))
        checks.append((bool(claim.id and claim.task_id and claim.statement), "Required claim fields are missing"))

        source = claim.source
        if source is not None:
            checks.append((bool(source.quote and source.quote.strip()), "Citation has no quoted text"))
            if source.start_char is not None or source.end_char is not None:
                start, end = source.start_char, source.end_char
                ordered = start is not None and end is not None and 0 <= start < end
                checks.append((ordered, f"Character range {start}-{end} is not a valid span"))
                text = documents.get(source.document_name)
                if ordered and text is not None:
                    checks.append((end <= len(text), f"Character range ends at {end}, beyond document length {len(text)}"))

        failed = [msg for ok, msg in checks if not ok]
        score = (len(checks) - len(failed)) / len(checks)
        recs = ["Re-extract the claim from the schedule generator output"] if failed else []
        return score, failed, recs

    def audit_batch(self, claims: List[Claim], documents: Mapping[str, str]) -> List[ProvenanceAuditResult]:
        return [self.audit(c, documents) for c in claims]
