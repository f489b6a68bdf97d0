"""
Aggregation: calibrated claims + task roll-up -> ValidationReport -> ValidatedSchedule.

The aggregator is a pure function of its inputs, so repairs re-score by calling it
again on the annotated claims and the repaired schedule.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from ..config.settings import ValidationSettings
from .models.claim import Claim
from .models.report import (
    ScheduleSummary,
    ValidatedField,
    ValidatedSchedule,
    ValidatedTask,
    ValidationReport,
)
from .models.results import (
    CalibratedClaim,
    CitationVerificationResult,
    Contradiction,
    ProvenanceAuditResult,
)
from .models.schedule import Origin, Schedule
from .verification.calibration import ConfidenceCalibrator

logger = logging.getLogger(__name__)


class ValidationAggregator:

    def __init__(self, config: Optional[ValidationSettings] = None):
        self.config = config or ValidationSettings()
        self.calibrator = ConfidenceCalibrator(self.config)

    def build_report(
        self,
        schedule: Schedule,
        claims: List[Claim],
        citations: Dict[str, CitationVerificationResult],
        provenance: Dict[str, ProvenanceAuditResult],
        contradictions: List[Contradiction],
    ) -> ValidationReport:
        """
        Calibrate every claim (in the given order) and roll confidences up to tasks.

        A superseded claim keeps all its contradictions; any other claim is only
        charged for contradictions that no repair has resolved.
        """
        superseded = {c.id for c in claims if c.superseded_by}
        unresolved = [c for c in contradictions if not (set(c.claim_ids) & superseded)]
        stamp = datetime.now()

        calibrated: List[CalibratedClaim] = []
        for claim in claims:
            pool = contradictions if claim.id in superseded else unresolved
            against = [c for c in pool if c.involves(claim.id)]
            calibrated.append(self.calibrator.calibrate(
                claim,
                citations.get(claim.id) if claim.source is not None else None,
                against,
                provenance.get(claim.id),
                calibrated_at=stamp,
            ))

        by_task: Dict[str, List[CalibratedClaim]] = {}
        for cc in calibrated:
            if cc.id not in superseded:
                by_task.setdefault(cc.claim.task_id, []).append(cc)

        task_confidence = {}
        for task, task_id in zip(schedule.tasks, schedule.task_ids()):
            active = by_task.get(task_id, [])
            ids = {cc.id for cc in active}
            task_contradictions = [c for c in unresolved if set(c.claim_ids) & ids]
            needing = [cc for cc in active if cc.claim.requires_citation]
            coverage = None
            if needing:
                coverage = sum(1 for cc in needing if _valid(citations.get(cc.id))) / len(needing)
            audits = [provenance[cc.id].score for cc in active if cc.id in provenance]
            mean_prov = sum(audits) / len(audits) if audits else None
            task_confidence[task_id] = self.calibrator.calibrate_task(
                active, task_contradictions, coverage, mean_prov, prior=task.confidence
            )

        report = ValidationReport(
            schedule=schedule,
            claims=calibrated,
            citations=citations,
            provenance=provenance,
            contradictions=contradictions,
            task_confidence=task_confidence,
        )
        logger.debug(
            f"Report: {len(calibrated)} claims, coverage={report.citation_coverage:.2f}, "
            f"mean confidence={report.mean_confidence:.2f}, unresolved contradictions={len(unresolved)}"
        )
        return report


def _valid(result: Optional[CitationVerificationResult]) -> bool:
    return bool(result and result.valid)


def build_validated_schedule(report: ValidationReport) -> ValidatedSchedule:
    """Deliverable view of a report. Contains no timestamps, so identical input gives identical output."""
    by_task: Dict[str, List[CalibratedClaim]] = {}
    for cc in report.claims:
        by_task.setdefault(cc.claim.task_id, []).append(cc)

    tasks = []
    schedule = report.schedule
    for index, (task, task_id) in enumerate(zip(schedule.tasks, schedule.task_ids())):
        fields = []
        for cc in by_task.get(task_id, []):
            claim = cc.claim
            citation = report.citations.get(claim.id) if claim.source is not None else None
            fields.append(ValidatedField(
                claim_id=claim.id,
                claim_type=claim.type,
                field=claim.field,
                value=claim.value,
                unit=claim.unit,
                statement=claim.statement,
                origin=claim.effective_origin,
                confidence=round(cc.confidence, 6),
                verified=citation.valid if (citation is not None and claim.requires_citation) else None,
                match_type=citation.match_type if citation is not None else None,
                source=claim.source,
                rationale=claim.rationale,
                superseded_by=claim.superseded_by,
                flags=claim.flags,
            ))
        tasks.append(ValidatedTask(
            id=task_id,
            name=task.name or f"Untitled task {index + 1}",
            confidence=report.task_confidence.get(task_id, 0.0),
            fields=fields,
            regulatory_requirement=task.regulatory_requirement,
        ))

    by_severity: Dict[str, int] = {}
    for c in report.unresolved_contradictions():
        by_severity[c.severity.value] = by_severity.get(c.severity.value, 0) + 1

    explicit = sum(1 for cc in report.claims if cc.claim.effective_origin == Origin.EXPLICIT)
    summary = ScheduleSummary(
        claim_count=len(report.claims),
        explicit_count=explicit,
        inferred_count=len(report.claims) - explicit,
        citation_coverage=round(report.citation_coverage, 6),
        mean_confidence=round(report.mean_confidence, 6),
        contradictions_by_severity=by_severity,
    )
    return ValidatedSchedule(title=schedule.title, tasks=tasks, summary=summary)
