"""
Repair Engine.

One deterministic strategy per gate, applied to failing gates in gate order. Claims
are never edited: strategies record adjustments as claim metadata through the ledger,
or correct the working schedule. Every application is re-scored and logged.
"""
import logging
import math
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from ...config.settings import ValidationSettings
from ..aggregation import ValidationAggregator
from ..ledger import ClaimLedger
from ..models.claim import ClaimMeta
from ..models.report import ValidationReport
from ..models.results import (
    CitationVerificationResult,
    Contradiction,
    GateEvaluation,
    ProvenanceAuditResult,
    RepairChange,
    RepairLogEntry,
    Severity,
)
from ..models.schedule import (
    InferenceRationale,
    Origin,
    RegulatoryRequirement,
    Schedule,
    ScheduleField,
)
from .gates import (
    CITATION_COVERAGE,
    CONFIDENCE_MINIMUM,
    CONTRADICTION_SEVERITY,
    REGULATORY_FLAGS,
    SCHEMA_COMPLIANCE,
    QualityGate,
    QualityGateManager,
)
from .regulatory import is_flagged, regulation_for_task

logger = logging.getLogger(__name__)

UNCITED_FLAG = "uncited"
DEFAULT_TASK_CONFIDENCE = 0.5
HEURISTIC_PRODUCER = "DETERMINISTIC"


class RepairWorkspace:
    """
    Mutable state a repair cycle works on: the ledger, the working schedule and the
    per-claim verification results, plus the aggregator that re-scores them.
    """

    def __init__(
        self,
        ledger: ClaimLedger,
        schedule: Schedule,
        citations: Dict[str, CitationVerificationResult],
        provenance: Dict[str, ProvenanceAuditResult],
        contradictions: List[Contradiction],
        aggregator: ValidationAggregator,
    ):
        self.ledger = ledger
        self.schedule = schedule
        self.citations = citations
        self.provenance = provenance
        self.contradictions = contradictions
        self.aggregator = aggregator

    @property
    def config(self) -> ValidationSettings:
        return self.aggregator.config

    def rescore(self) -> ValidationReport:
        return self.aggregator.build_report(
            self.schedule, self.ledger.all(), self.citations, self.provenance, self.contradictions
        )


class RepairStrategy(ABC):
    """Repairs the condition measured by the gate named `gate_name`."""
    name: str = ""
    gate_name: str = ""

    @abstractmethod
    def apply(self, workspace: RepairWorkspace, report: ValidationReport) -> List[RepairChange]:
        """Apply the repair and return the changes made (empty when nothing applied)."""


# =========================================================
# Strategies
# =========================================================

class CitationCoverageRepair(RepairStrategy):
    """Reclassify claims whose citation failed as inferences with a generated rationale."""
    name = "attach_inference_rationale"
    gate_name = CITATION_COVERAGE

    def apply(self, workspace, report):
        changes = []
        for cc in report.claims:
            claim = cc.claim
            if not claim.requires_citation:
                continue
            result = report.citations.get(claim.id)
            if result is not None and result.valid:
                continue
            reason = result.diagnostics.reason if result is not None and result.diagnostics.reason else "citation not verified"
            rationale = (
                f"Reclassified as inference ({reason}): '{claim.statement}' could not be "
                f"confirmed in {claim.source.document_name}"
            )
            workspace.ledger.annotate(
                claim.id,
                **{ClaimMeta.INFERENCE_RATIONALE: rationale, ClaimMeta.RECLASSIFIED_FROM: Origin.EXPLICIT.value},
            )
            changes.append(RepairChange(target_id=claim.id, field=claim.field, action="reclassified explicit -> inferred"))
        return changes


class ContradictionRepair(RepairStrategy):
    """
    Supersede the weaker side of each unresolved high-severity contradiction.
    Preference: explicit over inferred, then higher confidence, then earlier extraction.
    """
    name = "supersede_weaker_claim"
    gate_name = CONTRADICTION_SEVERITY

    def apply(self, workspace, report):
        changes = []
        position = {cc.id: i for i, cc in enumerate(report.claims)}
        superseded = report.superseded_ids()
        for contradiction in report.unresolved_contradictions():
            if contradiction.severity != Severity.HIGH:
                continue
            if set(contradiction.claim_ids) & superseded:
                continue
            a, b = (report.claim(cid) for cid in contradiction.claim_ids)
            if a is None or b is None:
                continue
            winner, loser = sorted((a, b), key=lambda cc: self._strength(cc, position), reverse=True)
            workspace.ledger.annotate(
                loser.id,
                **{
                    ClaimMeta.SUPERSEDED_BY: winner.id,
                    ClaimMeta.SUPERSEDED_REASON: contradiction.description,
                },
            )
            superseded.add(loser.id)
            changes.append(RepairChange(target_id=loser.id, field=loser.claim.field, action=f"superseded by {winner.id}"))
        return changes

    @staticmethod
    def _strength(cc, position) -> Tuple[int, float, int]:
        explicit = 1 if cc.claim.effective_origin == Origin.EXPLICIT else 0
        return explicit, cc.confidence, -position[cc.id]


class ConfidenceRepair(RepairStrategy):
    """Boost claims with verified citations; flag claims that remain uncited."""
    name = "boost_verified_claims"
    gate_name = CONFIDENCE_MINIMUM

    def apply(self, workspace, report):
        changes = []
        boost = workspace.config.repair_confidence_boost
        for cc in report.claims:
            claim = cc.claim
            if not claim.requires_citation:
                continue
            result = report.citations.get(claim.id)
            if result is not None and result.valid:
                if ClaimMeta.CONFIDENCE_BOOST not in claim.metadata and boost > 0:
                    workspace.ledger.annotate(claim.id, **{ClaimMeta.CONFIDENCE_BOOST: boost})
                    changes.append(RepairChange(target_id=claim.id, field="confidence", action=f"boosted +{boost:.2f}"))
            elif UNCITED_FLAG not in claim.flags:
                workspace.ledger.annotate(claim.id, **{ClaimMeta.FLAGS: claim.flags + [UNCITED_FLAG]})
                changes.append(RepairChange(target_id=claim.id, field="flags", action="flagged uncited"))
        return changes


def _fixed_confidence(value: Optional[float], default: Optional[float]) -> Optional[float]:
    if value is None:
        return default
    if math.isnan(value):
        return DEFAULT_TASK_CONFIDENCE
    return min(1.0, max(0.0, value))


class SchemaRepair(RepairStrategy):
    """
    Regenerate missing or duplicate task ids, default missing names, clamp confidences,
    backfill field origins and drop invalid citation offsets.
    """
    name = "normalize_schedule"
    gate_name = SCHEMA_COMPLIANCE

    def apply(self, workspace, report):
        changes: List[RepairChange] = []
        schedule = workspace.schedule
        ids = schedule.task_ids()
        tasks = []
        for index, (task, task_id) in enumerate(zip(schedule.tasks, ids)):
            update = {}
            if task.id != task_id:
                update["id"] = task_id
                changes.append(RepairChange(target_id=task_id, field="id", action=f"regenerated (was {task.id!r})"))
            if not task.name:
                update["name"] = f"Untitled task {index + 1}"
                changes.append(RepairChange(target_id=task_id, field="name", action="backfilled default name"))
            confidence = _fixed_confidence(task.confidence, DEFAULT_TASK_CONFIDENCE)
            if confidence != task.confidence:
                update["confidence"] = confidence
                changes.append(RepairChange(target_id=task_id, field="confidence", action=f"set to {confidence}"))

            for attr in ("duration", "start_date", "regulatory_requirement"):
                field = getattr(task, attr)
                if field is not None:
                    fixed = self._fix_field(field, task_id, attr, changes)
                    if fixed is not field:
                        update[attr] = fixed
            for attr in ("dependencies", "resources"):
                items = getattr(task, attr)
                fixed_items = [self._fix_field(f, task_id, f"{attr}[{i}]", changes) for i, f in enumerate(items)]
                if any(a is not b for a, b in zip(fixed_items, items)):
                    update[attr] = fixed_items

            tasks.append(task.model_copy(update=update) if update else task)
        workspace.schedule = schedule.model_copy(update={"tasks": tasks})
        return changes

    @staticmethod
    def _fix_field(field: ScheduleField, task_id: str, path: str, changes: List[RepairChange]) -> ScheduleField:
        update = {}
        if field.origin is None:
            update["origin"] = Origin.EXPLICIT if field.has_citations else Origin.INFERRED
            changes.append(RepairChange(target_id=task_id, field=f"{path}.origin", action=f"backfilled {update['origin'].value}"))
        confidence = _fixed_confidence(field.confidence, None)
        if confidence != field.confidence:
            update["confidence"] = confidence
            changes.append(RepairChange(target_id=task_id, field=f"{path}.confidence", action=f"set to {confidence}"))
        rationale = field.inference_rationale
        if rationale is not None:
            fixed = _fixed_confidence(rationale.confidence, None)
            if fixed != rationale.confidence:
                update["inference_rationale"] = rationale.model_copy(update={"confidence": fixed})
                changes.append(RepairChange(
                    target_id=task_id, field=f"{path}.inference_rationale.confidence", action=f"set to {fixed}"
                ))
        citations = []
        touched = False
        for i, citation in enumerate(field.source_citations):
            bad = {
                k: None for k in ("paragraph_index", "start_char", "end_char")
                if getattr(citation, k) is not None and getattr(citation, k) < 0
            }
            if bad:
                touched = True
                citations.append(citation.model_copy(update=bad))
                changes.append(RepairChange(
                    target_id=task_id, field=f"{path}.source_citations[{i}]", action=f"cleared negative {', '.join(sorted(bad))}"
                ))
            else:
                citations.append(citation)
        if touched:
            update["source_citations"] = citations
        return field.model_copy(update=update) if update else field


class RegulatoryRepair(RepairStrategy):
    """Attach inferred regulatory metadata to tasks whose name matches a regulation pattern."""
    name = "attach_regulatory_metadata"
    gate_name = REGULATORY_FLAGS

    def apply(self, workspace, report):
        changes = []
        schedule = workspace.schedule
        tasks = []
        for task, task_id in zip(schedule.tasks, schedule.task_ids()):
            regulation = regulation_for_task(task)
            existing = task.regulatory_requirement
            explicit_no = existing is not None and existing.origin == Origin.EXPLICIT and not existing.is_required
            if regulation and not is_flagged(task) and not explicit_no:
                requirement = RegulatoryRequirement(
                    value=True,
                    is_required=True,
                    regulation=regulation,
                    origin=Origin.INFERRED,
                    confidence=workspace.config.origin_inferred,
                    inference_rationale=InferenceRationale(
                        reasoning=f"Task name matches the {regulation} compliance pattern",
                        llm_provider=HEURISTIC_PRODUCER,
                    ),
                    detected_by="keyword-heuristic",
                )
                tasks.append(task.model_copy(update={"regulatory_requirement": requirement}))
                changes.append(RepairChange(
                    target_id=task_id, field="regulatory_requirement", action=f"attached {regulation} requirement"
                ))
            else:
                tasks.append(task)
        workspace.schedule = schedule.model_copy(update={"tasks": tasks})
        return changes


# =========================================================
# Engine
# =========================================================

class RepairEngine:
    """Registry of (gate, strategy) pairs plus the repair cycle."""

    def __init__(self, gate_manager: QualityGateManager, strategies: Optional[List[RepairStrategy]] = None):
        self.gate_manager = gate_manager
        self._strategies: Dict[str, RepairStrategy] = {}
        for strategy in (strategies if strategies is not None else default_strategies()):
            self.register(strategy)

    def register(self, strategy: RepairStrategy, gate_name: Optional[str] = None) -> None:
        self._strategies[gate_name or strategy.gate_name] = strategy

    def strategy_for(self, gate: QualityGate) -> Optional[RepairStrategy]:
        return self._strategies.get(gate.name)

    def run_cycle(
        self,
        workspace: RepairWorkspace,
        report: ValidationReport,
        evaluation: GateEvaluation,
        attempt: int,
        include_warnings: bool = True,
    ) -> Tuple[ValidationReport, List[RepairLogEntry]]:
        """
        Apply the strategy of every failing gate, in gate order, re-scoring after each.

        Returns:
            (re-scored report, log entries for this cycle)
        """
        entries: List[RepairLogEntry] = []
        for gate in self.gate_manager.gates:
            result = evaluation.result(gate.name)
            if result is None or result.passed:
                continue
            if not gate.blocker and not include_warnings:
                continue
            strategy = self.strategy_for(gate)
            if strategy is None:
                logger.warning(f"No repair strategy registered for failing gate {gate.name}")
                continue

            before = gate.evaluate(report)
            if before.passed:
                # an earlier strategy in this cycle already fixed it
                continue
            try:
                changes = strategy.apply(workspace, report)
                report = workspace.rescore()
                after = gate.evaluate(report)
                entry = RepairLogEntry(
                    attempt=attempt,
                    gate_name=gate.name,
                    strategy_applied=strategy.name,
                    changes=changes,
                    score_before=before.score,
                    score_after=after.score,
                    success=after.passed,
                )
            except Exception as e:
                logger.warning(f"Repair {strategy.name} failed for gate {gate.name}: {e}")
                entry = RepairLogEntry(
                    attempt=attempt,
                    gate_name=gate.name,
                    strategy_applied=strategy.name,
                    score_before=before.score,
                    score_after=before.score,
                    success=False,
                    error=str(e),
                )
            logger.info(
                f"Repair #{attempt} {strategy.name} on {gate.name}: {len(entry.changes)} change(s), "
                f"score {entry.score_before:.3f} -> {entry.score_after:.3f}"
            )
            entries.append(entry)
        return report, entries


def default_strategies() -> List[RepairStrategy]:
    return [
        CitationCoverageRepair(),
        ContradictionRepair(),
        ConfidenceRepair(),
        SchemaRepair(),
        RegulatoryRepair(),
    ]
