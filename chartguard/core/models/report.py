"""
Aggregated validation output and the deliverable validated schedule.
"""
import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .claim import ClaimSource, ClaimType
from .results import (
    CalibratedClaim,
    CitationVerificationResult,
    Contradiction,
    GateEvaluation,
    MatchType,
    ProvenanceAuditResult,
    QualityGateResult,
    RepairLogEntry,
)
from .schedule import Origin, RegulatoryRequirement, Schedule


class ValidationReport(BaseModel):
    """
    Everything one validation pass knows, in claim extraction order.
    Quality gates score this object; they must not modify it.
    """
    schedule: Schedule
    claims: List[CalibratedClaim] = Field(default_factory=list)
    citations: Dict[str, CitationVerificationResult] = Field(default_factory=dict)
    provenance: Dict[str, ProvenanceAuditResult] = Field(default_factory=dict)
    contradictions: List[Contradiction] = Field(default_factory=list)
    task_confidence: Dict[str, float] = Field(default_factory=dict)

    def claim(self, claim_id: str) -> Optional[CalibratedClaim]:
        for c in self.claims:
            if c.id == claim_id:
                return c
        return None

    def superseded_ids(self) -> set:
        return {c.id for c in self.claims if c.claim.superseded_by}

    def unresolved_contradictions(self) -> List[Contradiction]:
        """Contradictions where neither side has been superseded by a repair."""
        superseded = self.superseded_ids()
        return [c for c in self.contradictions if not (set(c.claim_ids) & superseded)]

    @property
    def citation_coverage(self) -> float:
        needing = [c for c in self.claims if c.claim.requires_citation]
        if not needing:
            return 1.0
        valid = sum(1 for c in needing if self.citations.get(c.id) and self.citations[c.id].valid)
        return valid / len(needing)

    @property
    def mean_confidence(self) -> float:
        if not self.claims:
            return 0.0
        return sum(c.confidence for c in self.claims) / len(self.claims)


class ValidatedField(BaseModel):
    claim_id: str
    claim_type: ClaimType
    field: str
    value: Any = None
    unit: Optional[str] = None
    statement: str = ""
    origin: Origin
    confidence: float
    verified: Optional[bool] = Field(None, description="Citation verified; None for inferences")
    match_type: Optional[MatchType] = None
    source: Optional[ClaimSource] = None
    rationale: Optional[str] = None
    superseded_by: Optional[str] = None
    flags: List[str] = Field(default_factory=list)

    @property
    def is_fact(self) -> bool:
        return self.origin == Origin.EXPLICIT and bool(self.verified) and not self.superseded_by


class ValidatedTask(BaseModel):
    id: str
    name: str
    confidence: float
    fields: List[ValidatedField] = Field(default_factory=list)
    regulatory_requirement: Optional[RegulatoryRequirement] = None


class ScheduleSummary(BaseModel):
    claim_count: int = 0
    explicit_count: int = 0
    inferred_count: int = 0
    citation_coverage: float = 1.0
    mean_confidence: float = 0.0
    contradictions_by_severity: Dict[str, int] = Field(default_factory=dict)


class ValidatedSchedule(BaseModel):
    title: Optional[str] = None
    tasks: List[ValidatedTask] = Field(default_factory=list)
    summary: ScheduleSummary = Field(default_factory=ScheduleSummary)

    def facts_only(self) -> "ValidatedSchedule":
        """Keep only explicit, verified, non-superseded fields."""
        tasks = [
            task.model_copy(update={"fields": [f for f in task.fields if f.is_fact]})
            for task in self.tasks
        ]
        return self.model_copy(update={"tasks": tasks})

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json"), ensure_ascii=False, sort_keys=True, indent=2)


class AuditTrail(BaseModel):
    claims: List[CalibratedClaim] = Field(default_factory=list)
    citations: List[CitationVerificationResult] = Field(default_factory=list)
    contradictions: List[Contradiction] = Field(default_factory=list)
    provenance: List[ProvenanceAuditResult] = Field(default_factory=list)
    gate_results: List[GateEvaluation] = Field(default_factory=list, description="One entry per evaluation round")
    repair_log: List[RepairLogEntry] = Field(default_factory=list)


class JobResult(BaseModel):
    validated_schedule: ValidatedSchedule
    audit_trail: AuditTrail
    warnings: List[QualityGateResult] = Field(default_factory=list)
