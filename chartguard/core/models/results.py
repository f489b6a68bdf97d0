"""
Result models produced by the validation components.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .claim import Claim


# =========================================================
# Citation verification
# =========================================================

class MatchType(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"
    CONTEXT_SEARCH = "context-search"
    NONE = "none"


class MatchDiagnostics(BaseModel):
    edit_distance: Optional[int] = None
    window_start: Optional[int] = Field(None, description="Start of the searched window in the document")
    window_end: Optional[int] = None
    match_start: Optional[int] = Field(None, description="Start of the matched text in the document")
    match_end: Optional[int] = None
    reason: Optional[str] = None


class CitationVerificationResult(BaseModel):
    claim_id: str
    valid: bool
    match_type: MatchType = MatchType.NONE
    score: float = Field(0.0, description="Similarity 0.0 - 1.0")
    diagnostics: MatchDiagnostics = Field(default_factory=MatchDiagnostics)


class CitationBatchResult(BaseModel):
    results: List[CitationVerificationResult] = Field(default_factory=list)
    valid_count: int = 0
    invalid_count: int = 0


# =========================================================
# Contradictions
# =========================================================

class ContradictionType(str, Enum):
    NUMERICAL = "numerical"
    TEMPORAL = "temporal"
    LOGICAL = "logical"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Contradiction(BaseModel):
    """Unordered pair of conflicting claims; `claim_ids` is kept sorted."""
    model_config = ConfigDict(frozen=True)

    id: str
    claim_ids: Tuple[str, str]
    type: ContradictionType
    severity: Severity
    subject: str
    description: str
    metric: Optional[float] = Field(None, description="Percent difference or day gap that triggered the rule")

    def involves(self, claim_id: str) -> bool:
        return claim_id in self.claim_ids


class ContradictionReport(BaseModel):
    contradictions: List[Contradiction] = Field(default_factory=list)
    pairs_checked: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)
    by_severity: Dict[str, int] = Field(default_factory=dict)


# =========================================================
# Provenance
# =========================================================

class ProvenanceAuditResult(BaseModel):
    claim_id: str
    score: float
    sub_scores: Dict[str, float] = Field(default_factory=dict)
    issues: List[str] = Field(default_factory=list)
    chain_of_custody: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


# =========================================================
# Calibration
# =========================================================

class CalibrationFactors(BaseModel):
    citation: float
    contradiction: float
    provenance: float
    origin: float


class CalibrationMetadata(BaseModel):
    base_confidence: float
    weighted_score: float = Field(..., description="Weighted sum of the four factors")
    calibrated_score: float = Field(..., description="Final confidence after blending and clamping")
    factors: CalibrationFactors
    repair_boost: float = 0.0
    adjustment_reason: str
    calibrated_at: datetime = Field(default_factory=datetime.now)


class CalibratedClaim(BaseModel):
    claim: Claim
    calibration: CalibrationMetadata

    @property
    def id(self) -> str:
        return self.claim.id

    @property
    def confidence(self) -> float:
        return self.calibration.calibrated_score


# =========================================================
# Quality gates & repair
# =========================================================

class QualityGateResult(BaseModel):
    name: str
    passed: bool
    blocker: bool
    score: float
    threshold: float
    error: Optional[str] = None


class GateEvaluation(BaseModel):
    results: List[QualityGateResult] = Field(default_factory=list)

    @property
    def blocking_failures(self) -> List[QualityGateResult]:
        return [r for r in self.results if not r.passed and r.blocker]

    @property
    def warnings(self) -> List[QualityGateResult]:
        return [r for r in self.results if not r.passed and not r.blocker]

    @property
    def passed(self) -> bool:
        """True when no blocking gate failed (warnings allowed)."""
        return not self.blocking_failures

    def result(self, name: str) -> Optional[QualityGateResult]:
        for r in self.results:
            if r.name == name:
                return r
        return None


class RepairChange(BaseModel):
    target_id: str = Field(..., description="Claim or task id")
    field: str
    action: str


class RepairLogEntry(BaseModel):
    attempt: int
    gate_name: str
    strategy_applied: str
    changes: List[RepairChange] = Field(default_factory=list)
    score_before: float
    score_after: float
    success: bool
    error: Optional[str] = None
