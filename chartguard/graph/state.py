from typing import TypedDict, List, Annotated, Dict, Any, Optional
import operator

from ..core.extraction import ExtractionResult
from ..core.models.report import JobResult, ValidatedSchedule, ValidationReport
from ..core.models.results import (
    CitationVerificationResult,
    Contradiction,
    GateEvaluation,
    ProvenanceAuditResult,
    RepairLogEntry,
)
from ..core.models.schedule import Schedule


class ValidationState(TypedDict, total=False):
    """
    Validation pipeline graph state.
    total=False allows partial updates; Annotated[List, operator.add] lists accumulate.
    Services and the claim ledger live in the PipelineContext, not here.
    """
    # Input
    payload: Any                      # raw draft schedule
    documents: Dict[str, str]         # document name -> plain text

    # Intake
    schedule: Schedule                # working schedule; repairs replace it
    extraction: List[ExtractionResult]

    # Per-claim validation
    citations: Dict[str, CitationVerificationResult]
    provenance: Dict[str, ProvenanceAuditResult]
    contradictions: List[Contradiction]
    pairs_checked: int

    # Aggregation & gates
    report: ValidationReport
    evaluation: GateEvaluation
    gate_history: Annotated[List[GateEvaluation], operator.add]

    # Repair loop
    repair_attempts: int
    repair_log: Annotated[List[RepairLogEntry], operator.add]

    # Output
    validated_schedule: ValidatedSchedule
    result: JobResult
    run_dir: Optional[str]

    # Execution trace
    steps: Annotated[List[str], operator.add]
