"""
Core domain models for the chartguard schedule validation pipeline.
"""
from .schedule import (
    Origin,
    Schedule,
    ScheduleTask,
    ScheduleField,
    SourceCitation,
    InferenceRationale,
    RegulatoryRequirement,
    fallback_task_id,
)
from .claim import Claim, ClaimType, ClaimMeta, ClaimSource, ExplicitOrigin, InferredOrigin
from .results import (
    MatchType,
    MatchDiagnostics,
    CitationVerificationResult,
    CitationBatchResult,
    ContradictionType,
    Severity,
    Contradiction,
    ContradictionReport,
    ProvenanceAuditResult,
    CalibrationFactors,
    CalibrationMetadata,
    CalibratedClaim,
    QualityGateResult,
    GateEvaluation,
    RepairChange,
    RepairLogEntry,
)
from .report import (
    ValidationReport,
    ValidatedField,
    ValidatedTask,
    ValidatedSchedule,
    ScheduleSummary,
    AuditTrail,
    JobResult,
)
from .job import JobState, JobStatus, ValidationJob

__all__ = [
    "Origin",
    "Schedule",
    "ScheduleTask",
    "ScheduleField",
    "SourceCitation",
    "InferenceRationale",
    "RegulatoryRequirement",
    "fallback_task_id",
    "Claim",
    "ClaimType",
    "ClaimMeta",
    "ClaimSource",
    "ExplicitOrigin",
    "InferredOrigin",
    "MatchType",
    "MatchDiagnostics",
    "CitationVerificationResult",
    "CitationBatchResult",
    "ContradictionType",
    "Severity",
    "Contradiction",
    "ContradictionReport",
    "ProvenanceAuditResult",
    "CalibrationFactors",
    "CalibrationMetadata",
    "CalibratedClaim",
    "QualityGateResult",
    "GateEvaluation",
    "RepairChange",
    "RepairLogEntry",
    "ValidationReport",
    "ValidatedField",
    "ValidatedTask",
    "ValidatedSchedule",
    "ScheduleSummary",
    "AuditTrail",
    "JobResult",
    "JobState",
    "JobStatus",
    "ValidationJob",
]
