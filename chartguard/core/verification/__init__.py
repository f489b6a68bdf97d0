from .citation import CitationVerifier
from .contradiction import ContradictionDetector, task_groups
from .provenance import ProvenanceAuditor
from .calibration import ConfidenceCalibrator

__all__ = [
    "CitationVerifier",
    "ContradictionDetector",
    "task_groups",
    "ProvenanceAuditor",
    "ConfidenceCalibrator",
]
