from .gates import (
    CITATION_COVERAGE,
    CONFIDENCE_MINIMUM,
    CONTRADICTION_SEVERITY,
    REGULATORY_FLAGS,
    SCHEMA_COMPLIANCE,
    FunctionGate,
    QualityGate,
    QualityGateManager,
)
from .repair import RepairEngine, RepairStrategy, RepairWorkspace

__all__ = [
    "CITATION_COVERAGE",
    "CONFIDENCE_MINIMUM",
    "CONTRADICTION_SEVERITY",
    "REGULATORY_FLAGS",
    "SCHEMA_COMPLIANCE",
    "FunctionGate",
    "QualityGate",
    "QualityGateManager",
    "RepairEngine",
    "RepairStrategy",
    "RepairWorkspace",
]
