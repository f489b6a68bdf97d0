"""
Quality Gate Manager.

Gates score a ValidationReport against a threshold. Blocking failures stop delivery
until repaired; non-blocking failures travel with the result as warnings.
Evaluation is read-only: scoring the same report twice gives the same outcome.
"""
import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from ...config.settings import ValidationSettings
from ..errors import ConfigurationError
from ..models.report import ValidationReport
from ..models.results import GateEvaluation, QualityGateResult, Severity
from ..schema import task_violations
from .regulatory import is_flagged, regulation_for_task

logger = logging.getLogger(__name__)

CITATION_COVERAGE = "CITATION_COVERAGE"
CONTRADICTION_SEVERITY = "CONTRADICTION_SEVERITY"
CONFIDENCE_MINIMUM = "CONFIDENCE_MINIMUM"
SCHEMA_COMPLIANCE = "SCHEMA_COMPLIANCE"
REGULATORY_FLAGS = "REGULATORY_FLAGS"


class QualityGate(ABC):
    """
    A named, thresholded check over the aggregated validation output.

    Attributes:
        name: unique gate name
        threshold: pass boundary (inclusive)
        blocker: a failing blocker halts delivery; otherwise the failure is a warning
        higher_is_better: pass when score >= threshold (else score <= threshold)
    """
    name: str = ""
    description: str = ""
    higher_is_better: bool = True

    def __init__(self, threshold: float, blocker: bool):
        self.threshold = threshold
        self.blocker = blocker

    @abstractmethod
    def score(self, report: ValidationReport) -> float:
        ...

    def passes(self, score: float) -> bool:
        if self.higher_is_better:
            return score >= self.threshold
        return score <= self.threshold

    def evaluate(self, report: ValidationReport) -> QualityGateResult:
        try:
            score = float(self.score(report))
        except Exception as e:
            logger.warning(f"Gate {self.name} could not be scored: {e}")
            return QualityGateResult(
                name=self.name, passed=False, blocker=self.blocker,
                score=0.0, threshold=self.threshold, error=str(e),
            )
        return QualityGateResult(
            name=self.name,
            passed=self.passes(score),
            blocker=self.blocker,
            score=round(score, 6),
            threshold=self.threshold,
        )

    def describe(self) -> Dict:
        return {
            "name": self.name,
            "threshold": self.threshold,
            "blocker": self.blocker,
            "direction": ">=" if self.higher_is_better else "<=",
            "description": self.description,
        }


class FunctionGate(QualityGate):
    """Custom gate built from a scoring function."""

    def __init__(
        self,
        name: str,
        threshold: float,
        blocker: bool,
        scorer: Callable[[ValidationReport], float],
        higher_is_better: bool = True,
        description: str = "",
    ):
        super().__init__(threshold, blocker)
        self.name = name
        self.description = description
        self.higher_is_better = higher_is_better
        self._scorer = scorer

    def score(self, report: ValidationReport) -> float:
        return self._scorer(report)


# =========================================================
# Default gates
# =========================================================

class CitationCoverageGate(QualityGate):
    name = CITATION_COVERAGE
    description = "Share of claims still requiring a citation whose citation verified"

    def score(self, report: ValidationReport) -> float:
        return report.citation_coverage


class ContradictionSeverityGate(QualityGate):
    name = CONTRADICTION_SEVERITY
    description = "Unresolved high-severity contradictions"
    higher_is_better = False

    def score(self, report: ValidationReport) -> float:
        return float(sum(1 for c in report.unresolved_contradictions() if c.severity == Severity.HIGH))


class ConfidenceMinimumGate(QualityGate):
    name = CONFIDENCE_MINIMUM
    description = "Mean calibrated claim confidence"

    def score(self, report: ValidationReport) -> float:
        return report.mean_confidence


class SchemaComplianceGate(QualityGate):
    name = SCHEMA_COMPLIANCE
    description = "Share of tasks that satisfy the schedule schema"

    def score(self, report: ValidationReport) -> float:
        total = len(report.schedule.tasks)
        if total == 0:
            return 1.0
        return 1.0 - len(task_violations(report.schedule)) / total


class RegulatoryFlagsGate(QualityGate):
    name = REGULATORY_FLAGS
    description = "Share of compliance-looking tasks that carry a regulatory requirement"

    def score(self, report: ValidationReport) -> float:
        suspects = [t for t in report.schedule.tasks if regulation_for_task(t)]
        if not suspects:
            return 1.0
        return sum(1 for t in suspects if is_flagged(t)) / len(suspects)


def default_gates(config: ValidationSettings) -> List[QualityGate]:
    t = config.threshold
    return [
        CitationCoverageGate(t(CITATION_COVERAGE, 0.75), blocker=True),
        ContradictionSeverityGate(t(CONTRADICTION_SEVERITY, 0.0), blocker=True),
        ConfidenceMinimumGate(t(CONFIDENCE_MINIMUM, 0.5), blocker=False),
        SchemaComplianceGate(t(SCHEMA_COMPLIANCE, 1.0), blocker=True),
        RegulatoryFlagsGate(t(REGULATORY_FLAGS, 1.0), blocker=False),
    ]


class QualityGateManager:
    """Ordered gate registry. Gate order is also the repair order."""

    def __init__(self, config: Optional[ValidationSettings] = None, gates: Optional[List[QualityGate]] = None):
        self.config = config or ValidationSettings()
        self._gates: List[QualityGate] = []
        for gate in (gates if gates is not None else default_gates(self.config)):
            self.register(gate)

    @property
    def gates(self) -> List[QualityGate]:
        return list(self._gates)

    def get(self, name: str) -> Optional[QualityGate]:
        for gate in self._gates:
            if gate.name == name:
                return gate
        return None

    def register(self, gate: QualityGate) -> None:
        """Append a gate. A configured threshold for its name overrides the gate's own."""
        if not gate.name:
            raise ConfigurationError("Quality gate needs a name")
        if self.get(gate.name) is not None:
            raise ConfigurationError(f"Quality gate already registered: {gate.name}")
        if gate.name in self.config.gate_thresholds:
            gate.threshold = self.config.gate_thresholds[gate.name]
        self._gates.append(gate)

    def remove(self, name: str) -> bool:
        before = len(self._gates)
        self._gates = [g for g in self._gates if g.name != name]
        return len(self._gates) < before

    def describe(self) -> List[Dict]:
        return [g.describe() for g in self._gates]

    def evaluate(self, report: ValidationReport) -> GateEvaluation:
        evaluation = GateEvaluation(results=[g.evaluate(report) for g in self._gates])
        for r in evaluation.results:
            if not r.passed:
                level = "blocking" if r.blocker else "warning"
                logger.info(f"Gate {r.name} failed ({level}): score {r.score:.3f}, threshold {r.threshold:.3f}")
        return evaluation
