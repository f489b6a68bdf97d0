"""
Per-job pipeline context: the claim ledger, the validation services and the
progress/cancellation hooks of one run. It travels through the graph in
config["configurable"]["context"], so concurrent jobs never share state.
"""
import logging
from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4

from langchain_core.runnables import RunnableConfig

from ..config.settings import ValidationSettings
from ..core.aggregation import ValidationAggregator
from ..core.errors import JobCancelledError
from ..core.extraction import ClaimExtractor
from ..core.ledger import ClaimLedger
from ..core.quality.gates import QualityGateManager
from ..core.quality.repair import RepairEngine
from ..core.storage import StorageManager
from ..core.verification.citation import CitationVerifier
from ..core.verification.contradiction import ContradictionDetector
from ..core.verification.provenance import ProvenanceAuditor

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]


class PipelineContext:

    def __init__(
        self,
        config: Optional[ValidationSettings] = None,
        job_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        is_cancelled: Optional[Callable[[], bool]] = None,
        gate_manager: Optional[QualityGateManager] = None,
        repair_engine: Optional[RepairEngine] = None,
        storage: Optional[StorageManager] = None,
    ):
        self.config = config or ValidationSettings()
        self.job_id = job_id or uuid4().hex
        self.ledger = ClaimLedger()
        self.extractor = ClaimExtractor()
        self.citation_verifier = CitationVerifier(self.config)
        self.contradiction_detector = ContradictionDetector(self.config)
        self.provenance_auditor = ProvenanceAuditor(self.config)
        self.aggregator = ValidationAggregator(self.config)
        self.gate_manager = gate_manager or QualityGateManager(self.config)
        self.repair_engine = repair_engine or RepairEngine(self.gate_manager)
        self.storage = storage
        self.run_dir = None
        self.started_at = datetime.now()

        self.progress = 0
        self.step = ""
        self._on_progress = on_progress
        self._is_cancelled = is_cancelled

    def report_progress(self, progress: int, step: str) -> None:
        """Publish a step boundary. Progress never moves backwards."""
        self.progress = max(self.progress, min(progress, 100))
        self.step = step
        logger.info(f"[{self.job_id[:8]}] {self.progress:3d}% {step}")
        if self._on_progress is not None:
            self._on_progress(self.progress, step)

    def checkpoint(self) -> None:
        """Cooperative cancellation point, called between steps."""
        if self._is_cancelled is not None and self._is_cancelled():
            logger.info(f"[{self.job_id[:8]}] cancellation observed at: {self.step or 'start'}")
            raise JobCancelledError(self.job_id)


def get_context(config: RunnableConfig) -> PipelineContext:
    context = (config or {}).get("configurable", {}).get("context")
    if context is None:
        raise RuntimeError("Pipeline context missing from graph config")
    return context
