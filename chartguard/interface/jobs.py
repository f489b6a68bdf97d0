"""
Job submission interface: submit / poll / result / cancel over an in-memory job store.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from ..config.settings import ValidationSettings, settings
from ..core.errors import (
    ChartGuardError,
    JobCancelledError,
    JobNotCompleteError,
    JobNotFoundError,
)
from ..core.models.job import JobState, JobStatus, ValidationJob
from ..core.models.report import JobResult
from ..core.quality.gates import QualityGateManager
from ..core.quality.repair import RepairEngine
from ..core.storage import StorageManager
from ..graph.context import PipelineContext
from ..graph.workflow import run_validation

logger = logging.getLogger(__name__)

GateFactory = Callable[[ValidationSettings], QualityGateManager]


class JobStore:
    """
    In-memory job records.

    Attributes:
        _jobs (Dict[str, ValidationJob]): jobs keyed by id
        ttl (timedelta): how long finished jobs are kept
    """

    def __init__(self, ttl_seconds: int = 3600):
        self._jobs: Dict[str, ValidationJob] = {}
        self.ttl = timedelta(seconds=ttl_seconds)

    def create(self, job: ValidationJob) -> ValidationJob:
        self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> ValidationJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def update(self, job_id: str, **fields: Any) -> ValidationJob:
        job = self.get(job_id)
        if "progress" in fields:
            fields["progress"] = max(job.progress, fields["progress"])
        updated = job.model_copy(update={**fields, "updated_at": datetime.now()})
        self._jobs[job_id] = updated
        return updated

    def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        """Drop finished jobs older than the TTL. Returns the number removed."""
        now = now or datetime.now()
        expired = [jid for jid, job in self._jobs.items() if job.is_terminal and now - job.updated_at > self.ttl]
        for jid in expired:
            del self._jobs[jid]
        if expired:
            logger.info(f"Removed {len(expired)} expired job(s)")
        return len(expired)

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs


class JobManager:
    """
    Owns job state. Submission returns immediately; the pipeline runs as an asyncio
    task on the caller's event loop and reports progress into the store.
    """

    def __init__(
        self,
        base_settings: Optional[ValidationSettings] = None,
        store: Optional[JobStore] = None,
        runs_dir: Optional[str] = None,
        gate_factory: Optional[GateFactory] = None,
    ):
        self.base_settings = base_settings or settings.load_validation_settings()
        self.store = store or JobStore(self.base_settings.job_ttl_seconds)
        runs_dir = settings.RUNS_DIR if runs_dir is None else runs_dir
        self.storage = StorageManager(runs_dir) if runs_dir else None
        self.gate_factory = gate_factory
        self._tasks: Dict[str, asyncio.Task] = {}

    def submit(self, schedule: Any, documents: Optional[Dict[str, str]] = None, config: Optional[Dict[str, Any]] = None) -> str:
        """
        Queue a validation job. Must be called with a running event loop.

        Raises:
            ConfigurationError: invalid per-job overrides (no job is created).
        """
        job_settings = self.base_settings.with_overrides(config)
        loop = asyncio.get_running_loop()
        self.store.cleanup_expired()

        job = self.store.create(ValidationJob())
        self._tasks[job.id] = loop.create_task(self._run(job.id, schedule, documents or {}, job_settings))
        logger.info(f"Job {job.id} queued")
        return job.id

    def poll_status(self, job_id: str) -> JobStatus:
        return self.store.get(job_id).status()

    def get_result(self, job_id: str) -> JobResult:
        job = self.store.get(job_id)
        if job.state != JobState.COMPLETE or job.result is None:
            raise JobNotCompleteError(job_id, job.state.value)
        return job.result

    def cancel(self, job_id: str) -> bool:
        """Request cooperative cancellation; it takes effect at the next step boundary."""
        job = self.store.get(job_id)
        if job.is_terminal:
            return False
        self.store.update(job_id, cancel_requested=True)
        logger.info(f"Job {job_id} cancellation requested")
        return True

    async def wait(self, job_id: str, timeout: Optional[float] = None) -> JobStatus:
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        return self.poll_status(job_id)

    # ------------------------------------------------------------------

    async def _run(self, job_id: str, schedule: Any, documents: Dict[str, str], job_settings: ValidationSettings) -> None:
        self.store.update(job_id, state=JobState.PROCESSING, current_step="Starting")
        context = PipelineContext(
            config=job_settings,
            job_id=job_id,
            on_progress=lambda progress, step: self.store.update(job_id, progress=progress, current_step=step),
            is_cancelled=lambda: self.store.get(job_id).cancel_requested,
            storage=self.storage,
        )
        try:
            if self.gate_factory is not None:
                context.gate_manager = self.gate_factory(job_settings)
                context.repair_engine = RepairEngine(context.gate_manager)
            result = await run_validation(schedule, documents, context)
        except JobCancelledError as e:
            self.store.update(job_id, state=JobState.ERROR, error=str(e), current_step="Cancelled")
            logger.info(f"Job {job_id} cancelled")
        except ChartGuardError as e:
            self.store.update(job_id, state=JobState.ERROR, error=str(e), current_step=context.step or "Failed")
            logger.error(f"Job {job_id} failed: {e}")
        except Exception as e:
            self.store.update(job_id, state=JobState.ERROR, error=f"Unexpected failure: {e}", current_step=context.step or "Failed")
            logger.exception(f"Job {job_id} crashed")
        else:
            self.store.update(job_id, state=JobState.COMPLETE, result=result, progress=100, current_step="Complete")
            logger.info(f"Job {job_id} complete with {len(result.warnings)} warning(s)")
        finally:
            self._tasks.pop(job_id, None)
