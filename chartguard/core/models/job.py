from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .report import JobResult


class JobState(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


class JobStatus(BaseModel):
    """Side-effect free snapshot returned to polling clients."""
    job_id: str
    state: JobState
    progress: int
    step: str
    error: Optional[str] = None


class ValidationJob(BaseModel):
    """
    One tracked run of the validation pipeline.
    Only the orchestrator (through the job store) changes these fields.
    """
    id: str = Field(default_factory=lambda: uuid4().hex)
    state: JobState = JobState.QUEUED
    progress: int = Field(0, ge=0, le=100)
    current_step: str = "Request received, waiting to start"
    error: Optional[str] = None
    result: Optional[JobResult] = None
    cancel_requested: bool = False
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_terminal(self) -> bool:
        return self.state in (JobState.COMPLETE, JobState.ERROR)

    def status(self) -> JobStatus:
        return JobStatus(
            job_id=self.id,
            state=self.state,
            progress=self.progress,
            step=self.current_step,
            error=self.error,
        )
