from .jobs import JobManager, JobStore

__all__ = ["JobManager", "JobStore"]
