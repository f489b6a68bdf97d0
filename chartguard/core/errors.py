"""
Exception taxonomy.

Validation logic itself reports problems as structured results; these exceptions
are reserved for contract violations and job-terminal conditions.
"""


class ChartGuardError(Exception):
    """Base class for all chartguard errors."""


class DuplicateClaimError(ChartGuardError):
    """A claim with the same id was already added to the ledger."""

    def __init__(self, claim_id: str):
        self.claim_id = claim_id
        super().__init__(f"Claim already in ledger: {claim_id}")


class ClaimNotFoundError(ChartGuardError):
    def __init__(self, claim_id: str):
        self.claim_id = claim_id
        super().__init__(f"Unknown claim: {claim_id}")


class MalformedScheduleError(ChartGuardError):
    """The draft schedule cannot be interpreted even after schema repair."""


class ConfigurationError(ChartGuardError):
    """Invalid validation settings or per-job overrides."""


class JobNotFoundError(ChartGuardError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Unknown job: {job_id}")


class JobNotCompleteError(ChartGuardError):
    def __init__(self, job_id: str, state: str):
        self.job_id = job_id
        self.state = state
        super().__init__(f"Job {job_id} has no result (state: {state})")


class JobCancelledError(ChartGuardError):
    """Raised between pipeline steps once cancellation was requested."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__("cancelled")


class RepairExhaustedError(ChartGuardError):
    """Blocking gates still fail after the configured number of repair attempts."""

    def __init__(self, gate_name: str, score: float, threshold: float, attempts: int):
        self.gate_name = gate_name
        self.score = score
        self.threshold = threshold
        self.attempts = attempts
        super().__init__(
            f"Quality gate {gate_name} still failing after {attempts} repair attempt(s) "
            f"(last score {score:.3f}, threshold {threshold:.3f})"
        )
