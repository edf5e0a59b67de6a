"""Error taxonomy for plan generation.

Per-client infeasibility is not an error; it is reported in the plan document.
"""


class PlanningError(Exception):
    """Base class for errors raised by the generator."""


class InvalidRequest(PlanningError):
    """Request rejected before a job is created (bad dates, unknown client, empty slot)."""


class EngineFault(PlanningError):
    """Unexpected internal failure, e.g. corrupted catalog data. Terminal for the job."""


class NotFound(PlanningError):
    """Unknown or already reaped job id."""

    def __init__(self, job_id: str):
        super().__init__(f"job {job_id} not found")
        self.job_id = job_id


class SearchCancelled(PlanningError):
    """Raised at a search checkpoint after the owning job was deleted."""
