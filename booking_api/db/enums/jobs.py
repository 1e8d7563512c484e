"""Background job enums."""

from enum import Enum


class JobType(str, Enum):
    """Types of background jobs."""

    BOOKING_NOTIFICATION = "booking_notification"


class JobStatus(str, Enum):
    """Status of background jobs."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


DEFAULT_JOB_STATUS = JobStatus.PENDING
