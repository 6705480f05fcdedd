"""Enums for GPU catalog fields and pipeline state."""

from enum import Enum


class CoolerType(str, Enum):
    """Canonical cooler classification (number of fans)."""

    DUAL = "Dual"
    TRIPLE = "Triple"


class JobState(str, Enum):
    """State of a remote extraction job."""

    SUBMITTED = "submitted"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED)


class IngestFailure(str, Enum):
    """Stage at which an ingest call gave up."""

    ALL_DUPLICATES = "all_duplicates"
    EXTRACTION = "extraction"
    NO_PRODUCTS = "no_products"
    STORE = "store"


class RefreshRunStatus(str, Enum):
    """Status of a price refresh run."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SortOrder(str, Enum):
    """Sort direction for catalog queries."""

    ASC = "asc"
    DESC = "desc"
