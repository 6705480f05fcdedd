"""Exception hierarchy for the ingestion and price refresh pipeline.

Per-record errors (``MappingError``) are collected and reported next to the
successful results. Everything else ends the operation in progress and its
message is handed back to the caller unchanged.
"""


class CatalogError(Exception):
    """Base class for all GPU catalog errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CatalogError):
    """Bad or empty input supplied by the caller."""


# ============================================================================
# Extraction service
# ============================================================================


class ExtractionError(CatalogError):
    """The remote extraction service could not be used."""


class SubmissionError(ExtractionError):
    """Creating a remote extraction job failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @classmethod
    def from_status(cls, status_code: int) -> "SubmissionError":
        """Build the user-facing error for a non-2xx submission response."""
        if status_code == 401:
            message = "Firecrawl API key is invalid or expired."
        elif status_code == 402:
            message = (
                "Firecrawl account has insufficient credits. "
                "Please check your Firecrawl API key and account balance."
            )
        else:
            message = f"Firecrawl error: {status_code}"
        return cls(message, status_code=status_code)

    @property
    def invalid_credentials(self) -> bool:
        return self.status_code == 401

    @property
    def insufficient_credits(self) -> bool:
        return self.status_code == 402


class JobError(ExtractionError):
    """A submitted job reached a terminal state without usable data."""

    def __init__(self, message: str, job_id: str | None = None) -> None:
        super().__init__(message)
        self.job_id = job_id


class JobTimeoutError(JobError):
    """The job did not reach a terminal state in time."""


class JobFailedError(JobError):
    """The job finished in the ``failed`` state."""


class JobCancelledError(JobError):
    """The job finished in the ``cancelled`` state."""


class EmptyResultError(JobError):
    """The job completed but returned no data."""


# ============================================================================
# Mapping and storage
# ============================================================================


class MappingError(CatalogError):
    """One extracted record could not be mapped to a product."""


class StoreError(CatalogError):
    """A product store operation failed."""


class DuplicateError(StoreError):
    """An insert hit the unique constraint on the product URL."""
