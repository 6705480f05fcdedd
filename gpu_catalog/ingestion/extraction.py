"""
Extraction Job Client Module
============================

Talks to the Firecrawl extraction service: submits batch extraction
jobs, polls them until they reach a terminal state, and scrapes single
pages for the price refresh.

Poll failures are not retried; a transport or parse error on any poll
ends the wait.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from gpu_catalog.core.enums import JobState
from gpu_catalog.core.errors import (
    EmptyResultError,
    ExtractionError,
    JobCancelledError,
    JobFailedError,
    JobTimeoutError,
    SubmissionError,
)
from gpu_catalog.core.settings import DEFAULT_FIRECRAWL_API_URL, Settings
from gpu_catalog.ingestion.prompts import ExtractionRequest, build_price_scrape_payload

logger = logging.getLogger(__name__)

# Keys under which a result may echo the page it came from
SOURCE_URL_KEYS = ("url", "source_url", "sourceURL")


@dataclass
class JobStatus:
    """One poll of a remote extraction job."""

    job_id: str
    state: JobState
    data: Any = None
    error: str | None = None


class ExtractionClient:
    """
    Async client for the extraction service.

    Features:
    - Batch extraction job submission with prompt and JSON schema
    - Cooperative polling with a hard timeout
    - Single-page JSON scrape for price refreshes
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_FIRECRAWL_API_URL,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient | None = None) -> ExtractionClient:
        """Create a client from application settings."""
        return cls(
            api_key=settings.firecrawl_api_key,
            base_url=settings.firecrawl_api_url,
            timeout=settings.request_timeout,
            client=client,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> ExtractionClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    # ------------------------------------------------------------------
    # Batch extraction
    # ------------------------------------------------------------------

    async def submit(self, urls: Sequence[str], request: ExtractionRequest) -> str:
        """
        Submit an extraction job.

        Args:
            urls: Product page URLs to extract
            request: Prompt, schema and scrape options

        Returns:
            The remote job id

        Raises:
            SubmissionError: If the job could not be created
        """
        payload = request.to_payload(list(urls))

        try:
            response = await self._client.post(
                f"{self.base_url}/extract", json=payload, headers=self._headers
            )
        except httpx.HTTPError as e:
            raise SubmissionError(f"Failed to reach Firecrawl: {e}") from e

        if not response.is_success:
            error = SubmissionError.from_status(response.status_code)
            logger.error(f"Firecrawl submission error: {error.message}")
            raise error

        try:
            body = response.json()
        except ValueError as e:
            raise SubmissionError(
                "Failed to parse Firecrawl response", status_code=response.status_code
            ) from e

        if not isinstance(body, dict) or not body.get("success") or not body.get("id"):
            logger.error(f"Firecrawl submission failed: {body}")
            raise SubmissionError(
                "Firecrawl failed to create extraction job", status_code=response.status_code
            )

        job_id = str(body["id"])
        logger.info(f"Extraction job submitted with ID: {job_id}")
        return job_id

    async def get_status(self, job_id: str) -> JobStatus:
        """
        Fetch the current state of a job.

        Raises:
            ExtractionError: On transport errors, error statuses or unparseable bodies
        """
        try:
            response = await self._client.get(
                f"{self.base_url}/extract/{job_id}", headers=self._headers
            )
        except httpx.HTTPError as e:
            raise ExtractionError(f"Firecrawl status check failed: {e}") from e

        if response.status_code == 402:
            raise ExtractionError("Firecrawl account ran out of credits during processing")
        if not response.is_success:
            raise ExtractionError(f"Firecrawl status check failed: {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise ExtractionError("Invalid response from Firecrawl status endpoint") from e
        if not isinstance(body, dict):
            raise ExtractionError("Invalid response from Firecrawl status endpoint")

        raw_state = body.get("status")
        if raw_state is None and body.get("success") is False:
            state = JobState.FAILED
        else:
            try:
                state = JobState(str(raw_state).lower())
            except ValueError:
                # Intermediate states reported by the service count as processing
                state = JobState.PROCESSING

        return JobStatus(job_id=job_id, state=state, data=body.get("data"), error=body.get("error"))

    async def await_completion(
        self,
        job_id: str,
        poll_interval: float = 2.0,
        timeout: float = 600.0,
    ) -> list[Any]:
        """
        Poll a job until it reaches a terminal state.

        Args:
            job_id: The remote job id
            poll_interval: Seconds to wait between polls
            timeout: Seconds after which waiting is abandoned

        Returns:
            The extracted records; a single object is wrapped in a list

        Raises:
            EmptyResultError: Job completed without data
            JobFailedError: Job failed
            JobCancelledError: Job was cancelled
            JobTimeoutError: Job did not finish within the timeout
            ExtractionError: A poll itself failed
        """
        started = self._clock()
        polls = 0

        while True:
            status = await self.get_status(job_id)
            polls += 1

            if status.state == JobState.COMPLETED:
                if status.data is None or status.data == [] or status.data == {}:
                    raise EmptyResultError("Job completed but no data returned", job_id=job_id)
                records = status.data if isinstance(status.data, list) else [status.data]
                logger.info(f"Extraction job {job_id} completed after {polls} poll(s)")
                return records

            if status.state == JobState.FAILED:
                detail = f": {status.error}" if status.error else ""
                raise JobFailedError(f"Firecrawl extraction job failed{detail}", job_id=job_id)

            if status.state == JobState.CANCELLED:
                raise JobCancelledError("Firecrawl extraction job was cancelled", job_id=job_id)

            if self._clock() - started >= timeout:
                raise JobTimeoutError(
                    f"Firecrawl job timed out after {timeout:g} seconds", job_id=job_id
                )

            await self._sleep(poll_interval)

    async def extract(
        self,
        urls: Sequence[str],
        request: ExtractionRequest,
        poll_interval: float = 2.0,
        timeout: float = 600.0,
    ) -> list[Any]:
        """Submit a job and wait for its records."""
        job_id = await self.submit(urls, request)
        return await self.await_completion(job_id, poll_interval=poll_interval, timeout=timeout)

    # ------------------------------------------------------------------
    # Single-page scrape
    # ------------------------------------------------------------------

    async def scrape(self, url: str) -> dict[str, Any]:
        """
        Scrape the current price and stock status of one product page.

        Returns:
            The JSON object extracted from the page

        Raises:
            ExtractionError: If the scrape failed or returned no JSON
        """
        try:
            response = await self._client.post(
                f"{self.base_url}/scrape",
                json=build_price_scrape_payload(url),
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            raise ExtractionError(f"Firecrawl request failed for {url}: {e}") from e

        if not response.is_success:
            raise ExtractionError(f"Firecrawl API error for {url}: {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise ExtractionError(f"Invalid response from Firecrawl for {url}") from e

        if not isinstance(body, dict) or not body.get("success"):
            error = body.get("error") if isinstance(body, dict) else None
            raise ExtractionError(f"Firecrawl scraping failed for {url}: {error or 'Unknown error'}")

        data = body.get("data") or {}
        extracted = data.get("json") if isinstance(data, dict) else None
        if extracted is None:
            extracted = body.get("llmExtract")
        if not isinstance(extracted, dict):
            raise ExtractionError(f"No JSON data returned from Firecrawl for {url}")
        return extracted


def _echoed_url(record: Any, submitted: set[str]) -> str | None:
    if not isinstance(record, dict):
        return None
    for key in SOURCE_URL_KEYS:
        value = record.get(key)
        if isinstance(value, str) and value in submitted:
            return value
    return None


def pair_with_urls(records: Sequence[Any], urls: Sequence[str]) -> tuple[list[tuple[str, Any]], list[str]]:
    """
    Match extracted records to the URLs they were extracted from.

    When every record names a distinct submitted URL the records are
    matched by that URL. Otherwise record ``i`` belongs to ``urls[i]``.

    Returns:
        (url, record) pairs, and errors for URLs without a record and
        records without a URL
    """
    errors: list[str] = []
    submitted = set(urls)
    echoed = [_echoed_url(record, submitted) for record in records]

    if records and all(echoed) and len(set(echoed)) == len(echoed):
        pairs = [(url, record) for url, record in zip(echoed, records)]
    else:
        pairs = list(zip(urls, records))
        for index in range(len(urls), len(records)):
            errors.append(f"Extracted record #{index + 1} has no matching URL")

    matched = {url for url, _ in pairs}
    for url in urls:
        if url not in matched:
            errors.append(f"{url}: no extracted data returned")

    return pairs, errors
