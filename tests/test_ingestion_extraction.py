"""Tests for the extraction service client."""

import json

import pytest

from conftest import TEST_API_URL, record
from gpu_catalog.core.errors import (
    EmptyResultError,
    ExtractionError,
    JobCancelledError,
    JobFailedError,
    JobTimeoutError,
    SubmissionError,
)
from gpu_catalog.ingestion.extraction import pair_with_urls
from gpu_catalog.ingestion.prompts import ExtractionRequest

URLS = ["https://www.newegg.com/p/1", "https://www.newegg.com/p/2"]


@pytest.fixture
def request_body() -> ExtractionRequest:
    """A minimal extraction request."""
    return ExtractionRequest(prompt="Extract GPU details", scrape_options={"formats": ["markdown"]})


class TestSubmit:
    """Tests for job submission."""

    @pytest.mark.asyncio
    async def test_submit_returns_job_id(self, firecrawl, make_client, request_body) -> None:
        """Test a successful submission and its payload."""
        client = make_client()

        job_id = await client.submit(URLS, request_body)

        assert job_id == "job-123"
        sent = firecrawl.submits[0]
        assert str(sent.url) == f"{TEST_API_URL}/extract"
        assert sent.headers["Authorization"] == "Bearer test-key"
        payload = json.loads(sent.content)
        assert payload["urls"] == URLS
        assert payload["prompt"] == "Extract GPU details"
        assert payload["ignoreInvalidURLs"] is True
        assert payload["enableWebSearch"] is False
        assert payload["scrapeOptions"] == {"formats": ["markdown"]}

    @pytest.mark.asyncio
    async def test_invalid_credentials(self, firecrawl, make_client, request_body) -> None:
        """Test that 401 reports invalid credentials."""
        firecrawl.submit_reply = (401, {"success": False})

        with pytest.raises(SubmissionError) as exc_info:
            await make_client().submit(URLS, request_body)

        assert exc_info.value.invalid_credentials
        assert "invalid or expired" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_insufficient_credits(self, firecrawl, make_client, request_body) -> None:
        """Test that 402 reports insufficient credits."""
        firecrawl.submit_reply = (402, {"success": False})

        with pytest.raises(SubmissionError) as exc_info:
            await make_client().submit(URLS, request_body)

        assert exc_info.value.insufficient_credits
        assert "insufficient credits" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_other_status(self, firecrawl, make_client, request_body) -> None:
        """Test that other errors carry the status code."""
        firecrawl.submit_reply = (503, {"success": False})

        with pytest.raises(SubmissionError, match="Firecrawl error: 503"):
            await make_client().submit(URLS, request_body)

    @pytest.mark.asyncio
    async def test_missing_job_id(self, firecrawl, make_client, request_body) -> None:
        """Test that a body without an id is a submission failure."""
        firecrawl.submit_reply = (200, {"success": True})

        with pytest.raises(SubmissionError, match="failed to create extraction job"):
            await make_client().submit(URLS, request_body)


class TestAwaitCompletion:
    """Tests for polling a job to completion."""

    @pytest.mark.asyncio
    async def test_polls_until_completed(self, firecrawl, make_client, clock) -> None:
        """Test that two processing polls mean exactly two waits."""
        firecrawl.job_completes([record()], polls_before=2)

        records = await make_client().await_completion("job-123", poll_interval=2.0, timeout=600)

        assert len(records) == 1
        assert clock.sleeps == [2.0, 2.0]
        assert len(firecrawl.polls) == 3
        assert firecrawl.polls[0].url.path.endswith("/extract/job-123")

    @pytest.mark.asyncio
    async def test_times_out(self, firecrawl, make_client, clock) -> None:
        """Test that a job that never finishes raises instead of looping."""
        firecrawl.job_status("processing")

        with pytest.raises(JobTimeoutError) as exc_info:
            await make_client().await_completion("job-123", poll_interval=2.0, timeout=5.0)

        assert exc_info.value.job_id == "job-123"
        assert clock.sleeps == [2.0, 2.0, 2.0]
        assert len(firecrawl.polls) == 4

    @pytest.mark.asyncio
    async def test_failed_job(self, firecrawl, make_client) -> None:
        """Test that a failed job raises with the service's error."""
        firecrawl.job_status("failed", error="Site blocked")

        with pytest.raises(JobFailedError, match="Site blocked"):
            await make_client().await_completion("job-123")

    @pytest.mark.asyncio
    async def test_cancelled_job(self, firecrawl, make_client) -> None:
        """Test that a cancelled job raises."""
        firecrawl.job_status("cancelled")

        with pytest.raises(JobCancelledError):
            await make_client().await_completion("job-123")

    @pytest.mark.asyncio
    async def test_completed_without_data(self, firecrawl, make_client) -> None:
        """Test that completion with no data is an error."""
        firecrawl.job_completes([])

        with pytest.raises(EmptyResultError):
            await make_client().await_completion("job-123")

    @pytest.mark.asyncio
    async def test_single_object_is_wrapped(self, firecrawl, make_client) -> None:
        """Test that a single result object becomes a one-element list."""
        firecrawl.job_completes(record())

        records = await make_client().await_completion("job-123")

        assert records == [record()]

    @pytest.mark.asyncio
    async def test_unknown_state_keeps_polling(self, firecrawl, make_client, clock) -> None:
        """Test that intermediate states count as processing."""
        firecrawl.status_replies = [
            (200, {"success": True, "status": "scraping"}),
            (200, {"success": True, "status": "completed", "data": [record()]}),
        ]

        records = await make_client().await_completion("job-123", poll_interval=1.0)

        assert len(records) == 1
        assert clock.sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_poll_error_ends_wait(self, firecrawl, make_client) -> None:
        """Test that an error status on a poll is not retried."""
        firecrawl.status_replies = [(402, {"success": False})]

        with pytest.raises(ExtractionError, match="ran out of credits"):
            await make_client().await_completion("job-123")

        assert len(firecrawl.polls) == 1


class TestScrape:
    """Tests for single-page scraping."""

    @pytest.mark.asyncio
    async def test_returns_json(self, firecrawl, make_client) -> None:
        """Test that the JSON extracted from the page is returned."""
        firecrawl.page_has(URLS[0], 529.99, True)

        data = await make_client().scrape(URLS[0])

        assert data == {"price": 529.99, "in_stock": True}
        payload = json.loads(firecrawl.scrapes[0].content)
        assert payload["url"] == URLS[0]
        assert payload["formats"][0]["type"] == "json"

    @pytest.mark.asyncio
    async def test_error_status(self, firecrawl, make_client) -> None:
        """Test that a failed scrape raises."""
        with pytest.raises(ExtractionError, match="500"):
            await make_client().scrape(URLS[0])

    @pytest.mark.asyncio
    async def test_no_json(self, firecrawl, make_client) -> None:
        """Test that a scrape without JSON data raises."""
        firecrawl.scrape_replies[URLS[0]] = (200, {"success": True, "data": {"markdown": "..."}})

        with pytest.raises(ExtractionError, match="No JSON data"):
            await make_client().scrape(URLS[0])


class TestPairWithUrls:
    """Tests for matching records to their URLs."""

    def test_positional(self) -> None:
        """Test positional matching when records do not echo URLs."""
        pairs, errors = pair_with_urls([record(brand="A"), record(brand="B")], URLS)

        assert [(url, r["brand"]) for url, r in pairs] == [(URLS[0], "A"), (URLS[1], "B")]
        assert errors == []

    def test_by_echoed_url(self) -> None:
        """Test that echoed URLs win over position."""
        records = [record(URLS[1], brand="B"), record(URLS[0], brand="A")]

        pairs, errors = pair_with_urls(records, URLS)

        assert dict((url, r["brand"]) for url, r in pairs) == {URLS[0]: "A", URLS[1]: "B"}
        assert errors == []

    def test_fewer_records_than_urls(self) -> None:
        """Test that URLs without a record are reported."""
        pairs, errors = pair_with_urls([record()], URLS)

        assert len(pairs) == 1
        assert errors == [f"{URLS[1]}: no extracted data returned"]

    def test_more_records_than_urls(self) -> None:
        """Test that surplus records are reported."""
        pairs, errors = pair_with_urls([record(), record(), record()], URLS)

        assert len(pairs) == 2
        assert errors == ["Extracted record #3 has no matching URL"]
