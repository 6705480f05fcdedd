"""Tests for the ingestion orchestrator."""

import json

import pytest

from conftest import make_product, record
from gpu_catalog.core.enums import IngestFailure
from gpu_catalog.core.errors import ValidationError
from gpu_catalog.db.repositories import ProductRepository
from gpu_catalog.ingestion.orchestrator import IngestionOrchestrator
from gpu_catalog.ingestion.prompts import ExtractionRequest

URL_A = "https://www.newegg.com/p/a"
URL_B = "https://www.bestbuy.com/site/b"
URL_C = "https://www.amazon.com/dp/c"


@pytest.fixture
def repository(test_session) -> ProductRepository:
    """Product repository on the test database."""
    return ProductRepository(test_session)


@pytest.fixture
def orchestrator(repository, make_client) -> IngestionOrchestrator:
    """Orchestrator wired to the fake extraction service."""
    return IngestionOrchestrator(
        repository,
        make_client(),
        request=ExtractionRequest(prompt="Extract GPU details"),
        poll_interval=2.0,
        poll_timeout=60.0,
    )


class RacingRepository(ProductRepository):
    """Repository that misses URLs stored by a concurrent request on the first check."""

    def __init__(self, session, raced: list[str]):
        super().__init__(session)
        self.raced = raced
        self.checks = 0

    def get_existing_urls(self, urls):
        self.checks += 1
        if self.checks == 1:
            self.bulk_create([make_product(url) for url in self.raced])
            return set()
        return super().get_existing_urls(urls)


class TestIngest:
    """Tests for IngestionOrchestrator.ingest."""

    @pytest.mark.asyncio
    async def test_adds_new_products(self, orchestrator, repository, firecrawl) -> None:
        """Test the happy path from URLs to stored products."""
        firecrawl.job_completes([record(brand="MSI"), record(brand="ASUS")], polls_before=1)

        report = await orchestrator.ingest([URL_A, URL_B])

        assert report.success
        assert report.added == 2
        assert report.errors == []
        assert report.job_id == "job-123"
        assert report.message == "Successfully added 2 product(s) to the database"
        assert repository.get_by_url(URL_A).brand == "MSI"
        assert repository.get_by_url(URL_B).retailer == "bestbuy.com"

    @pytest.mark.asyncio
    async def test_empty_input(self, orchestrator, firecrawl) -> None:
        """Test that empty input is rejected before any remote call."""
        with pytest.raises(ValidationError):
            await orchestrator.ingest([])
        with pytest.raises(ValidationError):
            await orchestrator.ingest(["  ", ""])

        assert firecrawl.requests == []

    @pytest.mark.asyncio
    async def test_all_duplicates_makes_no_remote_call(self, orchestrator, repository, firecrawl) -> None:
        """Test that already stored URLs never reach the extraction service."""
        repository.bulk_create([make_product(URL_A), make_product(URL_B)])

        report = await orchestrator.ingest([URL_A, URL_B])

        assert not report.success
        assert report.failure == IngestFailure.ALL_DUPLICATES
        assert report.added == 0
        assert report.duplicates == [URL_A, URL_B]
        assert report.message == "All 2 URL(s) already exist in the database"
        assert firecrawl.requests == []

    @pytest.mark.asyncio
    async def test_skips_duplicates(self, orchestrator, repository, firecrawl) -> None:
        """Test that only new URLs are submitted."""
        repository.bulk_create([make_product(URL_A)])
        firecrawl.job_completes([record()])

        report = await orchestrator.ingest([URL_A, URL_B])

        assert report.success
        assert report.added == 1
        assert report.duplicates == [URL_A]
        assert "(1 duplicate URL(s) were skipped)" in report.message
        assert json.loads(firecrawl.submits[0].content)["urls"] == [URL_B]

    @pytest.mark.asyncio
    async def test_one_malformed_record(self, orchestrator, repository, firecrawl) -> None:
        """Test that one bad record out of three is reported, not fatal."""
        firecrawl.job_completes([record(), {"brand": "EVGA"}, record()])

        report = await orchestrator.ingest([URL_A, URL_B, URL_C])

        assert report.success
        assert report.added == 2
        assert len(report.errors) == 1
        assert URL_B in report.errors[0]
        assert repository.count() == 2
        assert repository.get_by_url(URL_B) is None

    @pytest.mark.asyncio
    async def test_no_products(self, orchestrator, repository, firecrawl) -> None:
        """Test that nothing usable extracted is a failure."""
        firecrawl.job_completes([{"brand": "EVGA"}])

        report = await orchestrator.ingest([URL_A])

        assert not report.success
        assert report.failure == IngestFailure.NO_PRODUCTS
        assert report.message == "No products could be extracted from the provided URLs"
        assert repository.count() == 0

    @pytest.mark.asyncio
    async def test_submission_failure(self, orchestrator, repository, firecrawl) -> None:
        """Test that a rejected submission is reported and nothing is stored."""
        firecrawl.submit_reply = (402, {"success": False})

        report = await orchestrator.ingest([URL_A])

        assert not report.success
        assert report.failure == IngestFailure.EXTRACTION
        assert "insufficient credits" in report.message
        assert firecrawl.polls == []
        assert repository.count() == 0

    @pytest.mark.asyncio
    async def test_job_failure(self, orchestrator, firecrawl) -> None:
        """Test that a failed job is reported with its id."""
        firecrawl.job_status("failed")

        report = await orchestrator.ingest([URL_A])

        assert not report.success
        assert report.failure == IngestFailure.EXTRACTION
        assert report.message.startswith("Extraction job error: ")
        assert report.job_id == "job-123"

    @pytest.mark.asyncio
    async def test_job_timeout(self, repository, make_client, firecrawl, clock) -> None:
        """Test that a job that never completes ends the call."""
        firecrawl.job_status("processing")
        orchestrator = IngestionOrchestrator(
            repository,
            make_client(),
            request=ExtractionRequest(prompt="Extract GPU details"),
            poll_interval=2.0,
            poll_timeout=10.0,
        )

        report = await orchestrator.ingest([URL_A])

        assert not report.success
        assert "timed out" in report.message
        assert clock.now >= 10.0

    @pytest.mark.asyncio
    async def test_duplicate_race(self, test_session, make_client, firecrawl) -> None:
        """Test that URLs stored by another request during extraction become duplicates."""
        repository = RacingRepository(test_session, raced=[URL_A])
        orchestrator = IngestionOrchestrator(
            repository,
            make_client(),
            request=ExtractionRequest(prompt="Extract GPU details"),
        )
        firecrawl.job_completes([record(brand="MSI"), record(brand="Zotac")])

        report = await orchestrator.ingest([URL_A, URL_B])

        assert report.success
        assert report.added == 1
        assert report.duplicates == [URL_A]
        assert repository.get_by_url(URL_A).brand == "ASUS"
        assert repository.get_by_url(URL_B).brand == "Zotac"

    @pytest.mark.asyncio
    async def test_update_existing(self, orchestrator, repository, firecrawl) -> None:
        """Test re-ingestion updating stored products by URL."""
        repository.bulk_create([make_product(URL_A)])
        firecrawl.job_completes([record(brand="MSI", price=449.0), record(brand="Zotac")])

        report = await orchestrator.ingest([URL_A, URL_B], update_existing=True)

        assert report.success
        assert report.added == 1
        assert report.updated == 1
        assert report.duplicates == []
        assert repository.get_by_url(URL_A).brand == "MSI"
        assert repository.count() == 2
