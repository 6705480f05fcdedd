"""
Ingestion Orchestrator Module
=============================

Turns a list of retailer product URLs into stored products:

1. Validate - Reject empty input
2. Deduplicate - Skip URLs already in the store (no remote call if none remain)
3. Extract - Submit one extraction job and wait for it
4. Map - Normalize each record; malformed records are reported, not fatal
5. Persist - One bulk insert of every mapped product
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from gpu_catalog.core.enums import IngestFailure
from gpu_catalog.core.errors import (
    DuplicateError,
    ExtractionError,
    MappingError,
    StoreError,
    SubmissionError,
    ValidationError,
)
from gpu_catalog.core.schema import IngestReport, ProductCreate
from gpu_catalog.db.repositories import ProductRepository
from gpu_catalog.ingestion.config import get_extraction_config
from gpu_catalog.ingestion.dedup import partition
from gpu_catalog.ingestion.extraction import ExtractionClient, pair_with_urls
from gpu_catalog.ingestion.normalizer import Normalizer
from gpu_catalog.ingestion.prompts import ExtractionRequest, build_extraction_request

logger = logging.getLogger(__name__)


class IngestionOrchestrator:
    """Runs the ingestion pipeline for one batch of URLs."""

    def __init__(
        self,
        repository: ProductRepository,
        client: ExtractionClient,
        normalizer: Normalizer | None = None,
        request: ExtractionRequest | None = None,
        poll_interval: float = 2.0,
        poll_timeout: float = 600.0,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            repository: Product store
            client: Extraction service client
            normalizer: Field normalizer (defaults to the configured vocabulary)
            request: Extraction request (defaults to the configured prompt)
            poll_interval: Seconds between job polls
            poll_timeout: Seconds to wait for a job before giving up
        """
        config = get_extraction_config() if normalizer is None or request is None else None
        self.repository = repository
        self.client = client
        self.normalizer = normalizer or Normalizer(families=config.families)
        self.request = request or build_extraction_request(config)
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout

    async def ingest(self, urls: Sequence[str], update_existing: bool = False) -> IngestReport:
        """
        Ingest a batch of product URLs.

        Args:
            urls: Product page URLs
            update_existing: Re-extract URLs already stored and update them
                by URL instead of skipping them

        Returns:
            IngestReport; success is True when at least one product was stored

        Raises:
            ValidationError: If no usable URL was given
        """
        candidates = self._clean_urls(urls)

        # Deduplicate against the store
        try:
            existing = set() if update_existing else self.repository.get_existing_urls(candidates)
        except StoreError as e:
            logger.error(f"Error checking for existing URLs: {e.message}")
            return IngestReport(success=False, message=e.message, failure=IngestFailure.STORE)

        dedup = partition(candidates, existing)
        duplicates = list(dedup.duplicate_urls)

        if not dedup.has_new:
            return IngestReport(
                success=False,
                message=f"All {len(candidates)} URL(s) already exist in the database",
                duplicates=duplicates,
                failure=IngestFailure.ALL_DUPLICATES,
            )

        if duplicates:
            logger.info(
                f"Found {len(duplicates)} duplicate URL(s), processing {len(dedup.new_urls)} new URL(s)"
            )

        # Extract
        new_urls = dedup.new_urls
        logger.info(f"Submitting extraction job for {len(new_urls)} URL(s)")
        try:
            job_id = await self.client.submit(new_urls, self.request)
        except SubmissionError as e:
            return IngestReport(
                success=False,
                message=e.message,
                duplicates=duplicates,
                failure=IngestFailure.EXTRACTION,
            )

        try:
            records = await self.client.await_completion(
                job_id, poll_interval=self.poll_interval, timeout=self.poll_timeout
            )
        except ExtractionError as e:
            logger.error(f"Error waiting for extraction job {job_id}: {e.message}")
            return IngestReport(
                success=False,
                message=f"Extraction job error: {e.message}",
                duplicates=duplicates,
                job_id=job_id,
                failure=IngestFailure.EXTRACTION,
            )

        # Map records to products
        pairs, errors = pair_with_urls(records, new_urls)
        products: list[ProductCreate] = []
        for url, record in pairs:
            try:
                products.append(self.normalizer.to_product(record, url))
            except MappingError as e:
                logger.warning(f"Skipping extracted record: {e.message}")
                errors.append(e.message)

        if not products:
            return IngestReport(
                success=False,
                message="No products could be extracted from the provided URLs",
                duplicates=duplicates,
                errors=errors,
                job_id=job_id,
                failure=IngestFailure.NO_PRODUCTS,
            )

        # Persist
        if update_existing:
            return self._upsert(products, duplicates, errors, job_id)
        return self._insert(products, duplicates, errors, job_id)

    def _insert(
        self,
        products: list[ProductCreate],
        duplicates: list[str],
        errors: list[str],
        job_id: str,
    ) -> IngestReport:
        """Bulk insert; URLs stored concurrently by another call count as duplicates."""
        logger.info(f"Inserting {len(products)} product(s)")
        try:
            try:
                created = self.repository.bulk_create(products)
            except DuplicateError:
                raced = self.repository.get_existing_urls(p.url for p in products)
                logger.warning(f"{len(raced)} URL(s) were stored by another request during extraction")
                duplicates.extend(p.url for p in products if p.url in raced)
                remaining = [p for p in products if p.url not in raced]
                if not remaining:
                    return IngestReport(
                        success=False,
                        message="All extracted products already exist in the database",
                        duplicates=duplicates,
                        errors=errors,
                        job_id=job_id,
                        failure=IngestFailure.ALL_DUPLICATES,
                    )
                created = self.repository.bulk_create(remaining)
        except StoreError as e:
            logger.error(f"Database insert error: {e.message}")
            return IngestReport(
                success=False,
                message=e.message,
                duplicates=duplicates,
                errors=[e.message, *errors],
                job_id=job_id,
                failure=IngestFailure.STORE,
            )

        logger.info(f"Successfully inserted {len(created)} product(s)")
        message = f"Successfully added {len(created)} product(s) to the database"
        if duplicates:
            message += f" ({len(duplicates)} duplicate URL(s) were skipped)"
        return IngestReport(
            success=True,
            message=message,
            added=len(created),
            duplicates=duplicates,
            errors=errors,
            job_id=job_id,
        )

    def _upsert(
        self,
        products: list[ProductCreate],
        duplicates: list[str],
        errors: list[str],
        job_id: str,
    ) -> IngestReport:
        """Save products by URL, updating the ones already stored."""
        added = updated = 0
        try:
            for product in products:
                _, created = self.repository.upsert_by_url(product)
                if created:
                    added += 1
                else:
                    updated += 1
        except StoreError as e:
            logger.error(f"Database error while saving products: {e.message}")
            return IngestReport(
                success=False,
                message=e.message,
                added=added,
                updated=updated,
                duplicates=duplicates,
                errors=[e.message, *errors],
                job_id=job_id,
                failure=IngestFailure.STORE,
            )

        logger.info(f"Saved products: {added} added, {updated} updated")
        return IngestReport(
            success=True,
            message=f"Successfully added {added} and updated {updated} product(s)",
            added=added,
            updated=updated,
            duplicates=duplicates,
            errors=errors,
            job_id=job_id,
        )

    @staticmethod
    def _clean_urls(urls: Sequence[str]) -> list[str]:
        """Strip URLs and reject input with no usable URL."""
        if isinstance(urls, str) or not isinstance(urls, Sequence):
            raise ValidationError("URLs must be provided as a list")
        cleaned = []
        for url in urls:
            if not isinstance(url, str):
                raise ValidationError(f"Invalid URL: {url!r}")
            if url.strip():
                cleaned.append(url.strip())
        if not cleaned:
            raise ValidationError("No URLs provided")
        return cleaned
