"""
GPU Catalog Ingestion Framework
===============================

This package turns retailer product page URLs into stored GPU products and
keeps their prices current.

Pipeline Stages:
1. Deduplicate - Skip URLs that are already stored
2. Extract - Submit a batch job to the extraction service and poll it
3. Normalize - Map extracted records onto the canonical product schema
4. Persist - Bulk insert the new products
5. Refresh - Re-scrape stored products and update changed prices
"""

from gpu_catalog.ingestion.config import (
    ExtractionConfig,
    get_extraction_config,
)
from gpu_catalog.ingestion.dedup import (
    DedupResult,
    partition,
)
from gpu_catalog.ingestion.extraction import (
    ExtractionClient,
    JobStatus as ExtractionJobStatus,
    pair_with_urls,
)
from gpu_catalog.ingestion.jobs import (
    JobResult,
    JobStatus,
    enqueue_ingestion,
    enqueue_price_refresh,
    get_job_status,
    ingest_urls,
    refresh_prices,
)
from gpu_catalog.ingestion.normalizer import Normalizer
from gpu_catalog.ingestion.orchestrator import IngestionOrchestrator
from gpu_catalog.ingestion.price_refresh import PriceRefresher
from gpu_catalog.ingestion.prompts import (
    ExtractionRequest,
    build_extraction_request,
)

__all__ = [
    # Config
    "ExtractionConfig",
    "get_extraction_config",
    # Dedup
    "DedupResult",
    "partition",
    # Extraction
    "ExtractionClient",
    "ExtractionJobStatus",
    "ExtractionRequest",
    "build_extraction_request",
    "pair_with_urls",
    # Normalizer
    "Normalizer",
    # Pipelines
    "IngestionOrchestrator",
    "PriceRefresher",
    # Jobs
    "ingest_urls",
    "refresh_prices",
    "enqueue_ingestion",
    "enqueue_price_refresh",
    "get_job_status",
    "JobResult",
    "JobStatus",
]
