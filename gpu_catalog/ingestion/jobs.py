"""
Background Jobs Module
======================

Defines arq tasks for running ingestion and price refreshes outside the
request cycle. Uses Redis as the job queue backend; the price refresh is
also scheduled daily through an arq cron job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from arq import create_pool, cron
from arq.connections import RedisSettings

from gpu_catalog.core.errors import ValidationError
from gpu_catalog.core.settings import Settings, get_settings
from gpu_catalog.db.engine import get_session
from gpu_catalog.db.repositories import PriceRefreshRunRepository, ProductRepository
from gpu_catalog.ingestion.extraction import ExtractionClient
from gpu_catalog.ingestion.orchestrator import IngestionOrchestrator
from gpu_catalog.ingestion.price_refresh import PriceRefresher

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Status of a background job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class JobResult:
    """Result of a background ingestion or price refresh job."""

    job_id: str
    task: str
    status: JobStatus
    started_at: datetime | None = None
    completed_at: datetime | None = None
    report: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    duration_seconds: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "job_id": self.job_id,
            "task": self.task,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "report": self.report,
            "errors": self.errors,
            "duration_seconds": self.duration_seconds,
        }


def get_redis_settings(settings: Settings | None = None) -> RedisSettings:
    """Get Redis connection settings."""
    settings = settings or get_settings()
    return RedisSettings(
        host=settings.redis_host,
        port=settings.redis_port,
        database=settings.redis_db,
    )


def _finish(result: JobResult) -> dict[str, Any]:
    result.completed_at = datetime.now(UTC)
    if result.started_at:
        result.duration_seconds = (result.completed_at - result.started_at).total_seconds()
    return result.to_dict()


async def ingest_urls(
    ctx: dict[str, Any],
    urls: list[str],
    update_existing: bool = False,
) -> dict[str, Any]:
    """
    Ingest a batch of product URLs.

    Args:
        ctx: arq context
        urls: Product page URLs
        update_existing: Update products whose URL is already stored

    Returns:
        JobResult as dictionary
    """
    settings = get_settings()
    result = JobResult(
        job_id=ctx.get("job_id", str(uuid4())),
        task="ingest_urls",
        status=JobStatus.RUNNING,
        started_at=datetime.now(UTC),
    )

    try:
        async with ExtractionClient.from_settings(settings) as client:
            with get_session() as session:
                orchestrator = IngestionOrchestrator(
                    ProductRepository(session),
                    client,
                    poll_interval=settings.poll_interval,
                    poll_timeout=settings.poll_timeout,
                )
                report = await orchestrator.ingest(urls, update_existing=update_existing)

        result.report = report.to_response()
        result.errors = list(report.errors)
        result.status = JobStatus.COMPLETED if report.success else JobStatus.FAILED
        if not report.success:
            result.errors.insert(0, report.message)
    except ValidationError as e:
        result.status = JobStatus.FAILED
        result.errors.append(e.message)
    except Exception as e:
        logger.exception(f"Ingestion job failed: {e}")
        result.status = JobStatus.FAILED
        result.errors.append(str(e))

    return _finish(result)


async def refresh_prices(ctx: dict[str, Any], resume: bool = False) -> dict[str, Any]:
    """
    Refresh the price and stock status of every stored product.

    Args:
        ctx: arq context
        resume: Continue the latest unfinished run from its checkpoint

    Returns:
        JobResult as dictionary
    """
    settings = get_settings()
    result = JobResult(
        job_id=ctx.get("job_id", str(uuid4())),
        task="refresh_prices",
        status=JobStatus.RUNNING,
        started_at=datetime.now(UTC),
    )

    try:
        async with ExtractionClient.from_settings(settings) as client:
            with get_session() as session:
                refresher = PriceRefresher(
                    ProductRepository(session),
                    client,
                    runs=PriceRefreshRunRepository(session),
                )
                report = await refresher.refresh_all(resume=resume)

        result.report = report.to_response()
        result.errors = [f"{e.url or e.product_id}: {e.error}" for e in report.errors]
        result.status = JobStatus.COMPLETED if report.success else JobStatus.FAILED
    except Exception as e:
        logger.exception(f"Price refresh job failed: {e}")
        result.status = JobStatus.FAILED
        result.errors.append(str(e))

    return _finish(result)


async def scheduled_price_refresh(ctx: dict[str, Any]) -> dict[str, Any]:
    """Daily cron entry point; resumes an interrupted run if there is one."""
    return await refresh_prices(ctx, resume=True)


async def enqueue_ingestion(urls: list[str], update_existing: bool = False) -> str:
    """
    Enqueue an ingestion job for async processing.

    Returns:
        Job ID
    """
    redis = await create_pool(get_redis_settings())
    job = await redis.enqueue_job("ingest_urls", urls, update_existing)
    await redis.close()
    return job.job_id


async def enqueue_price_refresh(resume: bool = False) -> str:
    """
    Enqueue a price refresh job for async processing.

    Returns:
        Job ID
    """
    redis = await create_pool(get_redis_settings())
    job = await redis.enqueue_job("refresh_prices", resume)
    await redis.close()
    return job.job_id


async def get_job_status(job_id: str) -> dict[str, Any] | None:
    """
    Get the status of a background job.

    Args:
        job_id: Job ID to look up

    Returns:
        Job info dict, or None if not found
    """
    redis = await create_pool(get_redis_settings())
    job = await redis.job(job_id)

    if job is None:
        await redis.close()
        return None

    info = await job.info()
    status = await job.status()
    result = info.result if info and hasattr(info, "result") else None
    await redis.close()

    return {
        "job_id": job_id,
        "function": info.function if info else None,
        "status": status.value if hasattr(status, "value") else str(status),
        "result": result,
    }


class WorkerSettings:
    """arq worker settings."""

    functions = [ingest_urls, refresh_prices]
    cron_jobs = [
        cron(scheduled_price_refresh, hour=get_settings().price_refresh_hour, minute=0),
    ]
    redis_settings = get_redis_settings()
    max_jobs = 2
    job_timeout = 3600  # 1 hour
    keep_result = 86400  # 24 hours
