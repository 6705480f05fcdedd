"""
Price Refresh Module
====================

Re-scrapes every stored product, one page at a time, and writes the new
price and stock status only when they changed. Progress is checkpointed
after each product so an interrupted run can be resumed.
"""

from __future__ import annotations

import logging

from gpu_catalog.core.enums import RefreshRunStatus
from gpu_catalog.core.errors import CatalogError, ExtractionError, StoreError
from gpu_catalog.core.schema import Product, RefreshError, RefreshReport, RefreshRun, ScrapedPrice
from gpu_catalog.db.repositories import PriceRefreshRunRepository, ProductRepository
from gpu_catalog.ingestion.extraction import ExtractionClient
from gpu_catalog.ingestion.normalizer import Normalizer

logger = logging.getLogger(__name__)


class PriceRefresher:
    """Refreshes price and stock status of stored products."""

    def __init__(
        self,
        repository: ProductRepository,
        client: ExtractionClient,
        runs: PriceRefreshRunRepository | None = None,
        normalizer: Normalizer | None = None,
    ) -> None:
        self.repository = repository
        self.client = client
        self.runs = runs
        self.normalizer = normalizer or Normalizer()

    async def refresh_all(self, resume: bool = False) -> RefreshReport:
        """
        Refresh every product that has a URL.

        Args:
            resume: Continue after the checkpoint of the latest unfinished
                run instead of starting from the first product

        Returns:
            RefreshReport with updated, unchanged and error counts
        """
        run: RefreshRun | None = None
        cursor: str | None = None
        try:
            if resume and self.runs is not None:
                run = self.runs.get_latest_unfinished()
                if run is not None:
                    cursor = run.cursor
                    logger.info(f"Resuming price refresh run {run.id} after product {cursor}")

            products = self.repository.list_with_urls(after_id=cursor)
            if run is not None and not products:
                # Interrupted after its last product; close it and scan everything
                logger.info(f"Refresh run {run.id} has nothing left to process, starting a full run")
                self.runs.finish(run, RefreshRunStatus.COMPLETED)
                run = None
                products = self.repository.list_with_urls()
            if run is None and self.runs is not None:
                abandoned = self.runs.abandon_unfinished()
                if abandoned:
                    logger.warning(f"Marked {abandoned} interrupted refresh run(s) as failed")
                run = self.runs.start(total=len(products))
        except StoreError as e:
            logger.error(f"Error fetching products: {e.message}")
            return RefreshReport(success=False, message=e.message)

        report = RefreshReport(total=len(products), run_id=str(run.id) if run else None)
        logger.info(f"Found {len(products)} product(s) to update")

        for product in products:
            outcome = "error"
            try:
                if await self.refresh_one(product):
                    report.updated += 1
                    outcome = "updated"
                else:
                    report.unchanged += 1
                    outcome = "unchanged"
            except CatalogError as e:
                logger.warning(f"Failed to refresh {product.url}: {e.message}")
                report.errors.append(
                    RefreshError(product_id=str(product.id), url=product.url, error=e.message)
                )
            except Exception as e:
                logger.exception(f"Error processing product {product.id}")
                report.errors.append(
                    RefreshError(product_id=str(product.id), url=product.url, error=str(e))
                )

            if run is not None:
                self._checkpoint(run, product, outcome)

        if run is not None:
            try:
                self.runs.finish(run, RefreshRunStatus.COMPLETED)
            except StoreError as e:
                logger.warning(f"Could not mark refresh run {run.id} completed: {e.message}")

        if report.total == 0:
            report.message = "No products to update"
        else:
            report.message = f"Updated {report.updated} of {report.total} products"
        logger.info(
            f"Price refresh completed: {report.updated} updated, {report.unchanged} unchanged, "
            f"{len(report.errors)} errors"
        )
        return report

    async def refresh_one(self, product: Product) -> bool:
        """
        Scrape one product and store its price and stock if they changed.

        Returns:
            True if the product was updated

        Raises:
            ExtractionError: If the page could not be scraped or had no price
            StoreError: If the update failed
        """
        data = await self.client.scrape(product.url)
        scraped = ScrapedPrice(
            price=self.normalizer.parse_price(data.get("price", data.get("price_usd"))),
            in_stock=self.normalizer.parse_bool(data.get("in_stock", data.get("stock_status"))),
        )
        if scraped.price is None:
            raise ExtractionError(f"No price returned for {product.url}")

        in_stock = product.in_stock if scraped.in_stock is None else scraped.in_stock
        price_changed = scraped.price != product.price
        stock_changed = in_stock != product.in_stock

        if not price_changed and not stock_changed:
            logger.info(f"No changes for {product.url} (price: ${scraped.price}, in stock: {in_stock})")
            return False

        self.repository.update_price(product.id, scraped.price, in_stock)

        changes = []
        if price_changed:
            changes.append(f"price: ${product.price} -> ${scraped.price}")
        if stock_changed:
            changes.append(f"in stock: {product.in_stock} -> {in_stock}")
        logger.info(f"Updated {product.url}: {', '.join(changes)}")
        return True

    def _checkpoint(self, run: RefreshRun, product: Product, outcome: str) -> None:
        run.cursor = str(product.id)
        if outcome == "updated":
            run.updated_count += 1
        elif outcome == "unchanged":
            run.unchanged_count += 1
        else:
            run.error_count += 1
        try:
            self.runs.checkpoint(run)
        except StoreError as e:
            logger.warning(f"Could not checkpoint refresh run {run.id}: {e.message}")
