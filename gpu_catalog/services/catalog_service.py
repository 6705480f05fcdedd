"""Catalog service for browsing stored GPU products.

This service provides business logic for:
- Filtering and sorting the product list
- Looking up a single product
- Listing the values available for each filter
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from gpu_catalog.core.schema import CatalogFilters, Product, ProductFilter
from gpu_catalog.db.repositories import ProductRepository

logger = logging.getLogger(__name__)


class CatalogService:
    """Service for reading the GPU product catalog."""

    def __init__(self, session: Session):
        """
        Initialize the catalog service.

        Args:
            session: SQLAlchemy session
        """
        self.session = session
        self.repository = ProductRepository(session)

    def search(self, filters: ProductFilter | None = None) -> list[Product]:
        """List products matching the filters."""
        filters = filters or ProductFilter()
        products = self.repository.search(filters)
        logger.debug(f"Catalog search returned {len(products)} product(s)")
        return products

    def get_product(self, product_id: UUID | str) -> Product | None:
        """Get a product by ID; malformed IDs are treated as not found."""
        try:
            canonical_id = UUID(str(product_id))
        except ValueError:
            return None
        return self.repository.get_by_id(canonical_id)

    def get_filters(self) -> CatalogFilters:
        """Get the distinct values available for each filter."""
        return CatalogFilters(
            brands=self.repository.distinct_values("brand"),
            memory_sizes=self.repository.distinct_values("memory_size_gb"),
            cooler_types=self.repository.distinct_values("cooler_type"),
            families=self.repository.distinct_values("family"),
            retailers=self.repository.distinct_values("retailer"),
        )

    def count(self) -> int:
        """Total number of stored products."""
        return self.repository.count()


def get_catalog_service(session: Session) -> CatalogService:
    """Get a catalog service instance."""
    return CatalogService(session=session)
