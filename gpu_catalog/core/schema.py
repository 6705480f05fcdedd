"""Pydantic v2 models for the GPU catalog.

These models define:
- ProductCreate, Product (the canonical product record)
- ProductFilter, CatalogFilters (catalog queries)
- ScrapedPrice (price refresh input)
- IngestReport, RefreshReport, RefreshRun (pipeline outcomes and checkpoints)
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Annotated, Any
from uuid import UUID

from pydantic import BaseModel, Field, PlainSerializer, field_validator

from gpu_catalog.core.enums import IngestFailure, RefreshRunStatus, SortOrder


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


# Prices are exact decimals internally and plain numbers on the wire.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

DEFAULT_FAMILY = "Base"
DEFAULT_SPECIAL_FEATURES = "None"

SORTABLE_COLUMNS = (
    "price",
    "brand",
    "product_title",
    "memory_size_gb",
    "family",
    "cooler_type",
    "retailer",
    "fetched_at",
    "created_at",
    "updated_at",
)


# ============================================================================
# Product
# ============================================================================


class ProductCreate(BaseModel):
    """A normalized product ready to be stored."""

    url: str
    brand: str
    product_title: str
    family: str = DEFAULT_FAMILY
    variant: str | None = None
    memory_size_gb: int | None = None
    cooler_type: str = ""
    special_features: str = DEFAULT_SPECIAL_FEATURES
    price: Money
    in_stock: bool = False
    is_oc: bool = False
    retailer: str
    fetched_at: datetime = Field(default_factory=_utc_now)

    @field_validator("url", "brand", "product_title")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("value cannot be empty")
        return v.strip()

    @field_validator("price")
    @classmethod
    def price_not_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("price cannot be negative")
        return v.quantize(Decimal("0.01"))


class Product(ProductCreate):
    """A stored product."""

    id: UUID
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Catalog queries
# ============================================================================


class ProductFilter(BaseModel):
    """Filter and sort options for listing products."""

    search: str = ""
    brand: str | None = None
    memory_size_gb: int | None = None
    cooler_type: str | None = None
    family: str | None = None
    is_oc: bool | None = None
    in_stock: bool | None = None
    retailer: str | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    sort_by: str = "price"
    sort_order: SortOrder = SortOrder.ASC

    @field_validator("sort_by")
    @classmethod
    def sortable(cls, v: str) -> str:
        if v not in SORTABLE_COLUMNS:
            raise ValueError(f"cannot sort by '{v}'")
        return v


class CatalogFilters(BaseModel):
    """Distinct values available for each equality filter."""

    brands: list[str] = Field(default_factory=list)
    memory_sizes: list[int] = Field(default_factory=list)
    cooler_types: list[str] = Field(default_factory=list)
    families: list[str] = Field(default_factory=list)
    retailers: list[str] = Field(default_factory=list)


# ============================================================================
# Pipeline outcomes
# ============================================================================


class ScrapedPrice(BaseModel):
    """Current price and stock scraped from a product page."""

    price: Money | None = None
    in_stock: bool | None = None


class IngestReport(BaseModel):
    """Outcome of one ingest call."""

    success: bool
    message: str
    added: int = 0
    updated: int = 0
    duplicates: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    job_id: str | None = None
    failure: IngestFailure | None = None

    def to_response(self) -> dict[str, Any]:
        """Render the JSON body returned by the ingestion endpoint."""
        body: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "productsAdded": self.added,
        }
        if self.updated:
            body["productsUpdated"] = self.updated
        if self.duplicates:
            body["duplicateCount"] = len(self.duplicates)
            body["duplicateUrls"] = list(self.duplicates)
        if self.errors:
            body["errors"] = list(self.errors)
        return body


class RefreshRun(BaseModel):
    """A persisted price refresh run and its checkpoint."""

    id: UUID
    status: RefreshRunStatus = RefreshRunStatus.RUNNING
    cursor: str | None = None
    total: int = 0
    updated_count: int = 0
    unchanged_count: int = 0
    error_count: int = 0
    started_at: datetime = Field(default_factory=_utc_now)
    completed_at: datetime | None = None


class RefreshError(BaseModel):
    """A single product that could not be refreshed."""

    product_id: str | None = None
    url: str | None = None
    error: str


class RefreshReport(BaseModel):
    """Outcome of one price refresh run."""

    success: bool = True
    message: str = ""
    updated: int = 0
    unchanged: int = 0
    total: int = 0
    errors: list[RefreshError] = Field(default_factory=list)
    run_id: str | None = None

    def to_response(self) -> dict[str, Any]:
        """Render the JSON body returned by the price refresh endpoint."""
        body: dict[str, Any] = {
            "success": self.success,
            "updated": self.updated,
            "total": self.total,
            "message": self.message,
        }
        if self.errors:
            body["errors"] = [e.model_dump(exclude_none=True) for e in self.errors]
        return body
