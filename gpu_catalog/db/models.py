"""SQLAlchemy ORM models for the GPU catalog database."""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def _generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ProductDB(Base):
    """
    Database model for GPU product listings.

    One row per retailer product page; the page URL is the natural key.
    """

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    url: Mapped[str] = mapped_column(String(2048), nullable=False, unique=True, index=True)

    # Descriptive
    brand: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    product_title: Mapped[str] = mapped_column(Text, nullable=False)
    family: Mapped[str] = mapped_column(String(100), default="Base", index=True)
    variant: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Technical
    memory_size_gb: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    cooler_type: Mapped[str] = mapped_column(String(50), default="", index=True)
    special_features: Mapped[str] = mapped_column(Text, default="None")

    # Commercial
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, index=True)
    in_stock: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    is_oc: Mapped[bool] = mapped_column(Boolean, default=False)
    retailer: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Timestamps
    fetched_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)

    def __repr__(self) -> str:
        return f"<ProductDB(id={self.id}, brand='{self.brand}', url='{self.url}')>"


class PriceRefreshRunDB(Base):
    """
    Database model for price refresh runs.

    The cursor holds the id of the last product processed, so an
    interrupted run can continue where it stopped.
    """

    __tablename__ = "price_refresh_runs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    status: Mapped[str] = mapped_column(String(20), default="running", index=True)
    cursor: Mapped[str | None] = mapped_column(String(36), nullable=True)
    total: Mapped[int] = mapped_column(Integer, default=0)
    updated_count: Mapped[int] = mapped_column(Integer, default=0)
    unchanged_count: Mapped[int] = mapped_column(Integer, default=0)
    error_count: Mapped[int] = mapped_column(Integer, default=0)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<PriceRefreshRunDB(id={self.id}, status='{self.status}', cursor={self.cursor})>"
