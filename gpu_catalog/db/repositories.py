"""Repository classes for product store operations.

Write methods commit their own transaction: a bulk insert succeeds or fails
as a whole, and a price update touches exactly one row.
"""

from collections.abc import Generator, Iterable
from contextlib import contextmanager
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from gpu_catalog.core.enums import RefreshRunStatus, SortOrder
from gpu_catalog.core.errors import DuplicateError, StoreError
from gpu_catalog.core.schema import Product, ProductCreate, ProductFilter, RefreshRun
from gpu_catalog.db.models import PriceRefreshRunDB, ProductDB


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


# Columns exposed through distinct_values (filter dropdowns)
FACET_COLUMNS = ("brand", "memory_size_gb", "cooler_type", "family", "retailer")


class ProductRepository:
    """Repository for Product store operations."""

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _guard(self, action: str) -> Generator[None, None, None]:
        """Translate SQLAlchemy failures into store errors, rolling back the session."""
        try:
            yield
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateError(f"Database error while {action}: {e.orig}") from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"Database error while {action}: {e}") from e

    def get_existing_urls(self, urls: Iterable[str]) -> set[str]:
        """Return the subset of urls already stored."""
        url_list = list(urls)
        if not url_list:
            return set()
        with self._guard("checking for duplicates"):
            stmt = select(ProductDB.url).where(ProductDB.url.in_(url_list))
            return set(self.session.execute(stmt).scalars().all())

    def bulk_create(self, products: list[ProductCreate]) -> list[Product]:
        """Insert all products in one transaction."""
        now = _utc_now()
        db_items = [
            ProductDB(
                id=str(uuid4()),
                **product.model_dump(),
                created_at=now,
                updated_at=now,
            )
            for product in products
        ]
        with self._guard("inserting products"):
            self.session.add_all(db_items)
            self.session.commit()
        return [self._to_domain(item) for item in db_items]

    def upsert_by_url(self, product: ProductCreate) -> tuple[Product, bool]:
        """
        Insert a product, or update the stored one with the same URL.

        Returns:
            The stored product and True if it was created.
        """
        with self._guard("saving product"):
            stmt = select(ProductDB).where(ProductDB.url == product.url)
            db_item = self.session.execute(stmt).scalar_one_or_none()
            now = _utc_now()
            created = db_item is None
            if created:
                db_item = ProductDB(id=str(uuid4()), created_at=now)
                self.session.add(db_item)
            for key, value in product.model_dump().items():
                setattr(db_item, key, value)
            db_item.updated_at = now
            self.session.commit()
        return self._to_domain(db_item), created

    def update_price(self, product_id: UUID | str, price: Decimal, in_stock: bool) -> Product:
        """Update price and stock of one product, refreshing its timestamps."""
        with self._guard(f"updating product {product_id}"):
            db_item = self.session.get(ProductDB, str(product_id))
            if db_item is None:
                raise StoreError(f"Product with id {product_id} not found")
            now = _utc_now()
            db_item.price = price
            db_item.in_stock = in_stock
            db_item.fetched_at = now
            db_item.updated_at = now
            self.session.commit()
        return self._to_domain(db_item)

    def get_by_id(self, product_id: UUID | str) -> Product | None:
        """Get a product by ID."""
        with self._guard("loading product"):
            db_item = self.session.get(ProductDB, str(product_id))
        return self._to_domain(db_item) if db_item else None

    def get_by_url(self, url: str) -> Product | None:
        """Get a product by its page URL."""
        with self._guard("loading product"):
            stmt = select(ProductDB).where(ProductDB.url == url)
            db_item = self.session.execute(stmt).scalar_one_or_none()
        return self._to_domain(db_item) if db_item else None

    def list_with_urls(self, after_id: str | None = None) -> list[Product]:
        """List products that have a URL, ordered by id, optionally after a cursor."""
        stmt = select(ProductDB).where(ProductDB.url.is_not(None), ProductDB.url != "")
        if after_id is not None:
            stmt = stmt.where(ProductDB.id > after_id)
        stmt = stmt.order_by(ProductDB.id)
        with self._guard("loading products"):
            result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(p) for p in result]

    def count_with_urls(self) -> int:
        """Count products that have a URL."""
        stmt = (
            select(func.count())
            .select_from(ProductDB)
            .where(ProductDB.url.is_not(None), ProductDB.url != "")
        )
        with self._guard("counting products"):
            return self.session.execute(stmt).scalar() or 0

    def search(self, filters: ProductFilter) -> list[Product]:
        """List products matching the filters, sorted as requested."""
        stmt = select(ProductDB)

        if filters.search:
            pattern = f"%{filters.search}%"
            stmt = stmt.where(
                or_(
                    ProductDB.brand.ilike(pattern),
                    ProductDB.product_title.ilike(pattern),
                    ProductDB.family.ilike(pattern),
                )
            )

        if filters.brand:
            stmt = stmt.where(ProductDB.brand == filters.brand)
        if filters.memory_size_gb is not None:
            stmt = stmt.where(ProductDB.memory_size_gb == filters.memory_size_gb)
        if filters.cooler_type:
            stmt = stmt.where(ProductDB.cooler_type == filters.cooler_type)
        if filters.family:
            stmt = stmt.where(ProductDB.family == filters.family)
        if filters.is_oc is not None:
            stmt = stmt.where(ProductDB.is_oc == filters.is_oc)
        if filters.in_stock is not None:
            stmt = stmt.where(ProductDB.in_stock == filters.in_stock)
        if filters.retailer:
            stmt = stmt.where(ProductDB.retailer == filters.retailer)
        if filters.min_price is not None:
            stmt = stmt.where(ProductDB.price >= filters.min_price)
        if filters.max_price is not None:
            stmt = stmt.where(ProductDB.price <= filters.max_price)

        column = getattr(ProductDB, filters.sort_by)
        order = column.desc() if filters.sort_order == SortOrder.DESC else column.asc()
        stmt = stmt.order_by(order, ProductDB.id)

        with self._guard("searching products"):
            result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(p) for p in result]

    def distinct_values(self, column_name: str) -> list:
        """Distinct non-empty values of a filterable column, sorted."""
        if column_name not in FACET_COLUMNS:
            raise ValueError(f"Column '{column_name}' is not filterable")
        column = getattr(ProductDB, column_name)
        stmt = select(column).where(column.is_not(None)).distinct().order_by(column)
        with self._guard("loading filter values"):
            values = self.session.execute(stmt).scalars().all()
        return [v for v in values if v != ""]

    def count(self) -> int:
        """Get total count of products."""
        stmt = select(func.count()).select_from(ProductDB)
        with self._guard("counting products"):
            return self.session.execute(stmt).scalar() or 0

    def _to_domain(self, db_item: ProductDB) -> Product:
        """Convert DB model to domain model."""
        return Product(
            id=UUID(db_item.id),
            url=db_item.url,
            brand=db_item.brand,
            product_title=db_item.product_title,
            family=db_item.family,
            variant=db_item.variant,
            memory_size_gb=db_item.memory_size_gb,
            cooler_type=db_item.cooler_type,
            special_features=db_item.special_features,
            price=Decimal(db_item.price),
            in_stock=db_item.in_stock,
            is_oc=db_item.is_oc,
            retailer=db_item.retailer,
            fetched_at=db_item.fetched_at,
            created_at=db_item.created_at,
            updated_at=db_item.updated_at,
        )


class PriceRefreshRunRepository:
    """Repository for price refresh run checkpoints."""

    def __init__(self, session: Session):
        self.session = session

    def start(self, total: int, cursor: str | None = None) -> RefreshRun:
        """Record the start of a new run."""
        db_item = PriceRefreshRunDB(
            id=str(uuid4()),
            status=RefreshRunStatus.RUNNING.value,
            cursor=cursor,
            total=total,
            started_at=_utc_now(),
        )
        try:
            self.session.add(db_item)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"Database error while starting refresh run: {e}") from e
        return self._to_domain(db_item)

    def get_latest_unfinished(self) -> RefreshRun | None:
        """Get the most recently started run that is still in progress."""
        stmt = (
            select(PriceRefreshRunDB)
            .where(PriceRefreshRunDB.status == RefreshRunStatus.RUNNING.value)
            .order_by(PriceRefreshRunDB.started_at.desc())
            .limit(1)
        )
        try:
            db_item = self.session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreError(f"Database error while loading refresh run: {e}") from e
        return self._to_domain(db_item) if db_item else None

    def abandon_unfinished(self) -> int:
        """Mark every run still in progress as failed.

        Returns:
            Number of runs marked failed
        """
        stmt = (
            update(PriceRefreshRunDB)
            .where(PriceRefreshRunDB.status == RefreshRunStatus.RUNNING.value)
            .values(status=RefreshRunStatus.FAILED.value, completed_at=_utc_now())
        )
        try:
            result = self.session.execute(stmt)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"Database error while abandoning refresh runs: {e}") from e
        return result.rowcount

    def checkpoint(self, run: RefreshRun) -> None:
        """Persist the cursor and counters of a run in progress."""
        self._save(run)

    def finish(self, run: RefreshRun, status: RefreshRunStatus) -> RefreshRun:
        """Mark a run as finished."""
        run.status = status
        run.completed_at = _utc_now()
        self._save(run)
        return run

    def _save(self, run: RefreshRun) -> None:
        try:
            db_item = self.session.get(PriceRefreshRunDB, str(run.id))
            if db_item is None:
                raise StoreError(f"Refresh run with id {run.id} not found")
            db_item.status = run.status.value
            db_item.cursor = run.cursor
            db_item.total = run.total
            db_item.updated_count = run.updated_count
            db_item.unchanged_count = run.unchanged_count
            db_item.error_count = run.error_count
            db_item.completed_at = run.completed_at
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"Database error while saving refresh run: {e}") from e

    def _to_domain(self, db_item: PriceRefreshRunDB) -> RefreshRun:
        """Convert DB model to domain model."""
        return RefreshRun(
            id=UUID(db_item.id),
            status=RefreshRunStatus(db_item.status),
            cursor=db_item.cursor,
            total=db_item.total,
            updated_count=db_item.updated_count,
            unchanged_count=db_item.unchanged_count,
            error_count=db_item.error_count,
            started_at=db_item.started_at,
            completed_at=db_item.completed_at,
        )
