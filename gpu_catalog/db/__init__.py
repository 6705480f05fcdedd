"""Database initialization and persistence layer."""

from gpu_catalog.db.engine import (
    create_db_engine,
    get_database_url,
    get_engine,
    get_session,
    get_session_factory,
    init_db,
    reset_engine,
)
from gpu_catalog.db.models import (
    Base,
    PriceRefreshRunDB,
    ProductDB,
)
from gpu_catalog.db.repositories import (
    PriceRefreshRunRepository,
    ProductRepository,
)

__all__ = [
    # Engine
    "create_db_engine",
    "get_database_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
    "reset_engine",
    # Models
    "Base",
    "ProductDB",
    "PriceRefreshRunDB",
    # Repositories
    "ProductRepository",
    "PriceRefreshRunRepository",
]
