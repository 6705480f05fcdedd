"""Public product catalog routes."""

import logging
import re
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from gpu_catalog.core.enums import SortOrder
from gpu_catalog.core.errors import StoreError
from gpu_catalog.core.schema import ProductFilter
from gpu_catalog.web.dependencies import CatalogDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _sort_column(value: str) -> str:
    """Accept both ``productTitle`` and ``product_title``."""
    return _CAMEL_BOUNDARY.sub("_", value.strip()).lower()


@router.get("")
async def list_products(
    catalog: CatalogDep,
    search: str = "",
    brand: str | None = None,
    memory: int | None = None,
    cooler_type: Annotated[str | None, Query(alias="coolerType")] = None,
    family: str | None = None,
    is_oc: Annotated[bool | None, Query(alias="isOc")] = None,
    in_stock: Annotated[bool | None, Query(alias="inStock")] = None,
    retailer: str | None = None,
    min_price: Annotated[Decimal | None, Query(alias="minPrice")] = None,
    max_price: Annotated[Decimal | None, Query(alias="maxPrice")] = None,
    sort_by: Annotated[str, Query(alias="sortBy")] = "price",
    sort_order: Annotated[SortOrder, Query(alias="sortOrder")] = SortOrder.ASC,
) -> JSONResponse:
    """
    List products.

    Equality filters, a substring search across brand, title and family,
    a price range and a whitelisted sort column.
    """
    try:
        filters = ProductFilter(
            search=search.strip(),
            brand=brand or None,
            memory_size_gb=memory,
            cooler_type=cooler_type or None,
            family=family or None,
            is_oc=is_oc,
            in_stock=in_stock,
            retailer=retailer or None,
            min_price=min_price,
            max_price=max_price,
            sort_by=_sort_column(sort_by),
            sort_order=sort_order,
        )
    except PydanticValidationError:
        raise HTTPException(status_code=400, detail=f"Cannot sort by '{sort_by}'")

    try:
        products = catalog.search(filters)
    except StoreError as e:
        logger.error(f"Error fetching products: {e.message}")
        raise HTTPException(status_code=500, detail="Failed to fetch products")

    return JSONResponse({"products": [p.model_dump(mode="json") for p in products]})


@router.get("/filters")
async def list_filters(catalog: CatalogDep) -> JSONResponse:
    """Distinct values available for each filter."""
    try:
        filters = catalog.get_filters()
    except StoreError as e:
        logger.error(f"Error fetching filter values: {e.message}")
        raise HTTPException(status_code=500, detail="Failed to fetch filters")

    return JSONResponse({"filters": filters.model_dump(mode="json")})


@router.get("/{product_id}")
async def get_product(product_id: str, catalog: CatalogDep) -> JSONResponse:
    """Get a product by ID."""
    try:
        product = catalog.get_product(product_id)
    except StoreError as e:
        logger.error(f"Error fetching product {product_id}: {e.message}")
        raise HTTPException(status_code=500, detail="Failed to fetch product")

    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")

    return JSONResponse({"product": product.model_dump(mode="json")})
