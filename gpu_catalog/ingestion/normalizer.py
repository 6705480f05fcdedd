"""
Field Normalizer Module
=======================

Maps raw values returned by the extraction service (free-text cooler
descriptions, brand strings, hostnames, prices) to the canonical values
stored in the product table.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.parse import urlparse

from pydantic import ValidationError as PydanticValidationError

from gpu_catalog.core.enums import CoolerType
from gpu_catalog.core.errors import MappingError
from gpu_catalog.core.schema import DEFAULT_FAMILY, DEFAULT_SPECIAL_FEATURES, ProductCreate
from gpu_catalog.ingestion.config import DEFAULT_FAMILIES

UNKNOWN_RETAILER = "unknown"


class Normalizer:
    """
    Normalizes extracted GPU data into canonical forms.

    Handles:
    - Cooler type from words or fan counts (e.g., "tripple" -> "Triple")
    - Retailer from the product URL hostname
    - Family against the vocabulary sent with the extraction prompt
    - Prices, memory sizes and stock flags in their various spellings
    """

    # Cooler aliases: lowercased raw value -> canonical value
    COOLER_ALIASES: dict[str, str] = {
        "dual": CoolerType.DUAL.value,
        "2": CoolerType.DUAL.value,
        "triple": CoolerType.TRIPLE.value,
        "tripple": CoolerType.TRIPLE.value,
        "3": CoolerType.TRIPLE.value,
    }

    # Values the extractor uses when it could not resolve a field
    EMPTY_MARKERS = frozenset({"", "none", "null", "n/a", "na", "unknown"})

    TRUE_VALUES = frozenset({"true", "yes", "y", "1", "in stock", "instock", "available"})
    FALSE_VALUES = frozenset(
        {"false", "no", "n", "0", "out of stock", "outofstock", "sold out", "unavailable"}
    )

    NUMBER_PATTERN = re.compile(r"\d+(?:\.\d+)?")

    def __init__(self, families: list[str] | None = None) -> None:
        self.families = list(families) if families else list(DEFAULT_FAMILIES)
        self._family_lookup = {f.lower(): f for f in self.families}

    # ------------------------------------------------------------------
    # Canonical fields
    # ------------------------------------------------------------------

    @classmethod
    def normalize_cooler_type(cls, raw: Any) -> str:
        """
        Normalize a cooler description to its canonical form.

        Args:
            raw: Cooler text or fan count (e.g., "DUAL", "tripple", 3)

        Returns:
            "Dual" or "Triple" when recognized, the raw value unchanged
            otherwise, and "" for empty input
        """
        if raw is None or isinstance(raw, bool):
            return ""

        if isinstance(raw, (int, float)):
            if float(raw).is_integer():
                raw = str(int(raw))
            else:
                raw = str(raw)

        text = str(raw)
        key = text.strip().lower()
        if not key:
            return ""
        return cls.COOLER_ALIASES.get(key, text)

    @staticmethod
    def derive_retailer(url: str | None) -> str:
        """
        Derive the retailer name from a product URL.

        Args:
            url: Product page URL

        Returns:
            Hostname without a leading "www.", or "unknown"
        """
        if not url:
            return UNKNOWN_RETAILER
        try:
            hostname = urlparse(str(url).strip()).hostname
        except ValueError:
            return UNKNOWN_RETAILER
        if not hostname:
            return UNKNOWN_RETAILER
        return hostname[4:] if hostname.startswith("www.") else hostname

    def normalize_family(self, raw: Any) -> str:
        """
        Normalize a product family.

        The vocabulary is enforced by the extraction prompt; values are
        trusted, only their spelling is aligned with the vocabulary.
        """
        cleaned = self._clean_string(raw)
        if cleaned is None or cleaned.lower() in self.EMPTY_MARKERS:
            return DEFAULT_FAMILY
        return self._family_lookup.get(cleaned.lower(), cleaned)

    def normalize_special_features(self, raw: Any) -> str:
        """Normalize special features to free text, "None" when absent."""
        if isinstance(raw, (list, tuple)):
            parts = [self._clean_string(p) for p in raw]
            raw = ", ".join(p for p in parts if p)
        cleaned = self._clean_string(raw)
        if cleaned is None or cleaned.lower() in self.EMPTY_MARKERS:
            return DEFAULT_SPECIAL_FEATURES
        return cleaned

    # ------------------------------------------------------------------
    # Value parsing
    # ------------------------------------------------------------------

    def parse_price(self, value: Any) -> Decimal | None:
        """
        Parse a USD price from various formats.

        Args:
            value: Price value (e.g., 499.99, "499.99", "$1,299.00")

        Returns:
            Price rounded to cents, or None if parsing fails
        """
        if value is None or isinstance(value, bool):
            return None

        if isinstance(value, (int, float, Decimal)):
            try:
                price = Decimal(str(value))
            except InvalidOperation:
                return None
        else:
            match = self.NUMBER_PATTERN.search(str(value).replace(",", ""))
            if not match:
                return None
            price = Decimal(match.group())

        if not price.is_finite() or price < 0:
            return None
        return price.quantize(Decimal("0.01"))

    def parse_memory_size(self, value: Any) -> int | None:
        """
        Parse a memory size in GB.

        Args:
            value: Memory value (e.g., 12, 12.0, "12GB", "12 GB GDDR6X")

        Returns:
            Size in GB, or None if parsing fails
        """
        if value is None or isinstance(value, bool):
            return None

        if isinstance(value, (int, float)):
            if not math.isfinite(value):
                return None
            size = int(value)
        else:
            match = self.NUMBER_PATTERN.search(str(value))
            if not match:
                return None
            size = int(float(match.group()))

        return size if size > 0 else None

    def parse_bool(self, value: Any) -> bool | None:
        """
        Parse a boolean flag such as stock status.

        Returns:
            True or False when recognized, None otherwise
        """
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        if isinstance(value, str):
            key = re.sub(r"\s+", " ", value.strip().lower())
            if key in self.TRUE_VALUES:
                return True
            if key in self.FALSE_VALUES:
                return False
        return None

    # ------------------------------------------------------------------
    # Record mapping
    # ------------------------------------------------------------------

    def to_product(self, record: Any, url: str) -> ProductCreate:
        """
        Map one extracted record to a storable product.

        Keys of the older extraction shape (model_name, price_usd,
        stock_status) are read when the current ones are missing.

        Args:
            record: One item of the extraction job result
            url: The product page the record was extracted from

        Returns:
            ProductCreate with canonical values

        Raises:
            MappingError: If the record is malformed or lacks required fields
        """
        if not isinstance(record, Mapping):
            raise MappingError(f"{url}: invalid data format received from extraction service")

        brand = self._clean_string(record.get("brand"))
        title = self._clean_string(record.get("product_title") or record.get("model_name"))
        price = self.parse_price(record.get("price", record.get("price_usd")))

        missing = [
            name
            for name, value in (("brand", brand), ("product_title", title), ("price", price))
            if value is None
        ]
        if missing:
            raise MappingError(f"{url}: missing required field(s): {', '.join(missing)}")

        in_stock = self.parse_bool(record.get("in_stock", record.get("stock_status")))

        try:
            return ProductCreate(
                url=url,
                brand=brand,
                product_title=title,
                family=self.normalize_family(record.get("family")),
                variant=self._clean_string(record.get("variant")),
                memory_size_gb=self.parse_memory_size(record.get("memory_size_gb")),
                cooler_type=self.normalize_cooler_type(record.get("cooler_type")),
                special_features=self.normalize_special_features(record.get("special_features")),
                price=price,
                in_stock=bool(in_stock),
                is_oc=bool(self.parse_bool(record.get("is_oc"))),
                retailer=self.derive_retailer(url),
            )
        except PydanticValidationError as e:
            raise MappingError(f"{url}: {e}") from e

    def _clean_string(self, value: Any) -> str | None:
        """Clean and normalize a string value."""
        if value is None:
            return None
        s = str(value).strip()
        # Normalize whitespace
        s = re.sub(r"\s+", " ", s)
        return s if s else None
