"""Prompt templates and JSON schemas for the extraction service."""

from dataclasses import dataclass, field
from typing import Any

from gpu_catalog.ingestion.config import ExtractionConfig

PROMPT_VERSION = "2.0"

# JSON Schema for one extracted GPU product
PRODUCT_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "brand": {"type": "string", "description": "GPU brand (e.g., NVIDIA, GIGABYTE, MSI, ASUS)"},
        "is_oc": {"type": "boolean", "description": "Whether the card is overclocked"},
        "price": {"type": "number", "description": "Price in USD"},
        "family": {"type": "string", "description": "GPU family/model line"},
        "in_stock": {"type": "boolean", "description": "Whether the product is in stock"},
        "cooler_type": {
            "type": "string",
            "enum": ["Dual", "Triple"],
            "description": "Number of fans: dual or triple",
        },
        "product_title": {"type": "string", "description": "Full product title/name"},
        "memory_size_gb": {"type": "number", "description": "GPU memory in GB"},
        "special_features": {"type": "string", "description": "Special cooling or technology features"},
    },
    "required": ["brand", "price", "product_title", "memory_size_gb", "cooler_type"],
}

# JSON Schema for the price refresh scrape
PRICE_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "price": {"type": "number", "description": "Product price in USD"},
        "in_stock": {"type": "boolean", "description": "Whether the product is currently in stock"},
    },
    "required": ["price", "in_stock"],
}

EXTRACTION_PROMPT_TEMPLATE = (
    'cooler_type is the number of fans ("dual" or "tripple"). '
    "family options include: {families}. "
    'If no family is found, use "Base" as the family. '
    "special_features include: {special_features}. "
    "If no special features found, use None"
)

PRICE_PROMPT = (
    "Extract the product price in USD as a number. Also extract if the product "
    'is in stock (boolean). Return an object with "price" (number) and '
    '"in_stock" (boolean) properties.'
)


@dataclass
class ExtractionRequest:
    """Everything sent with an extraction job besides the URLs."""

    prompt: str
    schema: dict[str, Any] = field(default_factory=lambda: dict(PRODUCT_JSON_SCHEMA))
    scrape_options: dict[str, Any] = field(default_factory=dict)
    enable_web_search: bool = False
    ignore_invalid_urls: bool = True

    def to_payload(self, urls: list[str]) -> dict[str, Any]:
        """Build the JSON body of the submit call."""
        return {
            "urls": urls,
            "prompt": self.prompt,
            "schema": self.schema,
            "enableWebSearch": self.enable_web_search,
            "scrapeOptions": self.scrape_options,
            "ignoreInvalidURLs": self.ignore_invalid_urls,
        }


def build_extraction_prompt(config: ExtractionConfig) -> str:
    """
    Build the extraction prompt from the configured vocabularies.

    Args:
        config: Extraction configuration with the family and feature lists.

    Returns:
        The formatted prompt string.
    """
    return EXTRACTION_PROMPT_TEMPLATE.format(
        families=", ".join(config.families),
        special_features=", ".join(config.special_features),
    )


def build_extraction_request(config: ExtractionConfig) -> ExtractionRequest:
    """Build the extraction job request for a configuration."""
    return ExtractionRequest(
        prompt=build_extraction_prompt(config),
        scrape_options=dict(config.scrape_options),
        enable_web_search=config.enable_web_search,
        ignore_invalid_urls=config.ignore_invalid_urls,
    )


def build_price_scrape_payload(url: str) -> dict[str, Any]:
    """Build the JSON body of a single-page price scrape."""
    return {
        "url": url,
        "formats": [
            {
                "type": "json",
                "prompt": PRICE_PROMPT,
                "schema": PRICE_JSON_SCHEMA,
            }
        ],
    }
