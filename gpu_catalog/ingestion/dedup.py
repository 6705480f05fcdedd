"""Duplicate filtering of candidate product URLs against the store."""

from __future__ import annotations

from collections.abc import Collection, Iterable
from dataclasses import dataclass, field


@dataclass
class DedupResult:
    """Candidate URLs split into new and already present."""

    new_urls: list[str] = field(default_factory=list)
    duplicate_urls: list[str] = field(default_factory=list)

    @property
    def has_new(self) -> bool:
        return bool(self.new_urls)


def partition(candidate_urls: Iterable[str], existing_urls: Collection[str]) -> DedupResult:
    """
    Split candidate URLs into new and duplicate ones.

    A URL is a duplicate when it is already stored or appeared earlier in
    the candidates. Both lists keep the candidates' order.

    Args:
        candidate_urls: URLs submitted for ingestion
        existing_urls: URLs already present in the store

    Returns:
        DedupResult with new_urls and duplicate_urls
    """
    result = DedupResult()
    seen: set[str] = set()
    for url in candidate_urls:
        if url in existing_urls or url in seen:
            result.duplicate_urls.append(url)
        else:
            result.new_urls.append(url)
        seen.add(url)
    return result
