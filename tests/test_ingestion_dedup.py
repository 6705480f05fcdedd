"""Tests for duplicate filtering of candidate URLs."""

from gpu_catalog.ingestion.dedup import partition


class TestPartition:
    """Tests for partition."""

    def test_splits_new_and_existing(self) -> None:
        """Test the basic split."""
        result = partition(["a", "b", "c"], {"b"})
        assert result.new_urls == ["a", "c"]
        assert result.duplicate_urls == ["b"]
        assert result.has_new

    def test_all_existing(self) -> None:
        """Test that all-duplicate input has no new URLs."""
        result = partition(["a", "b"], {"a", "b", "z"})
        assert result.new_urls == []
        assert result.duplicate_urls == ["a", "b"]
        assert not result.has_new

    def test_nothing_stored(self) -> None:
        """Test against an empty store."""
        result = partition(["a", "b"], set())
        assert result.new_urls == ["a", "b"]
        assert result.duplicate_urls == []

    def test_repeat_within_batch(self) -> None:
        """Test that a URL repeated in the batch is only submitted once."""
        result = partition(["a", "b", "a"], set())
        assert result.new_urls == ["a", "b"]
        assert result.duplicate_urls == ["a"]

    def test_preserves_order(self) -> None:
        """Test that both lists keep the input order."""
        result = partition(["d", "c", "b", "a"], {"c", "a"})
        assert result.new_urls == ["d", "b"]
        assert result.duplicate_urls == ["c", "a"]
