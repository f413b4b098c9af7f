"""Tests for title deduplication and ranking.

Duplicate titles keep the higher quality source; final order is quality,
then recency.
"""

from datetime import datetime, timedelta, timezone

from market_news.dedup import deduplicate, finalize, normalize_title, rank
from market_news.models import Article


# ── Helpers ──────────────────────────────────────────────────────────────

_BASE = datetime(2024, 10, 14, 9, 0, tzinfo=timezone.utc)


def _make_article(
    title: str = "Test Item",
    source: str = "Economic Times",
    quality_score: int = 9,
    hours_ago: int = 0,
    link: str = "",
) -> Article:
    return Article(
        title=title,
        link=link or f"https://example.com/{abs(hash((title, source, hours_ago)))}",
        source=source,
        quality_score=quality_score,
        published_at=_BASE - timedelta(hours=hours_ago),
    )


# ── normalize_title tests ────────────────────────────────────────────────


class TestNormalizeTitle:

    def test_case_insensitive(self):
        assert normalize_title("Sensex Hits Record High") == \
               normalize_title("sensex hits record high")

    def test_strip_punctuation(self):
        assert normalize_title("Sensex hits record high!") == "sensex hits record high"

    def test_punctuation_removed_not_spaced(self):
        """Hyphens disappear rather than splitting words."""
        assert normalize_title("Q2 results: HDFC-Bank beats") == "q2 results hdfcbank beats"

    def test_collapse_whitespace(self):
        assert normalize_title("  Nifty   ends \t flat ") == "nifty ends flat"


# ── deduplicate tests ────────────────────────────────────────────────────


class TestDeduplicate:

    def test_higher_quality_wins_when_second(self):
        lower = _make_article("Sensex hits record high", "LiveMint", quality_score=8)
        higher = _make_article("Sensex hits record high!", "Economic Times", quality_score=9)
        result = deduplicate([lower, higher])
        assert len(result) == 1
        assert result[0].quality_score == 9

    def test_higher_quality_wins_when_first(self):
        higher = _make_article("Sensex hits record high", "Economic Times", quality_score=9)
        lower = _make_article("SENSEX hits record high", "LiveMint", quality_score=8)
        result = deduplicate([higher, lower])
        assert len(result) == 1
        assert result[0].source == "Economic Times"

    def test_tie_keeps_first_seen(self):
        first = _make_article("Nifty ends flat", "LiveMint", quality_score=8, hours_ago=2)
        second = _make_article("Nifty ends flat", "Moneycontrol", quality_score=8)
        result = deduplicate([first, second])
        assert result == [first]

    def test_replacement_keeps_position(self):
        a = _make_article("Rupee weakens", "LiveMint", quality_score=8)
        b = _make_article("Gold prices rise", "LiveMint", quality_score=8)
        c = _make_article("Rupee weakens", "Economic Times", quality_score=9)
        result = deduplicate([a, b, c])
        assert [r.title for r in result] == ["Rupee weakens", "Gold prices rise"]
        assert result[0].source == "Economic Times"

    def test_distinct_titles_untouched(self):
        items = [_make_article(f"Story number {i}") for i in range(5)]
        assert deduplicate(items) == items


# ── rank / finalize tests ────────────────────────────────────────────────


class TestFinalize:

    def test_sorted_by_quality_then_recency(self):
        old_high = _make_article("A", quality_score=9, hours_ago=5)
        new_high = _make_article("B", quality_score=9, hours_ago=1)
        newest_low = _make_article("C", quality_score=8, hours_ago=0)
        result = rank([newest_low, old_high, new_high])
        assert [a.title for a in result] == ["B", "A", "C"]

    def test_quality_nine_retained(self):
        """Same story from two sources, in both input orders."""
        et = _make_article("Sensex hits record high", "Economic Times", quality_score=9)
        mint = _make_article("Sensex hits record high", "LiveMint", quality_score=8)
        for items in ([et, mint], [mint, et]):
            result = finalize(items)
            assert len(result) == 1
            assert result[0].quality_score == 9

    def test_idempotent(self):
        items = [
            _make_article("Sensex hits record high", "LiveMint", 8, hours_ago=3),
            _make_article("Rupee weakens", "LiveMint", 8, hours_ago=1),
            _make_article("Sensex hits record high", "Economic Times", 9, hours_ago=4),
            _make_article("TCS wins major contract", "Economic Times", 9, hours_ago=0),
            _make_article("Same time A", "Economic Times", 9, hours_ago=2),
            _make_article("Same time B", "Economic Times", 9, hours_ago=2),
        ]
        once = finalize(items)
        assert finalize(once) == once
        assert len(once) == 5

    def test_empty(self):
        assert finalize([]) == []
