"""
Tests for processing strategy selection.
"""

from datetime import datetime, timezone

import pytest

from sumup.analysis import Section, SectionType, StructuredData
from sumup.processing_strategy import ProcessingStrategy, ProcessingStrategySelector
from sumup.quota import RateLimitStatus

RESET = datetime(2024, 3, 16, tzinfo=timezone.utc)


def quota_status(used=0, cap=50):
    return RateLimitStatus(requests_used=used, daily_cap=cap, reset_at=RESET)


def recommended(options):
    return next(o for o in options if o.is_recommended)


def strategies(options):
    return [o.strategy for o in options]


class TestBrackets:
    """Length to strategy mapping."""

    @pytest.fixture
    def selector(self):
        return ProcessingStrategySelector()

    @pytest.mark.parametrize("length, expected", [
        (0, ProcessingStrategy.SINGLE),
        (25_000, ProcessingStrategy.SINGLE),
        (30_000, ProcessingStrategy.SINGLE),
        (30_001, ProcessingStrategy.DUAL),
        (100_000, ProcessingStrategy.DUAL),
        (100_001, ProcessingStrategy.MULTI),
        (1_000_000, ProcessingStrategy.MULTI),
    ])
    def test_bracket_boundaries(self, selector, length, expected):
        """A length on a boundary falls into the cheaper bracket."""
        assert selector.strategy_for_length(length) == expected

    @pytest.mark.parametrize("length, chunks", [
        (100_001, 5),
        (125_000, 5),
        (150_000, 6),
        (400_000, 6),
    ])
    def test_multi_chunk_count_is_clamped(self, selector, length, chunks):
        assert selector.multi_chunk_count(length) == chunks

    def test_minimum_multi_chunks(self, selector):
        assert selector.multi_chunk_count(10) == 4

    @pytest.mark.parametrize("length, expected", [
        (500, [ProcessingStrategy.SINGLE]),
        (10_000, [ProcessingStrategy.SINGLE]),
        (10_001, [ProcessingStrategy.SINGLE, ProcessingStrategy.MULTI]),
        (20_001, [ProcessingStrategy.SINGLE, ProcessingStrategy.DUAL, ProcessingStrategy.MULTI]),
    ])
    def test_offered_strategies(self, selector, length, expected):
        assert selector.offered_strategies(length) == expected

    def test_estimates_are_monotonic_in_length(self, selector):
        """Longer text never gets a cheaper recommended option."""
        lengths = [1_000, 29_999, 30_000, 30_001, 60_000, 100_000, 100_001, 140_000, 200_000]
        estimates = [
            recommended(selector.select(length, None, quota_status())).estimated_requests
            for length in lengths
        ]
        assert estimates == sorted(estimates)


class TestSelect:
    """Options returned for a length and quota snapshot."""

    @pytest.fixture
    def selector(self):
        return ProcessingStrategySelector()

    def test_short_text_single_option(self, selector):
        """500 chars: exactly one option, SINGLE, one request, recommended."""
        options = selector.select(500, None, quota_status())

        assert len(options) == 1
        option = options[0]
        assert option.strategy == ProcessingStrategy.SINGLE
        assert option.is_recommended
        assert option.estimated_requests == 1
        assert not option.quota_constrained

    def test_single_bracket_still_offers_alternatives(self, selector):
        """25,000 chars with 10/50 used: SINGLE recommended, DUAL and MULTI on offer."""
        options = selector.select(25_000, None, quota_status(used=10))

        assert strategies(options) == [ProcessingStrategy.SINGLE, ProcessingStrategy.DUAL, ProcessingStrategy.MULTI]
        assert recommended(options).strategy == ProcessingStrategy.SINGLE
        assert recommended(options).estimated_requests == 1
        assert not any(o.quota_constrained for o in options)

    def test_medium_text_offers_single_and_dual(self, selector):
        """50,000 chars at 0/50: SINGLE and DUAL both offered, DUAL the one recommended."""
        options = selector.select(50_000, None, quota_status())

        assert ProcessingStrategy.SINGLE in strategies(options)
        assert ProcessingStrategy.DUAL in strategies(options)
        assert sum(o.is_recommended for o in options) == 1
        dual = recommended(options)
        assert dual.strategy == ProcessingStrategy.DUAL
        assert dual.chunk_count == 2
        assert dual.consolidate
        assert dual.estimated_requests == 3
        assert dual.min_requests == 2

    def test_options_over_quota_are_dropped(self, selector):
        """50,000 chars at 47/50: MULTI (4 requests) no longer fits, SINGLE and DUAL do."""
        options = selector.select(50_000, None, quota_status(used=47))

        assert strategies(options) == [ProcessingStrategy.SINGLE, ProcessingStrategy.DUAL]
        assert recommended(options).strategy == ProcessingStrategy.DUAL
        assert not any(o.quota_constrained for o in options)

    def test_dual_excluded_near_cap(self, selector):
        """50,000 chars at 48/50: DUAL (3) is excluded, only a constrained SINGLE remains."""
        options = selector.select(50_000, None, quota_status(used=48))

        assert len(options) == 1
        option = options[0]
        assert option.strategy == ProcessingStrategy.SINGLE
        assert option.quota_constrained
        assert option.is_recommended
        assert option.estimated_requests == 1

    def test_long_text_with_low_quota(self, selector):
        """150,000 chars with 47/50 used: MULTI does not fit, DUAL stands in for it."""
        options = selector.select(150_000, None, quota_status(used=47))

        assert strategies(options) == [ProcessingStrategy.SINGLE, ProcessingStrategy.DUAL]
        option = recommended(options)
        assert option.strategy == ProcessingStrategy.DUAL
        assert option.quota_constrained
        assert any("quota" in drawback.lower() for drawback in option.drawbacks)
        assert not options[0].quota_constrained

    def test_nothing_fits(self, selector):
        """With the cap used up, only a constrained SINGLE option is returned."""
        options = selector.select(150_000, None, quota_status(used=50))

        assert len(options) == 1
        assert options[0].strategy == ProcessingStrategy.SINGLE
        assert options[0].quota_constrained
        assert options[0].is_recommended

    def test_exactly_fitting_quota_is_not_constrained(self, selector):
        option = recommended(selector.select(60_000, None, quota_status(used=47)))
        assert option.strategy == ProcessingStrategy.DUAL
        assert not option.quota_constrained

    @pytest.mark.parametrize("used", [0, 46, 48, 50])
    def test_exactly_one_recommended(self, selector, used):
        for length in (10, 50_000, 300_000):
            options = selector.select(length, None, quota_status(used=used))
            assert sum(o.is_recommended for o in options) == 1

    def test_negative_length_rejected(self, selector):
        with pytest.raises(ValueError):
            selector.select(-1, None, quota_status())

    def test_deterministic(self, selector):
        status = quota_status(used=20)
        assert selector.select(80_000, None, status) == selector.select(80_000, None, status)

    def test_sections_mentioned_in_benefits(self, selector):
        structured = StructuredData(sections=(
            Section("Intro", SectionType.PARAGRAPH, 0, 10),
            Section("Body", SectionType.PARAGRAPH, 12, 40),
        ))
        option = recommended(selector.select(60_000, structured, quota_status()))
        assert any("sections" in benefit for benefit in option.benefits)


class TestBuildOption:

    def test_forced_multi_chunk_count(self):
        option = ProcessingStrategySelector().build_option(ProcessingStrategy.MULTI, 5_000, chunk_count=3)
        assert option.chunk_count == 3
        assert option.estimated_requests == 3
        assert not option.consolidate

    def test_single_on_long_text_warns_about_truncation(self):
        option = ProcessingStrategySelector().build_option(ProcessingStrategy.SINGLE, 150_000)
        assert any("truncated" in drawback for drawback in option.drawbacks)

    def test_custom_thresholds(self):
        selector = ProcessingStrategySelector({
            'single_max_chars': 100,
            'dual_max_chars': 200,
            'multi_chunk_chars': 50,
            'multi_min_chunks': 4,
            'multi_max_chunks': 6,
            'dual_chunks': 2,
        })
        assert selector.strategy_for_length(150) == ProcessingStrategy.DUAL
        assert selector.multi_chunk_count(1_000) == 6
