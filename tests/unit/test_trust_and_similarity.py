"""Tests for trust tiers and near-duplicate counting."""

from datetime import timedelta

import pytest

from conftest import good_readme
from skill_registry.config.settings import Settings
from skill_registry.models.domain import TrustTier
from skill_registry.quality.similarity import count_similar_recent
from skill_registry.quality.trust import get_trust_tier

ORDER = {TrustTier.LOW: 0, TrustTier.MEDIUM: 1, TrustTier.TRUSTED: 2}


@pytest.fixture
def settings():
    return Settings(openai_api_key="test-key")


class TestTrustTier:
    def test_new_account_is_low(self, settings):
        assert get_trust_tier(timedelta(days=1), 0, settings) is TrustTier.LOW

    def test_week_old_account_is_medium(self, settings):
        assert get_trust_tier(timedelta(days=8), 0, settings) is TrustTier.MEDIUM

    def test_established_publisher_is_trusted(self, settings):
        assert get_trust_tier(timedelta(days=40), 3, settings) is TrustTier.TRUSTED
        assert get_trust_tier(timedelta(days=40), 2, settings) is TrustTier.MEDIUM

    def test_veteran_account_is_trusted(self, settings):
        assert get_trust_tier(timedelta(days=200), 0, settings) is TrustTier.TRUSTED

    def test_monotonic_in_age_and_items(self, settings):
        ages = [0, 3, 7, 15, 30, 90, 180, 400]
        counts = [0, 1, 3, 10]
        for count in counts:
            tiers = [ORDER[get_trust_tier(timedelta(days=a), count, settings)] for a in ages]
            assert tiers == sorted(tiers)
        for age in ages:
            tiers = [ORDER[get_trust_tier(timedelta(days=age), c, settings)] for c in counts]
            assert tiers == sorted(tiers)


class TestSimilarity:
    def test_identical_documents_count(self):
        text = good_readme("remind-me")
        assert count_similar_recent(text, [text, text], threshold=0.8) == 2

    def test_unrelated_documents_do_not_count(self):
        text = good_readme("remind-me")
        other = "Convert currency amounts between euros, dollars and yen using daily rates."
        assert count_similar_recent(text, [other], threshold=0.8) == 0

    def test_empty_inputs(self):
        assert count_similar_recent("", ["anything"], threshold=0.8) == 0
        assert count_similar_recent("some text", [], threshold=0.8) == 0
