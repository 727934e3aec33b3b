"""Trust tiers derived from account age and publishing history."""

from __future__ import annotations

from datetime import timedelta

from skill_registry.config.settings import Settings
from skill_registry.models.domain import TrustTier


def get_trust_tier(account_age: timedelta, item_count: int, settings: Settings) -> TrustTier:
    """Never decreases as either account age or item count grows."""
    age_days = account_age / timedelta(days=1)
    if age_days >= settings.trust_veteran_age_days:
        return TrustTier.TRUSTED
    if age_days >= settings.trust_trusted_age_days and item_count >= settings.trust_trusted_min_items:
        return TrustTier.TRUSTED
    if age_days >= settings.trust_medium_age_days:
        return TrustTier.MEDIUM
    return TrustTier.LOW
