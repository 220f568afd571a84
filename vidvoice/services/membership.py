#!/usr/bin/env python3
"""
VidVoice Membership Counters

Per-tier usage counters for voice commands. These only count; nothing in
the voice pipeline is blocked by them.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import date
from enum import Enum
from typing import Callable, Optional

from vidvoice.services.storage import KeyValueStore

MEMBERSHIP_KEY = "membershipData"


class MembershipTier(Enum):
    TRIAL = "trial"
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"


MEMBERSHIP_LIMITS = {
    MembershipTier.TRIAL: {"total": 2000},
    MembershipTier.FREE: {"daily": 30},
    MembershipTier.BASIC: {"monthly": 1500, "daily_bonus": 40},
    MembershipTier.PREMIUM: {"unlimited": True},
}


@dataclass
class MembershipState:
    tier: str = MembershipTier.TRIAL.value
    usage_count: int = 0
    daily_usage_count: int = 0
    last_reset_date: str = ""
    trial_used: bool = False
    trial_usage_remaining: int = MEMBERSHIP_LIMITS[MembershipTier.TRIAL]["total"]
    monthly_usage_remaining: int = 0
    is_first_login: bool = True


class MembershipTracker:
    """Usage counters persisted under a single store key."""

    def __init__(self, store: KeyValueStore, logger: logging.Logger,
                 today: Optional[Callable[[], date]] = None):
        self.store = store
        self.logger = logger
        self._today = today or date.today
        self.state = self._load()

    def _today_str(self) -> str:
        return self._today().isoformat()

    def _load(self) -> MembershipState:
        raw = self.store.get_json(MEMBERSHIP_KEY, fallback=None)
        if not isinstance(raw, dict):
            state = MembershipState(last_reset_date=self._today_str())
            self._save(state)
            return state

        known = MembershipState.__dataclass_fields__
        try:
            state = MembershipState(**{k: v for k, v in raw.items() if k in known})
            MembershipTier(state.tier)
        except (TypeError, ValueError) as e:
            self.logger.warning(f"Resetting unreadable membership data: {e}")
            state = MembershipState(last_reset_date=self._today_str())
            self._save(state)
            return state

        self._reset_daily(state)
        return state

    def _save(self, state: Optional[MembershipState] = None):
        self.store.set_json(MEMBERSHIP_KEY, asdict(state or self.state))

    def _reset_daily(self, state: MembershipState):
        today = self._today_str()
        if state.last_reset_date != today:
            state.daily_usage_count = 0
            state.last_reset_date = today

    @property
    def tier(self) -> MembershipTier:
        return MembershipTier(self.state.tier)

    def can_use_feature(self) -> bool:
        self._reset_daily(self.state)
        tier = self.tier

        if tier == MembershipTier.TRIAL:
            return self.state.trial_usage_remaining > 0
        if tier == MembershipTier.FREE:
            return self.state.daily_usage_count < MEMBERSHIP_LIMITS[tier]["daily"]
        if tier == MembershipTier.BASIC:
            return (self.state.monthly_usage_remaining > 0
                    or self.state.daily_usage_count < MEMBERSHIP_LIMITS[tier]["daily_bonus"])
        return True

    def use_feature(self) -> bool:
        """Count one use; returns False without counting when the quota is spent."""
        if not self.can_use_feature():
            return False

        state = self.state
        state.usage_count += 1
        state.daily_usage_count += 1

        if self.tier == MembershipTier.TRIAL:
            state.trial_usage_remaining -= 1
            if state.trial_usage_remaining == 0:
                self.logger.info("Trial exhausted, switching to free tier")
                state.tier = MembershipTier.FREE.value
                state.trial_used = True
        elif self.tier == MembershipTier.BASIC and state.monthly_usage_remaining > 0:
            state.monthly_usage_remaining -= 1

        self._save()
        return True

    def upgrade_tier(self, tier: MembershipTier):
        self.state.tier = tier.value
        if tier == MembershipTier.BASIC:
            self.state.monthly_usage_remaining = MEMBERSHIP_LIMITS[tier]["monthly"]
        self._save()
        self.logger.info(f"Membership tier set to {tier.value}")

    def remaining_usage(self) -> int:
        """Uses left in the current period; -1 means unlimited."""
        self._reset_daily(self.state)
        tier = self.tier

        if tier == MembershipTier.TRIAL:
            return self.state.trial_usage_remaining
        if tier == MembershipTier.FREE:
            return max(0, MEMBERSHIP_LIMITS[tier]["daily"] - self.state.daily_usage_count)
        if tier == MembershipTier.BASIC:
            return self.state.monthly_usage_remaining + max(
                0, MEMBERSHIP_LIMITS[tier]["daily_bonus"] - self.state.daily_usage_count)
        return -1

    def mark_first_login_complete(self):
        self.state.is_first_login = False
        self._save()
