"""Tests for the pure escalation evaluator (tier thresholds and actions)."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from contravention_kernel.domain.escalation import (
    EscalationPolicy,
    EscalationTier,
    TierRule,
)


@pytest.fixture
def escalation(policy) -> EscalationPolicy:
    return policy.escalation


class TestTierFor:

    @pytest.mark.parametrize(
        "total, expected",
        [
            (0, EscalationTier.NONE),
            (4, EscalationTier.NONE),
            (5, EscalationTier.TIER_1),
            (9, EscalationTier.TIER_1),
            (10, EscalationTier.TIER_2),
            (15, EscalationTier.TIER_2),
            (16, EscalationTier.TIER_3),
            (500, EscalationTier.TIER_3),
        ],
    )
    def test_default_thresholds(self, escalation, total, expected):
        assert escalation.tier_for(total) == expected

    def test_negative_total_rejected(self, escalation):
        with pytest.raises(ValueError):
            escalation.tier_for(-1)

    @given(a=st.integers(min_value=0, max_value=1000), b=st.integers(min_value=0, max_value=1000))
    def test_monotonic_non_decreasing(self, a, b):
        escalation = _default_policy()
        low, high = sorted((a, b))
        assert escalation.tier_for(low) <= escalation.tier_for(high)

    @given(total=st.integers(min_value=0, max_value=1000))
    def test_idempotent(self, total):
        escalation = _default_policy()
        assert escalation.tier_for(total) == escalation.tier_for(total)


class TestActions:

    def test_required_actions_are_ordered(self, escalation):
        assert escalation.required_actions(EscalationTier.TIER_2) == (
            "Notify Department Head and Finance",
            "Complete Mandatory Training",
        )

    def test_none_tier_has_no_actions(self, escalation):
        assert escalation.required_actions(EscalationTier.NONE) == ()

    def test_tier_three_pauses_procurement_rights(self, escalation):
        assert "Procurement rights paused" in escalation.required_actions(EscalationTier.TIER_3)

    def test_points_to_next_tier(self, escalation):
        assert escalation.points_to_next_tier(7) == 3
        assert escalation.next_rule(7).tier == EscalationTier.TIER_2
        assert escalation.points_to_next_tier(16) is None


class TestPolicyValidation:

    def test_thresholds_must_ascend(self):
        with pytest.raises(ValueError, match="strictly ascending"):
            EscalationPolicy(
                rules=(
                    TierRule(EscalationTier.TIER_1, 10, "Stage 1", ("a",)),
                    TierRule(EscalationTier.TIER_2, 10, "Stage 2", ("b",)),
                )
            )

    def test_none_cannot_carry_rule(self):
        with pytest.raises(ValueError):
            TierRule(EscalationTier.NONE, 1, "None", ("a",))

    def test_actions_required(self):
        with pytest.raises(ValueError):
            TierRule(EscalationTier.TIER_1, 5, "Stage 1", ())

    def test_duplicate_actions_rejected(self):
        with pytest.raises(ValueError):
            TierRule(EscalationTier.TIER_1, 5, "Stage 1", ("a", "a"))

    def test_tier_order_compares_by_rank(self):
        assert EscalationTier.NONE < EscalationTier.TIER_1 < EscalationTier.TIER_3


def _default_policy() -> EscalationPolicy:
    return EscalationPolicy(
        rules=(
            TierRule(EscalationTier.TIER_1, 5, "Stage 1", ("Notify reporting manager",)),
            TierRule(EscalationTier.TIER_2, 10, "Stage 2", ("Complete Mandatory Training",)),
            TierRule(EscalationTier.TIER_3, 16, "Stage 3", ("Procurement rights paused",)),
        )
    )
