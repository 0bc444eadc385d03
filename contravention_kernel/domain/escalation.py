"""
Escalation Evaluator -- pure mapping from point totals to tiers.

Responsibility:
    Given an employee's running point total, decide the escalation tier and
    the ordered remedial actions that tier requires.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Thresholds are
    policy data supplied by configuration; nothing here hard-codes them.

Invariants enforced:
    - Tier rules are strictly ascending in both threshold and tier rank.
    - ``tier_for`` is monotonic: a larger total never yields a lower tier.
    - ``tier_for(0)`` is ``NONE`` (every rule threshold is >= 1).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EscalationTier(str, Enum):
    NONE = "NONE"
    TIER_1 = "TIER_1"
    TIER_2 = "TIER_2"
    TIER_3 = "TIER_3"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, EscalationTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, EscalationTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, EscalationTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, EscalationTier):
            return NotImplemented
        return self.rank >= other.rank


_TIER_ORDER = (
    EscalationTier.NONE,
    EscalationTier.TIER_1,
    EscalationTier.TIER_2,
    EscalationTier.TIER_3,
)


@dataclass(frozen=True)
class TierRule:
    """Threshold and remedial actions for one tier.

    ``due_days`` sets the escalation's due date relative to the trigger;
    ``assigns_training`` makes reaching the tier assign the active course.
    """

    tier: EscalationTier
    min_points: int
    name: str
    actions: tuple[str, ...]
    due_days: int | None = None
    assigns_training: bool = False

    def __post_init__(self) -> None:
        if self.tier == EscalationTier.NONE:
            raise ValueError("NONE is implicit and cannot carry a rule")
        if self.min_points < 1:
            raise ValueError(
                f"{self.tier.value}: min_points must be >= 1, got {self.min_points}"
            )
        if not self.actions:
            raise ValueError(f"{self.tier.value}: at least one action is required")
        if len(set(self.actions)) != len(self.actions):
            raise ValueError(f"{self.tier.value}: duplicate actions")
        if self.due_days is not None and self.due_days < 0:
            raise ValueError(f"{self.tier.value}: due_days must be >= 0")


@dataclass(frozen=True)
class EscalationPolicy:
    """Ordered tier rules.

    Usage:
        policy = EscalationPolicy(rules=(
            TierRule(EscalationTier.TIER_1, 5, "Stage 1", ("Notify reporting manager",)),
            ...
        ))
        policy.tier_for(7)   # EscalationTier.TIER_1
    """

    rules: tuple[TierRule, ...]

    def __post_init__(self) -> None:
        previous: TierRule | None = None
        for rule in self.rules:
            if previous is not None:
                if rule.min_points <= previous.min_points:
                    raise ValueError(
                        "Tier thresholds must be strictly ascending: "
                        f"{previous.tier.value}={previous.min_points}, "
                        f"{rule.tier.value}={rule.min_points}"
                    )
                if rule.tier.rank <= previous.tier.rank:
                    raise ValueError(
                        f"Tier order must be ascending: {previous.tier.value} "
                        f"before {rule.tier.value}"
                    )
            previous = rule

    def tier_for(self, total_points: int) -> EscalationTier:
        if total_points < 0:
            raise ValueError(f"total_points must be >= 0, got {total_points}")
        tier = EscalationTier.NONE
        for rule in self.rules:
            if total_points >= rule.min_points:
                tier = rule.tier
        return tier

    def rule_for(self, tier: EscalationTier) -> TierRule | None:
        for rule in self.rules:
            if rule.tier == tier:
                return rule
        return None

    def required_actions(self, tier: EscalationTier) -> tuple[str, ...]:
        rule = self.rule_for(tier)
        return rule.actions if rule else ()

    def next_rule(self, total_points: int) -> TierRule | None:
        """The first rule whose threshold is still above *total_points*."""
        for rule in self.rules:
            if rule.min_points > total_points:
                return rule
        return None

    def points_to_next_tier(self, total_points: int) -> int | None:
        rule = self.next_rule(total_points)
        return None if rule is None else rule.min_points - total_points
