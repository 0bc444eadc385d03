"""
Config -> Kernel Bridges.

Convert a validated PolicyConfigSet into kernel policy objects.  These
live here because the kernel must never import contravention_config.

Usage:
    from contravention_config import get_active_policy
    from contravention_config.bridges import build_contravention_policy

    policy = build_contravention_policy(get_active_policy())
"""

from __future__ import annotations

from contravention_config.schema import PolicyConfigSet
from contravention_kernel.domain.contravention import Severity
from contravention_kernel.domain.escalation import (
    EscalationPolicy,
    EscalationTier,
    TierRule,
)
from contravention_kernel.domain.policy import (
    ContraventionPolicy,
    ContraventionTypeSeed,
    CourseSeed,
)


def build_escalation_policy(config: PolicyConfigSet) -> EscalationPolicy:
    """Build the EscalationPolicy from the configured tiers."""
    return EscalationPolicy(
        rules=tuple(
            TierRule(
                tier=EscalationTier(tier.tier),
                min_points=tier.min_points,
                name=tier.name,
                actions=tier.actions,
                due_days=tier.due_days,
                assigns_training=tier.assigns_training,
            )
            for tier in config.tiers
        )
    )


def build_contravention_policy(config: PolicyConfigSet) -> ContraventionPolicy:
    """Build the full runtime policy bundle handed to the engine."""
    return ContraventionPolicy(
        escalation=build_escalation_policy(config),
        training_credit_points=config.training.credit_points,
        training_due_days=config.training.due_days,
        fiscal_year_start_month=config.fiscal_year.start_month,
        reference_prefix=config.reference_numbers.prefix,
        reference_width=config.reference_numbers.width,
        contravention_types=tuple(
            ContraventionTypeSeed(
                name=t.name,
                category=t.category,
                severity=Severity(t.severity),
                default_points=t.default_points,
            )
            for t in config.contravention_types
        ),
        courses=tuple(
            CourseSeed(
                name=c.name,
                points_credit=(
                    c.points_credit
                    if c.points_credit is not None
                    else config.training.credit_points
                ),
                is_active=c.is_active,
            )
            for c in config.courses
        ),
        version=f"{config.config_id}@{config.version}:{config.checksum[:12]}",
    )
