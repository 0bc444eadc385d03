"""
Configuration Validator (``contravention_config.validator``).

Responsibility
--------------
Checks a ``PolicyConfigSet`` for structural problems before it is bridged
into kernel objects.

Invariants enforced
-------------------
* Tiers are known, unique, listed in rank order and have strictly
  ascending thresholds of at least 1 point.
* Every tier has at least one action and no duplicate actions.
* Points, credits and day counts are non-negative.
* Fiscal-year start month is 1..12; reference width is at least 1.
* Catalog names are unique; severities are known.

Failure modes
-------------
* ``errors``  -> the configuration MUST NOT be used.
* ``warnings``  -> usable but should be reviewed (e.g. a tier that assigns
  training while no active course is configured).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from contravention_config.schema import PolicyConfigSet

KNOWN_TIERS = ("TIER_1", "TIER_2", "TIER_3")
KNOWN_SEVERITIES = ("LOW", "MEDIUM", "HIGH", "CRITICAL")


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` is True only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_policy_set(config: PolicyConfigSet) -> ConfigValidationResult:
    result = ConfigValidationResult()
    _validate_tiers(config, result)
    _validate_scalars(config, result)
    _validate_catalogs(config, result)
    return result


def _validate_tiers(config: PolicyConfigSet, result: ConfigValidationResult) -> None:
    if not config.tiers:
        result.add_error("escalation.tiers: at least one tier is required")
        return

    seen: set[str] = set()
    previous_rank = -1
    previous_points = 0
    for tier in config.tiers:
        label = f"escalation.tiers[{tier.tier}]"
        if tier.tier not in KNOWN_TIERS:
            result.add_error(f"{label}: unknown tier (expected one of {', '.join(KNOWN_TIERS)})")
            continue
        if tier.tier in seen:
            result.add_error(f"{label}: duplicate tier")
            continue
        seen.add(tier.tier)

        rank = KNOWN_TIERS.index(tier.tier)
        if rank < previous_rank:
            result.add_error(f"{label}: tiers must be listed in ascending order")
        if tier.min_points < 1:
            result.add_error(f"{label}: min_points must be >= 1, got {tier.min_points}")
        elif tier.min_points <= previous_points:
            result.add_error(
                f"{label}: min_points {tier.min_points} must exceed the previous "
                f"tier's {previous_points}"
            )
        if not tier.actions:
            result.add_error(f"{label}: at least one action is required")
        elif len(set(tier.actions)) != len(tier.actions):
            result.add_error(f"{label}: duplicate actions")
        if tier.due_days is not None and tier.due_days < 0:
            result.add_error(f"{label}: due_days must be >= 0")

        previous_rank = rank
        previous_points = max(previous_points, tier.min_points)

    if any(t.assigns_training for t in config.tiers) and not any(
        c.is_active for c in config.courses
    ):
        result.add_warning(
            "escalation: a tier assigns training but no active course is configured"
        )


def _validate_scalars(config: PolicyConfigSet, result: ConfigValidationResult) -> None:
    if config.training.credit_points < 0:
        result.add_error("training.credit_points must be >= 0")
    if config.training.due_days < 0:
        result.add_error("training.due_days must be >= 0")
    if not 1 <= config.fiscal_year.start_month <= 12:
        result.add_error(
            f"fiscal_year.start_month must be 1..12, got {config.fiscal_year.start_month}"
        )
    if config.reference_numbers.width < 1:
        result.add_error("reference_numbers.width must be >= 1")
    if not config.reference_numbers.prefix.strip():
        result.add_error("reference_numbers.prefix must not be empty")


def _validate_catalogs(config: PolicyConfigSet, result: ConfigValidationResult) -> None:
    if not config.contravention_types:
        result.add_warning("contravention_types: catalog is empty")

    names: set[str] = set()
    for ctype in config.contravention_types:
        if ctype.name in names:
            result.add_error(f"contravention_types[{ctype.name}]: duplicate name")
        names.add(ctype.name)
        if ctype.severity not in KNOWN_SEVERITIES:
            result.add_error(
                f"contravention_types[{ctype.name}]: unknown severity {ctype.severity!r}"
            )
        if ctype.default_points < 0:
            result.add_error(
                f"contravention_types[{ctype.name}]: default_points must be >= 0"
            )

    course_names: set[str] = set()
    for course in config.courses:
        if course.name in course_names:
            result.add_error(f"courses[{course.name}]: duplicate name")
        course_names.add(course.name)
        if course.points_credit is not None and course.points_credit < 0:
            result.add_error(f"courses[{course.name}]: points_credit must be >= 0")
