"""
Contravention policy configuration schema.

The human-authored source artifact: YAML is parsed into these frozen types
by the loader, checked by the validator, and turned into kernel policy
objects by the bridges.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Escalation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TierDef:
    """One escalation tier as written in YAML."""

    tier: str  # TIER_1, TIER_2, TIER_3
    min_points: int
    name: str
    actions: tuple[str, ...]
    due_days: int | None = None
    assigns_training: bool = False


# ---------------------------------------------------------------------------
# Training, fiscal year, reference numbers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrainingDef:
    credit_points: int = 1
    due_days: int = 30


@dataclass(frozen=True)
class FiscalYearDef:
    start_month: int = 4


@dataclass(frozen=True)
class ReferenceNumberDef:
    """``<prefix>-<year>-<zero-padded counter>``."""

    prefix: str = "CONTRA"
    width: int = 3


# ---------------------------------------------------------------------------
# Catalogs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContraventionTypeDef:
    name: str
    category: str
    severity: str  # LOW, MEDIUM, HIGH, CRITICAL
    default_points: int


@dataclass(frozen=True)
class CourseDef:
    name: str
    points_credit: int | None = None  # None -> training.credit_points
    is_active: bool = True


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PolicyConfigSet:
    """A complete, versioned policy configuration.

    ``checksum`` is the SHA-256 of the canonical source document and
    identifies the exact configuration that governed an engine run.
    """

    config_id: str
    version: int
    tiers: tuple[TierDef, ...]
    training: TrainingDef = field(default_factory=TrainingDef)
    fiscal_year: FiscalYearDef = field(default_factory=FiscalYearDef)
    reference_numbers: ReferenceNumberDef = field(default_factory=ReferenceNumberDef)
    contravention_types: tuple[ContraventionTypeDef, ...] = ()
    courses: tuple[CourseDef, ...] = ()
    description: str = ""
    checksum: str = ""
