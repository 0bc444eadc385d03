"""
Configuration Loader (``contravention_config.loader``).

Responsibility
--------------
Loads a policy YAML file and parses it into ``contravention_config.schema``
dataclasses.  Runtime callers go through
``contravention_config.get_active_policy()`` instead.

Invariants enforced
-------------------
* Missing required keys raise ``KeyError``; malformed values raise
  ``ValueError``.  Optional sections fall back to the schema defaults.
* ``compute_checksum`` is deterministic for identical source documents.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from contravention_config.schema import (
    ContraventionTypeDef,
    CourseDef,
    FiscalYearDef,
    PolicyConfigSet,
    ReferenceNumberDef,
    TierDef,
    TrainingDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    return value


def parse_tier(data: dict[str, Any]) -> TierDef:
    """Parse a TierDef from a dict."""
    due_days = data.get("due_days")
    return TierDef(
        tier=str(data["tier"]).upper(),
        min_points=_parse_int(data["min_points"], "min_points"),
        name=data["name"],
        actions=tuple(data["actions"]),
        due_days=_parse_int(due_days, "due_days") if due_days is not None else None,
        assigns_training=bool(data.get("assigns_training", False)),
    )


def parse_training(data: dict[str, Any] | None) -> TrainingDef:
    if not data:
        return TrainingDef()
    return TrainingDef(
        credit_points=_parse_int(data.get("credit_points", 1), "credit_points"),
        due_days=_parse_int(data.get("due_days", 30), "due_days"),
    )


def parse_fiscal_year(data: dict[str, Any] | None) -> FiscalYearDef:
    if not data:
        return FiscalYearDef()
    return FiscalYearDef(start_month=_parse_int(data.get("start_month", 4), "start_month"))


def parse_reference_numbers(data: dict[str, Any] | None) -> ReferenceNumberDef:
    if not data:
        return ReferenceNumberDef()
    return ReferenceNumberDef(
        prefix=str(data.get("prefix", "CONTRA")),
        width=_parse_int(data.get("width", 3), "width"),
    )


def parse_contravention_type(data: dict[str, Any]) -> ContraventionTypeDef:
    """Parse a ContraventionTypeDef from a dict."""
    return ContraventionTypeDef(
        name=data["name"],
        category=data["category"],
        severity=str(data["severity"]).upper(),
        default_points=_parse_int(data["default_points"], "default_points"),
    )


def parse_course(data: dict[str, Any]) -> CourseDef:
    credit = data.get("points_credit")
    return CourseDef(
        name=data["name"],
        points_credit=_parse_int(credit, "points_credit") if credit is not None else None,
        is_active=bool(data.get("is_active", True)),
    )


def parse_policy_set(data: dict[str, Any]) -> PolicyConfigSet:
    """
    Parse a full policy document.

    Preconditions:
        - ``data`` has ``config_id``, ``version`` and ``escalation.tiers``.
    Postconditions:
        - Returns a PolicyConfigSet whose ``checksum`` is computed over
          ``data``.
    """
    escalation = data["escalation"]
    return PolicyConfigSet(
        config_id=data["config_id"],
        version=_parse_int(data["version"], "version"),
        description=data.get("description", ""),
        tiers=tuple(parse_tier(t) for t in escalation["tiers"]),
        training=parse_training(data.get("training")),
        fiscal_year=parse_fiscal_year(data.get("fiscal_year")),
        reference_numbers=parse_reference_numbers(data.get("reference_numbers")),
        contravention_types=tuple(
            parse_contravention_type(t) for t in data.get("contravention_types", ())
        ),
        courses=tuple(parse_course(c) for c in data.get("courses", ())),
        checksum=compute_checksum(data),
    )


def load_policy_set(path: Path) -> PolicyConfigSet:
    return parse_policy_set(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of *data*."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
