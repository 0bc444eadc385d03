"""
contravention_config -- single public entrypoint for policy configuration.

Responsibility:
    ``get_active_policy()`` is the only way runtime code obtains the
    escalation tiers, training defaults, fiscal-year start, reference
    number format and catalogs.  YAML parsing is internal.

Architecture position:
    Configuration.  Sits above ``contravention_kernel`` and below
    ``contravention_services``.  The kernel MUST NEVER import from this
    package; ``bridges`` turns the parsed set into kernel objects.

Invariants enforced:
    - A set that fails validation is never returned.
    - Identical YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with that name.
    - ``ValueError`` -- validation failures (all errors listed).

Audit relevance:
    Every successful call emits a ``CONTRAVENTION_CONFIG_TRACE`` log
    record with the config id, version and checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from contravention_config.loader import load_policy_set
from contravention_config.schema import PolicyConfigSet
from contravention_config.validator import validate_policy_set

_logger = logging.getLogger("contravention_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

POLICY_FILENAME = "policy.yaml"


def get_active_policy(
    config_name: str = "default",
    config_dir: Path | None = None,
) -> PolicyConfigSet:
    """The ONLY public configuration entrypoint.

    Args:
        config_name: Subdirectory of the sets directory holding
            ``policy.yaml``.
        config_dir: Override path to the sets directory.  Defaults to
            contravention_config/sets/.

    Raises:
        FileNotFoundError: If the named set does not exist.
        ValueError: If validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    policy_file = sets_dir / config_name / POLICY_FILENAME
    if not policy_file.is_file():
        raise FileNotFoundError(f"Configuration set not found: {policy_file}")

    config_set = load_policy_set(policy_file)

    validation = validate_policy_set(config_set)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning(
            "config_validation_warning",
            extra={"config_set_id": config_set.config_id, "warning": warning},
        )

    _logger.info(
        "CONTRAVENTION_CONFIG_TRACE",
        extra={
            "trace_type": "CONTRAVENTION_CONFIG_TRACE",
            "config_set_id": config_set.config_id,
            "config_set_version": config_set.version,
            "checksum": config_set.checksum,
            "tier_count": len(config_set.tiers),
            "contravention_type_count": len(config_set.contravention_types),
            "course_count": len(config_set.courses),
        },
    )
    return config_set


__all__ = ["PolicyConfigSet", "get_active_policy"]
