"""
Policy configuration: loading, validation, checksums and the bridge to
kernel policy objects.
"""

import copy

import pytest
import yaml

from contravention_config import get_active_policy
from contravention_config.bridges import build_contravention_policy
from contravention_config.loader import compute_checksum, parse_policy_set
from contravention_config.validator import validate_policy_set
from contravention_kernel.domain.contravention import Severity
from contravention_kernel.domain.escalation import EscalationTier

MINIMAL = {
    "config_id": "minimal",
    "version": 2,
    "escalation": {
        "tiers": [
            {"tier": "TIER_1", "min_points": 4, "name": "Warning", "actions": ["Notify manager"]},
            {
                "tier": "TIER_2",
                "min_points": 8,
                "name": "Training",
                "assigns_training": True,
                "actions": ["Complete training"],
            },
        ]
    },
    "contravention_types": [
        {"name": "Late claim", "category": "SVP", "severity": "low", "default_points": 1},
    ],
    "courses": [{"name": "Refresher"}],
}


def _write_set(tmp_path, data, name="custom"):
    set_dir = tmp_path / name
    set_dir.mkdir()
    (set_dir / "policy.yaml").write_text(yaml.safe_dump(data))
    return tmp_path


class TestDefaultSet:

    def test_default_tiers(self):
        config = get_active_policy()
        assert [(t.tier, t.min_points) for t in config.tiers] == [
            ("TIER_1", 5),
            ("TIER_2", 10),
            ("TIER_3", 16),
        ]
        assert config.fiscal_year.start_month == 4
        assert config.reference_numbers.prefix == "CONTRA"
        assert len(config.contravention_types) == 12

    def test_default_is_valid_without_warnings(self):
        result = validate_policy_set(get_active_policy())
        assert result.is_valid
        assert result.warnings == []

    def test_trace_logged(self, captured_logs):
        config = get_active_policy()
        trace = [r for r in captured_logs() if r["message"] == "CONTRAVENTION_CONFIG_TRACE"]
        assert trace[0]["config_set_id"] == "default"
        assert trace[0]["checksum"] == config.checksum

    def test_missing_set(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_policy("nope", config_dir=tmp_path)


class TestLoading:

    def test_custom_set(self, tmp_path):
        config = get_active_policy("custom", config_dir=_write_set(tmp_path, MINIMAL))
        assert config.config_id == "minimal"
        assert config.contravention_types[0].severity == "LOW"
        assert config.courses[0].points_credit is None
        assert config.training.due_days == 30

    def test_checksum_is_stable(self):
        assert compute_checksum(copy.deepcopy(MINIMAL)) == compute_checksum(MINIMAL)
        changed = copy.deepcopy(MINIMAL)
        changed["version"] = 3
        assert compute_checksum(changed) != compute_checksum(MINIMAL)

    def test_non_integer_points_rejected(self):
        data = copy.deepcopy(MINIMAL)
        data["escalation"]["tiers"][0]["min_points"] = "five"
        with pytest.raises(ValueError, match="min_points"):
            parse_policy_set(data)


class TestValidation:

    def test_descending_thresholds_rejected(self, tmp_path):
        data = copy.deepcopy(MINIMAL)
        data["escalation"]["tiers"][1]["min_points"] = 3
        with pytest.raises(ValueError, match="must exceed"):
            get_active_policy("custom", config_dir=_write_set(tmp_path, data))

    def test_unknown_tier_and_severity_listed_together(self):
        data = copy.deepcopy(MINIMAL)
        data["escalation"]["tiers"][0]["tier"] = "TIER_9"
        data["contravention_types"][0]["severity"] = "apocalyptic"
        result = validate_policy_set(parse_policy_set(data))
        assert not result.is_valid
        assert len(result.errors) == 2

    def test_bad_fiscal_month(self):
        data = copy.deepcopy(MINIMAL)
        data["fiscal_year"] = {"start_month": 13}
        result = validate_policy_set(parse_policy_set(data))
        assert any("start_month" in e for e in result.errors)

    def test_training_tier_without_course_warns(self, tmp_path, captured_logs):
        data = copy.deepcopy(MINIMAL)
        data["courses"] = []
        config = get_active_policy("custom", config_dir=_write_set(tmp_path, data))

        assert config.config_id == "minimal"
        warnings = [r for r in captured_logs() if r["message"] == "config_validation_warning"]
        assert len(warnings) == 1
        assert "no active course" in warnings[0]["warning"]


class TestBridges:

    def test_contravention_policy(self):
        config = parse_policy_set(copy.deepcopy(MINIMAL))
        policy = build_contravention_policy(config)

        assert policy.escalation.tier_for(8) == EscalationTier.TIER_2
        assert policy.escalation.rule_for(EscalationTier.TIER_2).assigns_training
        assert policy.contravention_types[0].severity == Severity.LOW
        assert policy.courses[0].points_credit == policy.training_credit_points == 1
        assert policy.version == f"minimal@2:{config.checksum[:12]}"
