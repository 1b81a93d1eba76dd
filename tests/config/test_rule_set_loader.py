"""
Tests for rule-set YAML loading and bootstrap.

Covers:
- The packaged Guatemala file parses into the expected parameters
- Required keys, rounding aliases and float handling
- Invalid bracket tables fail bootstrap
- Checksums identify content
"""

from datetime import date
from decimal import Decimal

import pytest
import yaml

from payroll_config import DEFAULT_SETS_DIR, bootstrap_rule_sets
from payroll_config.loader import (
    compute_checksum,
    load_rule_set,
    load_yaml_file,
    parse_decimal,
    parse_rounding,
    parse_rule_set,
)
from payroll_kernel.domain.values import RoundingMode
from payroll_kernel.exceptions import InvalidBracketTableError, InvalidRuleSetError

GT_FILE = DEFAULT_SETS_DIR / "GT" / "2025.yaml"


@pytest.fixture
def gt_document():
    return load_yaml_file(GT_FILE)


def _write(directory, name, document):
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(document), encoding="utf-8")
    return path


class TestPackagedRuleSet:

    def test_guatemala_parameters(self):
        rules = load_rule_set(GT_FILE)

        assert rules.jurisdiction == "GT"
        assert rules.version == "2025.1"
        assert rules.effective_from == date(2025, 1, 1)
        assert rules.effective_to is None
        assert rules.employee_social_security_rate == Decimal("0.0483")
        assert rules.employer_social_security_rate == Decimal("0.1067")
        assert rules.social_security_base_cap == Decimal("5000.00")
        assert [r.code for r in rules.surcharge_rates] == ["IRTRA", "INTECAP"]
        assert [r.code for r in rules.accrual_rates] == [
            "YEAR_END_BONUS", "MID_YEAR_BONUS", "VACATION", "SEVERANCE",
        ]
        assert len(rules.tax_brackets) == 3
        assert rules.statutory_bonus_amount == Decimal("250.00")
        assert rules.statutory_bonus_annual_tax_exemption == Decimal("60000.00")
        assert rules.monthly_standard_hours == Decimal("173.33")
        assert rules.rounding.decimal_places == 2
        assert rules.rounding.mode == RoundingMode.NEAREST
        assert rules.employer_contribution_capped
        assert not rules.social_security_deductible_from_taxable_base

    def test_bootstrap_registers_packaged_sets(self):
        repository = bootstrap_rule_sets()
        assert repository.jurisdictions() == ["GT"]
        assert repository.resolve("gt", date(2025, 6, 1)).version == "2025.1"

    def test_bootstrap_logs_config_trace(self, captured_logs):
        bootstrap_rule_sets()
        traces = [r for r in captured_logs() if r["message"] == "PAYROLL_CONFIG_TRACE"]
        assert traces
        assert traces[-1]["rule_sets"][0]["version"] == "2025.1"

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            bootstrap_rule_sets(tmp_path / "missing")


class TestParsing:

    def test_missing_required_key(self, gt_document):
        del gt_document["social_security"]["base_cap"]
        with pytest.raises(InvalidRuleSetError) as exc:
            parse_rule_set(gt_document)
        assert exc.value.field == "social_security.base_cap"

    def test_missing_surcharges(self, gt_document):
        del gt_document["surcharges"]
        with pytest.raises(InvalidRuleSetError, match="surcharges"):
            parse_rule_set(gt_document)

    def test_social_security_deductible_switch(self, gt_document):
        gt_document["social_security"]["deductible_from_taxable_base"] = True
        assert parse_rule_set(gt_document).social_security_deductible_from_taxable_base

        del gt_document["social_security"]["deductible_from_taxable_base"]
        assert not parse_rule_set(gt_document).social_security_deductible_from_taxable_base

    @pytest.mark.parametrize(
        "name, mode",
        [("nearest", RoundingMode.NEAREST), ("Arriba", RoundingMode.UP), ("down", RoundingMode.DOWN)],
    )
    def test_rounding_aliases(self, name, mode):
        assert parse_rounding({"decimal_places": 2, "mode": name}).mode == mode

    def test_unknown_rounding_mode(self):
        with pytest.raises(InvalidRuleSetError, match="rounding mode"):
            parse_rounding({"mode": "bankers"})

    def test_default_rounding(self):
        policy = parse_rounding(None)
        assert policy.decimal_places == 2
        assert policy.mode == RoundingMode.NEAREST

    def test_unquoted_yaml_float_parsed_exactly(self):
        assert parse_decimal(0.0483, "rate") == Decimal("0.0483")

    def test_gap_in_brackets_fails(self, gt_document, tmp_path):
        gt_document["income_tax"]["brackets"][0]["upper_bound"] = "20000.00"
        _write(tmp_path, "XX/bad.yaml", gt_document)
        with pytest.raises(InvalidBracketTableError, match="gap"):
            bootstrap_rule_sets(tmp_path)

    def test_discontinuous_brackets_fail(self, gt_document):
        gt_document["income_tax"]["brackets"][1]["base_tax"] = "1300.00"
        with pytest.raises(InvalidBracketTableError, match="discontinuous"):
            parse_rule_set(gt_document)

    def test_three_surcharges_rejected(self, gt_document):
        gt_document["surcharges"].append({"code": "EXTRA", "rate": "0.01"})
        with pytest.raises(InvalidRuleSetError, match="exactly two"):
            parse_rule_set(gt_document)

    def test_load_order_is_sorted_by_path(self, gt_document, tmp_path):
        second = dict(gt_document, version="2026.1", effective_from=date(2026, 1, 1))
        first = dict(gt_document, effective_to=date(2026, 1, 1))
        _write(tmp_path, "GT/2026.yaml", second)
        _write(tmp_path, "GT/2025.yaml", first)

        repository = bootstrap_rule_sets(tmp_path)
        assert [s.version for s in repository.versions("GT")] == ["2025.1", "2026.1"]


class TestChecksum:

    def test_identical_documents_identical_checksums(self, gt_document):
        assert compute_checksum(gt_document) == compute_checksum(load_yaml_file(GT_FILE))

    def test_changed_document_changes_checksum(self, gt_document):
        before = compute_checksum(gt_document)
        gt_document["social_security"]["employee_rate"] = "0.05"
        assert compute_checksum(gt_document) != before

    def test_rule_set_checksum_stable_across_loads(self):
        assert load_rule_set(GT_FILE).checksum == load_rule_set(GT_FILE).checksum
