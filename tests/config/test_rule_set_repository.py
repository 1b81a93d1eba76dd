"""
Tests for the effective-dated rule-set repository.

Covers:
- Resolution by jurisdiction and date (half-open windows)
- Overlap rejection and supersession
- Immutability of versions referenced by approved runs
- Engine settings validation
"""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from payroll_config.repository import RuleSetRepository
from payroll_config.settings import MAX_WORKERS_LIMIT, EngineSettings
from payroll_kernel.exceptions import (
    AmbiguousRuleSetError,
    NoApplicableRuleSetError,
    RuleSetImmutableError,
    RuleSetOverlapError,
)


class TestResolve:

    def test_resolves_effective_version(self, rule_set_factory):
        repository = RuleSetRepository([
            rule_set_factory(version="2025", effective_to=date(2025, 7, 1)),
            rule_set_factory(version="2025b", effective_from=date(2025, 7, 1)),
        ])

        assert repository.resolve("XX", date(2025, 6, 30)).version == "2025"
        assert repository.resolve("XX", date(2025, 7, 1)).version == "2025b"
        assert repository.resolve(" xx ", date(2030, 1, 1)).version == "2025b"

    def test_before_first_version(self, rule_set_factory):
        repository = RuleSetRepository([rule_set_factory()])
        with pytest.raises(NoApplicableRuleSetError) as exc:
            repository.resolve("XX", date(2024, 12, 31))
        assert exc.value.as_of == "2024-12-31"

    def test_unknown_jurisdiction(self, rule_set_factory):
        repository = RuleSetRepository([rule_set_factory()])
        with pytest.raises(NoApplicableRuleSetError):
            repository.resolve("ZZ", date(2025, 3, 1))

    def test_ambiguous_resolution_never_picks_one(self, rule_set_factory):
        repository = RuleSetRepository([rule_set_factory(version="a")])
        # Bypass the write-side checks to simulate corrupted state.
        repository._sets["XX"].append(rule_set_factory(version="b"))

        with pytest.raises(AmbiguousRuleSetError):
            repository.resolve("XX", date(2025, 3, 1))

    def test_get_and_versions(self, rule_set_factory):
        repository = RuleSetRepository([rule_set_factory()])
        assert repository.get("xx", "test.1") is not None
        assert repository.get("XX", "nope") is None
        assert [s.version for s in repository.versions("XX")] == ["test.1"]
        assert repository.jurisdictions() == ["XX"]


class TestRegister:

    def test_overlapping_window_rejected(self, rule_set_factory):
        repository = RuleSetRepository([rule_set_factory(version="a")])
        with pytest.raises(RuleSetOverlapError) as exc:
            repository.register(rule_set_factory(version="b", effective_from=date(2025, 6, 1)))
        assert exc.value.existing_version == "a"

    def test_other_jurisdiction_does_not_overlap(self, rule_set_factory):
        repository = RuleSetRepository([rule_set_factory()])
        repository.register(rule_set_factory(jurisdiction="YY"))
        assert repository.jurisdictions() == ["XX", "YY"]

    def test_identical_reregistration_is_noop(self, rule_set_factory):
        repository = RuleSetRepository([rule_set_factory()])
        repository.mark_referenced("XX", "test.1")
        repository.register(rule_set_factory())
        assert len(repository.versions("XX")) == 1

    def test_unreferenced_version_can_be_replaced(self, rule_set_factory):
        repository = RuleSetRepository([rule_set_factory()])
        repository.register(rule_set_factory(social_security_base_cap=Decimal("6000")))
        assert repository.resolve("XX", date(2025, 2, 1)).social_security_base_cap == Decimal("6000")

    def test_referenced_version_is_immutable(self, rule_set_factory):
        repository = RuleSetRepository([rule_set_factory()])
        repository.mark_referenced("xx", "test.1")

        with pytest.raises(RuleSetImmutableError):
            repository.register(rule_set_factory(social_security_base_cap=Decimal("6000")))
        assert repository.is_referenced("XX", "test.1")
        assert repository.resolve("XX", date(2025, 2, 1)).social_security_base_cap == Decimal("5000")


class TestSupersede:

    def test_closes_open_predecessor(self, rule_set_factory):
        original = rule_set_factory()
        repository = RuleSetRepository([original])

        closed = repository.supersede(
            rule_set_factory(version="test.2", effective_from=date(2025, 7, 1))
        )

        assert closed.effective_to == date(2025, 7, 1)
        assert closed.checksum == original.checksum
        assert repository.resolve("XX", date(2025, 6, 30)).version == "test.1"
        assert repository.resolve("XX", date(2025, 7, 1)).version == "test.2"

    def test_allowed_on_referenced_version(self, rule_set_factory):
        repository = RuleSetRepository([rule_set_factory()])
        repository.mark_referenced("XX", "test.1")

        repository.supersede(rule_set_factory(version="test.2", effective_from=date(2025, 7, 1)))
        assert [s.version for s in repository.versions("XX")] == ["test.1", "test.2"]

    def test_failed_registration_restores_predecessor(self, rule_set_factory):
        repository = RuleSetRepository([rule_set_factory()])
        repository.mark_referenced("XX", "test.1")

        # Reusing the referenced version label is rejected after the close.
        with pytest.raises(RuleSetImmutableError):
            repository.supersede(rule_set_factory(effective_from=date(2025, 7, 1)))

        current = repository.resolve("XX", date(2025, 12, 31))
        assert current.version == "test.1"
        assert current.effective_to is None

    def test_nothing_to_close(self, rule_set_factory):
        repository = RuleSetRepository()
        assert repository.supersede(rule_set_factory()) is None
        assert repository.resolve("XX", date(2025, 1, 1)).version == "test.1"


class TestEngineSettings:

    def test_defaults(self):
        settings = EngineSettings.with_defaults()
        assert settings.max_workers == 4
        assert settings.default_jurisdiction == "GT"
        assert settings.rule_sets_dir is None

    def test_from_dict(self):
        settings = EngineSettings.from_dict({
            "max_workers": 8,
            "default_jurisdiction": " gt ",
            "default_currency": "gtq",
            "rule_sets_dir": "/etc/payroll/sets",
        })
        assert settings.max_workers == 8
        assert settings.default_jurisdiction == "GT"
        assert settings.default_currency == "GTQ"
        assert settings.rule_sets_dir == Path("/etc/payroll/sets")

    @pytest.mark.parametrize("workers", [0, -1, MAX_WORKERS_LIMIT + 1, "4"])
    def test_invalid_worker_count(self, workers):
        with pytest.raises(ValueError, match="max_workers"):
            EngineSettings(max_workers=workers)

    def test_invalid_currency(self):
        with pytest.raises(ValueError, match="ISO 4217"):
            EngineSettings(default_currency="QUETZAL")

    def test_unknown_key_rejected(self):
        with pytest.raises(TypeError):
            EngineSettings.from_dict({"threads": 4})
