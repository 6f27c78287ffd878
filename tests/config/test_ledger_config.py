"""
Tests for the ledger configuration entrypoint.

Covers loading the packaged defaults, override resolution, strict key
checking and value validation.
"""

from decimal import Decimal

import pytest
import yaml

from ledger_config import (
    CONFIG_PATH_ENV,
    DEFAULT_CONFIG_PATH,
    LedgerConfiguration,
    compute_checksum,
    get_active_config,
    parse_configuration,
)


@pytest.fixture
def override_file(tmp_path):
    def _write(data):
        path = tmp_path / "ledger.yaml"
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


class TestDefaults:
    def test_packaged_defaults_match_schema(self, monkeypatch):
        monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
        config = get_active_config()
        expected = LedgerConfiguration()

        assert config.source_path == str(DEFAULT_CONFIG_PATH)
        assert config.entity_name == expected.entity_name
        assert config.autopost.default_hourly_rate == Decimal("75")
        assert config.numbering == expected.numbering
        assert config.paging == expected.paging
        assert config.autopost == expected.autopost
        assert config.expense == expected.expense
        assert config.reporting == expected.reporting
        assert len(config.checksum) == 64

    def test_empty_mapping_takes_schema_defaults(self):
        config = parse_configuration({})
        assert config.numbering.entry_number_start == 10001
        assert config.reporting.cash_accounts == ("1000", "1010", "1020")


class TestResolution:
    def test_explicit_path(self, override_file, monkeypatch):
        monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
        path = override_file({"entity_name": "Explicit Co"})
        assert get_active_config(path).entity_name == "Explicit Co"

    def test_environment_override(self, override_file, monkeypatch):
        path = override_file({"numbering": {"entry_number_start": 500}})
        monkeypatch.setenv(CONFIG_PATH_ENV, str(path))

        config = get_active_config()
        assert config.numbering.entry_number_start == 500
        assert config.numbering.expense_number_start == 1001
        assert config.source_path == str(path)

    def test_explicit_path_beats_environment(self, tmp_path, override_file, monkeypatch):
        env_path = tmp_path / "env.yaml"
        env_path.write_text(yaml.safe_dump({"entity_name": "From Env"}))
        monkeypatch.setenv(CONFIG_PATH_ENV, str(env_path))

        assert get_active_config(override_file({"entity_name": "From Arg"})).entity_name == "From Arg"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "nope.yaml")

    def test_load_logged(self, captured_logs, monkeypatch):
        monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
        config = get_active_config()
        events = [r for r in captured_logs() if r["message"] == "ledger_config_loaded"]
        assert events[0]["checksum"] == config.checksum


class TestValidation:
    def test_unknown_top_level_key(self):
        with pytest.raises(ValueError, match="Unknown configuration key"):
            parse_configuration({"currency": "EUR"})

    def test_unknown_section_key(self):
        with pytest.raises(ValueError, match="autopost: unknown key"):
            parse_configuration({"autopost": {"overtime": "1.5"}})

    def test_section_must_be_mapping(self):
        with pytest.raises(ValueError, match="expected a mapping"):
            parse_configuration({"paging": [50, 500]})

    @pytest.mark.parametrize("data", [
        {"numbering": {"entry_number_start": 0}},
        {"numbering": {"expense_number_start": -1}},
        {"paging": {"default_page_size": 0}},
        {"paging": {"default_page_size": 600}},
        {"paging": {"drilldown_default_limit": 0}},
        {"autopost": {"default_hourly_rate": "-75"}},
    ])
    def test_invalid_values(self, data):
        with pytest.raises(ValueError):
            parse_configuration(data)

    def test_non_numeric_decimal(self):
        with pytest.raises(ValueError, match="default_hourly_rate"):
            parse_configuration({"autopost": {"default_hourly_rate": "a lot"}})

    def test_balance_tolerance_is_not_a_setting(self):
        with pytest.raises(ValueError, match="Unknown configuration key"):
            parse_configuration({"balance_tolerance": "0.05"})

    def test_single_account_promoted_to_list(self):
        config = parse_configuration({"reporting": {"cash_accounts": "1010"}})
        assert config.reporting.cash_accounts == ("1010",)

    def test_decimal_fields_parsed(self):
        config = parse_configuration({"autopost": {"default_hourly_rate": 82.5}})
        assert config.autopost.default_hourly_rate == Decimal("82.5")


class TestChecksum:
    def test_deterministic_and_order_independent(self):
        a = {"entity_name": "X", "paging": {"default_page_size": 20, "max_page_size": 100}}
        b = {"paging": {"max_page_size": 100, "default_page_size": 20}, "entity_name": "X"}
        assert compute_checksum(a) == compute_checksum(b)

    def test_changes_with_content(self):
        assert compute_checksum({"entity_name": "X"}) != compute_checksum({"entity_name": "Y"})

    def test_carried_on_configuration(self):
        data = {"entity_name": "X"}
        assert parse_configuration(data).checksum == compute_checksum(data)
