"""Tests for runtime configuration loading (certification_kernel/config.py)."""

import pytest
import yaml

from certification_kernel.config import (
    CONFIG_ENV_VAR,
    DATABASE_URL_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    CertificationConfig,
    load_config,
    parse_config,
)
from certification_kernel.domain.status import CustomerStatus
from certification_kernel.services.lifecycle_service import validator_from_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.delenv(DATABASE_URL_ENV_VAR, raising=False)


class TestBundledConfig:

    def test_bundled_file_exists(self):
        assert DEFAULT_CONFIG_PATH.is_file()

    def test_bundled_values_match_defaults(self):
        assert load_config() == CertificationConfig()


class TestParsing:

    def test_sections_map_to_fields(self):
        config = parse_config({
            "database": {"url": "postgresql://u:p@db/cert"},
            "lifecycle": {"max_transition_retries": 5, "reason_max_length": 100},
            "history": {"page_size": 10, "max_page_size": 50},
            "reconciliation": {"recent_months": 6},
        })
        assert config.database_url == "postgresql://u:p@db/cert"
        assert config.max_transition_retries == 5
        assert config.reason_max_length == 100
        assert config.history_page_size == 10
        assert config.reconciliation_recent_months == 6

    def test_unknown_section_rejected(self):
        with pytest.raises(ValueError, match="Unknown config section"):
            parse_config({"metrics": {"enabled": True}})

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="lifecycle.max_retries"):
            parse_config({"lifecycle": {"max_retries": 3}})

    @pytest.mark.parametrize(
        "field,value",
        [("max_transition_retries", 0), ("reason_max_length", -1), ("history_page_size", "20")],
    )
    def test_non_positive_values_rejected(self, field, value):
        with pytest.raises(ValueError, match=field):
            CertificationConfig(**{field: value})

    @pytest.mark.parametrize(
        "field,value", [("actor_max_length", 101), ("reason_max_length", 4001)],
    )
    def test_limits_bounded_by_column_width(self, field, value):
        with pytest.raises(ValueError, match=field):
            CertificationConfig(**{field: value})

    def test_page_size_bounded_by_max(self):
        with pytest.raises(ValueError, match="history_page_size"):
            CertificationConfig(history_page_size=300, history_max_page_size=200)


class TestResolution:

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "cert.yaml"
        path.write_text(yaml.safe_dump({"logging": {"level": "DEBUG"}}))
        assert load_config(path).log_level == "DEBUG"

    def test_env_var_path(self, tmp_path, monkeypatch):
        path = tmp_path / "cert.yaml"
        path.write_text(yaml.safe_dump({"history": {"page_size": 5}}))
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert load_config().history_page_size == 5

    def test_database_url_env_override(self, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV_VAR, "postgresql://x@y/z")
        config = load_config()
        assert config.database_url == "postgresql://x@y/z"
        assert config.reason_max_length == CertificationConfig().reason_max_length

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")


class TestTransitionTableOverride:

    def test_configured_table_used(self, tmp_path):
        table = tmp_path / "transitions.yaml"
        table.write_text(
            "transitions:\n"
            "  NEW: [CERTIFIED]\n"
            "  NOTIFIED: []\n"
            "  SUBMITTED: []\n"
            "  CERTIFIED: []\n"
            "  ABORTED: []\n"
            "  CERTIFIED_ELSEWHERE: []\n"
        )
        validator = validator_from_config(CertificationConfig(transition_table_path=str(table)))
        assert validator.allowed_targets(CustomerStatus.NEW) == {CustomerStatus.CERTIFIED}

    def test_default_is_canonical(self):
        validator = validator_from_config(CertificationConfig())
        assert validator.is_allowed(CustomerStatus.ABORTED, CustomerStatus.NEW)
