"""
Runtime configuration (``certification_kernel.config``).

Responsibility
--------------
Loads the bundled ``certification.yaml`` (or the file named by the
``CERTIFICATION_CONFIG`` environment variable) into a frozen
``CertificationConfig`` dataclass.  ``DATABASE_URL`` in the environment
overrides the configured database URL.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range values  -> ``ValueError`` with the offending key.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "certification.yaml"

CONFIG_ENV_VAR = "CERTIFICATION_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"

# Widths of the actor and reason columns; configured limits may not exceed them.
ACTOR_COLUMN_LENGTH = 100
REASON_COLUMN_LENGTH = 4000


@dataclass(frozen=True)
class CertificationConfig:
    """Typed, immutable runtime settings."""

    database_url: str = "sqlite:///certification.db"
    log_level: str = "INFO"

    # Lifecycle
    max_transition_retries: int = 3
    reason_max_length: int = 500
    actor_max_length: int = ACTOR_COLUMN_LENGTH

    # History paging
    history_page_size: int = 20
    history_max_page_size: int = 200

    # Reconciliation
    reconciliation_recent_months: int = 12
    reconciliation_lock_timeout_seconds: int = 3600

    # Optional YAML transition table; None uses the canonical table.
    transition_table_path: str | None = None

    def __post_init__(self) -> None:
        positive = (
            "max_transition_retries",
            "reason_max_length",
            "actor_max_length",
            "history_page_size",
            "history_max_page_size",
            "reconciliation_recent_months",
            "reconciliation_lock_timeout_seconds",
        )
        for name in positive:
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise ValueError(f"Config key '{name}' must be a positive integer, got {value!r}")
        if self.actor_max_length > ACTOR_COLUMN_LENGTH:
            raise ValueError(
                f"Config key 'actor_max_length' must not exceed {ACTOR_COLUMN_LENGTH}"
            )
        if self.reason_max_length > REASON_COLUMN_LENGTH:
            raise ValueError(
                f"Config key 'reason_max_length' must not exceed {REASON_COLUMN_LENGTH}"
            )
        if self.history_page_size > self.history_max_page_size:
            raise ValueError(
                "Config key 'history_page_size' must not exceed 'history_max_page_size'"
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


def parse_config(data: dict[str, Any]) -> CertificationConfig:
    """Build a CertificationConfig from a parsed YAML mapping.

    The YAML groups keys in sections (``database``, ``lifecycle``,
    ``history``, ``reconciliation``, ``logging``); unknown keys are rejected.
    """
    flat: dict[str, Any] = {}
    sections = {
        "database": {"url": "database_url"},
        "logging": {"level": "log_level"},
        "lifecycle": {
            "max_transition_retries": "max_transition_retries",
            "reason_max_length": "reason_max_length",
            "actor_max_length": "actor_max_length",
            "transition_table": "transition_table_path",
        },
        "history": {
            "page_size": "history_page_size",
            "max_page_size": "history_max_page_size",
        },
        "reconciliation": {
            "recent_months": "reconciliation_recent_months",
            "lock_timeout_seconds": "reconciliation_lock_timeout_seconds",
        },
    }
    for section, values in data.items():
        if section not in sections:
            raise ValueError(f"Unknown config section: {section!r}")
        for key, value in (values or {}).items():
            if key not in sections[section]:
                raise ValueError(f"Unknown config key: {section}.{key}")
            flat[sections[section][key]] = value
    return CertificationConfig(**flat)


def load_config(path: str | Path | None = None) -> CertificationConfig:
    """
    Load configuration with environment overrides applied.

    Resolution order for the file: explicit ``path``, then
    ``$CERTIFICATION_CONFIG``, then the bundled default.  ``$DATABASE_URL``
    wins over the file's database URL.
    """
    resolved = Path(path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
    config = parse_config(load_yaml_file(resolved))

    db_url = os.environ.get(DATABASE_URL_ENV_VAR)
    if db_url:
        values = {f.name: getattr(config, f.name) for f in fields(config)}
        values["database_url"] = db_url
        config = CertificationConfig(**values)
    return config
