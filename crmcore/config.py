"""
Configuration management for crmcore.

Loads config.yaml from the crmcore home directory ($CRMCORE_HOME, default
~/.config/crmcore). An optional env_file is loaded into the process
environment with python-dotenv.
"""

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from crmcore.formula.node import MAX_NODE_DEPTH


STORE_TYPES = ("memory", "sqlite")
LOG_FORMATS = ("structured", "pretty")


class ConfigError(Exception):
    """Configuration validation error."""
    pass


def get_crmcore_home() -> Path:
    """Directory holding config.yaml, from $CRMCORE_HOME or the default."""
    home = os.environ.get("CRMCORE_HOME")
    if home:
        return Path(home).expanduser()
    return Path("~/.config/crmcore").expanduser()


@dataclass
class CrmConfig:
    """
    Runtime configuration.

    Attributes:
        store: "memory" or "sqlite"
        sqlite_path: Database file for the sqlite store
        secrets_path: YAML file holding API secret keys
        lock_timeout_s: Bounded wait for table locks before LockTimeout
        formula_max_depth: Maximum formula nesting depth
        log_level: Logging level name
        log_format: "structured" (JSON) or "pretty" (rich console)
        log_file: Optional log file path
        env_file: Optional dotenv file loaded at startup
    """
    store: str = "sqlite"
    sqlite_path: str = "~/.local/share/crmcore/crm.db"
    secrets_path: str = "~/.local/share/crmcore/secrets.yaml"
    lock_timeout_s: float = 10.0
    formula_max_depth: int = 100
    log_level: str = "INFO"
    log_format: str = "structured"
    log_file: Optional[str] = None
    env_file: Optional[str] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.store not in STORE_TYPES:
            raise ConfigError(f"store must be one of {STORE_TYPES}, got '{self.store}'")
        if self.log_format not in LOG_FORMATS:
            raise ConfigError(f"log_format must be one of {LOG_FORMATS}, got '{self.log_format}'")
        if not isinstance(self.lock_timeout_s, (int, float)) or self.lock_timeout_s < 0:
            raise ConfigError("lock_timeout_s must be a non-negative number")
        if (
            not isinstance(self.formula_max_depth, int) or
            not 1 <= self.formula_max_depth <= MAX_NODE_DEPTH
        ):
            raise ConfigError(
                f"formula_max_depth must be an integer between 1 and {MAX_NODE_DEPTH}"
            )

    @property
    def sqlite_file(self) -> Path:
        return Path(self.sqlite_path).expanduser()

    @property
    def secrets_file(self) -> Path:
        return Path(self.secrets_path).expanduser()

    @property
    def log_file_path(self) -> Optional[Path]:
        return Path(self.log_file).expanduser() if self.log_file else None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CrmConfig":
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def load_config(config_path: Optional[Path] = None) -> CrmConfig:
    """
    Load configuration from YAML.

    Args:
        config_path: Path to config file. Defaults to <crmcore home>/config.yaml

    Returns:
        CrmConfig instance

    Raises:
        FileNotFoundError: If the config file does not exist
        ConfigError: If the config is invalid
    """
    if config_path is None:
        config_path = get_crmcore_home() / "config.yaml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"crmcore config.yaml not found at {config_path}. Run 'crmcore init'."
        )

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax: {e}")

    if not isinstance(data, dict):
        raise ConfigError("Configuration file must contain a mapping")

    config = CrmConfig.from_dict(data)

    if config.env_file:
        env_path = Path(config.env_file).expanduser()
        if env_path.exists():
            load_dotenv(env_path, override=False)

    return config
