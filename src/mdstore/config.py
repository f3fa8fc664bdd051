"""
Lock tuning configuration.

Loads retry interval, timeouts and lock strategy from an optional YAML file
(conventionally .mdstore.yaml) with environment variable overrides.
"""

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Literal, Optional, Union

import yaml

from mdstore.persistence import atomic_write

LockStrategy = Literal["auto", "kernel", "retry"]

LOCK_STRATEGIES = ("auto", "kernel", "retry")

DEFAULT_CONFIG_FILE = ".mdstore.yaml"

# Environment variable -> (field name, converter)
_ENV_OVERRIDES = {
    "MDSTORE_LOCK_RETRY_INTERVAL": ("lock_retry_interval", float),
    "MDSTORE_LOCK_TIMEOUT": ("lock_timeout", float),
    "MDSTORE_STALE_LOCK_AGE": ("stale_lock_age", float),
    "MDSTORE_KERNEL_LOCK_TIMEOUT": ("kernel_lock_timeout", float),
    "MDSTORE_LOCK_STRATEGY": ("lock_strategy", str),
}


@dataclass(frozen=True)
class StoreConfig:
    """
    Tuning values for directory locks.

    Attributes:
        lock_retry_interval: Sleep between create-exclusive attempts (default: 0.05s)
        lock_timeout: Overall acquisition timeout of the retry-loop lock (default: 10s)
        stale_lock_age: Age after which a lock file is considered abandoned (default: 30s)
        kernel_lock_timeout: Optional bound for the kernel lock; None waits forever
        lock_strategy: "auto" picks by platform, "kernel" or "retry" force one
    """

    lock_retry_interval: float = 0.05
    lock_timeout: float = 10.0
    stale_lock_age: float = 30.0
    kernel_lock_timeout: Optional[float] = None
    lock_strategy: LockStrategy = "auto"

    def __post_init__(self):
        """Validate durations and strategy."""
        for name in ("lock_retry_interval", "lock_timeout", "stale_lock_age", "kernel_lock_timeout"):
            value = getattr(self, name)
            if value is None and name == "kernel_lock_timeout":
                continue
            # bool is an int subclass
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a number of seconds, got {value!r}")

        for name in ("lock_retry_interval", "lock_timeout", "stale_lock_age"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        if self.kernel_lock_timeout is not None and self.kernel_lock_timeout <= 0:
            raise ValueError("kernel_lock_timeout must be positive or None")

        if self.lock_strategy not in LOCK_STRATEGIES:
            raise ValueError(
                f"Invalid lock_strategy: {self.lock_strategy!r}. "
                f"Must be one of: {', '.join(LOCK_STRATEGIES)}"
            )

    @classmethod
    def load(cls, config_file: Optional[Union[str, Path]] = None) -> "StoreConfig":
        """
        Load configuration from a YAML file.

        Falls back to defaults if the file doesn't exist. Environment
        variables override config file values.

        Args:
            config_file: Path to the YAML file (default: .mdstore.yaml in
                the current directory)

        Returns:
            StoreConfig instance with loaded/default values

        Raises:
            ValueError: If the config file or an environment override is invalid
        """
        path = Path(config_file) if config_file is not None else Path(DEFAULT_CONFIG_FILE)
        config_dict = {}

        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    config_dict = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid {path.name}: {e}") from e

            if not isinstance(config_dict, dict):
                raise ValueError(f"Invalid {path.name}: expected a mapping at top level")

        for env_var, (key, convert) in _ENV_OVERRIDES.items():
            if env_var not in os.environ:
                continue
            raw = os.environ[env_var]
            try:
                config_dict[key] = convert(raw)
            except ValueError:
                raise ValueError(f"Invalid {env_var}: {raw}. Must be a number.")

        known = {f.name for f in fields(cls)}
        try:
            return cls(**{k: v for k, v in config_dict.items() if k in known})
        except ValueError as e:
            if path.exists():
                raise ValueError(f"Invalid {path.name}: {e}") from e
            raise

    def save(self, config_file: Union[str, Path]) -> None:
        """
        Save configuration as YAML.

        Args:
            config_file: Destination path
        """
        atomic_write(
            Path(config_file),
            yaml.safe_dump(asdict(self), default_flow_style=False, sort_keys=False),
        )
