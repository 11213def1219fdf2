"""Configuration loading and validation."""

import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any, Union
from dataclasses import dataclass, fields

from apex_batch.domain.exceptions import ConfigurationError
from apex_batch.shared.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path("apex_batch.yaml")
DEFAULT_BASE_DIR = Path.home() / ".apex_batch"


@dataclass
class BatchConfig:
    """Configuration for batch execution."""

    # Storage
    base_dir: Path = DEFAULT_BASE_DIR

    # Execution
    concurrency_limit: int = 5
    sf_binary: str = "sf"
    command_timeout: Optional[float] = None
    query_timeout: Optional[float] = 120
    unit_extension: str = ".apex"
    progress_buffer: int = 1000

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    def __post_init__(self):
        """Normalize types and validate configuration after initialization."""
        self.base_dir = Path(self.base_dir).expanduser()
        if self.log_file is not None:
            self.log_file = Path(self.log_file).expanduser()
        self._validate()

    def _validate(self):
        """Validate configuration values."""
        if not isinstance(self.concurrency_limit, int) or isinstance(self.concurrency_limit, bool):
            raise ConfigurationError(f"concurrency_limit must be an integer, got: {self.concurrency_limit!r}")

        if self.command_timeout is not None and self.command_timeout <= 0:
            raise ConfigurationError(f"command_timeout must be positive, got: {self.command_timeout}")

        if self.query_timeout is not None and self.query_timeout <= 0:
            raise ConfigurationError(f"query_timeout must be positive, got: {self.query_timeout}")

        if not self.unit_extension.startswith(".") or len(self.unit_extension) < 2:
            raise ConfigurationError(f"Invalid unit_extension: {self.unit_extension}")

        if self.progress_buffer <= 0:
            raise ConfigurationError(f"progress_buffer must be positive, got: {self.progress_buffer}")

        if not self.sf_binary:
            raise ConfigurationError("sf_binary must not be empty")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError(f"Invalid log_level: {self.log_level}")


class ConfigLoader:
    """Loads and validates configuration from a YAML file and environment variables."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize config loader.

        Args:
            config_path: Optional path to YAML config file
        """
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self._logger = get_logger(__name__)

    def load(self, overrides: Optional[Dict[str, Any]] = None) -> BatchConfig:
        """
        Load configuration from file and environment.

        Precedence, lowest first: YAML file, environment, overrides.

        Returns:
            BatchConfig instance

        Raises:
            ConfigurationError: If configuration is invalid
        """
        config_dict: Dict[str, Any] = {}

        if self.config_path.exists():
            self._logger.info(f"Loading config from {self.config_path}")
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    yaml_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e
            if not isinstance(yaml_config, dict):
                raise ConfigurationError(f"Config file must contain a mapping: {self.config_path}")
            config_dict.update(yaml_config)
        else:
            self._logger.debug(f"Config file not found: {self.config_path}")

        config_dict.update(self._load_from_env())

        if overrides:
            for k, v in overrides.items():
                if v is None:
                    continue
                config_dict[k] = v

        valid_fields = {f.name for f in fields(BatchConfig)}
        unknown = sorted(set(config_dict) - valid_fields)
        if unknown:
            self._logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

        filtered_config = {k: v for k, v in config_dict.items() if k in valid_fields}

        try:
            return BatchConfig(**filtered_config)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        env_config: Dict[str, Any] = {}

        if base_dir := os.getenv("APEX_BATCH_HOME"):
            env_config["base_dir"] = Path(base_dir)

        if concurrency := os.getenv("APEX_BATCH_CONCURRENCY"):
            try:
                env_config["concurrency_limit"] = int(concurrency)
            except ValueError:
                self._logger.warning(f"Invalid APEX_BATCH_CONCURRENCY value: {concurrency}")

        if sf_binary := os.getenv("SF_BINARY"):
            env_config["sf_binary"] = sf_binary

        if timeout := os.getenv("APEX_BATCH_COMMAND_TIMEOUT"):
            try:
                env_config["command_timeout"] = float(timeout)
            except ValueError:
                self._logger.warning(f"Invalid APEX_BATCH_COMMAND_TIMEOUT value: {timeout}")

        if query_timeout := os.getenv("APEX_BATCH_QUERY_TIMEOUT"):
            try:
                env_config["query_timeout"] = float(query_timeout)
            except ValueError:
                self._logger.warning(f"Invalid APEX_BATCH_QUERY_TIMEOUT value: {query_timeout}")

        if log_level := os.getenv("APEX_BATCH_LOG_LEVEL"):
            env_config["log_level"] = log_level.upper()

        if log_file := os.getenv("APEX_BATCH_LOG_FILE"):
            env_config["log_file"] = Path(log_file)

        return env_config
