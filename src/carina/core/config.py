"""Configuration management for the Carina client."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from carina.core.exceptions import ConfigurationError

CARINA_HOME_ENV_VAR = "CARINA_HOME"
CREDENTIALS_DIR_ENV_VAR = "CARINA_CREDENTIALS_DIR"

CACHE_FILENAME = "cache.json"
CONFIG_FILENAME = "config.yaml"
CLUSTERS_DIRNAME = "clusters"


def carina_home(environ: dict[str, str] | None = None) -> Path:
    """Directory holding the token cache and the optional config file.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        $CARINA_HOME, or ~/.carina when unset
    """
    env = os.environ if environ is None else environ
    home = env.get(CARINA_HOME_ENV_VAR)
    if home:
        return Path(home).expanduser()
    return Path.home() / ".carina"


def credentials_base_dir(environ: dict[str, str] | None = None) -> Path:
    """Root directory for downloaded cluster credentials.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        $CARINA_CREDENTIALS_DIR, falling back to the Carina home directory
    """
    env = os.environ if environ is None else environ
    base = env.get(CREDENTIALS_DIR_ENV_VAR)
    if base:
        return Path(base).expanduser()
    return carina_home(env)


class UpdateCheckConfig(BaseModel):
    """New release notice configuration."""

    enabled: bool = True
    interval_hours: int = 12


class MagnumConfig(BaseModel):
    """Magnum backend configuration."""

    template: str | None = None  # name or uuid of the cluster template used by create


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    format: str = "console"
    output: str = "stderr"


class CarinaConfig(BaseModel):
    """Main Carina client configuration."""

    cache_enabled: bool = True
    update_check: UpdateCheckConfig = Field(default_factory=UpdateCheckConfig)
    magnum: MagnumConfig = Field(default_factory=MagnumConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, path: str | Path) -> "CarinaConfig":
        """Load configuration from YAML file.

        A missing file is not an error: the defaults apply.

        Args:
            path: Path to configuration file

        Returns:
            CarinaConfig instance

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        config_path = Path(path).expanduser()

        if not config_path.exists():
            return cls()

        try:
            with config_path.open() as f:
                data = yaml.safe_load(f)
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

        try:
            return cls(**(data or {}))
        except Exception as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Dictionary representation
        """
        return self.model_dump()
