"""Configuration management - Pydantic model with YAML loading and CLI overrides."""

import re
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

DEFAULT_CONFIG_DIR = Path.home() / ".forq"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"


class ConfigError(Exception):
    """Raised when configuration is invalid."""


class ForqConfig(BaseModel):
    """Agent configuration with validation."""

    model_config = ConfigDict(extra="forbid")

    model: str = "gpt-4o-mini"
    api_base: str | None = None
    api_key: str | None = None

    temperature: float = 0.0
    max_output_tokens: int = 4096
    max_iterations: int = 20

    shell_path: str = "/bin/bash"
    shell_timeout_sec: float = 120.0
    deny_patterns: list[str] = []
    unknown_tool_permission: Literal["filesystem", "deny"] = "filesystem"
    extra_tools: list[str] = []

    permissions_file: Path = DEFAULT_CONFIG_DIR / "permissions.json"
    audit_log_file: Path = DEFAULT_CONFIG_DIR / "audit.log"
    log_file: Path = DEFAULT_CONFIG_DIR / "forq.log"
    history_file: Path = DEFAULT_CONFIG_DIR / "history"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("api_base")
    @classmethod
    def validate_api_base(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not v.startswith(("http://", "https://")):
            raise ValueError("Must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("shell_timeout_sec")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Must be greater than 0")
        return v

    @field_validator("deny_patterns")
    @classmethod
    def validate_patterns(cls, v: list[str]) -> list[str]:
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid regex {pattern!r}: {e}") from None
        return v

    @field_validator("permissions_file", "audit_log_file", "log_file", "history_file")
    @classmethod
    def expand_path(cls, v: Path) -> Path:
        return v.expanduser()

    def __repr__(self) -> str:
        api_key_display = "***" if self.api_key else "None"
        return (
            f"ForqConfig(model={self.model!r}, "
            f"api_base={self.api_base!r}, "
            f"api_key={api_key_display!r}, "
            f"shell_path={self.shell_path!r}, "
            f"shell_timeout_sec={self.shell_timeout_sec!r})"
        )

    def __str__(self) -> str:
        return self.__repr__()


def _format_errors(e: ValidationError) -> str:
    errors = []
    for err in e.errors():
        field = ".".join(str(loc) for loc in err["loc"])
        errors.append(f"  - {field}: {err['msg']}")
    return "\n".join(errors)


def load_config(config_path: Path | None = None) -> ForqConfig:
    """Load and validate config from YAML file.

    Args:
        config_path: Path to config file. Defaults to ~/.forq/config.yaml.

    Returns:
        Validated ForqConfig. A missing file yields the defaults.

    Raises:
        ConfigError: If the file is malformed YAML, not a mapping, or fails validation.
    """
    path = config_path or DEFAULT_CONFIG_FILE

    if not path.exists():
        return ForqConfig()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}\n\n  {e}") from None

    if not isinstance(data, dict):
        raise ConfigError(
            f"Invalid configuration in {path}\n\n"
            f"  Config file is empty or not a valid YAML mapping.\n\n"
            f"Example:\n"
            f"  model: gpt-4o-mini\n"
            f"  shell_timeout_sec: 120"
        )

    try:
        return ForqConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}\n\n{_format_errors(e)}") from None


def apply_cli_overrides(config: ForqConfig, **overrides) -> ForqConfig:
    """Apply CLI flag overrides to config. Returns a new ForqConfig instance.

    Override precedence: Defaults -> YAML -> CLI flags. ``None`` values are ignored.
    """
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if not overrides:
        return config

    try:
        return ForqConfig.model_validate(config.model_dump() | overrides)
    except ValidationError as e:
        raise ConfigError(f"Invalid CLI override:\n\n{_format_errors(e)}") from None
