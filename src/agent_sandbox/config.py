"""Configuration management - Pydantic model with YAML loading and CLI overrides."""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from agent_sandbox.docs import DOCS_DIR_NAME
from agent_sandbox.sandbox.executor import DEFAULT_MAX_OUTPUT_BYTES, DEFAULT_TIMEOUT_SEC
from agent_sandbox.sandbox.safe_delete import STAGING_DIR_NAME

DEFAULT_CONFIG_DIR = Path.home() / ".agent-sandbox"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"


class ConfigError(Exception):
    """Raised when configuration is invalid."""


class MCPServerConfig(BaseModel):
    """One external MCP tool server."""

    model_config = ConfigDict(extra="forbid")

    transport: Literal["stdio", "http"] = "stdio"
    command: str | None = None
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    url: str | None = None
    api_key: str = ""

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError("Must start with http:// or https://")
        return v

    @model_validator(mode="after")
    def _check_transport_fields(self) -> "MCPServerConfig":
        if self.transport == "stdio" and not self.command:
            raise ValueError("stdio servers need a 'command'")
        if self.transport == "http" and not self.url:
            raise ValueError("http servers need a 'url'")
        return self

    def __repr__(self) -> str:
        api_key_display = "***" if self.api_key else ""
        return (
            f"MCPServerConfig(transport={self.transport!r}, "
            f"command={self.command!r}, "
            f"url={self.url!r}, "
            f"api_key={api_key_display!r})"
        )

    def __str__(self) -> str:
        return self.__repr__()


class PolicyConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    deny_tools: list[str] = Field(default_factory=list)


class SandboxConfig(BaseModel):
    """Sandbox configuration with validation."""

    model_config = ConfigDict(extra="forbid")

    project_root: Path | None = None
    command_timeout: int = DEFAULT_TIMEOUT_SEC
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    staging_dir_name: str = STAGING_DIR_NAME
    docs_dir_name: str = DOCS_DIR_NAME
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    audit_log: str | None = None
    mcp_servers: dict[str, MCPServerConfig] = Field(default_factory=dict)

    @field_validator("command_timeout", "max_output_bytes")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Must be greater than zero")
        return v

    @field_validator("staging_dir_name", "docs_dir_name")
    @classmethod
    def validate_dir_name(cls, v: str) -> str:
        if not v or "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError("Must be a single directory name")
        return v

    def resolved_root(self) -> Path:
        return (self.project_root or Path.cwd()).resolve()

    def policy_dict(self) -> dict:
        return self.policy.model_dump()


def _format_errors(e: ValidationError) -> str:
    errors = []
    for err in e.errors():
        field = ".".join(str(loc) for loc in err["loc"])
        msg = err["msg"]
        errors.append(f"  - {field}: {msg}")
    return "\n".join(errors)


def load_config(config_path: Path | None = None) -> SandboxConfig:
    """Load and validate config from YAML file.

    Args:
        config_path: Path to config file. Defaults to ~/.agent-sandbox/config.yaml.

    Returns:
        Validated SandboxConfig instance. A missing default file yields the
        defaults; a missing explicit path is an error.

    Raises:
        ConfigError: If the file is unreadable, not a mapping, or invalid.
    """
    path = config_path or DEFAULT_CONFIG_FILE

    if not path.exists():
        if config_path is None:
            return SandboxConfig()
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}\n\n  {e}") from None

    if data is None:
        return SandboxConfig()
    if not isinstance(data, dict):
        raise ConfigError(
            f"Invalid configuration in {path}\n\n"
            f"  Config file is not a YAML mapping.\n\n"
            f"Example:\n"
            f"  project_root: /path/to/project\n"
            f"  mcp_servers:\n"
            f"    files:\n"
            f"      command: npx\n"
            f"      args: [\"-y\", \"@modelcontextprotocol/server-filesystem\", \".\"]"
        )

    try:
        return SandboxConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}\n\n{_format_errors(e)}") from None


def apply_cli_overrides(
    config: SandboxConfig,
    project_root: Path | None = None,
    command_timeout: int | None = None,
    audit_log: str | None = None,
) -> SandboxConfig:
    """Apply CLI flag overrides to config. Returns a new SandboxConfig instance.

    Override precedence: Defaults → YAML → CLI flags.
    """
    overrides = {}
    if project_root is not None:
        overrides["project_root"] = project_root
    if command_timeout is not None:
        overrides["command_timeout"] = command_timeout
    if audit_log is not None:
        overrides["audit_log"] = audit_log

    if not overrides:
        return config

    try:
        return SandboxConfig.model_validate(config.model_dump() | overrides)
    except ValidationError as e:
        raise ConfigError(f"Invalid CLI override:\n\n{_format_errors(e)}") from None
