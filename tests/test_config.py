"""Tests for configuration system."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from agent_sandbox.config import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_CONFIG_FILE,
    ConfigError,
    MCPServerConfig,
    SandboxConfig,
    apply_cli_overrides,
    load_config,
)


class TestSandboxConfigModel:
    """Test Pydantic config model validation."""

    def test_defaults(self):
        config = SandboxConfig()
        assert config.project_root is None
        assert config.command_timeout == 30
        assert config.max_output_bytes == 10 * 1024 * 1024
        assert config.staging_dir_name == ".not-needed"
        assert config.docs_dir_name == ".agent"
        assert config.policy.deny_tools == []
        assert config.mcp_servers == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            SandboxConfig(colour="blue")

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError):
            SandboxConfig(command_timeout=0)

    @pytest.mark.parametrize("name", ["", "a/b", "..", "."])
    def test_bad_staging_dir_name(self, name):
        with pytest.raises(ValidationError):
            SandboxConfig(staging_dir_name=name)

    def test_resolved_root_defaults_to_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert SandboxConfig().resolved_root() == tmp_path.resolve()

    def test_default_paths(self):
        assert DEFAULT_CONFIG_DIR == Path.home() / ".agent-sandbox"
        assert DEFAULT_CONFIG_FILE == DEFAULT_CONFIG_DIR / "config.yaml"


class TestMCPServerConfig:
    def test_stdio_needs_command(self):
        with pytest.raises(ValidationError, match="command"):
            MCPServerConfig(transport="stdio")

    def test_http_needs_url(self):
        with pytest.raises(ValidationError, match="url"):
            MCPServerConfig(transport="http", api_key="k")

    def test_http_url_scheme(self):
        with pytest.raises(ValidationError, match="http"):
            MCPServerConfig(transport="http", url="ftp://x")

    def test_unknown_transport(self):
        with pytest.raises(ValidationError):
            MCPServerConfig(transport="carrier-pigeon", command="x")

    def test_repr_masks_api_key(self):
        server = MCPServerConfig(transport="http", url="https://x", api_key="sk-secret")
        assert "sk-secret" not in repr(server)
        assert "***" in repr(server)


class TestLoadConfig:
    def test_missing_default_file_gives_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setattr("agent_sandbox.config.DEFAULT_CONFIG_FILE", tmp_path / "absent.yaml")
        assert load_config() == SandboxConfig()

    def test_missing_explicit_file_is_error(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "absent.yaml")

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path) == SandboxConfig()

    def test_full_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({
            "project_root": str(tmp_path),
            "command_timeout": 10,
            "policy": {"deny_tools": ["exec"]},
            "mcp_servers": {
                "files": {"command": "npx", "args": ["-y", "server-fs"], "env": {"DEBUG": "1"}},
                "remote": {"transport": "http", "url": "https://mcp.example.com", "api_key": "k"},
            },
        }))
        config = load_config(path)
        assert config.project_root == tmp_path
        assert config.command_timeout == 10
        assert config.policy_dict() == {"deny_tools": ["exec"]}
        assert config.mcp_servers["files"].transport == "stdio"
        assert config.mcp_servers["files"].args == ["-y", "server-fs"]
        assert config.mcp_servers["remote"].url == "https://mcp.example.com"

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="not a YAML mapping"):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("key: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_field_errors_listed(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"command_timeout": -1, "mcp_servers": {"bad": {"transport": "http"}}}))
        with pytest.raises(ConfigError) as exc_info:
            load_config(path)
        message = str(exc_info.value)
        assert "  - command_timeout:" in message
        assert "  - mcp_servers.bad:" in message


class TestCliOverrides:
    def test_no_overrides_returns_same_object(self):
        config = SandboxConfig()
        assert apply_cli_overrides(config) is config

    def test_overrides_applied(self, tmp_path):
        config = apply_cli_overrides(SandboxConfig(), project_root=tmp_path, command_timeout=5)
        assert config.project_root == tmp_path
        assert config.command_timeout == 5

    def test_invalid_override(self):
        with pytest.raises(ConfigError, match="Invalid CLI override"):
            apply_cli_overrides(SandboxConfig(), command_timeout=-3)
