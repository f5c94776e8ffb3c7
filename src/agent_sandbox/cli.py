"""agent-sandbox CLI entry point."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from agent_sandbox import __version__
from agent_sandbox.config import ConfigError, SandboxConfig, apply_cli_overrides, load_config
from agent_sandbox.docs import ActivityLog
from agent_sandbox.errors import SandboxError
from agent_sandbox.mcp.client import MCPClient
from agent_sandbox.renderer import Renderer
from agent_sandbox.sandbox.executor import ExecutionSandbox
from agent_sandbox.tools.registry import ToolRegistry

_log = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=verbose)],
        force=True,
    )


def _build_sandbox(config: SandboxConfig) -> ExecutionSandbox:
    return ExecutionSandbox(
        config.resolved_root(),
        timeout_sec=config.command_timeout,
        max_output_bytes=config.max_output_bytes,
        staging_dir_name=config.staging_dir_name,
    )


def _build_registry(config: SandboxConfig) -> ToolRegistry:
    sandbox = _build_sandbox(config)
    return ToolRegistry(
        sandbox,
        policy=config.policy_dict(),
        audit_log=config.audit_log,
        activity_log=ActivityLog(sandbox.project_root, config.docs_dir_name),
    )


async def _connect_servers(client: MCPClient, config: SandboxConfig, names: list[str]) -> list[str]:
    """Connect each named server; failures are logged and skipped."""
    connected = []
    for name in names:
        server = config.mcp_servers[name]
        try:
            if server.transport == "http":
                await client.connect_http(name, server.url, server.api_key)
            else:
                await client.connect(name, server.command, server.args, env=server.env)
        except SandboxError as exc:
            _log.error("Could not connect to MCP server %s: %s", name, exc)
            continue
        connected.append(name)
    return connected


async def _with_mcp_tools(config: SandboxConfig, action):
    """Run ``action(registry)`` with every configured MCP server registered."""
    registry = _build_registry(config)
    client = MCPClient()
    try:
        connected = await _connect_servers(client, config, list(config.mcp_servers))
        await registry.register_mcp_tools(client, connected)
        return await action(registry)
    finally:
        await client.close()


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Config file. Defaults to ~/.agent-sandbox/config.yaml",
)
@click.option(
    "--root",
    type=click.Path(path_type=Path, file_okay=False, exists=True),
    default=None,
    help="Project root. Defaults to the configured root or the current directory.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="agent-sandbox")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, root: Path | None, verbose: bool) -> None:
    """Sandboxed command execution and tool dispatch for coding agents."""
    _configure_logging(verbose)
    try:
        config = load_config(config_path)
        config = apply_cli_overrides(config, project_root=root)
    except ConfigError as e:
        click.echo(str(e), err=True)
        sys.exit(1)
    ctx.obj = config


@main.command("exec")
@click.argument("command")
@click.pass_obj
def exec_command(config: SandboxConfig, command: str) -> None:
    """Run COMMAND through the sandbox, e.g. agent-sandbox exec "git status"."""
    result = _build_sandbox(config).execute_command(command)
    renderer = Renderer()
    if result.output:
        renderer.print_output(result.output.rstrip("\n"))
    if result.error:
        Renderer(stderr=True).print_error(f"Error: {result.error}")
        sys.exit(1)


@main.command("tools")
@click.pass_obj
def list_tools(config: SandboxConfig) -> None:
    """List built-in tools plus those of every configured MCP server."""

    async def _render(registry: ToolRegistry) -> None:
        Renderer().render_tools(registry.tools)

    asyncio.run(_with_mcp_tools(config, _render))


@main.command("call")
@click.argument("text")
@click.pass_obj
def call_tool(config: SandboxConfig, text: str) -> None:
    """Parse a <tool_code> block from TEXT and execute it."""
    call = ToolRegistry.parse_tool_call(text)
    if call is None:
        click.echo("No valid <tool_code> block found.", err=True)
        sys.exit(1)

    async def _execute(registry: ToolRegistry) -> str:
        return await registry.execute(call.name, call.args)

    output = asyncio.run(_with_mcp_tools(config, _execute))
    if output.startswith("Error"):
        Renderer(stderr=True).print_error(output)
        sys.exit(1)
    Renderer().print_output(output)


@main.command("mcp-tools")
@click.argument("server")
@click.pass_obj
def mcp_tools(config: SandboxConfig, server: str) -> None:
    """List the tools exposed by one configured MCP SERVER."""
    if server not in config.mcp_servers:
        known = ", ".join(sorted(config.mcp_servers)) or "none"
        click.echo(f"Unknown MCP server: {server} (configured: {known})", err=True)
        sys.exit(1)

    async def _list() -> list | None:
        client = MCPClient()
        try:
            if not await _connect_servers(client, config, [server]):
                return None
            return await client.list_tools(server)
        finally:
            await client.close()

    try:
        infos = asyncio.run(_list())
    except SandboxError as e:
        click.echo(str(e), err=True)
        sys.exit(1)
    if infos is None:
        click.echo(f"Could not connect to MCP server: {server}", err=True)
        sys.exit(1)

    renderer = Renderer()
    if not infos:
        renderer.print_warning(f"No tools reported by {server}.")
        return
    for info in infos:
        renderer.print_output(f"{info.name}: {info.description or 'No description provided'}")


@main.group("docs")
def docs_group() -> None:
    """Manage the project activity log directory."""


def _activity_log(config: SandboxConfig) -> ActivityLog:
    return ActivityLog(config.resolved_root(), config.docs_dir_name)


@docs_group.command("init")
@click.pass_obj
def docs_init(config: SandboxConfig) -> None:
    """Create the docs directory and any missing default files."""
    activity_log = _activity_log(config)
    try:
        created = activity_log.init()
    except OSError as e:
        click.echo(f"Could not initialize {activity_log.docs_dir}: {e}", err=True)
        sys.exit(1)
    renderer = Renderer()
    if not created:
        renderer.print_info(f"{activity_log.docs_dir} is already initialized.")
        return
    for name in created:
        renderer.print_success(f"Created {activity_log.docs_dir / name}")


@docs_group.command("changes")
@click.option("--lines", "-n", type=click.IntRange(min=1), default=20, show_default=True)
@click.pass_obj
def docs_changes(config: SandboxConfig, lines: int) -> None:
    """Show the most recent entries of the changes index."""
    recent = _activity_log(config).recent_changes(lines).strip("\n")
    if not recent:
        Renderer().print_warning("No changes logged yet.")
        return
    Renderer().print_output(recent)


@docs_group.command("rules")
@click.pass_obj
def docs_rules(config: SandboxConfig) -> None:
    """Print the agent rules file."""
    rules = _activity_log(config).agent_rules().strip("\n")
    if not rules:
        Renderer().print_warning("No agent rules found. Run 'agent-sandbox docs init' first.")
        return
    Renderer().print_output(rules)
