"""Rich terminal output helpers for the CLI."""

import io

from rich.console import Console
from rich.table import Table
from rich.text import Text

from agent_sandbox.tools.base import Tool
from agent_sandbox.tools.mcp_tool import MCPTool


class Renderer:
    """Render tool listings and styled status/error output in terminal."""

    def __init__(self, output_file: io.TextIOBase | None = None, stderr: bool = False) -> None:
        if output_file is not None:
            self.console = Console(file=output_file, highlight=False, width=120)
        else:
            self.console = Console(stderr=stderr)

    def print_output(self, text: str) -> None:
        """Print command output verbatim, without markup parsing."""
        self.console.print(Text(text), highlight=False, soft_wrap=True)

    def print_error(self, message: str) -> None:
        """Print a styled error message."""
        self.console.print(Text(message, style="red"), highlight=False, soft_wrap=True)

    def print_info(self, message: str) -> None:
        """Print a styled informational message."""
        self.console.print(Text(message, style="dim"), highlight=False, soft_wrap=True)

    def print_warning(self, message: str) -> None:
        self.console.print(Text(message, style="yellow"), highlight=False, soft_wrap=True)

    def print_success(self, message: str) -> None:
        self.console.print(Text(message, style="green"), highlight=False, soft_wrap=True)

    def render_tools(self, tools: list[Tool], title: str = "Tools") -> None:
        """Render one row per tool: name, source and description.

        Args:
            tools: Tools in registry order.
            title: Table title.
        """
        table = Table(title=title, title_justify="left", show_lines=False)
        table.add_column("Name", style="bold cyan", no_wrap=True)
        table.add_column("Source", style="dim")
        table.add_column("Description")
        for tool in tools:
            source = f"mcp:{tool.server_name}" if isinstance(tool, MCPTool) else "builtin"
            table.add_row(tool.name, source, tool.description)
        self.console.print(table)
