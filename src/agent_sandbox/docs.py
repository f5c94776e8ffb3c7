"""Project activity log kept under ``<project_root>/.agent``."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from agent_sandbox.errors import FilesystemError

_log = logging.getLogger(__name__)

DOCS_DIR_NAME = ".agent"

DEFAULT_DOCS = {
    "design.md": (
        "# Project Design & Architecture\n\n## Overview\n"
        "[Describe the project goal and architecture here]\n\n"
        "## Components\n- [Component 1]\n- [Component 2]\n"
    ),
    "changelog.md": (
        "# Changelog\n\nAll notable changes to this project will be documented in this file.\n\n"
    ),
    "changes.md": "# Changes Index\n\nList of recent changes for quick context.\n\n",
    "agent.md": (
        "# Agent Rules\n\nDefine rules for the AI agent here.\n\n"
        "1. Always log changes to changelog.md and changes.md before completing a task.\n"
    ),
}


class ActivityLog:
    def __init__(self, project_root: str | Path, dir_name: str = DOCS_DIR_NAME) -> None:
        self.docs_dir = Path(project_root).resolve() / dir_name

    def init(self) -> list[str]:
        """Create the docs directory and any missing default files.

        Existing files are left untouched. Returns the names created.
        """
        self.docs_dir.mkdir(parents=True, exist_ok=True)
        created = []
        for name, content in DEFAULT_DOCS.items():
            path = self.docs_dir / name
            if path.exists():
                continue
            path.write_text(content, encoding="utf-8")
            created.append(name)
        if created:
            _log.info("Created docs files: %s", ", ".join(created))
        return created

    def log_activity(
        self,
        title: str,
        details: str,
        files: Iterable[str] = (),
        now: Optional[datetime] = None,
    ) -> None:
        date_str = (now or datetime.now(timezone.utc)).date().isoformat()
        modified = "\n".join(f"- {f}" for f in files)
        self._append(
            "changelog.md",
            f"\n## [{date_str}] {title}\n\n{details}\n\n**Modified Files:**\n{modified}\n",
        )
        self._append("changes.md", f"- [{date_str}] {title}\n")
        _log.info("Logged activity: %s", title)

    def recent_changes(self, lines: int = 20) -> str:
        content = self._read("changes.md")
        if not content:
            return ""
        return "\n".join(content.rstrip("\n").split("\n")[-lines:])

    def agent_rules(self) -> str:
        return self._read("agent.md")

    def changelog(self) -> str:
        return self._read("changelog.md")

    def _append(self, name: str, text: str) -> None:
        try:
            self.docs_dir.mkdir(parents=True, exist_ok=True)
            with open(self.docs_dir / name, "a", encoding="utf-8") as fh:
                fh.write(text)
        except OSError as exc:
            raise FilesystemError(f"Cannot write {name}: {exc}") from exc

    def _read(self, name: str) -> str:
        try:
            return (self.docs_dir / name).read_text(encoding="utf-8")
        except (FileNotFoundError, IsADirectoryError):
            return ""
