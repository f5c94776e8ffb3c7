"""Command and argument validation against injection and traversal patterns.

Every function here is stateless: the project root is passed in (or taken
from the current working directory) and nothing is cached between calls.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

MAX_ARG_LENGTH = 2048

# ; & | ` $ ( ) < > # and control characters that end or chain a command
DANGEROUS_CHARS = re.compile(r"[;&|`$()<>#\n\r\0]")

_PATH_SEPARATORS = re.compile(r"[\\/]")


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    sanitized_args: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CommandSchema:
    """Closed allow-list of subcommands and flags for a single command."""

    allowed_flags: frozenset[str]
    allowed_subcommands: tuple[str, ...] = ()
    requires_subcommand: bool = False


COMMAND_SCHEMAS: dict[str, CommandSchema] = {
    "git": CommandSchema(
        allowed_flags=frozenset(
            {"-a", "-m", "-p", "-v", "--all", "--version", "--help", "--status"}
        ),
        allowed_subcommands=("status", "log", "diff", "branch", "add", "commit", "push", "pull"),
        requires_subcommand=True,
    ),
    "npm": CommandSchema(
        allowed_flags=frozenset({"-v", "--version", "-g", "--global", "--save", "--save-dev"}),
        allowed_subcommands=("install", "test", "run", "version", "list"),
        requires_subcommand=True,
    ),
    "ls": CommandSchema(
        allowed_flags=frozenset({"-l", "-a", "-h", "-R", "-t"}),
    ),
}


def validate_raw_command(raw: str) -> ValidationResult:
    """Check the untokenized command line for shell-only constructs.

    Each rule is evaluated independently so the caller sees every violation.
    """
    errors: list[str] = []
    if "\n" in raw or "\r" in raw:
        errors.append("Multi-line commands are not allowed")
    if "$(" in raw:
        errors.append("Subshell syntax $(...) detected")
    if "`" in raw:
        errors.append("Backtick command substitution detected")
    if "$'" in raw:
        errors.append("Bash $'...' syntax is not allowed")
    return ValidationResult(valid=not errors, errors=errors)


def validate_arguments(
    command: str,
    args: Sequence[str],
    quoted: Optional[Sequence[bool]] = None,
    project_root: Optional[str | os.PathLike] = None,
) -> ValidationResult:
    """Validate tokenized arguments for ``command``.

    Args:
        command: Lower-cased command name, used to look up its schema.
        args: Arguments after the command name.
        quoted: Optional per-argument flags from the tokenizer marking
            arguments that were entirely quoted on the command line.
        project_root: Root that absolute path arguments must stay inside.
            Defaults to the current working directory.

    Returns:
        A ValidationResult listing every problem found, in argument order,
        followed by schema errors.
    """
    root = Path(project_root or os.getcwd()).resolve()
    flags = list(quoted) if quoted is not None else []
    errors: list[str] = []

    for index, arg in enumerate(args):
        if len(arg) > MAX_ARG_LENGTH:
            errors.append(f"Argument exceeds maximum length: {arg[:50]}...")
            continue

        was_quoted = index < len(flags) and flags[index]
        if DANGEROUS_CHARS.search(arg) and not (was_quoted or is_quoted_string(arg)):
            errors.append(f"Argument contains dangerous characters: {arg}")
            continue

        if looks_like_path(arg):
            path_error = validate_path(arg, root)
            if path_error:
                errors.append(path_error)

    schema = COMMAND_SCHEMAS.get(command)
    if schema is not None:
        errors.extend(_validate_against_schema(args, schema))

    return ValidationResult(
        valid=not errors,
        errors=errors,
        sanitized_args=list(args) if not errors else [],
    )


def is_quoted_string(arg: str) -> bool:
    """Literal boundary check; no shell escape interpretation."""
    return len(arg) >= 2 and arg[0] == arg[-1] and arg[0] in ("'", '"')


def looks_like_path(arg: str) -> bool:
    return "/" in arg or "\\" in arg or arg.startswith(".") or os.sep in arg


def validate_path(path_arg: str, project_root: Path) -> Optional[str]:
    clean = re.sub(r"^[\"']|[\"']$", "", path_arg)

    if ".." in _PATH_SEPARATORS.split(clean):
        return f"Path traversal detected: {path_arg}"

    if os.path.isabs(clean):
        try:
            Path(clean).resolve().relative_to(project_root)
        except ValueError:
            return f"Absolute path outside project: {path_arg}"

    return None


def _validate_against_schema(args: Sequence[str], schema: CommandSchema) -> list[str]:
    errors: list[str] = []

    if schema.requires_subcommand:
        if not args:
            return ["Command requires a subcommand"]
        positional = [a for a in args if not a.startswith("-")]
        if positional and positional[0] not in schema.allowed_subcommands:
            errors.append(
                f"Invalid subcommand: {positional[0]}. "
                f"Allowed: {', '.join(schema.allowed_subcommands)}"
            )

    allowed = ", ".join(sorted(schema.allowed_flags))
    for arg in args:
        if arg.startswith("-") and arg not in schema.allowed_flags:
            errors.append(f"Invalid flag: {arg}. Allowed: {allowed}")

    return errors
