"""Staged deletion into a recoverable holding directory.

``rm`` and ``del`` never unlink anything directly. Targets are moved into
``.not-needed`` under the project root with a flat, unique name so they can
be restored by hand. A plain rename is tried first; when it fails (for
example across devices) the item is copied and the source removed.
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from agent_sandbox.errors import FilesystemError

_log = logging.getLogger(__name__)

STAGING_DIR_NAME = ".not-needed"


@dataclass(frozen=True)
class SafeDeleteTarget:
    original: str
    absolute: Path
    relative: str


def extract_targets(tokens: Sequence[str]) -> list[str]:
    """Return delete targets from ``tokens`` (the command token included).

    Flag-shaped tokens are skipped until a ``--`` separator; everything after
    it is a target.
    """
    targets: list[str] = []
    after_double_dash = False
    for token in tokens[1:]:
        if not after_double_dash and token == "--":
            after_double_dash = True
            continue
        if not after_double_dash and token.startswith("-"):
            continue
        if token.strip():
            targets.append(token.strip())
    return targets


def resolve_inside(project_root: Path, target: str) -> Path:
    """Resolve ``target`` against the root, refusing anything outside it."""
    resolved = (project_root / target).resolve()
    try:
        resolved.relative_to(project_root)
    except ValueError:
        raise FilesystemError(
            f"Path is outside of the project directory: {target}"
        ) from None
    return resolved


class SafeDeleter:
    def __init__(self, project_root: str | os.PathLike, staging_dir_name: str = STAGING_DIR_NAME) -> None:
        self.project_root = Path(project_root).resolve()
        self.staging_dir = self.project_root / staging_dir_name

    def delete(self, tokens: Sequence[str]) -> str:
        """Relocate every target named in ``tokens`` and return the audit text.

        All targets are checked (containment, existence, staging guard) before
        the first move. Once moving starts, a failure on a later item is
        raised as-is; items already relocated stay relocated.

        Raises:
            FilesystemError: on any check failure or unexpected I/O error.
        """
        raw_targets = extract_targets(tokens)
        if not raw_targets:
            raise FilesystemError("Safe delete intercepted but no file paths were provided.")

        resolved = [self._make_target(t) for t in raw_targets]

        for entry in resolved:
            if entry.absolute == self.project_root:
                raise FilesystemError("Safe delete blocked: refusing to delete the project root.")
            if entry.absolute == self.staging_dir or self.staging_dir in entry.absolute.parents:
                raise FilesystemError(
                    f"Safe delete blocked: refusing to delete the {self.staging_dir.name} staging area."
                )

        missing = [entry.original for entry in resolved if not os.path.lexists(entry.absolute)]
        if missing:
            raise FilesystemError(f"Safe delete failed: {', '.join(missing)} not found.")

        unique: list[SafeDeleteTarget] = []
        seen: set[Path] = set()
        for entry in resolved:
            if entry.absolute not in seen:
                seen.add(entry.absolute)
                unique.append(entry)

        self.staging_dir.mkdir(parents=True, exist_ok=True)

        timestamp = int(time.time() * 1000)
        lines = [f"Safe delete completed. Items relocated to {self.staging_dir.name}:"]
        for index, entry in enumerate(unique):
            flat_name = entry.relative.replace(os.sep, "__").replace("/", "__") or entry.absolute.name
            destination = self.staging_dir / f"{flat_name}.{timestamp}.{index}"
            lines.append(self._relocate(entry, destination))

        return "\n".join(lines)

    def _make_target(self, target: str) -> SafeDeleteTarget:
        # The link itself is relocated, not what it points to
        candidate = Path(os.path.normpath(self.project_root / target))
        if candidate == self.project_root or candidate.parent == candidate:
            absolute = candidate.resolve()
        else:
            absolute = candidate.parent.resolve() / candidate.name
        try:
            absolute.relative_to(self.project_root)
        except ValueError:
            raise FilesystemError(
                f"Path is outside of the project directory: {target}"
            ) from None
        relative = os.path.relpath(absolute, self.project_root)
        if relative == ".":
            relative = absolute.name
        return SafeDeleteTarget(original=target, absolute=absolute, relative=relative)

    def _relocate(self, entry: SafeDeleteTarget, destination: Path) -> str:
        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            os.rename(entry.absolute, destination)
            action = "renamed"
        except FileNotFoundError:
            raise FilesystemError(f"Safe delete failed: {entry.relative} does not exist.") from None
        except OSError as exc:
            reason = errno.errorcode.get(exc.errno, "UNKNOWN") if exc.errno else "UNKNOWN"
            _log.info("Rename of %s failed (%s), falling back to copy", entry.relative, reason)
            try:
                _copy_recursive(entry.absolute, destination)
                _remove_path(entry.absolute)
            except OSError as copy_exc:
                raise FilesystemError(
                    f"Safe delete failed while relocating {entry.relative}: {copy_exc}"
                ) from copy_exc
            action = f"copied (fallback: {reason})"

        label = os.path.relpath(destination, self.project_root)
        _log.info("Safe delete: %s -> %s (%s)", entry.relative, label, action)
        return f"- {entry.relative} -> {label} ({action})"


def _copy_recursive(src: Path, dest: Path) -> None:
    if src.is_dir() and not src.is_symlink():
        shutil.copytree(src, dest, symlinks=True)
    else:
        shutil.copy2(src, dest, follow_symlinks=False)


def _remove_path(target: Path) -> None:
    if target.is_dir() and not target.is_symlink():
        shutil.rmtree(target)
    else:
        target.unlink()
