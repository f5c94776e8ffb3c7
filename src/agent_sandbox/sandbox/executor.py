from __future__ import annotations

import logging
import os
import subprocess
import threading
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from agent_sandbox.errors import ExecutionError, FilesystemError, ValidationError
from agent_sandbox.sandbox.safe_delete import STAGING_DIR_NAME, SafeDeleter, resolve_inside
from agent_sandbox.sandbox.tokenizer import RawCommand, tokenize
from agent_sandbox.sandbox.validator import validate_arguments, validate_raw_command

_log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 30
DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024
MAX_HISTORY = 50
READ_CHUNK_SIZE = 64 * 1024
_DRAIN_GRACE_SEC = 5.0

DELETE_COMMANDS = frozenset({"rm", "del"})

ALLOWED_COMMANDS = frozenset({
    "ls", "pwd", "cat", "echo", "whoami", "date",
    "git", "npm", "yarn", "pnpm", "node", "npx", "tsc",
    "python", "python3", "pip", "pip3",
    "cargo", "go", "java", "javac", "make", "gcc", "g++", "clang",
    "docker", "grep", "find", "head", "tail", "tree", "stat", "which", "whereis",
    "du", "df", "free", "top", "htop", "ps", "kill", "uname",
    "chmod", "chown",
    "curl", "wget", "ifconfig", "ip", "ping", "traceroute", "ssh", "scp", "rsync",
    "zip", "unzip", "tar", "gzip", "bzip2", "xz",
})

SAFE_ENV_ALLOWLIST = (
    "PATH", "HOME", "USER", "USERNAME", "SHELL", "TERM",
    "TMPDIR", "TEMP", "TMP",
    "LANG", "LC_ALL", "LC_CTYPE",
    "COLORTERM", "FORCE_COLOR",
)

# Dynamic loader injection; never forwarded even if the allow-list grows
_LOADER_ENV_PREFIXES = ("LD_", "DYLD_")


@dataclass
class CommandResult:
    output: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def build_safe_env(source: Optional[dict[str, str]] = None) -> dict[str, str]:
    source = os.environ if source is None else source
    env: dict[str, str] = {}
    for key in SAFE_ENV_ALLOWLIST:
        if key.startswith(_LOADER_ENV_PREFIXES):
            continue
        value = source.get(key)
        if value is not None:
            env[key] = value
    return env


@dataclass
class CapturedRun:
    returncode: Optional[int]
    stdout: bytes = b""
    stderr: bytes = b""
    timed_out: bool = False
    overflowed: bool = False


class _PipeDrain:
    """Pumps a child's stdout and stderr into buffers under one shared byte cap.

    The child is killed from the reader thread as soon as the combined count
    passes the cap.
    """

    def __init__(self, process: subprocess.Popen, limit: int) -> None:
        self._process = process
        self._limit = limit
        self._lock = threading.Lock()
        self._stdout = bytearray()
        self._stderr = bytearray()
        self._total = 0
        self.overflowed = False
        self._threads = [
            threading.Thread(target=self._pump, args=(process.stdout, self._stdout), daemon=True),
            threading.Thread(target=self._pump, args=(process.stderr, self._stderr), daemon=True),
        ]

    def start(self) -> None:
        for thread in self._threads:
            thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        for thread in self._threads:
            thread.join(timeout)

    def snapshot(self) -> tuple[bytes, bytes]:
        with self._lock:
            return bytes(self._stdout), bytes(self._stderr)

    def _pump(self, pipe, buffer: bytearray) -> None:
        try:
            while True:
                chunk = pipe.read1(READ_CHUNK_SIZE)
                if not chunk:
                    break
                with self._lock:
                    room = self._limit - self._total
                    if room > 0:
                        buffer.extend(chunk[:room])
                    self._total += len(chunk)
                    if self._total > self._limit and not self.overflowed:
                        self.overflowed = True
                        _log.warning("Output cap of %d bytes exceeded, killing pid %d",
                                     self._limit, self._process.pid)
                        _kill(self._process)
        finally:
            pipe.close()


def _kill(process: subprocess.Popen) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass


def run_capped(
    argv: list[str],
    *,
    cwd: Optional[str] = None,
    env: Optional[dict[str, str]] = None,
    timeout: Optional[float] = None,
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
) -> CapturedRun:
    """Run ``argv`` without a shell, killing it on timeout or output overflow.

    Buffered output never holds more than ``max_output_bytes`` across both
    streams. Raises OSError when the executable cannot be started.
    """
    process = subprocess.Popen(
        argv,
        shell=False,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        cwd=cwd,
        env=env,
    )
    drain = _PipeDrain(process, max_output_bytes)
    drain.start()

    timed_out = False
    try:
        process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        timed_out = True
    finally:
        if process.returncode is None:
            _kill(process)
            process.wait()
        # Grandchildren may still hold the pipes open
        drain.join(_DRAIN_GRACE_SEC)

    stdout, stderr = drain.snapshot()
    return CapturedRun(
        returncode=process.returncode,
        stdout=stdout,
        stderr=stderr,
        timed_out=timed_out and not drain.overflowed,
        overflowed=drain.overflowed,
    )


class ExecutionSandbox:
    """Runs agent-issued commands and file operations inside a project root.

    Commands are tokenized, validated, and then either routed to the staged
    safe-delete flow or spawned as a literal argv list with a restricted
    environment. No shell is ever involved.
    """

    def __init__(
        self,
        project_root: Optional[str | os.PathLike] = None,
        timeout_sec: int = DEFAULT_TIMEOUT_SEC,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
        staging_dir_name: str = STAGING_DIR_NAME,
    ) -> None:
        self.project_root = Path(project_root or os.getcwd()).resolve()
        self.timeout_sec = timeout_sec
        self.max_output_bytes = max_output_bytes
        self._deleter = SafeDeleter(self.project_root, staging_dir_name)
        self._commands: deque[str] = deque(maxlen=MAX_HISTORY)
        self._outputs: deque[str] = deque(maxlen=MAX_HISTORY)

    # ── Commands ────────────────────────────────────────────────────────────

    def execute_command(self, raw: str) -> CommandResult:
        """Validate and run ``raw``. Never raises; failures land in ``error``."""
        self._commands.append(raw)
        _log.info("Command execution: %s", raw)

        trimmed = raw.strip()
        try:
            parsed = self._parse(trimmed)
        except ValidationError as exc:
            return self._fail(f"Command blocked: {exc}")

        if not parsed.tokens:
            return self._fail("No command provided")

        if parsed.command in DELETE_COMMANDS:
            try:
                summary = self._deleter.delete(parsed.tokens)
            except FilesystemError as exc:
                return self._fail(str(exc))
            self._outputs.append(summary)
            return CommandResult(output=summary)

        if parsed.command not in ALLOWED_COMMANDS:
            return self._fail(f"Command not allowed: {parsed.command}")

        validation = validate_arguments(
            parsed.command,
            parsed.args,
            quoted=parsed.args_quoted,
            project_root=self.project_root,
        )
        if not validation.valid:
            return self._fail(f"Command blocked: {'; '.join(validation.errors)}")

        try:
            return self._spawn([parsed.command, *validation.sanitized_args])
        except ExecutionError as exc:
            self._outputs.append(str(exc))
            return CommandResult(output=exc.output, error=str(exc))

    def _parse(self, trimmed: str) -> RawCommand:
        raw_check = validate_raw_command(trimmed)
        if not raw_check.valid:
            raise ValidationError(raw_check.errors)
        return tokenize(trimmed)

    def _spawn(self, argv: list[str]) -> CommandResult:
        try:
            run = run_capped(
                argv,
                cwd=str(self.project_root),
                env=build_safe_env(),
                timeout=self.timeout_sec,
                max_output_bytes=self.max_output_bytes,
            )
        except OSError as exc:
            raise ExecutionError(f"Command execution failed: {exc}") from exc

        if run.overflowed:
            raise ExecutionError(
                f"Output exceeded {self.max_output_bytes} bytes",
                output=_decode(run.stdout),
            )
        if run.timed_out:
            raise ExecutionError(
                f"Command timed out after {self.timeout_sec}s: {' '.join(argv)}",
                output=_decode(run.stdout),
            )

        out_text = _decode(run.stdout)
        err_text = _decode(run.stderr)
        if run.returncode != 0:
            detail = f": {err_text.strip()}" if err_text.strip() else ""
            raise ExecutionError(
                f"Command failed with exit code {run.returncode}{detail}",
                output=out_text,
            )

        output = out_text + err_text
        self._outputs.append(output)
        return CommandResult(output=output, error=err_text or None)

    def _fail(self, message: str) -> CommandResult:
        _log.warning("%s", message)
        self._outputs.append(message)
        return CommandResult(output="", error=message)

    # ── Files ───────────────────────────────────────────────────────────────

    def resolve_path(self, path: str) -> Path:
        """Absolute path for ``path`` or FilesystemError if it leaves the root."""
        return resolve_inside(self.project_root, path)

    def read_file(self, path: str) -> str:
        safe_path = self.resolve_path(path)
        if not safe_path.is_file():
            raise FilesystemError(f"File not found: {path}")
        try:
            return safe_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise FilesystemError(f"Could not read {path}: {exc}") from exc

    def write_file(self, path: str, content: str) -> Path:
        safe_path = self.resolve_path(path)
        try:
            safe_path.parent.mkdir(parents=True, exist_ok=True)
            safe_path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise FilesystemError(f"Could not write {path}: {exc}") from exc
        return safe_path

    def list_files(self, path: str = ".") -> list[str]:
        safe_path = self.resolve_path(path)
        if not safe_path.exists():
            raise FilesystemError(f"Directory not found: {path}")
        if not safe_path.is_dir():
            raise FilesystemError(f"Not a directory: {path}")
        try:
            return sorted(entry.name for entry in safe_path.iterdir())
        except OSError as exc:
            raise FilesystemError(f"Could not list {path}: {exc}") from exc

    # ── History ─────────────────────────────────────────────────────────────

    @property
    def history(self) -> dict[str, list[str]]:
        return {"commands": list(self._commands), "outputs": list(self._outputs)}

    def clear_history(self) -> None:
        self._commands.clear()
        self._outputs.clear()


def _decode(data: Optional[bytes | str]) -> str:
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    return data.decode("utf-8", errors="replace")
